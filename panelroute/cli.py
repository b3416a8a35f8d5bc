#!/usr/bin/env python3
"""
PanelRoute CLI

Command-line interface for the panel layout routing core.

Usage:
    panelroute library [--library FILE]
    panelroute route <project.yaml> [options]
    panelroute check <project.yaml>
"""

import argparse
import logging
import sys
from typing import List, Optional

from .errors import PanelRouteError


def _load(args):
    """Load a project file, printing the error and returning None on failure."""
    from .config import RoutingDefaults
    from .twin.project_file import load_project

    try:
        defaults = RoutingDefaults.load(args.config) if getattr(args, "config", None) else None
        return load_project(args.project, reroute=False, defaults=defaults)
    except (PanelRouteError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return None


def cmd_library(args):
    """List catalog entries."""
    from .library.loader import ComponentLibrary

    try:
        library = ComponentLibrary.load(args.library)
    except PanelRouteError as e:
        print(f"Error: {e}")
        return 1

    print(f"Component library: {len(library)} definitions\n")
    for definition in library:
        pins = ", ".join(p.label for p in definition.pins)
        print(f"  {definition.id}")
        print(f"    {definition.component_type.value:<13} {definition.display_name}")
        print(
            f"    {definition.width:g} x {definition.height:g} x {definition.depth:g} mm, "
            f"{definition.rail_modules:g} modules"
        )
        print(f"    Pins: {pins}")
    return 0


def cmd_route(args):
    """Route every wire in a project."""
    from .twin.project_file import write_project_file

    twin = _load(args)
    if twin is None:
        return 1

    stats = twin.get_stats()
    print(f"Project: {twin.project_name}")
    print(f"  Components: {stats['components']} ({stats['placed']} placed)")
    print(f"  Connections: {stats['connections']}")

    print("\nRouting wires...")
    try:
        outcomes = twin.route_all(resolution=args.resolution, skip_anchored=not args.force)
    except PanelRouteError as e:
        print(f"Error: {e}")
        return 1

    failed = 0
    for connection_id, outcome in outcomes.items():
        wire = twin.get_wire_for_connection(connection_id)
        if outcome.success:
            print(
                f"  {connection_id}: routed, {len(wire.waypoints)} waypoints, "
                f"{wire.length:.1f} mm"
            )
        else:
            failed += 1
            print(f"  {connection_id}: FAILED ({outcome.reason.value}) {outcome.result.detail}")

    stats = twin.get_stats()
    print(f"\nRouted {stats['routed_wires']}/{stats['wires']} wires, "
          f"total length {stats['total_wire_length']:.1f} mm")

    if args.output:
        path = write_project_file(twin, args.output, include_computed_waypoints=True)
        print(f"\nSaved to: {path}")

    return 1 if failed else 0


def cmd_check(args):
    """Report overlapping placed components."""
    twin = _load(args)
    if twin is None:
        return 1

    overlaps = 0
    for instance in twin.components:
        if not instance.is_physically_placed:
            continue
        result = twin.check_placement(instance.instance_id)
        if result.has_collision:
            overlaps += 1
            print(f"  {instance.instance_id} overlaps {', '.join(result.colliding_with)}")

    unplaced = [c.instance_id for c in twin.components if not c.is_physically_placed]
    if unplaced:
        print(f"  Unplaced: {', '.join(unplaced)}")

    if overlaps:
        print(f"\n{overlaps} components overlap")
        return 1
    print("No overlaps found.")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="PanelRoute - electrical panel layout and wire routing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  panelroute library
  panelroute route panel.yaml -o panel.routed.yaml
  panelroute route panel.yaml --resolution 5
  panelroute check panel.yaml
        """,
    )

    parser.add_argument('--version', action='version', version='panelroute 0.1.0')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Library command
    library_parser = subparsers.add_parser('library', help='List component catalog')
    library_parser.add_argument('--library', help='Custom component library YAML')

    # Route command
    route_parser = subparsers.add_parser('route', help='Route every wire in a project')
    route_parser.add_argument('project', help='Project file (.yaml or .json)')
    route_parser.add_argument('-o', '--output', help='Write the routed project here')
    route_parser.add_argument('--resolution', type=float, help='Grid resolution in mm')
    route_parser.add_argument('--config', help='Custom routing defaults YAML')
    route_parser.add_argument('--force', action='store_true',
                              help='Also re-route wires with hand-placed waypoints')

    # Check command
    check_parser = subparsers.add_parser('check', help='Report overlapping components')
    check_parser.add_argument('project', help='Project file (.yaml or .json)')
    check_parser.add_argument('--config', help='Custom routing defaults YAML')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    # Dispatch command
    commands = {
        'library': cmd_library,
        'route': cmd_route,
        'check': cmd_check,
    }

    return commands[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
