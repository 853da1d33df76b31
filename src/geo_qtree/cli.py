"""
Command-line interface for geo-qtree.

Provides commands for building a point index snapshot and querying it.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .builder import BuilderConfig, QuadTreeBuilder, timed_query
from .coords import LatLon
from .duckdb_source import DuckDBRecordSource, create_source_from_file
from .quadtree import QuadTree, Record
from .region import DEFAULT_REGION_SAMPLES
from .serialize import SnapshotNotFoundError, read_tree, write_tree
from .sources import GridSource, RandomSource, RecordSource


DEFAULT_INDEX_DIR = Path("qtree_index")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="geo-qtree",
        description="Build and query a quadtree index of geographic points",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log output (-v for info, -vv for debug)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Build command
    build_parser = subparsers.add_parser(
        "build",
        help="Build an index snapshot from a point file",
    )
    build_parser.add_argument(
        "--source",
        type=Path,
        help="CSV or Parquet file with key/latitude/longitude columns",
    )
    build_parser.add_argument(
        "--mock-source",
        type=str,
        choices=["grid", "random"],
        default=None,
        help="Use a synthetic source instead of a file (for testing)",
    )
    build_parser.add_argument(
        "--key-field",
        default="key",
        help="Key column name (default: key)",
    )
    build_parser.add_argument(
        "--lat-field",
        default="latitude",
        help="Latitude column name (default: latitude)",
    )
    build_parser.add_argument(
        "--lon-field",
        default="longitude",
        help="Longitude column name (default: longitude)",
    )
    build_parser.add_argument(
        "-c", "--capacity",
        type=int,
        default=100,
        help="Maximum records per leaf (default: 100)",
    )
    build_parser.add_argument(
        "--max-depth",
        type=int,
        default=12,
        help="Maximum tree depth (default: 12)",
    )
    build_parser.add_argument(
        "-o", "--index-dir",
        type=Path,
        default=DEFAULT_INDEX_DIR,
        help=f"Snapshot directory (default: {DEFAULT_INDEX_DIR})",
    )

    # Bounding box query
    bbox_parser = subparsers.add_parser(
        "query-bbox",
        help="List records inside a bounding box",
    )
    _add_index_dir(bbox_parser)
    bbox_parser.add_argument("--west", type=float, required=True)
    bbox_parser.add_argument("--south", type=float, required=True)
    bbox_parser.add_argument("--east", type=float, required=True)
    bbox_parser.add_argument("--north", type=float, required=True)

    # Point radius query
    radius_parser = subparsers.add_parser(
        "query-radius",
        help="List records within a distance of a point",
    )
    _add_index_dir(radius_parser)
    radius_parser.add_argument("--lat", type=float, required=True)
    radius_parser.add_argument("--lon", type=float, required=True)
    radius_parser.add_argument(
        "--radius-km",
        type=float,
        required=True,
        help="Search radius in kilometers",
    )
    radius_parser.add_argument(
        "--samples",
        type=int,
        default=DEFAULT_REGION_SAMPLES,
        help=f"Points sampled on the search circle (default: {DEFAULT_REGION_SAMPLES})",
    )

    # Stats command
    stats_parser = subparsers.add_parser(
        "stats",
        help="Show statistics for an index snapshot",
    )
    _add_index_dir(stats_parser)

    return parser


def _add_index_dir(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-i", "--index-dir",
        type=Path,
        default=DEFAULT_INDEX_DIR,
        help=f"Snapshot directory (default: {DEFAULT_INDEX_DIR})",
    )


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_tree(index_dir: Path) -> Optional[QuadTree]:
    try:
        return read_tree(index_dir)
    except SnapshotNotFoundError as e:
        print(f"Error: {e}")
        print("Run 'geo-qtree build' first")
        return None


def _print_records(records: List[Record], elapsed: float) -> None:
    for record in records:
        print(f"{record.key}\t{record.latitude}\t{record.longitude}")
    print(f"{len(records)} records in {elapsed * 1000.0:.3f} ms")


def cmd_build(args: argparse.Namespace) -> int:
    """Handle the build command."""
    source: RecordSource

    try:
        config = BuilderConfig(capacity=args.capacity, max_depth=args.max_depth)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if args.mock_source:
        if args.mock_source == "grid":
            source = GridSource()
        else:
            source = RandomSource(count=10000)
        print(f"Using mock source: {args.mock_source}")
    elif args.source:
        try:
            file_source = create_source_from_file(
                args.source, args.key_field, args.lat_field, args.lon_field
            )
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}")
            return 1
        source = file_source
        print(f"Loaded {file_source.get_record_count()} records from {args.source}")
    else:
        print("Error: one of --source or --mock-source is required")
        return 1

    print("Building quadtree...")
    builder = QuadTreeBuilder(source, config)
    try:
        tree = builder.build()
    finally:
        # Clean up source if it's a DuckDB source
        if isinstance(source, DuckDBRecordSource):
            source.close()
    stats = builder.stats

    print(f"\nBuild statistics:")
    print(f"  Records seen: {stats.records_seen}")
    print(f"  Records inserted: {stats.records_inserted}")
    print(f"  Rejected (out of bounds): {stats.rejected_out_of_bounds}")
    print(f"  Rejected (leaf full at max depth): {stats.rejected_at_capacity}")
    print(f"  Nodes: {tree.node_count} ({tree.leaf_count} leaves)")
    print(f"  Depth: {tree.depth}")
    print(f"  Build time: {stats.build_seconds:.3f}s")

    write_tree(tree, args.index_dir)
    print(f"\nWrote index snapshot to {args.index_dir}")

    return 0


def cmd_query_bbox(args: argparse.Namespace) -> int:
    """Handle the query-bbox command."""
    tree = _load_tree(args.index_dir)
    if tree is None:
        return 1

    try:
        records, elapsed = timed_query(
            tree.query_by_bounds, args.west, args.south, args.east, args.north
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    _print_records(records, elapsed)
    return 0


def cmd_query_radius(args: argparse.Namespace) -> int:
    """Handle the query-radius command."""
    tree = _load_tree(args.index_dir)
    if tree is None:
        return 1

    try:
        center = LatLon(args.lat, args.lon)
        records, elapsed = timed_query(
            tree.query_by_point_radius, center, args.radius_km, args.samples
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    _print_records(records, elapsed)
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    """Handle the stats command."""
    tree = _load_tree(args.index_dir)
    if tree is None:
        return 1

    print(f"Index statistics for {args.index_dir}:")
    print(f"  Capacity: {tree.capacity}")
    print(f"  Max depth: {tree.max_depth}")
    print(f"  Records: {len(tree)}")
    print(f"  Nodes: {tree.node_count}")
    print(f"  Internal nodes: {tree.internal_count}")
    print(f"  Leaf nodes: {tree.leaf_count}")
    print(f"  Depth: {tree.depth}")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    _configure_logging(args.verbose)

    if args.command == "build":
        return cmd_build(args)
    elif args.command == "query-bbox":
        return cmd_query_bbox(args)
    elif args.command == "query-radius":
        return cmd_query_radius(args)
    elif args.command == "stats":
        return cmd_stats(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
