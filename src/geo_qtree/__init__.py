"""
geo-qtree: Quadtree point index with bounding-box and point-radius search.

This package provides a bucket quadtree that stores point-referenced
records keyed by latitude/longitude, answers bounding-box and
"within N km of a point" queries, and persists itself to a directory of
per-node files so that ingestion does not have to be repeated.
"""

__version__ = "0.1.0"

from .coords import LatLon, clamp_coords, normalize_longitude
from .distance import (
    EARTH_RADIUS_KM,
    HALF_EARTH_CIRCUMFERENCE,
    point_on_great_circle,
    haversine_distance,
)
from .quadtree import QuadTree, QuadTreeNode, LeafNode, InternalNode, Record
from .rectangle import Rectangle
from .region import circular_region_approximation, rectangular_region_approximation
from .serialize import (
    write_tree,
    read_tree,
    SnapshotNotFoundError,
    SnapshotFormatError,
)
from .sources import RecordSource, IterableSource
from .builder import QuadTreeBuilder, BuilderConfig, build_index, load_or_build
from .duckdb_source import DuckDBRecordSource, create_source_from_file

__all__ = [
    "LatLon",
    "clamp_coords",
    "normalize_longitude",
    "EARTH_RADIUS_KM",
    "HALF_EARTH_CIRCUMFERENCE",
    "point_on_great_circle",
    "haversine_distance",
    "QuadTree",
    "QuadTreeNode",
    "LeafNode",
    "InternalNode",
    "Rectangle",
    "Record",
    "circular_region_approximation",
    "rectangular_region_approximation",
    "write_tree",
    "read_tree",
    "SnapshotNotFoundError",
    "SnapshotFormatError",
    "RecordSource",
    "IterableSource",
    "QuadTreeBuilder",
    "BuilderConfig",
    "build_index",
    "load_or_build",
    "DuckDBRecordSource",
    "create_source_from_file",
]
