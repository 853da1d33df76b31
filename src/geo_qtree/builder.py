"""
Quadtree builder for the ingestion phase.

This module runs the one-time load of an index: records are pulled from a
source and inserted into a fresh tree, or the tree is restored from a
snapshot directory when one is available. Once built, the tree is only read.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple, Union
import logging
import time

from .quadtree import QuadTree, Record
from .serialize import SnapshotNotFoundError, read_tree, write_tree
from .sources import RecordSource


logger = logging.getLogger(__name__)


@dataclass
class BuilderConfig:
    """Configuration for the quadtree builder."""

    capacity: int = 100
    """Maximum records per leaf before subdivision."""

    max_depth: int = 12
    """Subdivision ceiling (root = 0)."""

    snapshot_dir: Optional[Union[str, Path]] = None
    """Directory for the persisted index, if any."""

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        if self.snapshot_dir is not None:
            self.snapshot_dir = Path(self.snapshot_dir)


@dataclass
class BuilderStats:
    """Statistics collected during tree building."""

    records_seen: int = 0
    records_inserted: int = 0
    rejected_out_of_bounds: int = 0
    rejected_at_capacity: int = 0
    build_seconds: float = 0.0

    @property
    def records_rejected(self) -> int:
        return self.rejected_out_of_bounds + self.rejected_at_capacity


class QuadTreeBuilder:
    """
    Builds a quadtree from a record source.

    Records the tree refuses are logged and skipped; a rejected record
    never aborts the build.
    """

    def __init__(self, source: RecordSource, config: BuilderConfig):
        """
        Initialize the builder.

        Args:
            source: Source of records to index
            config: Builder configuration
        """
        self.source = source
        self.config = config
        self.stats = BuilderStats()

    def build(self) -> QuadTree:
        """
        Build the complete quadtree.

        Returns:
            QuadTree holding every accepted record
        """
        self.stats = BuilderStats()  # Reset stats
        start = time.perf_counter()

        tree = QuadTree(self.config.capacity, self.config.max_depth)
        for record in self.source.records():
            self._insert(tree, record)

        self.stats.build_seconds = time.perf_counter() - start
        logger.info(
            "Indexed %d of %d records in %.3fs (%d nodes, depth %d)",
            self.stats.records_inserted,
            self.stats.records_seen,
            self.stats.build_seconds,
            tree.node_count,
            tree.depth,
        )
        return tree

    def _insert(self, tree: QuadTree, record: Record) -> None:
        self.stats.records_seen += 1

        if tree.insert(record):
            self.stats.records_inserted += 1
        elif not tree.bounds.contains(record.longitude, record.latitude):
            self.stats.rejected_out_of_bounds += 1
            logger.warning(
                "Skipping record %r: (%s, %s) is outside the index bounds",
                record.key, record.latitude, record.longitude,
            )
        else:
            self.stats.rejected_at_capacity += 1
            logger.warning(
                "Skipping record %r: leaf at (%s, %s) is full at max depth %d",
                record.key, record.latitude, record.longitude, tree.max_depth,
            )


def build_index(
    source: RecordSource,
    capacity: int = 100,
    max_depth: int = 12,
) -> Tuple[QuadTree, BuilderStats]:
    """
    Convenience function to build a quadtree.

    Args:
        source: Source of records
        capacity: Maximum records per leaf
        max_depth: Maximum tree depth

    Returns:
        Tuple of (QuadTree, BuilderStats)
    """
    config = BuilderConfig(capacity=capacity, max_depth=max_depth)
    builder = QuadTreeBuilder(source, config)
    tree = builder.build()
    return tree, builder.stats


def load_or_build(
    source: RecordSource, config: BuilderConfig
) -> Tuple[QuadTree, Optional[BuilderStats]]:
    """
    Restore the index from its snapshot, or build it and write one.

    A missing snapshot falls back to ingestion. A corrupt snapshot raises
    SnapshotFormatError rather than quietly rebuilding.

    Args:
        source: Source used when no snapshot exists
        config: Builder configuration; snapshot_dir must be set

    Returns:
        Tuple of (QuadTree, BuilderStats), stats being None when the tree
        came from the snapshot
    """
    if config.snapshot_dir is None:
        raise ValueError("load_or_build requires config.snapshot_dir")

    try:
        tree = read_tree(config.snapshot_dir)
    except SnapshotNotFoundError:
        logger.info("No snapshot in %s, building from source", config.snapshot_dir)
    else:
        if (tree.capacity, tree.max_depth) != (config.capacity, config.max_depth):
            logger.warning(
                "Snapshot in %s has capacity %d and max depth %d; "
                "ignoring configured capacity %d and max depth %d",
                config.snapshot_dir, tree.capacity, tree.max_depth,
                config.capacity, config.max_depth,
            )
        return tree, None

    builder = QuadTreeBuilder(source, config)
    tree = builder.build()
    write_tree(tree, config.snapshot_dir)
    return tree, builder.stats


def timed_query(
    query: Callable[..., List[Record]], *args: Any, **kwargs: Any
) -> Tuple[List[Record], float]:
    """
    Run a query and measure it.

    Returns:
        Tuple of (results, elapsed seconds)
    """
    start = time.perf_counter()
    results = query(*args, **kwargs)
    return results, time.perf_counter() - start
