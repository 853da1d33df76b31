"""
Quadtree data structures for point records.

This module defines the record type and the quadtree nodes used to index
point-referenced records by latitude and longitude.

Nodes live in an arena (a list) owned by the tree; a node's position in the
arena is its identifier. The root is always node 0 and every subdivision
appends its four children in quadrant order, so identifiers are assigned
deterministically and can double as file names when the tree is persisted.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterator, List, Tuple
import logging
import math

from .coords import LatLon, MIN_LONGITUDE, MAX_LONGITUDE
from .distance import HALF_EARTH_CIRCUMFERENCE, haversine_distance
from .rectangle import Rectangle
from .region import DEFAULT_REGION_SAMPLES, rectangular_region_approximation


logger = logging.getLogger(__name__)

ROOT_ID = 0


@dataclass(frozen=True)
class Record:
    """
    A lightweight index entry: an opaque key plus the point it refers to.

    The key is whatever the caller uses to fetch the full payload (a file
    name, a database id); the index never interprets it.
    """
    key: str
    point: LatLon

    @classmethod
    def of(cls, key: str, latitude: float, longitude: float) -> Record:
        return cls(key, LatLon(latitude, longitude))

    @property
    def latitude(self) -> float:
        return self.point.latitude

    @property
    def longitude(self) -> float:
        return self.point.longitude


class QuadTreeNode(ABC):
    """Abstract base class for quadtree nodes."""

    bounds: Rectangle
    depth: int

    @abstractmethod
    def is_leaf(self) -> bool:
        """Return True if this is a leaf node."""
        pass


@dataclass
class LeafNode(QuadTreeNode):
    """
    A leaf node holding up to the tree's capacity of records.
    """
    bounds: Rectangle
    depth: int
    records: List[Record] = field(default_factory=list)

    def is_leaf(self) -> bool:
        return True


@dataclass
class InternalNode(QuadTreeNode):
    """
    An internal node with exactly 4 children.

    Children are arena ids ordered NW, NE, SW, SE (indices 0-3).
    """
    bounds: Rectangle
    depth: int
    children: Tuple[int, int, int, int]

    def __post_init__(self):
        if len(self.children) != 4:
            raise ValueError("InternalNode must have exactly 4 children")

    def is_leaf(self) -> bool:
        return False


class QuadTree:
    """
    A bucket quadtree over the whole globe.

    Leaves hold at most `capacity` records. A full leaf splits into four
    quadrants unless it already sits at `max_depth`, in which case the insert
    is refused.

    The tree is built by a single thread and then only read; queries do not
    modify any state and may run concurrently once building is done.
    """

    def __init__(self, capacity: int, max_depth: int):
        """
        Initialize an empty quadtree.

        Args:
            capacity: Maximum number of records per leaf before subdivision
            max_depth: Deepest level a leaf may be created at (root = 0)
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")

        self.capacity = capacity
        self.max_depth = max_depth
        self.bounds = Rectangle.world()
        self._nodes: List[QuadTreeNode] = [LeafNode(self.bounds, 0)]

    @classmethod
    def from_nodes(
        cls, capacity: int, max_depth: int, nodes: List[QuadTreeNode]
    ) -> QuadTree:
        """
        Assemble a tree from an already built node arena.

        Used when loading a snapshot; the caller is responsible for the
        arena being consistent.
        """
        tree = cls(capacity, max_depth)
        if not nodes:
            raise ValueError("Node arena must contain at least the root")
        tree._nodes = list(nodes)
        return tree

    @property
    def root(self) -> QuadTreeNode:
        return self._nodes[ROOT_ID]

    def get_node(self, node_id: int) -> QuadTreeNode:
        """Return the node with the given id."""
        return self._nodes[node_id]

    def iter_nodes(self) -> Iterator[Tuple[int, QuadTreeNode]]:
        """Iterate over (id, node) pairs in id order."""
        return iter(enumerate(self._nodes))

    def iter_records(self) -> Iterator[Record]:
        """Iterate over every stored record, leaf by leaf."""
        for node in self._nodes:
            if isinstance(node, LeafNode):
                yield from node.records

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def insert(self, record: Record) -> bool:
        """
        Insert a record.

        Returns:
            True if stored. False if the point lies outside the tree bounds,
            or if the target leaf is full and already at max_depth.
        """
        if not self.bounds.contains(record.longitude, record.latitude):
            return False
        return self._insert_below(ROOT_ID, record)

    def _find_leaf(self, node_id: int, x: float, y: float) -> int:
        node = self._nodes[node_id]
        while isinstance(node, InternalNode):
            node_id = node.children[node.bounds.child_index_for_point(x, y)]
            node = self._nodes[node_id]
        return node_id

    def _insert_below(self, node_id: int, record: Record) -> bool:
        leaf_id = self._find_leaf(node_id, record.longitude, record.latitude)
        leaf = self._nodes[leaf_id]
        assert isinstance(leaf, LeafNode)

        if len(leaf.records) < self.capacity:
            leaf.records.append(record)
            return True

        if leaf.depth >= self.max_depth:
            return False

        self._subdivide(leaf_id)
        # The split may leave every record in one child; descending again
        # lets that child split in turn, down to max_depth.
        return self._insert_below(leaf_id, record)

    def _subdivide(self, node_id: int) -> None:
        """Turn a full leaf into an internal node with four empty leaves."""
        leaf = self._nodes[node_id]
        assert isinstance(leaf, LeafNode)

        child_ids = []
        for child_rect in leaf.bounds.subdivide():
            child_ids.append(len(self._nodes))
            self._nodes.append(LeafNode(child_rect, leaf.depth + 1))

        self._nodes[node_id] = InternalNode(leaf.bounds, leaf.depth, tuple(child_ids))

        # A leaf holds exactly `capacity` records when it splits, so they
        # always fit in the children without another split.
        for held in leaf.records:
            idx = leaf.bounds.child_index_for_point(held.longitude, held.latitude)
            child = self._nodes[child_ids[idx]]
            assert isinstance(child, LeafNode)
            child.records.append(held)

        logger.debug(
            "Split node %d at depth %d into %s", node_id, leaf.depth, child_ids
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query_by_bounding_box(self, rect: Rectangle) -> List[Record]:
        """
        Return every record whose point lies inside rect (edges included).

        No ordering is guaranteed.
        """
        results: List[Record] = []
        if self.root.bounds.intersects(rect):
            self._collect(ROOT_ID, rect, results)
        return results

    def _collect(self, node_id: int, rect: Rectangle, results: List[Record]) -> None:
        node = self._nodes[node_id]
        if isinstance(node, LeafNode):
            for record in node.records:
                if rect.contains(record.longitude, record.latitude):
                    results.append(record)
            return

        assert isinstance(node, InternalNode)
        for child_id in node.children:
            if self._nodes[child_id].bounds.intersects(rect):
                self._collect(child_id, rect, results)

    def query_by_bounds(
        self, west: float, south: float, east: float, north: float
    ) -> List[Record]:
        """
        Bounding-box query given as four degree values.

        A box whose west edge is east of its east edge crosses the
        antimeridian and is answered as two boxes.
        """
        if west > east:
            return (
                self.query_by_bounding_box(Rectangle(west, MAX_LONGITUDE, south, north))
                + self.query_by_bounding_box(Rectangle(MIN_LONGITUDE, east, south, north))
            )
        return self.query_by_bounding_box(Rectangle(west, east, south, north))

    def query_by_point_radius(
        self,
        center: LatLon,
        radius_km: float,
        number_of_samples: int = DEFAULT_REGION_SAMPLES,
    ) -> List[Record]:
        """
        Return every record within radius_km great-circle distance of center.

        A bounding rectangle around the search circle selects candidates from
        the tree; each candidate is then checked against the exact distance.

        Args:
            center: Center of the search circle
            radius_km: Radius in kilometers
            number_of_samples: Points sampled on the circle when building
                the bounding rectangle

        Returns:
            Matching records, in no particular order
        """
        if not (math.isfinite(radius_km) and radius_km >= 0):
            raise ValueError(f"Invalid radius: {radius_km}")

        rect = rectangular_region_approximation(center, radius_km, number_of_samples)
        candidates = self.query_by_bounding_box(rect)

        if radius_km >= HALF_EARTH_CIRCUMFERENCE:
            return candidates

        return [
            record for record in candidates
            if haversine_distance(
                center.latitude, center.longitude, record.latitude, record.longitude
            ) <= radius_km
        ]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        """Number of records stored in the tree."""
        return sum(
            len(node.records) for node in self._nodes if isinstance(node, LeafNode)
        )

    @property
    def node_count(self) -> int:
        """Total number of nodes in the tree."""
        return len(self._nodes)

    @property
    def leaf_count(self) -> int:
        """Number of leaf nodes in the tree."""
        return sum(1 for node in self._nodes if node.is_leaf())

    @property
    def internal_count(self) -> int:
        """Number of internal nodes in the tree."""
        return self.node_count - self.leaf_count

    @property
    def depth(self) -> int:
        """Depth of the deepest node."""
        return max(node.depth for node in self._nodes)
