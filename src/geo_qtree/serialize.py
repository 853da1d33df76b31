"""
Quadtree snapshot module.

This module writes a built quadtree to a directory and reads it back, so the
ingestion step does not have to run again on every restart.

Directory layout:
- tree_config.txt: a single line "capacity;<int>;depth;<int>"
- node_<id>.txt: one file per internal node, one line per child in quadrant
  order (NW, NE, SW, SE):

      <quadrant>:<kind>:<childId>:<childCapacity>[:<lat>;<lon>;<key>]*

  kind is GRAY for an internal child (whose own file is written separately)
  and BLACK for a leaf child, whose records are inlined on the line.

A root that never split is written as node_0.txt holding one line with
quadrant -1 that describes the root leaf itself.

Node ids in the files are the arena ids of the tree, and reading rebuilds the
arena with the same ids, so repeated write/read cycles keep the same names.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

from .coords import LatLon
from .quadtree import (
    QuadTree,
    QuadTreeNode,
    LeafNode,
    InternalNode,
    Record,
    ROOT_ID,
)
from .rectangle import Rectangle


logger = logging.getLogger(__name__)

CONFIG_FILENAME = "tree_config.txt"
NODE_FILENAME = "node_{}.txt"

# Node kind tokens
KIND_INTERNAL = "GRAY"
KIND_LEAF = "BLACK"

# Quadrant value of the self-describing line of a root leaf
ROOT_QUADRANT = -1

FIELD_SEP = ":"
RECORD_SEP = ";"


class SnapshotNotFoundError(FileNotFoundError):
    """No snapshot exists in the given directory."""


class SnapshotFormatError(ValueError):
    """A snapshot file could not be parsed."""

    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        location = ""
        if path is not None:
            location = f"{path.name}"
            if line is not None:
                location += f":{line}"
            location += ": "
        super().__init__(f"{location}{message}")
        self.path = path
        self.line = line


def node_path(directory: Path, node_id: int) -> Path:
    return directory / NODE_FILENAME.format(node_id)


class TreeWriter:
    """Writes a quadtree to a snapshot directory."""

    def write(self, tree: QuadTree, directory: Union[str, Path]) -> None:
        """
        Write a snapshot of the tree.

        Args:
            tree: The quadtree to write
            directory: Target directory, created if missing
        """
        directory = Path(directory)
        self._check_keys(tree)

        if not directory.exists():
            logger.info("Creating quadtree index directory %s", directory)
        directory.mkdir(parents=True, exist_ok=True)

        self._write_config(tree, directory)

        root = tree.root
        if isinstance(root, LeafNode):
            line = self._encode_line(ROOT_QUADRANT, ROOT_ID, root, tree.capacity)
            node_path(directory, ROOT_ID).write_text(line + "\n", encoding="utf-8")
            files = 1
        else:
            files = self._write_node(tree, ROOT_ID, directory)

        logger.info(
            "Wrote snapshot of %d records (%d node files) to %s",
            len(tree), files, directory,
        )

    def _check_keys(self, tree: QuadTree) -> None:
        for record in tree.iter_records():
            if FIELD_SEP in record.key or "\n" in record.key or "\r" in record.key:
                raise ValueError(
                    f"Record key {record.key!r} cannot be written: "
                    f"keys may not contain {FIELD_SEP!r} or line breaks"
                )

    def _write_config(self, tree: QuadTree, directory: Path) -> None:
        text = f"capacity;{tree.capacity};depth;{tree.max_depth}\n"
        (directory / CONFIG_FILENAME).write_text(text, encoding="utf-8")

    def _write_node(self, tree: QuadTree, node_id: int, directory: Path) -> int:
        """Write one internal node file, then recurse into internal children."""
        node = tree.get_node(node_id)
        assert isinstance(node, InternalNode)

        lines = []
        for quadrant, child_id in enumerate(node.children):
            child = tree.get_node(child_id)
            lines.append(self._encode_line(quadrant, child_id, child, tree.capacity))
        node_path(directory, node_id).write_text("\n".join(lines) + "\n", encoding="utf-8")

        files = 1
        for child_id in node.children:
            if isinstance(tree.get_node(child_id), InternalNode):
                files += self._write_node(tree, child_id, directory)
        return files

    def _encode_line(
        self, quadrant: int, node_id: int, node: QuadTreeNode, capacity: int
    ) -> str:
        kind = KIND_LEAF if isinstance(node, LeafNode) else KIND_INTERNAL
        fields = [str(quadrant), kind, str(node_id), str(capacity)]
        if isinstance(node, LeafNode):
            for record in node.records:
                fields.append(RECORD_SEP.join(
                    (repr(record.latitude), repr(record.longitude), record.key)
                ))
        return FIELD_SEP.join(fields)


class TreeReader:
    """Reads a quadtree back from a snapshot directory."""

    def __init__(self):
        self._directory: Path = Path(".")
        self._capacity: int = 0
        self._max_depth: int = 0
        self._nodes: Dict[int, QuadTreeNode] = {}

    def read(self, directory: Union[str, Path]) -> QuadTree:
        """
        Read a snapshot.

        Args:
            directory: Snapshot directory

        Returns:
            The reconstructed QuadTree

        Raises:
            SnapshotNotFoundError: config or root file missing
            SnapshotFormatError: any file is malformed or inconsistent
        """
        self._directory = Path(directory)
        self._nodes = {}

        config_file = self._directory / CONFIG_FILENAME
        root_file = node_path(self._directory, ROOT_ID)
        for required in (config_file, root_file):
            if not required.is_file():
                raise SnapshotNotFoundError(f"No quadtree snapshot at {required}")

        self._capacity, self._max_depth = self._read_config(config_file)
        self._read_root(root_file)

        ids = sorted(self._nodes)
        if ids != list(range(len(ids))):
            raise SnapshotFormatError(
                f"Node ids are not contiguous from 0 (found {len(ids)} nodes, "
                f"highest id {ids[-1]})"
            )

        arena: List[QuadTreeNode] = [self._nodes[i] for i in ids]
        tree = QuadTree.from_nodes(self._capacity, self._max_depth, arena)
        logger.info(
            "Read snapshot of %d records (%d nodes) from %s",
            len(tree), tree.node_count, self._directory,
        )
        return tree

    def _read_config(self, path: Path) -> Tuple[int, int]:
        text = path.read_text(encoding="utf-8").strip()
        parts = text.split(RECORD_SEP)
        if len(parts) != 4 or parts[0] != "capacity" or parts[2] != "depth":
            raise SnapshotFormatError(f"Bad configuration record {text!r}", path, 1)
        try:
            capacity = int(parts[1])
            max_depth = int(parts[3])
        except ValueError as e:
            raise SnapshotFormatError(f"Bad configuration record {text!r}", path, 1) from e
        if capacity < 1 or max_depth < 0:
            raise SnapshotFormatError(
                f"Invalid capacity {capacity} or depth {max_depth}", path, 1
            )
        return capacity, max_depth

    def _read_lines(self, path: Path) -> List[str]:
        # Only "\n" ends a line; keys may hold other Unicode line breaks
        return [line for line in path.read_text(encoding="utf-8").split("\n") if line]

    def _read_root(self, path: Path) -> None:
        lines = self._read_lines(path)
        bounds = Rectangle.world()

        if len(lines) == 1 and lines[0].startswith(f"{ROOT_QUADRANT}{FIELD_SEP}"):
            quadrant, kind, node_id, records = self._parse_line(lines[0], path, 1)
            if kind != KIND_LEAF or node_id != ROOT_ID:
                raise SnapshotFormatError("Root line must describe leaf 0", path, 1)
            self._add_leaf(node_id, bounds, 0, records, path, 1)
            return

        self._read_internal(ROOT_ID, bounds, 0, path)

    def _read_internal(self, node_id: int, bounds: Rectangle, depth: int, path: Path) -> None:
        if depth >= self._max_depth:
            raise SnapshotFormatError(
                f"Internal node {node_id} at depth {depth} exceeds max depth {self._max_depth}",
                path,
            )

        child_rects = bounds.subdivide()
        children: List[Optional[int]] = [None] * 4
        pending: List[Tuple[int, Rectangle]] = []

        for line_no, line in enumerate(self._read_lines(path), start=1):
            quadrant, kind, child_id, records = self._parse_line(line, path, line_no)
            if not 0 <= quadrant < 4:
                raise SnapshotFormatError(f"Bad quadrant {quadrant}", path, line_no)
            if children[quadrant] is not None:
                raise SnapshotFormatError(f"Duplicate quadrant {quadrant}", path, line_no)
            children[quadrant] = child_id

            child_rect = child_rects[quadrant]
            if kind == KIND_LEAF:
                self._add_leaf(child_id, child_rect, depth + 1, records, path, line_no)
            else:
                if records:
                    raise SnapshotFormatError(
                        f"Internal node {child_id} carries records", path, line_no
                    )
                self._claim(child_id, path, line_no)
                pending.append((child_id, child_rect))

        if any(child is None for child in children):
            raise SnapshotFormatError(f"Node {node_id} does not list all 4 children", path)

        self._nodes[node_id] = InternalNode(bounds, depth, tuple(children))

        for child_id, child_rect in pending:
            child_file = node_path(self._directory, child_id)
            if not child_file.is_file():
                raise SnapshotFormatError(f"Missing node file for internal node {child_id}", child_file)
            self._read_internal(child_id, child_rect, depth + 1, child_file)

    def _claim(self, node_id: int, path: Path, line_no: int) -> None:
        """Reserve an id, rejecting ids seen before."""
        if node_id in self._nodes or node_id == ROOT_ID:
            raise SnapshotFormatError(f"Duplicate node id {node_id}", path, line_no)
        # Placeholder until the node's own file is read
        self._nodes[node_id] = LeafNode(Rectangle.world(), -1)

    def _add_leaf(
        self,
        node_id: int,
        bounds: Rectangle,
        depth: int,
        records: List[Record],
        path: Path,
        line_no: int,
    ) -> None:
        if node_id != ROOT_ID:
            self._claim(node_id, path, line_no)
        if len(records) > self._capacity:
            raise SnapshotFormatError(
                f"Leaf {node_id} holds {len(records)} records, capacity is {self._capacity}",
                path, line_no,
            )
        for record in records:
            if not bounds.contains(record.longitude, record.latitude):
                raise SnapshotFormatError(
                    f"Record {record.key!r} lies outside leaf {node_id}", path, line_no
                )
        self._nodes[node_id] = LeafNode(bounds, depth, records)

    def _parse_line(
        self, line: str, path: Path, line_no: int
    ) -> Tuple[int, str, int, List[Record]]:
        """Split a node line into (quadrant, kind, child id, records)."""
        fields = line.split(FIELD_SEP)
        if len(fields) < 4:
            raise SnapshotFormatError(f"Expected at least 4 fields in {line!r}", path, line_no)

        try:
            quadrant = int(fields[0])
            child_id = int(fields[2])
            capacity = int(fields[3])
        except ValueError as e:
            raise SnapshotFormatError(f"Bad header in {line!r}", path, line_no) from e

        kind = fields[1]
        if kind not in (KIND_LEAF, KIND_INTERNAL):
            raise SnapshotFormatError(f"Unknown node kind {kind!r}", path, line_no)
        if capacity != self._capacity:
            raise SnapshotFormatError(
                f"Node capacity {capacity} differs from tree capacity {self._capacity}",
                path, line_no,
            )

        records = [self._parse_record(item, path, line_no) for item in fields[4:]]
        return quadrant, kind, child_id, records

    def _parse_record(self, item: str, path: Path, line_no: int) -> Record:
        parts = item.split(RECORD_SEP, 2)
        if len(parts) != 3:
            raise SnapshotFormatError(f"Bad record {item!r}", path, line_no)
        try:
            return Record(parts[2], LatLon(float(parts[0]), float(parts[1])))
        except ValueError as e:
            raise SnapshotFormatError(f"Bad record {item!r}", path, line_no) from e


def write_tree(tree: QuadTree, directory: Union[str, Path]) -> None:
    """
    Write a quadtree snapshot to a directory.

    Args:
        tree: QuadTree to write
        directory: Snapshot directory
    """
    TreeWriter().write(tree, directory)


def read_tree(directory: Union[str, Path]) -> QuadTree:
    """
    Read a quadtree snapshot from a directory.

    Args:
        directory: Snapshot directory

    Returns:
        Reconstructed QuadTree
    """
    return TreeReader().read(directory)
