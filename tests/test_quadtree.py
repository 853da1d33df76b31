"""Tests for quadtree data structures."""

import pytest
from geo_qtree.coords import LatLon
from geo_qtree.distance import HALF_EARTH_CIRCUMFERENCE, haversine_distance
from geo_qtree.quadtree import Record, LeafNode, InternalNode, QuadTree
from geo_qtree.rectangle import Rectangle, NW, NE, SW, SE
from geo_qtree.region import rectangular_region_approximation
from geo_qtree.sources import RandomSource


def keys(records):
    return sorted(r.key for r in records)


def build_random_tree(count=2000, capacity=8, max_depth=10, seed=7):
    tree = QuadTree(capacity, max_depth)
    accepted = 0
    for record in RandomSource(count, seed).records():
        if tree.insert(record):
            accepted += 1
    return tree, accepted


class TestRectangle:
    """Tests for Rectangle class."""

    def test_basic_creation(self):
        """Test basic rectangle creation."""
        r = Rectangle(-10.0, 10.0, -5.0, 5.0)
        assert r.x0 == -10.0
        assert r.x1 == 10.0
        assert r.y0 == -5.0
        assert r.y1 == 5.0
        assert r.width == 20.0
        assert r.height == 10.0

    def test_invalid_rectangle(self):
        """Test that invalid rectangles raise errors."""
        with pytest.raises(ValueError):
            Rectangle(10.0, 0.0, 0.0, 10.0)  # x0 > x1

        with pytest.raises(ValueError):
            Rectangle(0.0, 10.0, 10.0, 0.0)  # y0 > y1

        with pytest.raises(ValueError):
            Rectangle(float("nan"), 10.0, 0.0, 10.0)

    def test_contains(self):
        """Test point containment, edges included."""
        r = Rectangle(0.0, 10.0, 0.0, 10.0)
        assert r.contains(5.0, 5.0)
        assert r.contains(0.0, 0.0)
        assert r.contains(10.0, 10.0)
        assert not r.contains(10.5, 5.0)
        assert not r.contains(5.0, -0.5)

    def test_intersects(self):
        """Test rectangle intersection."""
        r = Rectangle(0.0, 10.0, 0.0, 10.0)
        assert r.intersects(Rectangle(5.0, 15.0, 5.0, 15.0))
        assert r.intersects(Rectangle(10.0, 20.0, 0.0, 10.0))  # Shared edge
        assert not r.intersects(Rectangle(11.0, 20.0, 0.0, 10.0))

    def test_world(self):
        """Test the full coverage rectangle."""
        assert Rectangle.world() == Rectangle(-180.0, 180.0, -90.0, 90.0)

    def test_subdivide(self):
        """Test that children quarter the parent in NW, NE, SW, SE order."""
        children = Rectangle.world().subdivide()

        assert len(children) == 4
        assert children[NW] == Rectangle(-180.0, 0.0, 0.0, 90.0)
        assert children[NE] == Rectangle(0.0, 180.0, 0.0, 90.0)
        assert children[SW] == Rectangle(-180.0, 0.0, -90.0, 0.0)
        assert children[SE] == Rectangle(0.0, 180.0, -90.0, 0.0)

    def test_child_index_for_point(self):
        """Test child index determination."""
        r = Rectangle.world()
        assert r.child_index_for_point(-90.0, 45.0) == NW
        assert r.child_index_for_point(90.0, 45.0) == NE
        assert r.child_index_for_point(-90.0, -45.0) == SW
        assert r.child_index_for_point(90.0, -45.0) == SE

    def test_child_index_on_midpoint(self):
        """Test that split lines resolve to the west and south halves."""
        r = Rectangle.world()
        assert r.child_index_for_point(0.0, 0.0) == SW
        assert r.child_index_for_point(0.0, 10.0) == NW
        assert r.child_index_for_point(10.0, 0.0) == SE

    def test_child_index_outside(self):
        """Test that points outside the rectangle raise errors."""
        with pytest.raises(ValueError):
            Rectangle(0.0, 10.0, 0.0, 10.0).child_index_for_point(20.0, 5.0)


class TestNodes:
    """Tests for LeafNode and InternalNode classes."""

    def test_leaf(self):
        """Test leaf node creation."""
        leaf = LeafNode(Rectangle.world(), 0)
        assert leaf.is_leaf()
        assert leaf.records == []

    def test_internal(self):
        """Test internal node creation."""
        node = InternalNode(Rectangle.world(), 0, (1, 2, 3, 4))
        assert not node.is_leaf()

    def test_invalid_children_count(self):
        """Test that wrong number of children raises error."""
        with pytest.raises(ValueError):
            InternalNode(Rectangle.world(), 0, (1, 2))


class TestRecord:
    """Tests for Record class."""

    def test_of(self):
        """Test building a record from a triple."""
        r = Record.of("a.xml", 12.5, -45.0)
        assert r.key == "a.xml"
        assert r.point == LatLon(12.5, -45.0)
        assert r.latitude == 12.5
        assert r.longitude == -45.0


class TestQuadTreeInsert:
    """Tests for QuadTree insertion."""

    def test_invalid_config(self):
        """Test that invalid capacity or depth raise errors."""
        with pytest.raises(ValueError):
            QuadTree(capacity=0, max_depth=4)
        with pytest.raises(ValueError):
            QuadTree(capacity=4, max_depth=-1)

    def test_empty_tree(self):
        """Test a freshly created tree."""
        tree = QuadTree(capacity=4, max_depth=4)
        assert len(tree) == 0
        assert tree.node_count == 1
        assert tree.root.is_leaf()
        assert tree.root.bounds == Rectangle.world()
        assert tree.query_by_bounding_box(Rectangle.world()) == []

    def test_out_of_bounds(self):
        """Test that points outside the globe are refused."""
        tree = QuadTree(capacity=4, max_depth=4)
        assert not tree.insert(Record.of("lat", 95.0, 0.0))
        assert not tree.insert(Record.of("lon", 0.0, 200.0))
        assert len(tree) == 0

    def test_corners_accepted(self):
        """Test that the extreme corners of the map are accepted."""
        tree = QuadTree(capacity=1, max_depth=4)
        for i, (lat, lon) in enumerate([(90, 180), (-90, -180), (90, -180), (-90, 180)]):
            assert tree.insert(Record.of(f"c{i}", lat, lon))
        assert len(tree) == 4

    def test_capacity_depth_boundary(self):
        """Test capacity=1, max_depth=0: only the first insert succeeds."""
        tree = QuadTree(capacity=1, max_depth=0)
        assert tree.insert(Record.of("first", 10.0, 10.0))
        assert not tree.insert(Record.of("second", -50.0, 120.0))
        assert not tree.insert(Record.of("same", 10.0, 10.0))
        assert len(tree) == 1
        assert tree.node_count == 1

    def test_single_subdivision(self):
        """Test capacity=2, max_depth=2: a third point splits the root once."""
        tree = QuadTree(capacity=2, max_depth=2)
        assert tree.insert(Record.of("a", 10.0, 10.0))
        assert tree.insert(Record.of("b", 20.0, 20.0))
        assert tree.insert(Record.of("c", -10.0, -10.0))

        assert tree.node_count == 5
        assert tree.internal_count == 1
        assert tree.depth == 1

        results = tree.query_by_bounding_box(Rectangle.world())
        assert keys(results) == ["a", "b", "c"]

        root = tree.root
        assert isinstance(root, InternalNode)
        assert root.children == (1, 2, 3, 4)
        assert keys(tree.get_node(root.children[NE]).records) == ["a", "b"]
        assert keys(tree.get_node(root.children[SW]).records) == ["c"]

    def test_cascading_subdivision(self):
        """Test that a split leaving every record in one child splits again."""
        tree = QuadTree(capacity=2, max_depth=3)
        for key, lat, lon in [("a", 10.0, 10.0), ("b", 20.0, 20.0), ("c", 60.0, 60.0)]:
            assert tree.insert(Record.of(key, lat, lon))

        assert tree.node_count == 9
        assert tree.depth == 2
        assert keys(tree.query_by_bounding_box(Rectangle.world())) == ["a", "b", "c"]

    def test_rejection_keeps_existing_records(self):
        """Test that a refused insert at max depth loses nothing."""
        tree = QuadTree(capacity=1, max_depth=1)
        assert tree.insert(Record.of("a", 10.0, 10.0))
        assert not tree.insert(Record.of("b", 20.0, 20.0))

        assert len(tree) == 1
        assert keys(tree.query_by_bounding_box(Rectangle.world())) == ["a"]

    def test_ids_assigned_in_creation_order(self):
        """Test that node ids follow the order nodes were created in."""
        tree = QuadTree(capacity=1, max_depth=4)
        tree.insert(Record.of("a", 10.0, 10.0))
        tree.insert(Record.of("b", 80.0, 170.0))
        # Root split created 1..4, NE (id 2) then split into 5..8
        assert tree.node_count == 9
        assert tree.get_node(2).children == (5, 6, 7, 8)

    def test_containment_invariant(self):
        """Test that children partition their parent and leaves hold their points."""
        tree, _ = build_random_tree()

        for node_id, node in tree.iter_nodes():
            if isinstance(node, InternalNode):
                child_bounds = [tree.get_node(c).bounds for c in node.children]
                assert child_bounds == node.bounds.subdivide()
                for c in node.children:
                    assert tree.get_node(c).depth == node.depth + 1
            else:
                assert len(node.records) <= tree.capacity
                assert node.depth <= tree.max_depth
                for record in node.records:
                    assert node.bounds.contains(record.longitude, record.latitude)

    def test_conservation(self):
        """Test that stored records equal successful inserts."""
        tree, accepted = build_random_tree(count=3000, capacity=2, max_depth=5)
        assert len(tree) == accepted
        assert len(list(tree.iter_records())) == accepted
        assert len(tree.query_by_bounding_box(Rectangle.world())) == accepted


class TestQuadTreeQuery:
    """Tests for QuadTree queries."""

    def test_bounding_box_matches_brute_force(self):
        """Test bounding box queries against a linear scan."""
        tree, _ = build_random_tree()
        everything = list(tree.iter_records())

        for rect in [
            Rectangle(-10.0, 10.0, -10.0, 10.0),
            Rectangle(100.0, 180.0, 45.0, 90.0),
            Rectangle(-180.0, -179.0, -90.0, 90.0),
            Rectangle(0.0, 0.0, 0.0, 0.0),
        ]:
            expected = [r for r in everything if rect.contains(r.longitude, r.latitude)]
            assert keys(tree.query_by_bounding_box(rect)) == keys(expected)

    def test_bounds_across_antimeridian(self):
        """Test a box whose west edge lies east of its east edge."""
        tree = QuadTree(capacity=2, max_depth=6)
        tree.insert(Record.of("east", 0.0, 179.0))
        tree.insert(Record.of("west", 0.0, -179.0))
        tree.insert(Record.of("middle", 0.0, 0.0))

        assert keys(tree.query_by_bounds(170.0, -10.0, -170.0, 10.0)) == ["east", "west"]
        assert keys(tree.query_by_bounds(-10.0, -10.0, 10.0, 10.0)) == ["middle"]

    def test_global_radius(self):
        """Test that a radius covering the sphere returns everything."""
        tree, _ = build_random_tree()
        center = LatLon(12.0, -34.0)

        results = tree.query_by_point_radius(center, HALF_EARTH_CIRCUMFERENCE)
        assert keys(results) == keys(tree.query_by_bounding_box(Rectangle.world()))

    def test_antimeridian_radius(self):
        """Test that points on both sides of the antimeridian are found."""
        tree = QuadTree(capacity=2, max_depth=8)
        tree.insert(Record.of("east", 0.0, 179.9))
        tree.insert(Record.of("west", 0.0, -179.9))
        tree.insert(Record.of("far", 0.0, 0.0))

        results = tree.query_by_point_radius(LatLon(0.0, 180.0), 50.0)
        assert keys(results) == ["east", "west"]

    def test_exact_filter(self):
        """Test that candidates inside the rectangle but beyond the radius are dropped."""
        center = LatLon(0.0, 0.0)
        radius = 500.0
        tree = QuadTree(capacity=4, max_depth=8)
        tree.insert(Record.of("near", 2.0, 2.0))
        tree.insert(Record.of("corner", 4.0, 4.0))

        rect = rectangular_region_approximation(center, radius)
        assert rect.contains(4.0, 4.0)
        assert haversine_distance(0.0, 0.0, 4.0, 4.0) > radius

        assert keys(tree.query_by_point_radius(center, radius)) == ["near"]

    def test_radius_matches_brute_force(self):
        """Test point radius queries against a linear scan."""
        tree, _ = build_random_tree()
        everything = list(tree.iter_records())

        for lat, lon, radius in [(0.0, 0.0, 2000.0), (60.0, -150.0, 1500.0), (-80.0, 45.0, 1200.0)]:
            expected = [
                r for r in everything
                if haversine_distance(lat, lon, r.latitude, r.longitude) <= radius
            ]
            results = tree.query_by_point_radius(LatLon(lat, lon), radius)
            assert keys(results) == keys(expected)

    def test_large_radius_matches_brute_force(self):
        """Test radii that reach past a pole against a linear scan."""
        tree, _ = build_random_tree()
        everything = list(tree.iter_records())

        cases = [
            (-79.2, 0.35, 12000.0),
            (45.0, 100.0, 12000.0),
            (-30.0, -60.0, 16000.0),
            (70.0, 170.0, 16000.0),
            (89.5, 0.0, 19500.0),
            (10.0, -20.0, 19500.0),
        ]
        for lat, lon, radius in cases:
            expected = [
                r for r in everything
                if haversine_distance(lat, lon, r.latitude, r.longitude) <= radius
            ]
            results = tree.query_by_point_radius(LatLon(lat, lon), radius)
            assert keys(results) == keys(expected)

    def test_far_edge_beyond_pole(self):
        """Test a wide circle whose ring lies entirely on the far side of the pole."""
        tree = QuadTree(capacity=2, max_depth=6)
        tree.insert(Record.of("south_pole", -89.0, 10.0))
        tree.insert(Record.of("north", 60.0, 0.0))

        results = tree.query_by_point_radius(LatLon(-79.2, 0.35), 12000.0)
        assert keys(results) == ["south_pole"]

    def test_zero_radius(self):
        """Test that a zero radius finds a record at the exact center."""
        tree = QuadTree(capacity=4, max_depth=4)
        tree.insert(Record.of("here", 10.0, 20.0))
        tree.insert(Record.of("there", 10.0, 20.5))

        assert keys(tree.query_by_point_radius(LatLon(10.0, 20.0), 0.0)) == ["here"]

    def test_invalid_radius(self):
        """Test that a negative radius raises error."""
        tree = QuadTree(capacity=4, max_depth=4)
        with pytest.raises(ValueError):
            tree.query_by_point_radius(LatLon(0.0, 0.0), -1.0)

    def test_empty_tree_radius(self):
        """Test that querying an empty tree returns nothing."""
        tree = QuadTree(capacity=4, max_depth=4)
        assert tree.query_by_point_radius(LatLon(0.0, 0.0), 1000.0) == []
