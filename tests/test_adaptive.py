"""
Unit tests for the adaptive refinement quadtree.
"""

import pytest
import numpy as np

from nurbsKit.errors import ValidationError
from nurbsKit.geometry.nurbs import NURBSCurve, NURBSSurface
from nurbsKit.geometry.primitives import (
    make_bilinear_surface, make_nurbs_arc, make_nurbs_rectangle, make_ruled_surface
)
from nurbsKit.tessellation.adaptive import (
    AdaptiveRefinementOptions, AdaptiveRefinementTree, build_node,
    evaluate_surface_point, BOTTOM, RIGHT, TOP, LEFT
)


@pytest.fixture
def plane():
    """Flat square in z = 0."""
    return make_nurbs_rectangle((0.0, 2.0), (0.0, 1.0), p=2)


@pytest.fixture
def bumped_surface():
    """Flat sheet with one raised corner control point."""
    rect = make_nurbs_rectangle(p=2, n_elem_u=2, n_elem_v=2)
    points = np.array(rect.control_points)
    points[3, 3, 2] = 0.8
    kv_u, kv_v = rect.knot_vectors
    return NURBSSurface(kv_u, kv_v, points)


@pytest.fixture
def cone_patch():
    """Quarter cone whose top edge collapses to the apex."""
    base = make_nurbs_arc(radius=1.0)
    apex = NURBSCurve(base.knot_vector, np.tile([0.0, 0.0, 1.0], (3, 1)), base.weights)
    return make_ruled_surface(base, apex)


def assert_valid(tree):
    tree.check_partition()
    tree.check_neighbors()


class TestAdaptiveRefinementOptions:
    """Tests for option validation."""

    def test_defaults(self):
        options = AdaptiveRefinementOptions()
        assert options.norm_tol == 2.5e-2
        assert options.min_depth == 0
        assert options.max_depth == 10
        assert options.refine is True
        assert (options.min_divs_u, options.min_divs_v) == (1, 1)

    @pytest.mark.parametrize("kwargs", [
        {'norm_tol': 0.0},
        {'min_depth': -1},
        {'min_depth': 3, 'max_depth': 2},
        {'min_divs_u': 0},
        {'min_divs_v': 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            AdaptiveRefinementOptions(**kwargs)


class TestBuildNode:
    """Tests for the pure node builder."""

    def test_flat_node_does_not_split(self, plane):
        node = build_node(plane, ((0.0, 1.0), (0.0, 1.0)), 0, AdaptiveRefinementOptions())

        assert node.is_leaf
        assert not node.should_split
        assert node.neighbors == [None, None, None, None]
        assert node.u05 == 0.5 and node.v05 == 0.5
        assert node.corners[2].uv == (1.0, 1.0)
        assert node.midpoints[LEFT].uv == (0.0, 0.5)

    def test_repeatable(self, cylinder_patch):
        """Building the same node twice gives the same result."""
        options = AdaptiveRefinementOptions()
        bounds = ((0.0, 1.0), (0.0, 1.0))
        a = build_node(cylinder_patch, bounds, 0, options)
        b = build_node(cylinder_patch, bounds, 0, options)

        assert (a.split_vert, a.split_horiz) == (b.split_vert, b.split_horiz)
        for sa, sb in zip(a.corners + a.midpoints, b.corners + b.midpoints):
            np.testing.assert_array_equal(sa.point, sb.point)

    def test_split_direction(self, cylinder_patch):
        """Curvature along u splits vertically only."""
        node = build_node(cylinder_patch, ((0.0, 1.0), (0.0, 1.0)), 0,
                          AdaptiveRefinementOptions())
        assert node.split_vert
        assert not node.split_horiz

    def test_depth_limits(self, plane, cylinder_patch):
        """min_depth forces a split; max_depth forbids one."""
        bounds = ((0.0, 1.0), (0.0, 1.0))
        forced = build_node(plane, bounds, 0, AdaptiveRefinementOptions(min_depth=1))
        assert forced.split_vert and forced.split_horiz

        capped = build_node(cylinder_patch, bounds, 2, AdaptiveRefinementOptions(max_depth=2))
        assert not capped.should_split

    def test_collapsed_patch_does_not_split(self):
        """Samples without a recoverable normal stop refinement."""
        sliver = make_bilinear_surface((0, 0, 0), (1, 0, 0), (1, 0, 0), (0, 0, 0))
        node = build_node(sliver, ((0.0, 1.0), (0.0, 1.0)), 0, AdaptiveRefinementOptions())

        assert all(not np.any(s.normal) for s in node.corners + node.midpoints)
        assert not node.should_split


class TestSurfacePoint:
    """Tests for evaluate_surface_point."""

    def test_regular_normal(self, plane):
        sp = evaluate_surface_point(plane, (0.3, 0.4))
        np.testing.assert_array_almost_equal(sp.point, [0.6, 0.4, 0.0])
        np.testing.assert_array_almost_equal(sp.normal, [0.0, 0.0, 1.0])
        assert not sp.degenerate

    def test_degenerate_normal_recovered(self, cone_patch):
        """At the apex the normal comes from a nearby regular point."""
        sp = evaluate_surface_point(cone_patch, (0.5, 1.0))
        assert sp.degenerate
        np.testing.assert_array_almost_equal(sp.point, [0.0, 0.0, 1.0])
        assert np.linalg.norm(sp.normal) == pytest.approx(1.0)


class TestAdaptiveRefinementTree:
    """Tests for tree construction, neighbors and stitching."""

    def test_plane_is_single_leaf(self, plane):
        tree = AdaptiveRefinementTree(plane)

        assert tree.n_leaves == 1
        assert tree.max_depth == 0
        assert tree.nodes[0].neighbors == [None, None, None, None]
        assert_valid(tree)

    @pytest.mark.parametrize("depth", [1, 2, 3])
    def test_min_depth_is_uniform(self, plane, depth):
        tree = AdaptiveRefinementTree(plane, AdaptiveRefinementOptions(min_depth=depth))

        assert tree.n_leaves == 4 ** depth
        assert all(leaf.depth == depth for leaf in tree.leaves())
        assert_valid(tree)

    def test_cylinder_splits_along_u_only(self, cylinder_patch):
        tree = AdaptiveRefinementTree(cylinder_patch)

        assert tree.n_leaves > 1
        for node in tree.nodes:
            assert not node.split_horiz
            if not node.is_leaf:
                left, right = node.children[0], node.children[1]
                assert node.children == (left, right, right, left)
        for leaf in tree.leaves():
            assert leaf.uv_bounds[1] == (0.0, 1.0)
        assert_valid(tree)

    def test_cylinder_normals_within_tolerance(self, cylinder_patch):
        """Adjacent corner normals of every leaf differ by at most norm_tol."""
        options = AdaptiveRefinementOptions(norm_tol=0.05)
        tree = AdaptiveRefinementTree(cylinder_patch, options)
        for leaf in tree.leaves():
            n = [c.normal for c in leaf.corners]
            assert np.linalg.norm(n[0] - n[1]) <= options.norm_tol

    def test_max_depth_cap(self, cylinder_patch):
        tree = AdaptiveRefinementTree(cylinder_patch, AdaptiveRefinementOptions(max_depth=2))

        assert tree.max_depth == 2
        assert tree.n_leaves == 4
        assert_valid(tree)

    def test_refine_disabled(self, cylinder_patch):
        """Without refinement only min_depth subdivides."""
        tree = AdaptiveRefinementTree(cylinder_patch, AdaptiveRefinementOptions(refine=False))
        assert tree.n_leaves == 1

        tree = AdaptiveRefinementTree(cylinder_patch,
                                      AdaptiveRefinementOptions(refine=False, min_depth=1))
        assert tree.n_leaves == 4
        assert_valid(tree)

    def test_seed_grid(self, plane):
        options = AdaptiveRefinementOptions(min_divs_u=3, min_divs_v=2)
        tree = AdaptiveRefinementTree(plane, options)

        assert len(tree.roots) == 6
        assert tree.n_leaves == 6
        assert_valid(tree)

        # Root 4 is the middle cell of the second row
        middle = tree.nodes[tree.roots[4]]
        np.testing.assert_allclose(middle.uv_bounds[0], (1.0 / 3.0, 2.0 / 3.0))
        assert middle.uv_bounds[1] == (0.5, 1.0)
        assert middle.neighbors[BOTTOM] == tree.roots[1]
        assert middle.neighbors[RIGHT] == tree.roots[5]
        assert middle.neighbors[TOP] is None
        assert middle.neighbors[LEFT] == tree.roots[3]

    def test_wide_seed_grid_neighbors(self, plane):
        """Every seed cell links to the cells beside it in the grid."""
        options = AdaptiveRefinementOptions(min_divs_u=7, min_divs_v=5, refine=False)
        tree = AdaptiveRefinementTree(plane, options)

        assert len(tree.roots) == 35
        assert_valid(tree)
        for k, root in enumerate(tree.roots):
            j, i = divmod(k, 7)
            node = tree.nodes[root]
            assert node.neighbors[LEFT] == (tree.roots[k - 1] if i > 0 else None)
            assert node.neighbors[RIGHT] == (tree.roots[k + 1] if i < 6 else None)
            assert node.neighbors[BOTTOM] == (tree.roots[k - 7] if j > 0 else None)
            assert node.neighbors[TOP] == (tree.roots[k + 7] if j < 4 else None)

    def test_non_uniform_refinement(self, bumped_surface):
        """The flat region stays coarse while the bump is refined."""
        tree = AdaptiveRefinementTree(bumped_surface)
        depths = [leaf.depth for leaf in tree.leaves()]

        assert min(depths) == 1
        assert max(depths) > 1
        assert_valid(tree)

    def test_arena_structure(self, bumped_surface):
        """Parents precede children and leaf/split state is consistent."""
        tree = AdaptiveRefinementTree(bumped_surface)
        for node in tree.nodes:
            assert tree.nodes[node.id] is node
            if node.is_leaf:
                assert node.child_ids() == []
                continue
            assert len(node.children) == 4
            assert node.should_split
            for child_id in node.child_ids():
                child = tree.nodes[child_id]
                assert child_id > node.id
                assert child.parent == node.id
                assert child.depth == node.depth + 1

    def test_stitched_runs(self, bumped_surface):
        """Edge runs go corner to corner and carry finer neighbor vertices."""
        tree = AdaptiveRefinementTree(bumped_surface)
        extra = 0
        for patch in tree.leaf_patches():
            for edge, run in enumerate(patch.edge_points):
                assert run[0].uv == patch.corners[edge].uv
                assert run[-1].uv == patch.corners[(edge + 1) % 4].uv
                extra += len(run) - 2
            ring = patch.boundary_ring()
            assert len(ring) == sum(len(run) - 1 for run in patch.edge_points)
        assert extra > 0

    def test_degenerate_edge(self, cone_patch):
        tree = AdaptiveRefinementTree(cone_patch)
        assert tree.n_leaves > 1
        assert_valid(tree)

    def test_check_neighbors_detects_bad_link(self, plane):
        tree = AdaptiveRefinementTree(plane, AdaptiveRefinementOptions(min_depth=1))
        leaf = next(tree.leaves())
        leaf.neighbors[RIGHT] = None
        with pytest.raises(ValidationError):
            tree.check_neighbors()

    def test_check_partition_detects_gap(self, plane):
        tree = AdaptiveRefinementTree(plane, AdaptiveRefinementOptions(min_depth=1))
        leaf = next(tree.leaves())
        (u0, u1), (v0, v1) = leaf.uv_bounds
        leaf.uv_bounds = ((u0, 0.5 * (u0 + u1)), (v0, v1))
        with pytest.raises(ValidationError):
            tree.check_partition()

    def test_requires_surface(self, line_curve):
        with pytest.raises(ValidationError):
            AdaptiveRefinementTree(line_curve)
