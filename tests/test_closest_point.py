"""
Unit tests for closest point projection onto curves.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from nurbsKit.errors import ValidationError
from nurbsKit.geometry.primitives import make_line
from nurbsKit.analysis.options import AnalysisOptions
from nurbsKit.analysis.closest_point import (
    regular_sample, rational_curve_closest_parameter, rational_curve_closest_point
)


class TestRegularSample:
    """Tests for regular_sample."""

    def test_samples_include_ends(self, line_curve):
        t_values, points = regular_sample(line_curve, 5)

        assert_array_almost_equal(t_values, [0.0, 0.25, 0.5, 0.75, 1.0])
        assert_array_almost_equal(points[:, 0], [0.0, 2.5, 5.0, 7.5, 10.0])

    def test_minimum_two_samples(self, line_curve):
        t_values, points = regular_sample(line_curve, 1)
        assert len(t_values) == 2
        assert points.shape == (2, 3)


class TestClosestPoint:
    """Tests for rational_curve_closest_point."""

    def test_projection_onto_line(self):
        """Perpendicular foot on a slanted line."""
        curve = make_line((0.0, 0.0, 0.0), (30.0, 45.0, 0.0))
        point, t = rational_curve_closest_point(curve, np.array([10.0, 20.0, 0.0]))

        assert np.linalg.norm(point - [12.3076923, 18.4615385, 0.0]) < 1e-6
        assert t == pytest.approx(1200.0 / 2925.0, abs=1e-9)

    @pytest.mark.parametrize("u", [0.1, 0.37, 0.6, 0.85])
    def test_point_on_curve_is_fixed(self, cubic_curve, u):
        """A point on the curve projects onto itself."""
        target = cubic_curve.eval_point(u)
        point, t = cubic_curve.closest_point(target)

        assert np.linalg.norm(point - target) < 1e-5
        assert t == pytest.approx(u, abs=1e-5)

    def test_off_end_clamps(self, line_curve):
        """Points beyond the ends project onto the end points."""
        point, t = line_curve.closest_point(np.array([15.0, 3.0, 0.0]))
        assert t == 1.0
        assert_array_almost_equal(point, [10.0, 0.0, 0.0])

        point, t = line_curve.closest_point(np.array([-4.0, 1.0, 0.0]))
        assert t == 0.0
        assert_array_almost_equal(point, [0.0, 0.0, 0.0])

    def test_closed_circle(self, unit_circle):
        """Radial projection onto a circle."""
        point, t = unit_circle.closest_point(np.array([0.0, 3.0, 0.0]))
        assert_array_almost_equal(point, [0.0, 1.0, 0.0], decimal=5)
        assert t == pytest.approx(0.25, abs=1e-4)

        point, _ = unit_circle.closest_point(np.array([-2.0, -2.0, 0.5]))
        assert_array_almost_equal(point, [-np.sqrt(0.5), -np.sqrt(0.5), 0.0], decimal=5)

    def test_circle_seam(self, unit_circle):
        """Points near the seam land on the start/end point."""
        point, t = unit_circle.closest_point(np.array([2.0, -1e-3, 0.0]))
        assert_array_almost_equal(point, [1.0, 0.0, 0.0], decimal=3)
        assert 0.0 <= t <= 1.0

    def test_not_worse_than_sampling(self, cubic_curve):
        """The result is at least as close as a dense sample."""
        query = np.array([3.0, 3.0, 3.0])
        point, _ = cubic_curve.closest_point(query)

        _, samples = regular_sample(cubic_curve, 400)
        best = np.min(np.linalg.norm(samples - query, axis=1))
        assert np.linalg.norm(point - query) <= best + 1e-6

    def test_iteration_cap(self, rational_curve):
        """A single Newton step still returns a parameter in the domain."""
        query = np.array([2.0, 4.0, 1.0])
        options = AnalysisOptions(max_iterations=1)
        t = rational_curve_closest_parameter(rational_curve, query, options)
        assert 0.0 <= t <= 1.0

        t_more = rational_curve.closest_parameter(query, options=AnalysisOptions(max_iterations=50))
        d_one = np.linalg.norm(rational_curve.eval_point(t) - query)
        d_more = np.linalg.norm(rational_curve.eval_point(t_more) - query)
        assert d_more <= d_one + 1e-9


class TestAnalysisOptions:
    """Tests for AnalysisOptions validation."""

    def test_defaults(self):
        options = AnalysisOptions()
        assert options.gauss_degree_increase == 16
        assert options.max_iterations == 5
        assert options.length_tolerance is None

    @pytest.mark.parametrize("kwargs", [
        {'max_iterations': 0},
        {'gauss_degree_increase': -1},
        {'distance_tolerance': 0.0},
        {'cosine_tolerance': -1.0},
        {'length_tolerance': -1e-3},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            AnalysisOptions(**kwargs)

    def test_frozen(self):
        options = AnalysisOptions()
        with pytest.raises(AttributeError):
            options.max_iterations = 10
