"""
Unit tests for B-spline basis function evaluation.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from nurbsKit.discretization.knot_vector import KnotVector, make_open_knot_vector
from nurbsKit.geometry.bspline import eval_basis_1d, eval_basis_ders_1d


@pytest.fixture
def nonuniform_cubic():
    """Cubic knot vector with uneven spans and a double knot."""
    return KnotVector([0, 0, 0, 0, 0.2, 0.5, 0.5, 0.9, 1, 1, 1, 1], 3)


def bernstein(p, t):
    from math import comb
    return np.array([comb(p, i) * t ** i * (1 - t) ** (p - i) for i in range(p + 1)])


class TestBasisValues:
    """Tests for eval_basis_1d."""

    @pytest.mark.parametrize("u", [0.0, 0.13, 0.2, 0.41, 0.5, 0.77, 0.9, 1.0])
    def test_partition_of_unity(self, nonuniform_cubic, u):
        N = eval_basis_1d(nonuniform_cubic, u)
        assert N.shape == (4,)
        assert np.sum(N) == pytest.approx(1.0, abs=1e-14)
        assert np.all(N >= -1e-14)

    @pytest.mark.parametrize("p", [1, 2, 3, 4])
    def test_bezier_span_is_bernstein(self, p):
        """A single span clamped at both ends gives the Bernstein basis."""
        kv = make_open_knot_vector(n_basis=p + 1, degree=p)
        for t in (0.0, 0.3, 0.5, 0.8, 1.0):
            assert_array_almost_equal(eval_basis_1d(kv, t), bernstein(p, t), decimal=14)

    def test_bernstein_on_shifted_domain(self):
        """Basis on [2, 6] is the [0, 1] basis at the mapped parameter."""
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(2.0, 6.0))
        assert_array_almost_equal(eval_basis_1d(kv, 3.0), bernstein(2, 0.25))

    def test_ends_interpolate(self, nonuniform_cubic):
        """Clamped ends select the first and last function."""
        assert_array_almost_equal(eval_basis_1d(nonuniform_cubic, 0.0), [1, 0, 0, 0])
        assert_array_almost_equal(eval_basis_1d(nonuniform_cubic, 1.0), [0, 0, 0, 1])

    def test_double_knot_reduces_support(self, nonuniform_cubic):
        """At a knot of multiplicity p-1 only two functions are non-zero."""
        N = eval_basis_1d(nonuniform_cubic, 0.5)
        assert np.count_nonzero(np.abs(N) > 1e-14) == 2

    def test_piecewise_linear_hat(self):
        """Degree 1 functions are hat functions between knots."""
        kv = KnotVector([0, 0, 1, 3, 3], 1)
        assert_array_almost_equal(eval_basis_1d(kv, 0.25), [0.75, 0.25])
        assert_array_almost_equal(eval_basis_1d(kv, 2.5), [0.25, 0.75])

    def test_explicit_span(self, nonuniform_cubic):
        """Passing the span explicitly gives the same values."""
        u = 0.63
        span = nonuniform_cubic.find_span(u)
        assert_array_almost_equal(eval_basis_1d(nonuniform_cubic, u, span),
                                  eval_basis_1d(nonuniform_cubic, u))


class TestBasisDerivatives:
    """Tests for eval_basis_ders_1d."""

    def test_shape(self, nonuniform_cubic):
        assert eval_basis_ders_1d(nonuniform_cubic, 0.3, 2).shape == (3, 4)

    def test_values_row(self, nonuniform_cubic):
        """Row 0 holds the basis values."""
        for u in (0.0, 0.33, 0.5, 1.0):
            assert_array_almost_equal(eval_basis_ders_1d(nonuniform_cubic, u, 2)[0],
                                      eval_basis_1d(nonuniform_cubic, u))

    def test_derivative_rows_sum_to_zero(self, nonuniform_cubic):
        for u in (0.1, 0.45, 0.95):
            ders = eval_basis_ders_1d(nonuniform_cubic, u, 3)
            assert_array_almost_equal(ders[1:].sum(axis=1), np.zeros(3), decimal=10)

    def test_quadratic_bernstein_derivatives(self):
        """Derivatives of (1-t)^2, 2t(1-t), t^2 at t = 0.25."""
        kv = make_open_knot_vector(n_basis=3, degree=2)
        ders = eval_basis_ders_1d(kv, 0.25, 2)

        assert_array_almost_equal(ders[1], [-1.5, 1.0, 0.5])
        assert_array_almost_equal(ders[2], [2.0, -4.0, 2.0])

    def test_domain_scaling(self):
        """Derivatives scale with the inverse domain length."""
        unit = make_open_knot_vector(n_basis=4, degree=3)
        wide = make_open_knot_vector(n_basis=4, degree=3, domain=(0.0, 4.0))

        a = eval_basis_ders_1d(unit, 0.5, 2)
        b = eval_basis_ders_1d(wide, 2.0, 2)
        assert_array_almost_equal(b[1], a[1] / 4.0)
        assert_array_almost_equal(b[2], a[2] / 16.0)

    def test_above_degree_is_zero(self):
        """Requesting more derivatives than the degree gives zero rows."""
        kv = KnotVector([0, 0, 0.5, 1, 1], 1)
        ders = eval_basis_ders_1d(kv, 0.7, 3)

        assert ders.shape == (4, 2)
        assert_array_almost_equal(ders[1], [-2.0, 2.0])
        assert_array_almost_equal(ders[2:], np.zeros((2, 2)))

    def test_finite_differences(self, nonuniform_cubic):
        """First derivatives agree with central differences inside a span."""
        h = 1e-6
        for u in (0.1, 0.35, 0.7):
            span = nonuniform_cubic.find_span(u)
            ders = eval_basis_ders_1d(nonuniform_cubic, u, 1, span)
            fd = (eval_basis_1d(nonuniform_cubic, u + h, span)
                  - eval_basis_1d(nonuniform_cubic, u - h, span)) / (2 * h)
            assert_array_almost_equal(ders[1], fd, decimal=6)
