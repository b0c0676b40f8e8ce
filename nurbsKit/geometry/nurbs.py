"""
NURBS (Non-Uniform Rational B-Spline) geometry representation.

NURBS extend B-splines by introducing weights for each control point,
enabling exact representation of conic sections (circles, ellipses, etc.).

A NURBS curve point is computed as:

    C(u) = sum_i (N_i(u) * w_i * P_i) / sum_i (N_i(u) * w_i)

Internally the control points are kept in homogeneous form
Pw_i = (w_i * P_i, w_i): the numerator and denominator above are then a
single B-spline evaluation of Pw, and refinement operates linearly on Pw.

Curves and surfaces are immutable: the stored arrays are read-only,
accessors return copies, and every modifying operation (refinement,
reversal, transformation) returns a new object.

This module provides:
- NURBSGeometry: Abstract base for NURBS geometries
- NURBSCurve: 1D parametric curves in any dimension (usually 3D)
- NURBSSurface: 2D parametric surfaces, control grid indexed [u][v]
"""

import math
import numpy as np
from typing import List, Optional, Sequence, Tuple
from abc import ABC, abstractmethod

from ..constants import EPSILON
from ..errors import ValidationError
from ..discretization.knot_vector import KnotVector
from ..discretization.control_point import homogenize, dehomogenize
from .bspline import eval_basis_1d, eval_basis_ders_1d
from .vector import unitize, transform_points


def _rational_curve_derivatives(Aders: np.ndarray, wders: np.ndarray) -> np.ndarray:
    """
    Rational derivatives from homogeneous ones (Piegl & Tiller, A4.2).

    C^(k) = (A^(k) - sum_{j=1}^{k} C(k,j) * w^(j) * C^(k-j)) / w^(0)
    """
    n_ders = Aders.shape[0] - 1
    Cders = np.zeros_like(Aders)

    for k in range(n_ders + 1):
        v = Aders[k].copy()
        for j in range(1, k + 1):
            v -= math.comb(k, j) * wders[j] * Cders[k - j]
        Cders[k] = v / wders[0]

    return Cders


class NURBSGeometry(ABC):
    """
    Abstract base class for NURBS geometry objects.

    The analysis and tessellation code interacts with geometry only through
    this interface: evaluation of points and parametric derivatives.
    """

    @property
    @abstractmethod
    def n_dim_parametric(self) -> int:
        """Number of parametric dimensions (1=curve, 2=surface)."""

    @property
    @abstractmethod
    def n_dim_physical(self) -> int:
        """Number of physical/spatial dimensions."""

    @property
    @abstractmethod
    def control_points(self) -> np.ndarray:
        """Cartesian control point coordinates (copy)."""

    @property
    @abstractmethod
    def weights(self) -> np.ndarray:
        """NURBS weights (copy)."""

    @property
    @abstractmethod
    def homogeneous_points(self) -> np.ndarray:
        """Control points as (w*x, w*y, w*z, w) (copy)."""

    @abstractmethod
    def eval_point(self, u):
        """Evaluate geometry at a parameter value."""

    @abstractmethod
    def eval_derivatives(self, u, n_ders: int = 1):
        """Evaluate geometry and derivatives at a parameter value."""


def _check_homogeneous(points_w: np.ndarray) -> np.ndarray:
    points_w = np.array(points_w, dtype=np.float64)
    if points_w.shape[-1] < 2:
        raise ValidationError("Homogeneous points need at least one coordinate plus weight")
    if not np.all(np.isfinite(points_w)):
        raise ValidationError("Control points must be finite")
    if np.any(points_w[..., -1] <= 0):
        raise ValidationError("All weights must be positive")
    points_w.setflags(write=False)
    return points_w


def _analysis_options(options):
    from ..analysis.options import AnalysisOptions
    return options if options is not None else AnalysisOptions()


class NURBSCurve(NURBSGeometry):
    """
    NURBS curve in arbitrary dimensional space.

    A NURBS curve C(u) is defined by:
    - A clamped knot vector (which also carries the degree)
    - Control points P_i in R^d
    - Weights w_i > 0

    Invariant: len(knots) == n_control_points + degree + 1.
    """

    def __init__(self, knot_vector: KnotVector,
                 control_points: np.ndarray,
                 weights: Optional[np.ndarray] = None):
        """
        Initialize a NURBS curve.

        Parameters:
            knot_vector: KnotVector defining the basis
            control_points: Array of shape (n, d) where n = n_basis functions
            weights: Array of shape (n,), defaults to 1.0 (B-spline)

        Raises:
            ValidationError: on count mismatch or non-positive weights
        """
        points = np.atleast_2d(np.asarray(control_points, dtype=np.float64))
        if points.ndim != 2:
            raise ValidationError(
                f"Curve control points must be an (n, d) array, got shape {points.shape}"
            )
        self._set_homogeneous(knot_vector, homogenize(points, weights))

    @classmethod
    def from_homogeneous(cls, knot_vector: KnotVector,
                         points_w: np.ndarray) -> 'NURBSCurve':
        """Build a curve directly from homogeneous control points (n, d+1)."""
        curve = cls.__new__(cls)
        curve._set_homogeneous(knot_vector, points_w)
        return curve

    def _set_homogeneous(self, knot_vector: KnotVector, points_w: np.ndarray):
        if not isinstance(knot_vector, KnotVector):
            raise ValidationError("knot_vector must be a KnotVector")
        points_w = _check_homogeneous(points_w)
        if points_w.ndim != 2:
            raise ValidationError("Curve control points must form a 1D sequence")
        if points_w.shape[0] != knot_vector.n_basis:
            raise ValidationError(
                f"Number of points + degree + 1 must equal knots length: "
                f"{points_w.shape[0]} control points, degree {knot_vector.degree}, "
                f"{len(knot_vector)} knots"
            )
        self._knot_vector = knot_vector
        self._points_w = points_w

    @property
    def n_dim_parametric(self) -> int:
        return 1

    @property
    def n_dim_physical(self) -> int:
        return self._points_w.shape[1] - 1

    @property
    def n_control_points(self) -> int:
        return self._points_w.shape[0]

    @property
    def control_points(self) -> np.ndarray:
        return dehomogenize(self._points_w)

    @property
    def weights(self) -> np.ndarray:
        return self._points_w[:, -1].copy()

    @property
    def homogeneous_points(self) -> np.ndarray:
        return self._points_w.copy()

    @property
    def knot_vector(self) -> KnotVector:
        return self._knot_vector

    @property
    def knots(self) -> np.ndarray:
        return self._knot_vector.knots

    @property
    def degree(self) -> int:
        return self._knot_vector.degree

    @property
    def domain(self) -> Tuple[float, float]:
        return self._knot_vector.domain

    @property
    def is_closed(self) -> bool:
        """True if the first and last control points coincide."""
        points = self.control_points
        return float(np.sum((points[0] - points[-1]) ** 2)) < EPSILON

    def eval_point(self, u: float) -> np.ndarray:
        """
        Evaluate curve at parameter value.

        Parameters:
            u: Parameter value

        Returns:
            Point coordinates as (d,) array
        """
        p = self.degree
        span = self._knot_vector.find_span(u)
        N = eval_basis_1d(self._knot_vector, u, span)
        point_w = N @ self._points_w[span - p:span + 1]
        return point_w[:-1] / point_w[-1]

    def eval_derivatives(self, u: float, n_ders: int = 1) -> Tuple[np.ndarray, ...]:
        """
        Evaluate curve and derivatives at parameter value.

        Parameters:
            u: Parameter value
            n_ders: Number of derivatives

        Returns:
            Tuple (C, dC/du, d2C/du2, ...) of (d,) arrays
        """
        p = self.degree
        span = self._knot_vector.find_span(u)
        Nders = eval_basis_ders_1d(self._knot_vector, u, n_ders, span)

        # Homogeneous derivatives: numerator A^(k) and weight w^(k)
        CKw = Nders @ self._points_w[span - p:span + 1]
        Cders = _rational_curve_derivatives(CKw[:, :-1], CKw[:, -1])

        return tuple(Cders[k] for k in range(n_ders + 1))

    def tangent(self, u: float) -> np.ndarray:
        """First derivative C'(u) (not normalized)."""
        return self.eval_derivatives(u, 1)[1]

    def eval_points(self, u_values: Sequence[float]) -> np.ndarray:
        """Evaluate the curve at several parameters, shape (n, d)."""
        return np.array([self.eval_point(u) for u in u_values])

    # ------------------------------------------------------------------
    # Refinement and modification (return new curves)
    # ------------------------------------------------------------------

    def knot_refine(self, knots_to_insert: Sequence[float]) -> 'NURBSCurve':
        """Insert knots without changing the curve's shape."""
        from ..discretization.refinement import curve_knot_refine
        return curve_knot_refine(self, knots_to_insert)

    def decompose(self) -> List['NURBSCurve']:
        """Split the curve into Bezier segments."""
        from ..discretization.extraction import decompose_curve_into_beziers
        return decompose_curve_into_beziers(self)

    def split(self, u: float) -> Tuple['NURBSCurve', 'NURBSCurve']:
        """Split the curve at parameter u into two curves."""
        from ..discretization.refinement import split_curve
        return split_curve(self, u)

    def reverse(self) -> 'NURBSCurve':
        """Reverse the parametrization; the domain is unchanged."""
        from ..discretization.refinement import reverse_curve
        return reverse_curve(self)

    def transform(self, matrix: np.ndarray) -> 'NURBSCurve':
        """Apply a homogeneous (d+1)x(d+1) transform to the control points."""
        return NURBSCurve(self._knot_vector,
                          transform_points(self.control_points, matrix),
                          self.weights)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def length(self, options=None) -> float:
        """Arc length of the whole curve."""
        from ..analysis.arc_length import rational_curve_arc_length
        options = _analysis_options(options)
        return rational_curve_arc_length(self, None, options.gauss_degree_increase)

    def length_at(self, u: float, options=None) -> float:
        """Arc length from the domain start up to parameter u."""
        from ..analysis.arc_length import rational_curve_arc_length
        options = _analysis_options(options)
        return rational_curve_arc_length(self, u, options.gauss_degree_increase)

    def parameter_at_length(self, length: float, options=None) -> float:
        """Parameter at which the arc length from the start equals length."""
        from ..analysis.arc_length import rational_curve_parameter_at_length
        options = _analysis_options(options)
        return rational_curve_parameter_at_length(self, length, options.length_tolerance,
                                                  options.gauss_degree_increase)

    def divide_by_count(self, divisions: int, options=None) -> Tuple[List[float], List[float]]:
        """Parameters splitting the curve into equal-length pieces."""
        from ..analysis.arc_length import divide_curve_by_count
        options = _analysis_options(options)
        return divide_curve_by_count(self, divisions, options.gauss_degree_increase)

    def divide_by_length(self, length: float, options=None) -> Tuple[List[float], List[float]]:
        """Parameters at every multiple of length along the curve."""
        from ..analysis.arc_length import divide_curve_by_length
        options = _analysis_options(options)
        return divide_curve_by_length(self, length, options.gauss_degree_increase)

    def closest_parameter(self, point: np.ndarray, options=None) -> float:
        """Parameter of the curve point closest to point."""
        from ..analysis.closest_point import rational_curve_closest_parameter
        return rational_curve_closest_parameter(self, point, options)

    def closest_point(self, point: np.ndarray, options=None) -> Tuple[np.ndarray, float]:
        """Closest curve point to point, as (point, parameter)."""
        from ..analysis.closest_point import rational_curve_closest_point
        return rational_curve_closest_point(self, point, options)

    def __repr__(self) -> str:
        return (f"NURBSCurve(degree={self.degree}, n_control_points="
                f"{self.n_control_points}, domain={self.domain})")


def _rational_surface_derivatives(Aders: np.ndarray, wders: np.ndarray,
                                  n_ders: int) -> np.ndarray:
    """
    Rational surface derivatives from homogeneous ones (Piegl & Tiller, A4.4).

    Aders[k, l] holds the (k, l)-th mixed derivative of the weighted
    numerator, wders[k, l] the same for the weight function.
    """
    SKL = np.zeros_like(Aders)

    for k in range(n_ders + 1):
        for l in range(n_ders - k + 1):
            v = Aders[k, l].copy()
            for j in range(1, l + 1):
                v -= math.comb(l, j) * wders[0, j] * SKL[k, l - j]
            for i in range(1, k + 1):
                v -= math.comb(k, i) * wders[i, 0] * SKL[k - i, l]
                v2 = np.zeros_like(v)
                for j in range(1, l + 1):
                    v2 += math.comb(l, j) * wders[i, j] * SKL[k - i, l - j]
                v -= math.comb(k, i) * v2
            SKL[k, l] = v / wders[0, 0]

    return SKL


class NURBSSurface(NURBSGeometry):
    """
    NURBS surface in 3D (or 2D) space.

    A NURBS surface S(u, v) is defined by:
    - Two clamped knot vectors (u and v directions)
    - Control points P_{i,j} arranged in a grid, i along u, j along v
    - Weights w_{i,j} > 0

    The surface point is:
    S(u, v) = sum_{i,j} N_i(u) N_j(v) w_{i,j} P_{i,j} / sum_{i,j} N_i(u) N_j(v) w_{i,j}
    """

    def __init__(self,
                 knot_vector_u: KnotVector,
                 knot_vector_v: KnotVector,
                 control_points: np.ndarray,
                 weights: Optional[np.ndarray] = None):
        """
        Initialize a NURBS surface.

        Parameters:
            knot_vector_u: KnotVector for u direction
            knot_vector_v: KnotVector for v direction
            control_points: Array of shape (n_u, n_v, d)
            weights: Array of shape (n_u, n_v), defaults to 1.0
        """
        points = np.asarray(control_points, dtype=np.float64)
        if points.ndim != 3:
            raise ValidationError(
                f"Surface control points must be an (n_u, n_v, d) grid, "
                f"got shape {points.shape}"
            )
        self._set_homogeneous(knot_vector_u, knot_vector_v, homogenize(points, weights))

    @classmethod
    def from_homogeneous(cls, knot_vector_u: KnotVector, knot_vector_v: KnotVector,
                         points_w: np.ndarray) -> 'NURBSSurface':
        """Build a surface directly from a homogeneous grid (n_u, n_v, d+1)."""
        surface = cls.__new__(cls)
        surface._set_homogeneous(knot_vector_u, knot_vector_v, points_w)
        return surface

    def _set_homogeneous(self, kv_u: KnotVector, kv_v: KnotVector,
                         points_w: np.ndarray):
        if not isinstance(kv_u, KnotVector) or not isinstance(kv_v, KnotVector):
            raise ValidationError("Knot vectors must be KnotVector instances")
        points_w = _check_homogeneous(points_w)
        if points_w.ndim != 3:
            raise ValidationError("Surface control points must form a 2D grid")
        expected = (kv_u.n_basis, kv_v.n_basis)
        if points_w.shape[:2] != expected:
            raise ValidationError(
                f"Control point grid {points_w.shape[:2]} doesn't match "
                f"knot vectors, expected {expected}"
            )
        self._kv_u = kv_u
        self._kv_v = kv_v
        self._points_w = points_w

    @property
    def n_dim_parametric(self) -> int:
        return 2

    @property
    def n_dim_physical(self) -> int:
        return self._points_w.shape[2] - 1

    @property
    def n_control_points(self) -> int:
        return self._points_w.shape[0] * self._points_w.shape[1]

    @property
    def n_control_points_per_dir(self) -> Tuple[int, int]:
        """Number of control points in each direction (n_u, n_v)."""
        return self._points_w.shape[:2]

    @property
    def control_points(self) -> np.ndarray:
        """Control points as (n_u, n_v, d) grid."""
        return dehomogenize(self._points_w)

    @property
    def weights(self) -> np.ndarray:
        """Weights as (n_u, n_v) grid."""
        return self._points_w[..., -1].copy()

    @property
    def homogeneous_points(self) -> np.ndarray:
        return self._points_w.copy()

    @property
    def knot_vectors(self) -> Tuple[KnotVector, KnotVector]:
        return (self._kv_u, self._kv_v)

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self._kv_u.degree, self._kv_v.degree)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Parametric domain as ((u_min, u_max), (v_min, v_max))."""
        return (self._kv_u.domain, self._kv_v.domain)

    def eval_point(self, uv: Tuple[float, float]) -> np.ndarray:
        """
        Evaluate surface at parameter values.

        Parameters:
            uv: Parameter values (u, v)

        Returns:
            Point coordinates as (d,) array
        """
        u, v = uv
        p, q = self.degrees
        span_u = self._kv_u.find_span(u)
        span_v = self._kv_v.find_span(v)

        N_u = eval_basis_1d(self._kv_u, u, span_u)
        N_v = eval_basis_1d(self._kv_v, v, span_v)

        local = self._points_w[span_u - p:span_u + 1, span_v - q:span_v + 1]
        point_w = np.einsum('r,s,rsd->d', N_u, N_v, local)
        return point_w[:-1] / point_w[-1]

    def eval_derivatives(self, uv: Tuple[float, float], n_ders: int = 1) -> np.ndarray:
        """
        Evaluate surface point and mixed partial derivatives.

        Parameters:
            uv: Parameter values (u, v)
            n_ders: Highest total derivative order

        Returns:
            Array SKL of shape (n_ders+1, n_ders+1, d) where SKL[k, l] is
            d^{k+l} S / du^k dv^l; SKL[0, 0] is the point. Entries with
            k + l > n_ders are zero.
        """
        u, v = uv
        p, q = self.degrees
        span_u = self._kv_u.find_span(u)
        span_v = self._kv_v.find_span(v)

        Nders_u = eval_basis_ders_1d(self._kv_u, u, n_ders, span_u)
        Nders_v = eval_basis_ders_1d(self._kv_v, v, n_ders, span_v)

        local = self._points_w[span_u - p:span_u + 1, span_v - q:span_v + 1]
        SKLw = np.einsum('kr,ls,rsd->kld', Nders_u, Nders_v, local)

        # Drop the orders above n_ders in total
        for k in range(n_ders + 1):
            SKLw[k, n_ders - k + 1:] = 0.0

        return _rational_surface_derivatives(SKLw[..., :-1], SKLw[..., -1], n_ders)

    def eval_normal(self, uv: Tuple[float, float]) -> np.ndarray:
        """
        Unit normal S_u x S_v at (u, v).

        Raises:
            DegenerateGeometryError: where the partials are parallel or vanish
        """
        SKL = self.eval_derivatives(uv, 1)
        return unitize(np.cross(SKL[1, 0], SKL[0, 1]))

    # ------------------------------------------------------------------
    # Modification and tessellation
    # ------------------------------------------------------------------

    def knot_refine(self, knots_to_insert: Sequence[float],
                    direction: str = 'u') -> 'NURBSSurface':
        """Insert knots in the u or v direction without changing the shape."""
        from ..discretization.refinement import surface_knot_refine
        return surface_knot_refine(self, knots_to_insert, direction)

    def transform(self, matrix: np.ndarray) -> 'NURBSSurface':
        """Apply a homogeneous (d+1)x(d+1) transform to the control points."""
        return NURBSSurface(self._kv_u, self._kv_v,
                            transform_points(self.control_points, matrix),
                            self.weights)

    def tessellate(self, options=None):
        """Adaptive triangle mesh of the surface (see tessellation.mesh)."""
        from ..tessellation.mesh import tessellate
        return tessellate(self, options)

    def __repr__(self) -> str:
        return (f"NURBSSurface(degrees={self.degrees}, "
                f"n_control_points={tuple(self.n_control_points_per_dir)}, "
                f"domain={self.domain})")
