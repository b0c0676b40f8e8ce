"""
Primitive geometry factory functions.

This module provides factory functions for a few common NURBS geometries
used as inputs to refinement, analysis and tessellation:
- Lines, polylines and rational Bezier curves
- Circular arcs and full circles
- Rectangles, bilinear patches and ruled surfaces

All geometry is created in 3D; 2D coordinates get z = 0.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from .nurbs import NURBSCurve, NURBSSurface
from ..constants import EPSILON
from ..errors import ValidationError
from ..discretization.knot_vector import KnotVector, make_open_knot_vector


def _as_3d(points) -> np.ndarray:
    points = np.atleast_2d(np.asarray(points, dtype=np.float64))
    if points.shape[-1] == 2:
        points = np.concatenate([points, np.zeros(points.shape[:-1] + (1,))], axis=-1)
    return points


def make_line(start: Sequence[float], end: Sequence[float]) -> NURBSCurve:
    """
    Create a degree 1 NURBS curve from start to end on [0, 1].

    Parameters:
        start: Start point
        end: End point

    Returns:
        NURBSCurve representing the line segment
    """
    kv = KnotVector(np.array([0.0, 0.0, 1.0, 1.0]), 1)
    return NURBSCurve(kv, _as_3d([start, end]))


def make_polyline(points: Sequence[Sequence[float]]) -> NURBSCurve:
    """
    Create a degree 1 curve through points, parametrized by chord length.

    The knot between consecutive points is the cumulative distance, so the
    parameter of each vertex equals the arc length up to it.

    Parameters:
        points: At least 2 points

    Returns:
        NURBSCurve with domain [0, total_length]
    """
    points = _as_3d(points)
    if points.shape[0] < 2:
        raise ValidationError("A polyline needs at least 2 points")

    chords = np.linalg.norm(np.diff(points, axis=0), axis=1)
    if np.any(chords < EPSILON):
        raise ValidationError("Consecutive polyline points must be distinct")

    cumulative = np.concatenate([[0.0], np.cumsum(chords)])
    knots = np.concatenate([[0.0], cumulative, [cumulative[-1]]])
    return NURBSCurve(KnotVector(knots, 1), points)


def make_rational_bezier_curve(control_points: Sequence[Sequence[float]],
                               weights: Optional[Sequence[float]] = None) -> NURBSCurve:
    """
    Create a rational Bezier curve of degree len(control_points) - 1 on [0, 1].

    Parameters:
        control_points: At least 2 points
        weights: Positive weights, defaults to 1.0
    """
    points = _as_3d(control_points)
    degree = points.shape[0] - 1
    if degree < 1:
        raise ValidationError("A Bezier curve needs at least 2 control points")

    knots = np.concatenate([np.zeros(degree + 1), np.ones(degree + 1)])
    return NURBSCurve(KnotVector(knots, degree), points, weights)


def make_nurbs_arc(radius: float = 1.0,
                   center: Sequence[float] = (0.0, 0.0, 0.0),
                   start_angle: float = 0.0,
                   end_angle: float = np.pi / 2) -> NURBSCurve:
    """
    Create a NURBS curve representing a circular arc in a plane z = const.

    Uses degree 2 with 3 control points for arcs up to 90 degrees.

    Parameters:
        radius: Arc radius
        center: Center coordinates (x, y[, z])
        start_angle: Starting angle in radians
        end_angle: Ending angle in radians (must be within 90 degrees of start)

    Returns:
        NURBSCurve representing the arc on [0, 1]
    """
    sweep = end_angle - start_angle
    if abs(sweep) > np.pi / 2 + 1e-10:
        raise ValidationError(
            "Arc sweep must be <= 90 degrees. Use make_nurbs_circle for larger arcs."
        )
    if radius <= 0:
        raise ValidationError(f"Radius must be positive, got {radius}")

    center = _as_3d(center)[0]
    kv = KnotVector(np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), 2)

    # Middle control point sits at the intersection of the end tangents
    mid_angle = 0.5 * (start_angle + end_angle)
    d = radius / np.cos(sweep / 2)

    control_points = np.array([
        center + [radius * np.cos(start_angle), radius * np.sin(start_angle), 0.0],
        center + [d * np.cos(mid_angle), d * np.sin(mid_angle), 0.0],
        center + [radius * np.cos(end_angle), radius * np.sin(end_angle), 0.0],
    ])
    weights = np.array([1.0, np.cos(sweep / 2), 1.0])

    return NURBSCurve(kv, control_points, weights)


def make_nurbs_circle(radius: float = 1.0,
                      center: Sequence[float] = (0.0, 0.0, 0.0)) -> NURBSCurve:
    """
    Create a NURBS curve representing a full circle.

    Uses the standard 9-control-point representation with degree 2,
    counterclockwise from the positive x-axis on [0, 1]. The first and
    last control points coincide, so the curve is closed.
    """
    if radius <= 0:
        raise ValidationError(f"Radius must be positive, got {radius}")

    center = _as_3d(center)[0]
    knots = np.array([0, 0, 0, 0.25, 0.25, 0.5, 0.5, 0.75, 0.75, 1, 1, 1], dtype=np.float64)
    kv = KnotVector(knots, 2)

    angles = np.arange(9) * np.pi / 4
    # Control points at odd positions lie on the square circumscribing the circle
    distances = np.where(np.arange(9) % 2 == 1, radius * np.sqrt(2.0), radius)

    control_points = np.zeros((9, 3))
    control_points[:, 0] = np.cos(angles) * distances
    control_points[:, 1] = np.sin(angles) * distances
    control_points += center
    # Close exactly despite rounding in cos/sin of 2 pi
    control_points[-1] = control_points[0]

    w = 1.0 / np.sqrt(2.0)
    weights = np.array([1, w, 1, w, 1, w, 1, w, 1])

    return NURBSCurve(kv, control_points, weights)


def make_bilinear_surface(p00: Sequence[float], p10: Sequence[float],
                          p11: Sequence[float], p01: Sequence[float]) -> NURBSSurface:
    """
    Create a degree (1, 1) surface spanning four corner points on [0, 1]^2.

    Corner pij is the surface point at (u, v) = (i, j).
    """
    kv = KnotVector(np.array([0.0, 0.0, 1.0, 1.0]), 1)
    grid = _as_3d([p00, p01, p10, p11]).reshape(2, 2, 3)
    return NURBSSurface(kv, kv, grid)


def make_nurbs_rectangle(x_range: Tuple[float, float] = (0.0, 1.0),
                         y_range: Tuple[float, float] = (0.0, 1.0),
                         p: int = 2,
                         n_elem_u: int = 1,
                         n_elem_v: int = 1) -> NURBSSurface:
    """
    Create a planar NURBS surface representing a rectangle in z = 0.

    Control points sit at the Greville abscissae, so the parametrization
    is affine: S(u, v) = (x_min + u * width, y_min + v * height, 0).

    Parameters:
        x_range: (x_min, x_max)
        y_range: (y_min, y_max)
        p: Polynomial degree in both directions
        n_elem_u: Number of knot spans along u
        n_elem_v: Number of knot spans along v

    Returns:
        NURBSSurface on [0, 1]^2
    """
    kv_u = make_open_knot_vector(n_elem_u + p, p, domain=(0.0, 1.0))
    kv_v = make_open_knot_vector(n_elem_v + p, p, domain=(0.0, 1.0))

    x_min, x_max = x_range
    y_min, y_max = y_range
    gu = kv_u.greville_abscissae()
    gv = kv_v.greville_abscissae()

    control_points = np.zeros((len(gu), len(gv), 3))
    control_points[..., 0] = (x_min + (x_max - x_min) * gu)[:, None]
    control_points[..., 1] = (y_min + (y_max - y_min) * gv)[None, :]

    return NURBSSurface(kv_u, kv_v, control_points)


def make_ruled_surface(curve_a: NURBSCurve, curve_b: NURBSCurve) -> NURBSSurface:
    """
    Create the ruled surface between two curves.

    S(u, 0) = curve_a(u) and S(u, 1) = curve_b(u), with straight lines in
    between. Both curves must share the same knot vector.

    Returns:
        NURBSSurface of degree (curve degree, 1)
    """
    if not np.array_equal(curve_a.knots, curve_b.knots):
        raise ValidationError("Ruled surface curves must share the same knot vector")
    if curve_a.n_dim_physical != curve_b.n_dim_physical:
        raise ValidationError("Ruled surface curves must have the same dimension")

    kv_v = KnotVector(np.array([0.0, 0.0, 1.0, 1.0]), 1)
    grid = np.stack([curve_a.homogeneous_points, curve_b.homogeneous_points], axis=1)
    return NURBSSurface.from_homogeneous(curve_a.knot_vector, kv_v, grid)
