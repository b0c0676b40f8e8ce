"""
Knot refinement of NURBS curves and surfaces.

Knot insertion adds parameter values to the knot vector and recomputes
the control polygon so that the geometry and its parametrization are
unchanged. It operates on homogeneous control points, which keeps it
exact for rational curves.

Provides:
- curve_knot_refine: insert a sorted list of knots (Boehm / Oslo style)
- surface_knot_refine: the same, applied to every row or column of a grid
- split_curve, reverse_curve: derived curve operations

Reference:
- Piegl & Tiller, "The NURBS Book", 2nd ed., Algorithm A5.4
"""

import numpy as np
from typing import Sequence, Tuple

from ..constants import EPSILON
from ..errors import ValidationError
from .knot_vector import KnotVector


def refine_homogeneous_points(kv: KnotVector, points_w: np.ndarray,
                              knots_to_insert: Sequence[float]
                              ) -> Tuple[KnotVector, np.ndarray]:
    """
    Insert knots into a knot vector and its homogeneous control points.

    Parameters:
        kv: Original knot vector
        points_w: Homogeneous control points, shape (n, d+1)
        knots_to_insert: Values strictly inside the domain, in any order

    Returns:
        (refined_knot_vector, refined_points_w)
    """
    X = np.sort(np.asarray(knots_to_insert, dtype=np.float64))
    if len(X) == 0:
        return kv, np.array(points_w, dtype=np.float64)

    start, end = kv.domain
    if X[0] <= start + EPSILON or X[-1] >= end - EPSILON:
        raise ValidationError(
            f"Knots to insert {X} must lie strictly inside the domain {kv.domain}"
        )

    p = kv.degree
    for value in np.unique(X):
        total = kv.multiplicity(value) + int(np.sum(np.abs(X - value) <= EPSILON))
        if total > p + 1:
            raise ValidationError(
                f"Inserting {value} would repeat it {total} times; at most "
                f"{p + 1} allowed for degree {p}"
            )

    U = kv.knots
    Pw = np.asarray(points_w, dtype=np.float64)

    n = Pw.shape[0] - 1
    m = n + p + 1
    r = len(X) - 1
    a = kv.find_span(X[0])
    b = kv.find_span(X[r]) + 1

    Qw = np.zeros((n + r + 2, Pw.shape[1]))
    Ubar = np.zeros(m + r + 2)

    # Control points and knots outside the affected window are copied verbatim
    Qw[:a - p + 1] = Pw[:a - p + 1]
    Qw[b + r:n + r + 2] = Pw[b - 1:n + 1]
    Ubar[:a + 1] = U[:a + 1]
    Ubar[b + p + r + 1:m + r + 2] = U[b + p:m + 1]

    i = b + p - 1
    k = b + p + r
    for j in range(r, -1, -1):
        while X[j] <= U[i] and i > a:
            Qw[k - p - 1] = Pw[i - p - 1]
            Ubar[k] = U[i]
            k -= 1
            i -= 1

        Qw[k - p - 1] = Qw[k - p]

        for l in range(1, p + 1):
            ind = k - p + l
            alfa = Ubar[k + l] - X[j]
            if abs(alfa) < EPSILON:
                # Multiplicity limit reached: pure copy
                Qw[ind - 1] = Qw[ind]
            else:
                alfa /= (Ubar[k + l] - U[i - p + l])
                Qw[ind - 1] = alfa * Qw[ind - 1] + (1.0 - alfa) * Qw[ind]

        Ubar[k] = X[j]
        k -= 1

    return KnotVector(Ubar, p), Qw


def curve_knot_refine(curve, knots_to_insert: Sequence[float]):
    """
    Insert a collection of knots into a curve.

    The result evaluates identically to the input. An empty insertion list
    returns an equal copy.

    Parameters:
        curve: NURBSCurve
        knots_to_insert: Parameter values inside the curve domain

    Returns:
        New NURBSCurve with len(knots_to_insert) more control points
    """
    from ..geometry.nurbs import NURBSCurve

    kv, points_w = refine_homogeneous_points(
        curve.knot_vector, curve.homogeneous_points, knots_to_insert)
    return NURBSCurve.from_homogeneous(kv, points_w)


def surface_knot_refine(surface, knots_to_insert: Sequence[float],
                        direction: str = 'u'):
    """
    Perform knot refinement on a NURBS surface in one parametric direction.

    Every iso-curve of the control grid running along the chosen direction
    is refined with curve knot refinement; the refined rows are reassembled
    into a surface with only that direction's knot vector updated.

    Parameters:
        surface: NURBSSurface
        knots_to_insert: Parameter values inside that direction's domain
        direction: 'u' or 'v'

    Returns:
        New NURBSSurface
    """
    from ..geometry.nurbs import NURBSSurface

    if direction not in ('u', 'v'):
        raise ValidationError(f"Direction must be 'u' or 'v', got {direction!r}")

    kv_u, kv_v = surface.knot_vectors
    grid = surface.homogeneous_points

    if direction == 'u':
        # Rows along u are the columns of the [u][v] grid
        rows = np.transpose(grid, (1, 0, 2))
        kv = kv_u
    else:
        rows = grid
        kv = kv_v

    refined = []
    new_kv = kv
    for row in rows:
        new_kv, row_w = refine_homogeneous_points(kv, row, knots_to_insert)
        refined.append(row_w)
    refined = np.array(refined)

    if direction == 'u':
        return NURBSSurface.from_homogeneous(
            new_kv, kv_v, np.transpose(refined, (1, 0, 2)))
    return NURBSSurface.from_homogeneous(kv_u, new_kv, refined)


def split_curve(curve, u: float):
    """
    Split a curve at parameter u.

    The knot u is raised to multiplicity degree + 1, after which the
    control polygon separates into two independent curves.

    Returns:
        (lower_curve, upper_curve) on [start, u] and [u, end]
    """
    from ..geometry.nurbs import NURBSCurve

    kv = curve.knot_vector
    p = kv.degree
    start, end = kv.domain
    if not (start + EPSILON < u < end - EPSILON):
        raise ValidationError(f"Split parameter {u} must lie strictly inside {kv.domain}")

    n_insert = p + 1 - kv.multiplicity(u)
    new_kv, points_w = refine_homogeneous_points(
        kv, curve.homogeneous_points, [u] * n_insert)

    knots = new_kv.knots
    # Index of the first occurrence of u in the refined knot vector
    s = int(np.searchsorted(knots, u - EPSILON, side='left'))

    # Both halves end in a full-multiplicity knot at u, so the point C(u)
    # appears twice in the refined polygon: at s - 1 and at s.
    lower = NURBSCurve.from_homogeneous(KnotVector(knots[:s + p + 1], p), points_w[:s])
    upper = NURBSCurve.from_homogeneous(KnotVector(knots[s:], p), points_w[s:])
    return lower, upper


def reverse_curve(curve):
    """
    Reverse the parametrization of a curve. The domain is unaffected.

    Returns:
        New NURBSCurve with C_rev(u) = C(start + end - u)
    """
    from ..geometry.nurbs import NURBSCurve

    return NURBSCurve.from_homogeneous(curve.knot_vector.reversed(),
                                       curve.homogeneous_points[::-1])
