"""
Bezier decomposition of NURBS curves.

Every interior knot is raised to multiplicity p+1 by knot insertion; the
refined control polygon then falls apart into independent Bezier segments,
one per non-empty knot span:

    segment e:  control points  Qw[e*(p+1) : (e+1)*(p+1)]
                knots           Ubar[e*(p+1) : e*(p+1) + 2*(p+1)]

Each segment lies in the convex hull of its own control points, which
makes the segments the unit of work for localized numerical search
(arc length quadrature, parameter inversion).

Reference:
- Piegl & Tiller, "The NURBS Book", 2nd ed., Section 5.3
"""

import numpy as np
from typing import List

from .knot_vector import KnotVector
from .refinement import refine_homogeneous_points


def knots_to_full_multiplicity(kv: KnotVector) -> List[float]:
    """
    Knots to insert so that every interior breakpoint reaches multiplicity p+1.

    Parameters:
        kv: Knot vector

    Returns:
        Sorted list of knot values, each repeated as often as it is missing
    """
    required = kv.degree + 1
    start, end = kv.domain
    to_insert = []
    for value, count in kv.multiplicities().items():
        if value == start or value == end:
            continue
        if count < required:
            to_insert.extend([value] * (required - count))
    return to_insert


def is_bezier(curve) -> bool:
    """True if the curve's knot vector has exactly two distinct values."""
    return len(curve.knot_vector.unique_knots) == 2


def decompose_curve_into_beziers(curve) -> List:
    """
    Decompose a NURBS curve into a list of Bezier segments.

    The geometry is preserved exactly: segment e evaluated at u equals the
    original curve at u for u in the e-th knot span.

    Parameters:
        curve: NURBSCurve

    Returns:
        List of NURBSCurve objects, one per non-empty knot span, in order
    """
    from ..geometry.nurbs import NURBSCurve

    kv = curve.knot_vector
    p = kv.degree
    order = p + 1

    refined_kv, points_w = refine_homogeneous_points(
        kv, curve.homogeneous_points, knots_to_full_multiplicity(kv))
    knots = refined_kv.knots

    segments = []
    for i in range(0, points_w.shape[0], order):
        segment_kv = KnotVector(np.array(knots[i:i + 2 * order]), p)
        segments.append(NURBSCurve.from_homogeneous(segment_kv, points_w[i:i + order]))

    return segments
