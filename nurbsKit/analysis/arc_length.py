"""
Arc length of NURBS curves and its inverse.

The curve is first decomposed into Bezier segments; each segment length is
a fixed-order Gauss-Legendre quadrature of the tangent magnitude:

    L(u) = z * sum_i w_i * |C'(z * x_i + z + u_start)|,   z = (u - u_start) / 2

with n = degree + gauss_degree_increase points (x_i, w_i on [-1, 1]).
There is no adaptive error control: increasing gauss_degree_increase is
the only accuracy knob.

Parameter at length walks the segments until the one containing the
target length is found and bisects inside it. Arc length is monotone in
the parameter for regular curves, so the bisection always brackets.
"""

import logging
import numpy as np
from typing import List, Optional, Sequence, Tuple

from ..constants import EPSILON
from ..errors import ValidationError
from ..quadrature.gauss import legendre_gauss

logger = logging.getLogger(__name__)


def rational_bezier_curve_length(curve, u: Optional[float] = None,
                                 gauss_degree_increase: int = 16) -> float:
    """
    Approximate the length of a Bezier segment from its start up to u.

    Parameters:
        curve: NURBSCurve with a single non-empty knot span
        u: End parameter, defaults to the domain end
        gauss_degree_increase: Quadrature points beyond the degree

    Returns:
        Arc length on [u_start, u]
    """
    start, end = curve.domain
    u = end if u is None else min(u, end)
    if u <= start:
        return 0.0

    abscissae, weights = legendre_gauss(curve.degree + gauss_degree_increase)
    z = 0.5 * (u - start)

    total = 0.0
    for x, w in zip(abscissae, weights):
        total += w * np.linalg.norm(curve.tangent(z * x + z + start))
    return z * total


def rational_curve_arc_length(curve, u: Optional[float] = None,
                              gauss_degree_increase: int = 16) -> float:
    """
    Approximate the length of a NURBS curve from its domain start up to u.

    Parameters:
        curve: NURBSCurve
        u: End parameter, defaults to the domain end; clamped to the domain
        gauss_degree_increase: Quadrature points beyond the degree

    Returns:
        Arc length on [u_start, u]
    """
    start, end = curve.domain
    u = end if u is None else float(np.clip(u, start, end))

    total = 0.0
    for segment in curve.decompose():
        seg_start, seg_end = segment.domain
        if seg_start + EPSILON >= u:
            break
        total += rational_bezier_curve_length(
            segment, min(seg_end, u), gauss_degree_increase)
    return total


def rational_bezier_curve_param_at_length(curve, length: float,
                                          tolerance: Optional[float] = None,
                                          curve_length: Optional[float] = None,
                                          gauss_degree_increase: int = 16) -> float:
    """
    Parameter on a Bezier segment at which the arc length equals length.

    Bisects the segment domain until the bracketing lengths differ by
    less than tolerance, or the bracket cannot shrink any further.

    Parameters:
        curve: NURBSCurve with a single non-empty knot span
        length: Target length measured from the segment start
        tolerance: Bisection tolerance, EPSILON if None or <= 0
        curve_length: Precomputed segment length, if known

    Returns:
        Parameter value inside the segment domain
    """
    if tolerance is None or tolerance <= 0:
        tolerance = EPSILON

    start, end = curve.domain
    if length <= 0:
        return start

    if curve_length is None:
        curve_length = rational_bezier_curve_length(curve, None, gauss_degree_increase)
    if length >= curve_length:
        return end

    start_length = 0.0
    end_length = curve_length
    while end_length - start_length > tolerance:
        mid = 0.5 * (start + end)
        if mid <= start or mid >= end:
            break
        mid_length = rational_bezier_curve_length(curve, mid, gauss_degree_increase)
        if mid_length > length:
            end, end_length = mid, mid_length
        else:
            start, start_length = mid, mid_length

    return 0.5 * (start + end)


def _segment_lengths(curve, gauss_degree_increase: int) -> Tuple[List, List[float]]:
    segments = curve.decompose()
    lengths = [rational_bezier_curve_length(s, None, gauss_degree_increase)
               for s in segments]
    return segments, lengths


def _parameter_on_segments(segments: Sequence, lengths: Sequence[float],
                           length: float, tolerance: Optional[float],
                           gauss_degree_increase: int) -> float:
    start = segments[0].domain[0]
    end = segments[-1].domain[1]
    total = float(sum(lengths))

    if length <= EPSILON:
        return start
    if length >= total - EPSILON:
        if length > total + EPSILON:
            logger.debug("Length %g exceeds curve length %g; returning domain end",
                         length, total)
        return end

    accumulated = 0.0
    for segment, seg_length in zip(segments, lengths):
        if accumulated + seg_length >= length:
            return rational_bezier_curve_param_at_length(
                segment, length - accumulated, tolerance, seg_length,
                gauss_degree_increase)
        accumulated += seg_length

    return end


def rational_curve_parameter_at_length(curve, length: float,
                                       tolerance: Optional[float] = None,
                                       gauss_degree_increase: int = 16) -> float:
    """
    Parameter at which the arc length from the domain start equals length.

    Lengths at or below EPSILON give the domain start; lengths within
    EPSILON of the total (or beyond it) give the domain end.

    Parameters:
        curve: NURBSCurve
        length: Target arc length
        tolerance: Bisection tolerance, EPSILON if None or <= 0
        gauss_degree_increase: Quadrature points beyond the degree

    Returns:
        Parameter value in the curve domain
    """
    segments, lengths = _segment_lengths(curve, gauss_degree_increase)
    return _parameter_on_segments(segments, lengths, length, tolerance,
                                  gauss_degree_increase)


def divide_curve_by_count(curve, divisions: int,
                          gauss_degree_increase: int = 16
                          ) -> Tuple[List[float], List[float]]:
    """
    Divide a curve into pieces of equal arc length.

    Parameters:
        curve: NURBSCurve
        divisions: Number of pieces, >= 1

    Returns:
        (t_values, lengths): divisions + 1 parameters including both ends,
        and the cumulative arc length at each
    """
    if divisions < 1:
        raise ValidationError(f"Number of divisions must be >= 1, got {divisions}")

    segments, seg_lengths = _segment_lengths(curve, gauss_degree_increase)
    step = float(sum(seg_lengths)) / divisions

    lengths = [i * step for i in range(divisions + 1)]
    t_values = [_parameter_on_segments(segments, seg_lengths, l, None,
                                       gauss_degree_increase)
                for l in lengths]
    return t_values, lengths


def divide_curve_by_length(curve, length: float,
                           gauss_degree_increase: int = 16
                           ) -> Tuple[List[float], List[float]]:
    """
    Parameters at every multiple of length along a curve.

    The first entry is the domain start; the last is the largest multiple
    of length not exceeding the curve length.

    Returns:
        (t_values, lengths)
    """
    if length <= 0:
        raise ValidationError(f"Division length must be positive, got {length}")

    segments, seg_lengths = _segment_lengths(curve, gauss_degree_increase)
    total = float(sum(seg_lengths))
    count = int(np.floor(total / length + EPSILON))

    lengths = [i * length for i in range(count + 1)]
    t_values = [_parameter_on_segments(segments, seg_lengths, l, None,
                                       gauss_degree_increase)
                for l in lengths]
    return t_values, lengths
