"""
Closest point projection onto NURBS curves.

Two phases:

1. Coarse search. The curve is sampled at n_control_points * degree
   regular parameters; the query point is projected onto every chord of
   the sampled polyline and the nearest projection gives a start value.
   This keeps phase 2 away from the wrong local minimum.

2. Newton iteration on f(u) = C'(u) . (C(u) - P), with
   f'(u) = C''(u) . (C(u) - P) + C'(u) . C'(u).
   Converged when the point coincides (|C - P| <= tol1) and the tangent is
   perpendicular to the difference (zero cosine <= tol2). Steps leaving
   the domain are clamped, or wrapped for closed curves. A step of
   negligible size ends the iteration.

The iteration never fails: on reaching the cap, or on a stationary
tangent, the current estimate is returned.
"""

import logging
import numpy as np
from typing import Optional, Tuple

from ..constants import EPSILON
from ..errors import DegenerateGeometryError
from ..geometry.vector import closest_point_on_segment
from .options import AnalysisOptions

logger = logging.getLogger(__name__)


def regular_sample(curve, n_samples: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample a curve at regularly spaced parameters.

    Parameters:
        curve: NURBSCurve
        n_samples: Number of samples, including both domain ends (at least 2)

    Returns:
        (t_values, points) with shapes (n,) and (n, d)
    """
    start, end = curve.domain
    t_values = np.linspace(start, end, max(n_samples, 2))
    return t_values, curve.eval_points(t_values)


def _coarse_parameter(curve, point: np.ndarray) -> float:
    t_values, points = regular_sample(curve, curve.n_control_points * curve.degree)

    best_t = t_values[0]
    best_distance = np.inf
    for i in range(len(t_values) - 1):
        t, projected = closest_point_on_segment(
            point, points[i], points[i + 1], t_values[i], t_values[i + 1])
        distance = np.linalg.norm(point - projected)
        if distance < best_distance:
            best_distance = distance
            best_t = t

    return float(best_t)


def _newton_step(u: float, derivatives, diff: np.ndarray) -> float:
    f = np.dot(derivatives[1], diff)
    df = np.dot(derivatives[2], diff) + np.dot(derivatives[1], derivatives[1])
    if abs(df) < EPSILON:
        raise DegenerateGeometryError(f"Stationary Newton derivative at u={u}")
    return u - f / df


def rational_curve_closest_parameter(curve, point: np.ndarray,
                                     options: Optional[AnalysisOptions] = None) -> float:
    """
    Parameter of the curve point closest to point.

    Parameters:
        curve: NURBSCurve
        point: Query point, same dimension as the curve
        options: AnalysisOptions for the iteration cap and tolerances

    Returns:
        Parameter value in the curve domain
    """
    if options is None:
        options = AnalysisOptions()

    point = np.asarray(point, dtype=np.float64)
    start, end = curve.domain
    closed = curve.is_closed
    tol1 = options.distance_tolerance
    tol2 = options.cosine_tolerance

    cu = _coarse_parameter(curve, point)

    for _ in range(options.max_iterations):
        derivatives = curve.eval_derivatives(cu, 2)
        diff = derivatives[0] - point

        # Point coincidence and zero cosine
        c1v = np.linalg.norm(diff)
        c2d = np.linalg.norm(derivatives[1]) * c1v
        c2v = np.dot(derivatives[1], diff) / c2d if c2d > EPSILON else 0.0
        if c1v <= tol1 and abs(c2v) <= tol2:
            return cu

        try:
            ct = _newton_step(cu, derivatives, diff)
        except DegenerateGeometryError as e:
            logger.debug("%s; keeping estimate", e)
            return cu

        if ct < start:
            ct = end - (start - ct) if closed else start
        elif ct > end:
            ct = start + (ct - end) if closed else end
        ct = min(max(ct, start), end)

        # Step stalled, or the point lies off the end of the curve
        if np.linalg.norm((ct - cu) * derivatives[1]) < tol1:
            return cu

        cu = ct

    logger.debug("Closest point reached %d iterations without converging, u=%g",
                 options.max_iterations, cu)
    return cu


def rational_curve_closest_point(curve, point: np.ndarray,
                                 options: Optional[AnalysisOptions] = None
                                 ) -> Tuple[np.ndarray, float]:
    """
    Closest point on a curve to point.

    Returns:
        (closest_point, parameter)
    """
    t = rational_curve_closest_parameter(curve, point, options)
    return curve.eval_point(t), t
