"""
Vector and matrix helpers on numpy arrays.

Dot/cross products and norms come straight from numpy; this module adds
the pieces with kernel-specific failure semantics (unitize) and the
affine transforms applied to control points.
"""

import numpy as np
from typing import Sequence, Tuple

from ..constants import EPSILON
from ..errors import DegenerateGeometryError, ValidationError


def is_zero(v: np.ndarray, tol: float = EPSILON) -> bool:
    """True if every component of v is within tol of zero."""
    return bool(np.all(np.abs(np.asarray(v, dtype=np.float64)) <= tol))


def unitize(v: np.ndarray) -> np.ndarray:
    """
    Scale a vector to unit length.

    Raises:
        DegenerateGeometryError: if v has zero length or is not finite
    """
    v = np.asarray(v, dtype=np.float64)
    length = np.linalg.norm(v)
    if not np.isfinite(length) or length < EPSILON:
        raise DegenerateGeometryError(f"Cannot unitize degenerate vector {v}")
    return v / length


def closest_point_on_segment(point: np.ndarray,
                             seg_start: np.ndarray,
                             seg_end: np.ndarray,
                             t0: float = 0.0,
                             t1: float = 1.0) -> Tuple[float, np.ndarray]:
    """
    Project a point onto a line segment.

    The segment carries a parameter range [t0, t1] mapped linearly along
    its length; the projection is clamped to the segment ends.

    Returns:
        (t, closest_point)
    """
    point = np.asarray(point, dtype=np.float64)
    seg_start = np.asarray(seg_start, dtype=np.float64)
    seg_end = np.asarray(seg_end, dtype=np.float64)

    direction = seg_end - seg_start
    length = np.linalg.norm(direction)
    if length < EPSILON:
        return t0, seg_start.copy()

    r = direction / length
    along = np.dot(point - seg_start, r)

    if along < 0.0:
        return t0, seg_start.copy()
    if along > length:
        return t1, seg_end.copy()

    return t0 + (t1 - t0) * along / length, seg_start + r * along


def transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """
    Apply a homogeneous (d+1)x(d+1) transform to Cartesian points.

    Column-vector convention: p' = M @ [p, 1], followed by division by the
    projective coordinate.

    Parameters:
        points: Array of shape (..., d)
        matrix: Array of shape (d+1, d+1)

    Returns:
        Transformed points, same shape as input
    """
    points = np.asarray(points, dtype=np.float64)
    matrix = np.asarray(matrix, dtype=np.float64)
    d = points.shape[-1]
    if matrix.shape != (d + 1, d + 1):
        raise ValidationError(
            f"Transform must be {d + 1}x{d + 1} for {d}D points, got {matrix.shape}"
        )

    ones = np.ones(points.shape[:-1] + (1,))
    result = np.concatenate([points, ones], axis=-1) @ matrix.T
    return result[..., :-1] / result[..., -1:]


def translation_matrix(offset: Sequence[float]) -> np.ndarray:
    """4x4 (or (d+1)x(d+1)) matrix translating by offset."""
    offset = np.asarray(offset, dtype=np.float64)
    matrix = np.eye(len(offset) + 1)
    matrix[:-1, -1] = offset
    return matrix


def rotation_matrix_z(angle: float) -> np.ndarray:
    """4x4 rotation by angle (radians) about the z axis."""
    c, s = np.cos(angle), np.sin(angle)
    matrix = np.eye(4)
    matrix[0, 0], matrix[0, 1] = c, -s
    matrix[1, 0], matrix[1, 1] = s, c
    return matrix
