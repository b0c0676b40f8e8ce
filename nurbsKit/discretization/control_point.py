"""
Homogeneous control points.

Rational geometry stores each control point P_i with weight w_i in
homogeneous form

    Pw_i = (w_i * x_i, w_i * y_i, w_i * z_i, w_i)

so that linear operations such as knot insertion act on Pw directly and
stay weight-correct. Coordinates are dehomogenized only on read.
"""

import numpy as np
from typing import Optional
from dataclasses import dataclass

from ..errors import ValidationError


@dataclass(frozen=True)
class ControlPoint:
    """
    A single weighted control point.

    Attributes:
        coordinates: Cartesian coordinates (x, y) or (x, y, z)
        weight: NURBS weight (1.0 for B-splines)
    """
    coordinates: np.ndarray
    weight: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, 'coordinates',
                           np.asarray(self.coordinates, dtype=np.float64))
        if not self.weight > 0:
            raise ValidationError(f"Weight must be positive, got {self.weight}")

    @property
    def homogeneous(self) -> np.ndarray:
        """The point as (w*x, w*y, w*z, w)."""
        return np.append(self.coordinates * self.weight, self.weight)

    @classmethod
    def from_homogeneous(cls, point_w: np.ndarray) -> 'ControlPoint':
        point_w = np.asarray(point_w, dtype=np.float64)
        return cls(point_w[:-1] / point_w[-1], float(point_w[-1]))

    def __repr__(self) -> str:
        return f"ControlPoint(coord={self.coordinates}, w={self.weight})"


def homogenize(points: np.ndarray, weights: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Convert Cartesian points and weights to homogeneous form.

    Works on any leading shape: (n, d) curve points with (n,) weights,
    or (n_u, n_v, d) surface grids with (n_u, n_v) weights.

    Parameters:
        points: Array of shape (..., d)
        weights: Array of shape (...), defaults to 1.0

    Returns:
        Array of shape (..., d+1)
    """
    points = np.asarray(points, dtype=np.float64)
    if weights is None:
        weights = np.ones(points.shape[:-1])
    else:
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != points.shape[:-1]:
            raise ValidationError(
                f"Weights shape {weights.shape} doesn't match points shape "
                f"{points.shape[:-1]}"
            )
        if np.any(weights <= 0):
            raise ValidationError("All weights must be positive")

    return np.concatenate([points * weights[..., None], weights[..., None]], axis=-1)


def dehomogenize(points_w: np.ndarray) -> np.ndarray:
    """
    Convert homogeneous points back to Cartesian coordinates.

    Parameters:
        points_w: Array of shape (..., d+1)

    Returns:
        Array of shape (..., d)
    """
    points_w = np.asarray(points_w, dtype=np.float64)
    return points_w[..., :-1] / points_w[..., -1:]


def weights_of(points_w: np.ndarray) -> np.ndarray:
    """Extract the weight coordinate of homogeneous points."""
    return np.asarray(points_w, dtype=np.float64)[..., -1].copy()
