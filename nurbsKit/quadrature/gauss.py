"""
Gauss-Legendre quadrature tables.

n-point Gauss-Legendre quadrature integrates polynomials up to degree
2n-1 exactly. Arc length integrands |C'(u)| are not polynomial, so the
kernel uses n = p + 16 points per Bezier segment by default.

Tables are computed once per order with numpy and cached; the returned
arrays are read-only so the cache can be shared safely.

Usage:
    abscissae, weights = legendre_gauss(n)     # reference interval [-1, 1]
    points, weights = gauss_legendre_1d(n)     # mapped to [0, 1]
"""

import numpy as np
from typing import Callable, Tuple
from functools import lru_cache

from ..errors import ValidationError


@lru_cache(maxsize=128)
def legendre_gauss(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre abscissae and weights on [-1, 1].

    Parameters:
        n: Number of quadrature points (quadrature degree)

    Returns:
        (abscissae, weights), both read-only arrays of length n;
        weights sum to 2
    """
    if n < 1:
        raise ValidationError("Need at least 1 quadrature point")

    abscissae, weights = np.polynomial.legendre.leggauss(n)
    abscissae.setflags(write=False)
    weights.setflags(write=False)
    return abscissae, weights


@lru_cache(maxsize=32)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where weights sum to 1
    """
    abscissae, weights = legendre_gauss(n)

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = 0.5 * (abscissae + 1.0)
    scaled = 0.5 * weights
    points.setflags(write=False)
    scaled.setflags(write=False)
    return points, scaled


def integrate_1d(f: Callable[[float], float], a: float, b: float, n: int) -> float:
    """
    Integrate a scalar function over [a, b] with n-point Gauss-Legendre.

    Uses the half-width form z * sum(w_i * f(z * x_i + z + a)), z = (b - a) / 2.
    """
    abscissae, weights = legendre_gauss(n)
    z = 0.5 * (b - a)
    return z * sum(w * f(z * x + z + a) for x, w in zip(abscissae, weights))
