"""
B-spline basis function evaluation.

The i-th B-spline basis function of degree p is defined recursively:

    N_{i,0}(u) = 1 if u_i <= u < u_{i+1}, else 0

    N_{i,p}(u) = (u - u_i)/(u_{i+p} - u_i) * N_{i,p-1}(u)
               + (u_{i+p+1} - u)/(u_{i+p+1} - u_{i+1}) * N_{i+1,p-1}(u)

Properties:
- Partition of unity: sum of all basis functions = 1
- Non-negativity: N_{i,p}(u) >= 0
- Local support: N_{i,p} is non-zero only on [u_i, u_{i+p+1})

Only the p+1 functions that are non-zero on a span are evaluated; callers
combine them with the control points N_{span-p} .. N_{span}.
"""

import numpy as np
from typing import Optional
from ..discretization.knot_vector import KnotVector


def eval_basis_1d(kv: KnotVector, u: float,
                  span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate all non-zero B-spline basis functions at a parameter value.

    Cox-de Boor triangle (Piegl & Tiller, Algorithm A2.2).

    Parameters:
        kv: Knot vector
        u: Parameter value
        span: Optional pre-computed span index

    Returns:
        Array of shape (p+1,) containing N_{span-p,p}(u) to N_{span,p}(u)
    """
    p = kv.degree
    knots = kv.knots

    if span is None:
        span = kv.find_span(u)

    N = np.zeros(p + 1)
    N[0] = 1.0
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)

    for j in range(1, p + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u

        saved = 0.0
        for r in range(j):
            temp = N[r] / (right[r + 1] + left[j - r])
            N[r] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        N[j] = saved

    return N


def eval_basis_ders_1d(kv: KnotVector, u: float, n_ders: int,
                       span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate B-spline basis functions and derivatives at a parameter value.

    Piegl & Tiller, Algorithm A2.3. Derivatives above the degree vanish
    identically; their rows are returned as zeros so callers can ask for
    any order.

    Parameters:
        kv: Knot vector
        u: Parameter value
        n_ders: Number of derivatives to compute (0 = just values)
        span: Optional pre-computed span index

    Returns:
        Array of shape (n_ders+1, p+1) where result[k, j] is the k-th derivative
        of the j-th non-zero basis function (N_{span-p+j, p})
    """
    p = kv.degree
    knots = kv.knots

    if span is None:
        span = kv.find_span(u)

    ders = np.zeros((n_ders + 1, p + 1))
    du = min(n_ders, p)

    # ndu: basis functions in the lower triangle, knot differences in the upper
    ndu = np.zeros((p + 1, p + 1))
    ndu[0, 0] = 1.0
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)

    for j in range(1, p + 1):
        left[j] = u - knots[span + 1 - j]
        right[j] = knots[span + j] - u

        saved = 0.0
        for r in range(j):
            ndu[j, r] = right[r + 1] + left[j - r]
            temp = ndu[r, j - 1] / ndu[j, r]
            ndu[r, j] = saved + right[r + 1] * temp
            saved = left[j - r] * temp

        ndu[j, j] = saved

    ders[0, :] = ndu[:, p]

    a = np.zeros((2, p + 1))

    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0, 0] = 1.0

        for k in range(1, du + 1):
            d = 0.0
            rk = r - k
            pk = p - k

            if r >= k:
                a[s2, 0] = a[s1, 0] / ndu[pk + 1, rk]
                d = a[s2, 0] * ndu[rk, pk]

            j1 = 1 if rk >= -1 else -rk
            j2 = k - 1 if r - 1 <= pk else p - r

            for j in range(j1, j2 + 1):
                a[s2, j] = (a[s1, j] - a[s1, j - 1]) / ndu[pk + 1, rk + j]
                d += a[s2, j] * ndu[rk + j, pk]

            if r <= pk:
                a[s2, k] = -a[s1, k - 1] / ndu[pk + 1, r]
                d += a[s2, k] * ndu[r, pk]

            ders[k, r] = d
            s1, s2 = s2, s1

    # Multiply through by p!/(p-k)!
    factor = p
    for k in range(1, du + 1):
        ders[k, :] *= factor
        factor *= (p - k)

    return ders
