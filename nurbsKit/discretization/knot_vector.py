"""
Knot vector utilities.

A knot vector is a non-decreasing sequence of real numbers that defines
the parametric domain and the polynomial pieces of a B-spline/NURBS.

Mathematical background:
- Clamped (open) knot vectors have p+1 repeated knots at each end, so the
  curve interpolates its first and last control points
- The number of basis functions n = len(knots) - p - 1
- Knot spans (elements) are intervals [u_i, u_{i+1}] where u_i < u_{i+1}
- A knot of multiplicity k lowers the continuity there to C^{p-k}
"""

import numpy as np
from typing import Dict, List, Tuple
from dataclasses import dataclass

from ..constants import EPSILON
from ..errors import ValidationError


@dataclass(frozen=True)
class KnotVector:
    """
    Represents a clamped univariate knot vector.

    Attributes:
        knots: The knot values (non-decreasing sequence)
        degree: Polynomial degree p

    Instances are frozen and the knot array is read-only after
    validation; operations that change the knots (insertion, reversal)
    build a new KnotVector.
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        knots = np.array(self.knots, dtype=np.float64)
        object.__setattr__(self, 'knots', knots)
        object.__setattr__(self, 'degree', int(self.degree))
        self._validate()
        knots.setflags(write=False)
        self._compute_elements()

    def _validate(self):
        """Validate knot vector properties."""
        p = self.degree
        if p < 1:
            raise ValidationError(f"Degree must be at least 1, got {p}.")
        if self.knots.ndim != 1:
            raise ValidationError("Knot vector must be one-dimensional.")
        if len(self.knots) < 2 * (p + 1):
            raise ValidationError(
                f"Knot vector too short for degree {p}. "
                f"Need at least {2 * (p + 1)} knots, got {len(self.knots)}."
            )
        if not np.all(np.isfinite(self.knots)):
            raise ValidationError("Knot values must be finite.")
        if not np.all(np.diff(self.knots) >= 0):
            raise ValidationError("Knot vector must be non-decreasing.")
        # Clamped: degree + 1 repeats at both ends
        if np.any(np.abs(self.knots[:p + 1] - self.knots[0]) > EPSILON) or \
                np.any(np.abs(self.knots[-p - 1:] - self.knots[-1]) > EPSILON):
            raise ValidationError(
                f"Invalid knot format: should begin and end with {p + 1} "
                f"repeated values for degree {p}."
            )
        if self.knots[-1] - self.knots[0] <= EPSILON:
            raise ValidationError("Knot vector has an empty domain.")
        # No knot may repeat more than degree + 1 times
        starts = np.flatnonzero(np.diff(self.knots) > EPSILON) + 1
        runs = np.diff(np.concatenate(([0], starts, [len(self.knots)])))
        if runs.max() > p + 1:
            value = self.knots[np.concatenate(([0], starts))[np.argmax(runs)]]
            raise ValidationError(
                f"Knot {value} repeats {runs.max()} times; at most {p + 1} "
                f"allowed for degree {p}."
            )

    def _compute_elements(self):
        unique_knots = np.unique(self.knots)
        object.__setattr__(self, '_unique_knots', unique_knots)
        object.__setattr__(self, '_elements', [
            (float(unique_knots[i]), float(unique_knots[i + 1]))
            for i in range(len(unique_knots) - 1)
        ])

    @property
    def n_basis(self) -> int:
        """Number of basis functions (= number of control points)."""
        return len(self.knots) - self.degree - 1

    @property
    def n_elements(self) -> int:
        """Number of non-zero measure knot spans."""
        return len(self._elements)

    @property
    def elements(self) -> List[Tuple[float, float]]:
        """List of element intervals as (u_start, u_end) tuples."""
        return self._elements.copy()

    @property
    def unique_knots(self) -> np.ndarray:
        """Unique knot values (breakpoints)."""
        return self._unique_knots.copy()

    @property
    def domain(self) -> Tuple[float, float]:
        """Parametric domain (first knot, last knot)."""
        return (float(self.knots[0]), float(self.knots[-1]))

    def __len__(self) -> int:
        return len(self.knots)

    def multiplicities(self) -> Dict[float, int]:
        """
        Map each distinct knot value to its repeat count.

        The mapping is ordered by knot value.
        """
        result: Dict[float, int] = {}
        for value in self.knots:
            value = float(value)
            result[value] = result.get(value, 0) + 1
        return result

    def multiplicity(self, u: float, tol: float = EPSILON) -> int:
        """Number of times u appears in the knot vector."""
        return compute_multiplicity(self, u, tol)

    def find_span(self, u: float) -> int:
        """
        Find the knot span index containing parameter value u.

        For u in [u_i, u_{i+1}), returns i. The last span is closed, so the
        domain end maps to the last non-empty span.

        Parameters:
            u: Parameter value

        Returns:
            Span index i in the knot array
        """
        n = self.n_basis
        p = self.degree

        if u >= self.knots[n]:
            return n - 1
        if u <= self.knots[p]:
            return p

        low = p
        high = n
        mid = (low + high) // 2

        while u < self.knots[mid] or u >= self.knots[mid + 1]:
            if u < self.knots[mid]:
                high = mid
            else:
                low = mid
            mid = (low + high) // 2

        return mid

    def reversed(self) -> 'KnotVector':
        """
        Mirror the knot vector about its domain center.

        k'_i = k_0 + k_m - k_{m-i}; the domain is unchanged.
        """
        first, last = self.knots[0], self.knots[-1]
        mirrored = (first + last) - self.knots[::-1]
        return KnotVector(mirrored, self.degree)

    def greville_abscissae(self) -> np.ndarray:
        """
        Compute Greville abscissae (averages of p consecutive knots).

        Used to place control points so that the parametrization is
        linear, e.g. for planar patches.
        """
        p = self.degree
        n = self.n_basis
        greville = np.zeros(n)

        for i in range(n):
            greville[i] = np.sum(self.knots[i + 1:i + p + 1]) / p

        return greville


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Create an open (clamped) uniform knot vector.

    Parameters:
        n_basis: Number of basis functions desired
        degree: Polynomial degree p
        domain: Parametric domain (start, end)

    Returns:
        KnotVector with uniform internal knots
    """
    p = degree
    n_internal = n_basis + p + 1 - 2 * (p + 1)

    if n_internal < 0:
        raise ValidationError(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}"
        )

    a, b = domain
    knots = [a] * (p + 1)
    if n_internal > 0:
        knots.extend(np.linspace(a, b, n_internal + 2)[1:-1])
    knots.extend([b] * (p + 1))

    return KnotVector(np.array(knots), degree)


def compute_multiplicity(kv: KnotVector, u: float, tol: float = EPSILON) -> int:
    """
    Compute the multiplicity of a knot value.

    Parameters:
        kv: Knot vector
        u: Knot value to check
        tol: Tolerance for equality

    Returns:
        Number of times u appears in the knot vector
    """
    return int(np.sum(np.abs(kv.knots - u) < tol))
