"""
Numerical settings for curve analysis.

Arc length uses fixed-order quadrature and closest point uses a capped
Newton iteration; both trade accuracy for speed through these settings.
"""

from dataclasses import dataclass
from typing import Optional

from ..constants import COSINE_TOLERANCE, TOLERANCE
from ..errors import ValidationError


@dataclass(frozen=True)
class AnalysisOptions:
    """
    Settings for arc length and closest point computations.

    Attributes:
        gauss_degree_increase: Quadrature points per Bezier segment beyond
            the curve degree
        max_iterations: Newton iteration cap for closest point
        distance_tolerance: Point coincidence tolerance (tol1)
        cosine_tolerance: Zero cosine tolerance (tol2)
        length_tolerance: Bisection tolerance for parameter at length;
            None means EPSILON
    """
    gauss_degree_increase: int = 16
    max_iterations: int = 5
    distance_tolerance: float = TOLERANCE
    cosine_tolerance: float = COSINE_TOLERANCE
    length_tolerance: Optional[float] = None

    def __post_init__(self):
        if self.gauss_degree_increase < 0:
            raise ValidationError(
                f"gauss_degree_increase must be >= 0, got {self.gauss_degree_increase}"
            )
        if self.max_iterations < 1:
            raise ValidationError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.distance_tolerance <= 0 or self.cosine_tolerance <= 0:
            raise ValidationError("Closest point tolerances must be positive")
        if self.length_tolerance is not None and self.length_tolerance < 0:
            raise ValidationError(
                f"length_tolerance must be >= 0, got {self.length_tolerance}"
            )
