"""
Exception types raised by nurbsKit.

Only construction-time validation is a hard failure. The numerical
routines (arc length, parameter inversion, closest point, tessellation)
always return a defined, possibly approximate, answer.
"""


class NurbsError(Exception):
    """Base class for all kernel errors."""


class ValidationError(NurbsError, ValueError):
    """
    Invalid input to a constructor or configuration.

    Raised for degree < 1, mismatched knot/control point counts,
    non-clamped or decreasing knot vectors, non-positive weights and
    inconsistent options. No partial object is produced.
    """


class DegenerateGeometryError(NurbsError, ArithmeticError):
    """A zero-length or non-finite vector was asked to unitize."""
