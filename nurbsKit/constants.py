"""
Numerical tolerances shared across the kernel.

EPSILON is the knot/parameter equality tolerance, TOLERANCE the
Euclidean distance below which two points are considered coincident.
"""

EPSILON = 1e-10
TOLERANCE = 1e-6

# Zero-cosine threshold used by closest point projection
COSINE_TOLERANCE = 5e-4
