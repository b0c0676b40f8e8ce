"""
Discretization module.

Provides:
- KnotVector: Clamped knot vector with span lookup
- ControlPoint and homogeneous point helpers
- Knot refinement of curves and surfaces
- Bezier decomposition
"""

from .knot_vector import KnotVector, make_open_knot_vector, compute_multiplicity
from .control_point import ControlPoint, homogenize, dehomogenize
from .refinement import curve_knot_refine, surface_knot_refine, split_curve, reverse_curve
from .extraction import decompose_curve_into_beziers, is_bezier
