"""
Curve analysis: arc length, parameter at length and closest point.
"""

from .options import AnalysisOptions
from .arc_length import (
    rational_bezier_curve_length,
    rational_curve_arc_length,
    rational_bezier_curve_param_at_length,
    rational_curve_parameter_at_length,
    divide_curve_by_count,
    divide_curve_by_length,
)
from .closest_point import (
    regular_sample,
    rational_curve_closest_parameter,
    rational_curve_closest_point,
)
