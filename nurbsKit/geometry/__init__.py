"""
Geometry module for NURBS curves and surfaces.
"""

from .nurbs import NURBSCurve, NURBSSurface
from .primitives import (
    make_line,
    make_polyline,
    make_rational_bezier_curve,
    make_nurbs_arc,
    make_nurbs_circle,
    make_bilinear_surface,
    make_nurbs_rectangle,
    make_ruled_surface,
)
