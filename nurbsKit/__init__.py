"""
nurbsKit - NURBS Geometry Kernel

A numpy implementation of the numerical core of a NURBS modelling
kernel: knot refinement and Bezier decomposition, arc length and
closest point analysis, and adaptive crack-free surface tessellation.

Key modules:
- discretization: Knot vectors, homogeneous control points, knot
  refinement, Bezier decomposition
- geometry: NURBS curves and surfaces, basis functions, primitives
- analysis: Arc length, parameter at length, closest point
- tessellation: Adaptive quadtree and triangle mesh extraction
- quadrature: Gauss-Legendre tables
- io: Configuration loading

Quick start (curves):
    from nurbsKit.geometry.primitives import make_line, make_nurbs_arc

    line = make_line((0, 0, 0), (30, 45, 0))
    point, t = line.closest_point((10, 20, 0))

    arc = make_nurbs_arc(radius=2.0)
    length = arc.length()
    t_half = arc.parameter_at_length(0.5 * length)

    refined = arc.knot_refine([0.25, 0.5, 0.75])
    segments = refined.decompose()

Quick start (surfaces):
    from nurbsKit.geometry.primitives import make_nurbs_rectangle
    from nurbsKit.tessellation import AdaptiveRefinementOptions

    surface = make_nurbs_rectangle(p=2)
    mesh = surface.tessellate(AdaptiveRefinementOptions(min_depth=2))
    print(mesh.n_vertices, mesh.n_faces)

Numerical routines log their fallbacks (Newton cap reached, degenerate
normals) at DEBUG level on the 'nurbsKit' logger.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Core imports for convenience
from .errors import NurbsError, ValidationError, DegenerateGeometryError
from .discretization.knot_vector import KnotVector, make_open_knot_vector
from .geometry.nurbs import NURBSCurve, NURBSSurface
from .analysis.options import AnalysisOptions
from .tessellation.adaptive import AdaptiveRefinementOptions, AdaptiveRefinementTree
from .tessellation.mesh import MeshData, tessellate
