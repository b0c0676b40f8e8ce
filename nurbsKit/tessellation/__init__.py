"""
Adaptive tessellation of NURBS surfaces.
"""

from .adaptive import (
    AdaptiveRefinementOptions,
    AdaptiveRefinementNode,
    AdaptiveRefinementTree,
    LeafPatch,
    SurfacePoint,
    build_node,
)
from .mesh import MeshData, triangulate, tessellate
