"""
Triangle mesh extraction from an adaptive refinement tree.

Each leaf contributes the counter-clockwise ring of its stitched boundary
vertices. A plain quad (4 ring vertices) is split into two triangles;
a leaf with extra vertices on an edge is fanned from its center, which
keeps every inserted vertex a mesh vertex and the mesh free of cracks.

Vertices are shared between leaves by their exact (u, v) key; the tree
evaluates every parameter point once, so shared edge vertices of
neighboring leaves have identical keys.

Faces are counter-clockwise in the parameter plane, so their geometric
normals follow S_u x S_v.
"""

import logging
import numpy as np
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .adaptive import AdaptiveRefinementOptions, AdaptiveRefinementTree

logger = logging.getLogger(__name__)


@dataclass
class MeshData:
    """
    Indexed triangle mesh.

    Attributes:
        points: Vertex positions, shape (n, 3)
        normals: Unit vertex normals, shape (n, 3)
        uvs: Vertex parameters, shape (n, 2)
        faces: Vertex indices per triangle, shape (m, 3)
    """
    points: np.ndarray
    normals: np.ndarray
    uvs: np.ndarray
    faces: np.ndarray

    @property
    def n_vertices(self) -> int:
        return self.points.shape[0]

    @property
    def n_faces(self) -> int:
        return self.faces.shape[0]

    def boundary_edges(self) -> List[Tuple[int, int]]:
        """Edges (as sorted vertex pairs) used by exactly one face."""
        counts = Counter()
        for a, b, c in self.faces:
            for i, j in ((a, b), (b, c), (c, a)):
                counts[(min(i, j), max(i, j))] += 1
        return sorted(edge for edge, n in counts.items() if n == 1)


def triangulate(tree: AdaptiveRefinementTree) -> MeshData:
    """
    Flatten the leaves of an adaptive tree into a triangle mesh.

    Parameters:
        tree: Built AdaptiveRefinementTree

    Returns:
        MeshData
    """
    index: Dict[Tuple[float, float], int] = {}
    points, normals, uvs = [], [], []
    faces = []

    def vertex(sp) -> int:
        i = index.get(sp.uv)
        if i is None:
            i = len(points)
            index[sp.uv] = i
            points.append(sp.point)
            normals.append(sp.normal)
            uvs.append(sp.uv)
        return i

    for patch in tree.leaf_patches():
        ring = [vertex(sp) for sp in patch.boundary_ring()]
        if len(ring) == 4:
            faces.append((ring[0], ring[1], ring[2]))
            faces.append((ring[0], ring[2], ring[3]))
        else:
            center = vertex(patch.center)
            for k in range(len(ring)):
                faces.append((center, ring[k], ring[(k + 1) % len(ring)]))

    dim = tree.surface.n_dim_physical
    mesh = MeshData(
        points=np.array(points, dtype=np.float64).reshape(-1, dim),
        normals=np.array(normals, dtype=np.float64).reshape(-1, dim),
        uvs=np.array(uvs, dtype=np.float64).reshape(-1, 2),
        faces=np.array(faces, dtype=np.int64).reshape(-1, 3),
    )
    logger.debug("Triangulated %d leaves into %d vertices, %d faces",
                 tree.n_leaves, mesh.n_vertices, mesh.n_faces)
    return mesh


def tessellate(surface, options: Optional[AdaptiveRefinementOptions] = None) -> MeshData:
    """
    Adaptive triangle mesh of a NURBS surface.

    Parameters:
        surface: NURBSSurface
        options: AdaptiveRefinementOptions, defaults if None

    Returns:
        MeshData
    """
    return triangulate(AdaptiveRefinementTree(surface, options))
