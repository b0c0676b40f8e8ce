#!/usr/bin/env python3
"""
Example: adaptive tessellation of a curved NURBS surface.

A flat sheet with one raised control point is subdivided where its normals
vary, then flattened into a crack-free triangle mesh.

Usage:
    ./examples/src/adaptive_tessellation.py
"""

import logging
import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from nurbsKit.geometry.nurbs import NURBSSurface
from nurbsKit.geometry.primitives import make_nurbs_rectangle
from nurbsKit.tessellation.adaptive import AdaptiveRefinementOptions, AdaptiveRefinementTree
from nurbsKit.tessellation.mesh import triangulate


def make_bumped_sheet(height: float = 0.8, n_elements: int = 2) -> NURBSSurface:
    """Unit square sheet whose last control point is raised by height."""
    rect = make_nurbs_rectangle(p=2, n_elem_u=n_elements, n_elem_v=n_elements)
    points = np.array(rect.control_points)
    points[-1, -1, 2] = height
    kv_u, kv_v = rect.knot_vectors
    return NURBSSurface(kv_u, kv_v, points)


def run(norm_tol: float = 2.5e-2, max_depth: int = 8, verbose: bool = True):
    """
    Run the adaptive tessellation example.

    Parameters:
        norm_tol: Normal deviation that triggers a split
        max_depth: Maximum subdivision depth
        verbose: Print progress information

    Returns:
        Dictionary with the tree and the mesh
    """
    if verbose:
        print("=" * 60)
        print("Adaptive Tessellation Example")
        print("=" * 60)

    surface = make_bumped_sheet()
    options = AdaptiveRefinementOptions(norm_tol=norm_tol, max_depth=max_depth)

    tree = AdaptiveRefinementTree(surface, options)
    tree.check_partition()
    tree.check_neighbors()

    mesh = triangulate(tree)
    cracks = [e for e in mesh.boundary_edges()
              if not np.any(np.all(np.isin(mesh.uvs[list(e)], (0.0, 1.0)), axis=0))]

    if verbose:
        depths = [leaf.depth for leaf in tree.leaves()]
        print(f"Surface: {surface}")
        print(f"Options: {options}")
        print()
        print("Tree:")
        print(f"  Nodes:  {len(tree.nodes)}")
        print(f"  Leaves: {tree.n_leaves}")
        print(f"  Depth:  {min(depths)} .. {max(depths)}")
        print()
        print("Mesh:")
        print(f"  Vertices: {mesh.n_vertices}")
        print(f"  Faces:    {mesh.n_faces}")
        print(f"  Interior boundary edges (cracks): {len(cracks)}")
        print("=" * 60)

    return {'tree': tree, 'mesh': mesh}


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    run()
