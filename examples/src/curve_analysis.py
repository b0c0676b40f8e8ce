#!/usr/bin/env python3
"""
Example: refinement and analysis of NURBS curves.

This example walks through the curve side of the kernel:
1. Build a circle and a slanted line
2. Refine the circle and decompose it into Bezier segments
3. Measure arc length and divide the circle into equal pieces
4. Project points onto both curves

Usage:
    ./examples/src/curve_analysis.py
"""

import numpy as np
import sys
from pathlib import Path

# Add project root to path (two levels up from examples/src/)
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from nurbsKit.analysis.options import AnalysisOptions
from nurbsKit.geometry.primitives import make_line, make_nurbs_circle


def run(radius: float = 2.0, divisions: int = 6, verbose: bool = True):
    """
    Run the curve analysis example.

    Parameters:
        radius: Circle radius
        divisions: Number of equal-length pieces to divide the circle into
        verbose: Print progress information

    Returns:
        Dictionary with the computed lengths, parameters and projections
    """
    if verbose:
        print("=" * 60)
        print("NURBS Curve Analysis Example")
        print("=" * 60)

    # ==========================================================================
    # 1. Create geometry
    # ==========================================================================
    circle = make_nurbs_circle(radius=radius)
    line = make_line((0.0, 0.0, 0.0), (30.0, 45.0, 0.0))

    if verbose:
        print(f"Circle: {circle}")
        print(f"Line:   {line}")
        print()

    # ==========================================================================
    # 2. Refinement and decomposition
    # ==========================================================================
    refined = circle.knot_refine([0.125, 0.375, 0.625, 0.875])
    segments = refined.decompose()

    if verbose:
        print("Refinement:")
        print(f"  Control points: {circle.n_control_points} -> {refined.n_control_points}")
        print(f"  Bezier segments: {len(segments)}")
        print()

    # ==========================================================================
    # 3. Arc length
    # ==========================================================================
    options = AnalysisOptions(gauss_degree_increase=16)
    length = circle.length(options)
    t_values, lengths = circle.divide_by_count(divisions, options)

    if verbose:
        print("Arc length:")
        print(f"  Computed: {length:.12f}")
        print(f"  Exact:    {2 * np.pi * radius:.12f}")
        print(f"  Error:    {abs(length - 2 * np.pi * radius):.3e}")
        print()
        print(f"Division into {divisions} pieces:")
        for t, s in zip(t_values, lengths):
            x, y, _ = circle.eval_point(t)
            print(f"  t = {t:.6f}  s = {s:8.4f}  point = ({x:+.4f}, {y:+.4f})")
        print()

    # ==========================================================================
    # 4. Closest point
    # ==========================================================================
    query = np.array([10.0, 20.0, 0.0])
    line_point, line_t = line.closest_point(query)
    circle_point, circle_t = circle.closest_point(query)

    if verbose:
        print(f"Closest point to {query}:")
        print(f"  Line:   t = {line_t:.6f}, point = {line_point}")
        print(f"  Circle: t = {circle_t:.6f}, point = {circle_point}")
        print("=" * 60)

    return {
        'length': length,
        't_values': t_values,
        'line_point': line_point,
        'circle_point': circle_point,
    }


if __name__ == "__main__":
    run()
