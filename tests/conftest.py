"""
Pytest configuration and shared fixtures for nurbsKit tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nurbsKit.discretization.knot_vector import KnotVector
from nurbsKit.geometry.nurbs import NURBSCurve
from nurbsKit.geometry.primitives import (
    make_line, make_nurbs_arc, make_nurbs_circle, make_ruled_surface
)


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


@pytest.fixture
def line_curve():
    """Degree 1 line from (0,0,0) to (10,0,0) on [0, 1]."""
    return make_line((0.0, 0.0, 0.0), (10.0, 0.0, 0.0))


@pytest.fixture
def cubic_curve():
    """Non-rational cubic with two interior knots, one of them double."""
    kv = KnotVector(np.array([0, 0, 0, 0, 0.3, 0.6, 0.6, 1, 1, 1, 1], dtype=float), 3)
    control_points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 2.0, 0.5],
        [2.5, 2.5, 1.0],
        [4.0, 1.0, 0.0],
        [5.0, -1.0, -0.5],
        [6.5, 0.0, 0.0],
        [8.0, 2.0, 1.0],
    ])
    return NURBSCurve(kv, control_points)


@pytest.fixture
def rational_curve():
    """Degree 2 rational curve with uneven weights and an interior knot."""
    kv = KnotVector(np.array([0, 0, 0, 0.4, 1, 1, 1], dtype=float), 2)
    control_points = np.array([
        [0.0, 0.0, 0.0],
        [1.0, 3.0, 0.0],
        [3.0, 3.0, 1.0],
        [4.0, 0.0, 0.0],
    ])
    weights = np.array([1.0, 2.0, 0.5, 1.0])
    return NURBSCurve(kv, control_points, weights)


@pytest.fixture
def quarter_arc():
    """Quarter circle of radius 2 in the xy plane."""
    return make_nurbs_arc(radius=2.0, center=(0.0, 0.0, 0.0),
                          start_angle=0.0, end_angle=np.pi / 2)


@pytest.fixture
def unit_circle():
    """Closed full circle of radius 1."""
    return make_nurbs_circle(radius=1.0)


@pytest.fixture
def cylinder_patch():
    """Quarter cylinder of radius 1 and height 2, curved along u only."""
    bottom = make_nurbs_arc(radius=1.0, center=(0.0, 0.0, 0.0))
    top = make_nurbs_arc(radius=1.0, center=(0.0, 0.0, 2.0))
    return make_ruled_surface(bottom, top)
