"""
Unit tests for vector helpers.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from nurbsKit.errors import DegenerateGeometryError
from nurbsKit.geometry.vector import is_zero, unitize


class TestVectorHelpers:
    """Tests for is_zero and unitize."""

    def test_is_zero(self):
        assert is_zero(np.zeros(3))
        assert is_zero([1e-12, -1e-12, 0.0])
        assert not is_zero([0.0, 1e-6, 0.0])

    def test_is_zero_tolerance(self):
        assert is_zero([0.0, 1e-6, 0.0], tol=1e-5)

    def test_unitize(self):
        assert_array_almost_equal(unitize([3.0, 0.0, 4.0]), [0.6, 0.0, 0.8])

    @pytest.mark.parametrize("v", [[0.0, 0.0, 0.0], [np.nan, 1.0, 0.0]])
    def test_unitize_degenerate(self, v):
        with pytest.raises(DegenerateGeometryError):
            unitize(v)
