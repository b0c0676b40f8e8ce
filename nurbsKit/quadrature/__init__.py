"""
Gauss-Legendre quadrature tables.
"""

from .gauss import legendre_gauss, gauss_legendre_1d
