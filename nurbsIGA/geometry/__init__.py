"""
Geometry module: B-spline/NURBS basis evaluation and NURBS surfaces.
"""

from .bspline import NO_DOF, UnivariateSplineBasis, eval_basis_ders_1d, to_rational
from .nurbs import NURBSSurface
from .primitives import (
    make_nurbs_unit_square,
    make_nurbs_rectangle,
    make_nurbs_quarter_annulus,
)
