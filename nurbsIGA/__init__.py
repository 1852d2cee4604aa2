"""
nurbsIGA - tensor-product NURBS spaces for Isogeometric Analysis

Builds rational (NURBS) function spaces on 2D patches and evaluates
discrete fields, given by their degrees of freedom, at the quadrature
nodes of a structured mesh.

Key modules:
- discretization: Knot vectors, tensor-product meshes with boundary sides
- geometry: B-spline/NURBS evaluation, NURBS surfaces and primitives
- space: NURBSSpace2D with boundary traces, vector spaces, field evaluation
- quadrature: Gauss-Legendre rules
- io: Problem setup from JSON configuration files

Quick start:
    from nurbsIGA import make_nurbs_unit_square, Mesh2D, NURBSSpace2D, evaluate_field

    surface = make_nurbs_unit_square(p=2, n_elem_u=4, n_elem_v=4)
    mesh = Mesh2D.build(surface)
    space = NURBSSpace2D.from_nurbs(surface, mesh)

    u = np.ones(space.ndof)
    eu, F = evaluate_field(u, space, mesh)   # eu == 1 everywhere

    # Same space on a visualization grid
    eu, F = evaluate_at_points(u, space, surface, (np.linspace(0, 1, 21),) * 2)
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .exceptions import ConfigurationError, DimensionMismatch
from .geometry.nurbs import NURBSSurface
from .geometry.primitives import (
    make_nurbs_unit_square, make_nurbs_rectangle, make_nurbs_quarter_annulus
)
from .discretization.mesh import Mesh2D
from .space.nurbs_2d import NURBSSpace2D, BoundaryTrace, SpaceFactory
from .space.vector import VectorSpace
from .space.eval import FieldEvaluator, evaluate_field, evaluate_at_points
