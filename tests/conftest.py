"""
Pytest configuration and shared fixtures for nurbsIGA tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from nurbsIGA.discretization.mesh import Mesh2D
from nurbsIGA.geometry.primitives import make_nurbs_unit_square, make_nurbs_quarter_annulus
from nurbsIGA.space.nurbs_2d import NURBSSpace2D


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for rational functions and mapped gradients."""
    return 1e-8


@pytest.fixture
def unit_square():
    """Quadratic unit square, 4 x 3 elements (6 x 5 control points)."""
    return make_nurbs_unit_square(p=2, n_elem_u=4, n_elem_v=3)


@pytest.fixture
def square_mesh(unit_square):
    return Mesh2D.build(unit_square)


@pytest.fixture
def square_space(unit_square, square_mesh):
    return NURBSSpace2D.from_nurbs(unit_square, square_mesh)


@pytest.fixture
def annulus():
    """Quarter annulus with quadratic radial direction, 2 radial elements."""
    return make_nurbs_quarter_annulus(inner_radius=1.0, outer_radius=2.0,
                                      p_radial=2, n_elem_radial=2)


@pytest.fixture
def annulus_mesh(annulus):
    return Mesh2D.build(annulus)


@pytest.fixture
def annulus_space(annulus, annulus_mesh):
    return NURBSSpace2D.from_nurbs(annulus, annulus_mesh)
