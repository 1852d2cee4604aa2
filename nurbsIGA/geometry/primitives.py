"""
Primitive geometry factory functions.

This module provides factory functions for creating common NURBS surfaces
used in IGA analysis:
- Unit square and rectangles (polynomial, unit weights)
- Quarter annulus (rational, exact circular arcs)
"""

import numpy as np
from typing import Tuple

from .nurbs import NURBSSurface
from ..discretization.knot_vector import KnotVector, make_open_knot_vector


def make_nurbs_unit_square(p: int = 2, n_elem_u: int = 4, n_elem_v: int = 4,
                            physical_dim: int = 2) -> NURBSSurface:
    """
    Create a NURBS surface representing the unit square [0,1]².

    Identity mapping: parametric coordinates equal physical coordinates.

    Parameters:
        p: Polynomial degree in both directions
        n_elem_u: Number of elements in the first direction
        n_elem_v: Number of elements in the second direction
        physical_dim: 2 for 2D domain, 3 for surface in 3D (z=0)

    Returns:
        NURBSSurface representing the unit square
    """
    n_basis_u = n_elem_u + p
    n_basis_v = n_elem_v + p

    kv_u = make_open_knot_vector(n_basis_u, p, domain=(0.0, 1.0))
    kv_v = make_open_knot_vector(n_basis_v, p, domain=(0.0, 1.0))

    control_points = np.zeros((n_basis_u, n_basis_v, physical_dim))
    control_points[:, :, 0] = kv_u.greville_abscissae()[:, np.newaxis]
    control_points[:, :, 1] = kv_v.greville_abscissae()[np.newaxis, :]

    return NURBSSurface(kv_u, kv_v, control_points)


def make_nurbs_rectangle(x_range: Tuple[float, float] = (0.0, 1.0),
                          y_range: Tuple[float, float] = (0.0, 1.0),
                          p: int = 2,
                          n_elem_u: int = 4,
                          n_elem_v: int = 4) -> NURBSSurface:
    """
    Create a NURBS surface representing a rectangle.

    Parameters:
        x_range: (x_min, x_max)
        y_range: (y_min, y_max)
        p: Polynomial degree
        n_elem_u: Number of elements in the first direction
        n_elem_v: Number of elements in the second direction

    Returns:
        NURBSSurface representing the rectangle
    """
    surface = make_nurbs_unit_square(p, n_elem_u, n_elem_v, physical_dim=2)

    x_min, x_max = x_range
    y_min, y_max = y_range

    control_points = surface.control_points
    control_points[:, 0] = x_min + (x_max - x_min) * control_points[:, 0]
    control_points[:, 1] = y_min + (y_max - y_min) * control_points[:, 1]

    return NURBSSurface(
        surface.knot_vectors[0],
        surface.knot_vectors[1],
        control_points,
        surface.weights
    )


def make_nurbs_quarter_annulus(inner_radius: float = 1.0,
                                outer_radius: float = 2.0,
                                p_radial: int = 1,
                                n_elem_radial: int = 1) -> NURBSSurface:
    """
    Create a NURBS surface representing a quarter of an annulus.

    The first direction is radial (inner to outer radius), the second
    sweeps the quarter circle from the positive x-axis to the positive
    y-axis with the exact degree-2 rational arc.

    Parameters:
        inner_radius: Inner radius
        outer_radius: Outer radius
        p_radial: Polynomial degree in the radial direction
        n_elem_radial: Number of elements in the radial direction

    Returns:
        NURBSSurface with non-unit weights
    """
    kv_u = make_open_knot_vector(n_elem_radial + p_radial, p_radial, domain=(0.0, 1.0))
    kv_v = KnotVector(np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), 2)

    radii = inner_radius + kv_u.greville_abscissae() * (outer_radius - inner_radius)
    arc = np.array([[1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    arc_weights = np.array([1.0, np.sqrt(2.0) / 2.0, 1.0])

    control_points = radii[:, np.newaxis, np.newaxis] * arc[np.newaxis, :, :]
    weights = np.tile(arc_weights, (kv_u.n_basis, 1))

    return NURBSSurface(kv_u, kv_v, control_points, weights)
