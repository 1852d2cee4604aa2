"""
NURBS (Non-Uniform Rational B-Spline) surface representation.

NURBS extend B-splines by introducing weights for each control point,
enabling exact representation of conic sections (circles, ellipses, etc.).

A NURBS surface point is computed as:

    S(u, v) = sum_ij (N_i(u) N_j(v) * w_ij * P_ij) / sum_ij (N_i(u) N_j(v) * w_ij)

where:
- N_i, N_j are B-spline basis functions in each parametric direction
- w_ij are weights (positive real numbers)
- P_ij are control points

The surface supplies the geometric map of a Mesh2D: physical coordinates
and Jacobians at every quadrature node, evaluated on tensor grids.
"""

import numpy as np
from typing import Tuple

from ..discretization.knot_vector import KnotVector
from .bspline import eval_basis_ders_1d


def _dense_basis(kv: KnotVector, pts: np.ndarray, n_ders: int) -> np.ndarray:
    """
    Evaluate all basis functions of kv at pts as a dense table.

    Returns:
        Array of shape (n_ders+1, len(pts), kv.n_basis)
    """
    p = kv.degree
    table = np.zeros((n_ders + 1, len(pts), kv.n_basis))
    for a, (x, span) in enumerate(zip(pts, kv.find_spans(pts))):
        ders = eval_basis_ders_1d(kv, x, n_ders, span)
        table[:ders.shape[0], a, span - p:span + 1] = ders
    return table


class NURBSSurface:
    """
    NURBS surface in 2D or 3D space.

    A NURBS surface S(u, v) is defined by:
    - Two knot vectors (u and v directions)
    - Control points P_{i,j} arranged in an (n_u, n_v) grid
    - Weights w_{i,j} > 0

    Flat storage follows the global DOF ordering of the spaces built on it:
    P_{i,j} -> index i + j * n_u (u varies fastest).
    """

    def __init__(self,
                 knot_vector_u: KnotVector,
                 knot_vector_v: KnotVector,
                 control_points: np.ndarray,
                 weights: np.ndarray = None):
        """
        Initialize a NURBS surface.

        Parameters:
            knot_vector_u: KnotVector for the first direction
            knot_vector_v: KnotVector for the second direction
            control_points: Array of shape (n_u * n_v, d) in flat order
                            or (n_u, n_v, d) grid
            weights: Array of shape (n_u * n_v,) in flat order or (n_u, n_v)
                     grid, defaults to 1.0
        """
        self._kv_u = knot_vector_u
        self._kv_v = knot_vector_v

        n_u = knot_vector_u.n_basis
        n_v = knot_vector_v.n_basis
        n_total = n_u * n_v

        control_points = np.asarray(control_points, dtype=np.float64)
        if control_points.ndim == 3:
            if control_points.shape[:2] != (n_u, n_v):
                raise ValueError(
                    f"Control points shape {control_points.shape} doesn't match "
                    f"expected ({n_u}, {n_v}, d)"
                )
            control_points = control_points.transpose(1, 0, 2).reshape(n_total, -1)
        elif control_points.ndim != 2 or control_points.shape[0] != n_total:
            raise ValueError(
                f"Number of control points ({control_points.shape[0]}) "
                f"must equal n_u * n_v ({n_total})"
            )
        self._control_points = control_points

        if weights is None:
            self._weights = np.ones(n_total)
        else:
            weights = np.asarray(weights, dtype=np.float64)
            if weights.ndim == 2:
                if weights.shape != (n_u, n_v):
                    raise ValueError(
                        f"Weights shape {weights.shape} doesn't match expected ({n_u}, {n_v})"
                    )
                weights = weights.T.ravel()
            if weights.shape != (n_total,):
                raise ValueError(f"Weights length ({weights.size}) must equal {n_total}")
            if np.any(weights <= 0):
                raise ValueError("All weights must be positive")
            self._weights = weights

        self._n_u = n_u
        self._n_v = n_v

    @property
    def n_control_points_per_dir(self) -> Tuple[int, int]:
        """Number of control points in each direction (n_u, n_v)."""
        return (self._n_u, self._n_v)

    @property
    def control_points(self) -> np.ndarray:
        return self._control_points.copy()

    @property
    def control_points_grid(self) -> np.ndarray:
        """Control points as (n_u, n_v, d) grid."""
        return self._control_points.reshape(self._n_v, self._n_u, -1).transpose(1, 0, 2)

    @property
    def weights(self) -> np.ndarray:
        return self._weights.copy()

    @property
    def weights_grid(self) -> np.ndarray:
        """Weights as (n_u, n_v) grid."""
        return self._weights.reshape(self._n_v, self._n_u).T.copy()

    @property
    def knot_vectors(self) -> Tuple[KnotVector, KnotVector]:
        return (self._kv_u, self._kv_v)

    @property
    def knots(self) -> Tuple[np.ndarray, np.ndarray]:
        return (self._kv_u.knots, self._kv_v.knots)

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self._kv_u.degree, self._kv_v.degree)

    @property
    def orders(self) -> Tuple[int, int]:
        """Spline orders (degree + 1) in each direction."""
        return (self._kv_u.degree + 1, self._kv_v.degree + 1)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Parametric domain as ((u_min, u_max), (v_min, v_max))."""
        return (self._kv_u.domain, self._kv_v.domain)

    def eval_grid(self, pts_u: np.ndarray,
                  pts_v: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate the surface and its Jacobian on the tensor grid pts_u x pts_v.

        Parameters:
            pts_u: Parameter values in the first direction (n_a,)
            pts_v: Parameter values in the second direction (n_b,)

        Returns:
            (points, jacobians) where:
            - points: shape (n_a, n_b, d)
            - jacobians: shape (n_a, n_b, d, 2), column k = dS/d(param k)
        """
        pts_u = np.atleast_1d(np.asarray(pts_u, dtype=np.float64))
        pts_v = np.atleast_1d(np.asarray(pts_v, dtype=np.float64))

        Bu = _dense_basis(self._kv_u, pts_u, 1)
        Bv = _dense_basis(self._kv_v, pts_v, 1)

        w = self.weights_grid
        Pw = self.control_points_grid * w[:, :, np.newaxis]

        A = np.einsum('ai,bj,ijd->abd', Bu[0], Bv[0], Pw)
        dA_du = np.einsum('ai,bj,ijd->abd', Bu[1], Bv[0], Pw)
        dA_dv = np.einsum('ai,bj,ijd->abd', Bu[0], Bv[1], Pw)

        W = np.einsum('ai,bj,ij->ab', Bu[0], Bv[0], w)[:, :, np.newaxis]
        dW_du = np.einsum('ai,bj,ij->ab', Bu[1], Bv[0], w)[:, :, np.newaxis]
        dW_dv = np.einsum('ai,bj,ij->ab', Bu[0], Bv[1], w)[:, :, np.newaxis]

        # Quotient rule: d(A/W) = (dA - S dW) / W
        S = A / W
        dS_du = (dA_du - S * dW_du) / W
        dS_dv = (dA_dv - S * dW_dv) / W

        return S, np.stack([dS_du, dS_dv], axis=-1)

    def eval_point(self, xi: Tuple[float, float]) -> np.ndarray:
        """
        Evaluate surface at parameter values.

        Parameters:
            xi: Parameter values (u, v)

        Returns:
            Point coordinates as (d,) array
        """
        points, _ = self.eval_grid([xi[0]], [xi[1]])
        return points[0, 0]
