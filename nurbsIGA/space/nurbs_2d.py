"""
Tensor-product NURBS space on a 2D patch.

NURBSSpace2D combines two univariate B-spline spaces, one per parametric
direction, with an (mcp, ncp) grid of NURBS weights:

    R_{ij}(u, v) = N_i(u) N_j(v) w_ij / sum_kl N_k(u) N_l(v) w_kl

The global index of R_{ij} is i + j * mcp (first direction fastest), the
same ordering used for the control points of NURBSSurface.

When the mesh describes its boundary, the space owns one BoundaryTrace per
side: the rational univariate space of the side together with the global
indices of the functions that do not vanish on it. Sides 1 and 2 (u fixed)
vary along direction 2; sides 3 and 4 (v fixed) vary along direction 1.

The space is evaluated lazily, one mesh column at a time, by
evaluate_col; FieldEvaluator drives those calls.

Weights must be positive. This precondition is not checked: zero or
negative weights show up as NaN/Inf in the evaluated functions.
"""

import logging
import numpy as np
from typing import Optional, Sequence, Tuple, Union, TYPE_CHECKING
from dataclasses import dataclass

from ..exceptions import ConfigurationError
from ..discretization.knot_vector import KnotVector
from ..discretization.mesh import Mesh2D, ColumnDescriptor
from ..geometry.bspline import NO_DOF, UnivariateSplineBasis, gather_local, to_rational

if TYPE_CHECKING:
    from ..geometry.nurbs import NURBSSurface

logger = logging.getLogger(__name__)

#: Parametric direction (1 or 2) along which each boundary side varies.
EDGE_DIRECTION = {1: 2, 2: 2, 3: 1, 4: 1}


@dataclass(frozen=True)
class BoundaryTrace:
    """
    Trace of the space on one boundary side.

    Attributes:
        side: Side number (1..4)
        direction: Parametric direction varying along the side (1 or 2)
        basis: Rational univariate space on the side's nodes
        dofs: Global indices of the functions living on the side
    """
    side: int
    direction: int
    basis: UnivariateSplineBasis
    dofs: np.ndarray

    @property
    def axis(self) -> int:
        """Zero-based array axis of the varying direction."""
        return self.direction - 1

    @property
    def ndof(self) -> int:
        return len(self.dofs)


@dataclass(frozen=True)
class SpaceColumn:
    """
    Basis functions of a space on one column of the mesh.

    Attributes:
        connectivity: Local-to-global map (nsh_max, nel_col), NO_DOF padded
        shape_functions: Values (ncomp, nqn, nsh_max, nel_col)
        elements: Global indices of the column's elements (nel_col,)
        nsh: Actual number of local functions per element (nel_col,)
        shape_function_gradients: Physical gradients
            (ncomp, rdim, nqn, nsh_max, nel_col), or None
    """
    connectivity: np.ndarray
    shape_functions: np.ndarray
    elements: np.ndarray
    nsh: np.ndarray
    shape_function_gradients: Optional[np.ndarray] = None

    @property
    def ncomp(self) -> int:
        return self.shape_functions.shape[0]

    @property
    def nqn(self) -> int:
        return self.shape_functions.shape[1]

    @property
    def nsh_max(self) -> int:
        return self.connectivity.shape[0]

    @property
    def nel(self) -> int:
        return self.connectivity.shape[1]


@dataclass(frozen=True)
class SpaceFactory:
    """
    Knots, degrees and weights of a space, detached from any mesh.

    rebind() regenerates the same space on another mesh (for instance a
    visualization mesh) without touching the weights.
    """
    knots: Tuple[np.ndarray, np.ndarray]
    degree: Tuple[int, int]
    weights: np.ndarray

    def rebind(self, mesh: Mesh2D) -> 'NURBSSpace2D':
        return NURBSSpace2D(self.knots, self.degree, self.weights, mesh)


def _readonly(array, dtype=np.float64) -> np.ndarray:
    array = np.array(array, dtype=dtype)
    array.setflags(write=False)
    return array


class NURBSSpace2D:
    """
    Tensor-product NURBS space evaluated on a Mesh2D.

    Attributes:
        knots: Pair of knot arrays
        degree: Pair of degrees
        weights: NURBS weights, read-only (mcp, ncp) grid
        spu, spv: Univariate B-spline spaces (values, gradients, hessians)
        ndof: Total number of degrees of freedom
        ndof_dir: (mcp, ncp)
        nsh_max: Maximum number of local functions per element
        nsh: Local function count per element (nel,)
        ncomp: Number of components (1)
        boundary: Tuple of 4 BoundaryTrace, or () if the mesh has none
        constructor: SpaceFactory rebuilding this space on another mesh
    """

    ncomp = 1

    def __init__(self,
                 knots: Sequence[np.ndarray],
                 degree: Sequence[int],
                 weights: np.ndarray,
                 mesh: Mesh2D):
        """
        Build the space from explicit data.

        Parameters:
            knots: Pair of open knot vectors
            degree: Pair of polynomial degrees
            weights: (mcp, ncp) grid of positive weights
            mesh: Mesh providing the evaluation nodes (mesh.qn)

        Raises:
            ConfigurationError: On wrong counts or shapes, detected before
                                any basis is evaluated
        """
        if len(knots) != 2:
            raise ConfigurationError(f"Expected 2 knot vectors, got {len(knots)}")
        degree = tuple(int(p) for p in np.ravel(degree))
        if len(degree) != 2:
            raise ConfigurationError(f"Expected 2 degrees, got {len(degree)}")

        try:
            knot_vectors = tuple(KnotVector(k.knots if isinstance(k, KnotVector) else k, p)
                                 for k, p in zip(knots, degree))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid knot vector: {exc}") from exc

        ndof_dir = tuple(kv.n_basis for kv in knot_vectors)
        weights = _readonly(weights)
        if weights.shape != ndof_dir:
            raise ConfigurationError(
                f"Weights shape {weights.shape} doesn't match the number of "
                f"basis functions per direction {ndof_dir}"
            )
        if len(mesh.qn) != 2:
            raise ConfigurationError("Mesh must provide nodes for 2 directions")
        if mesh.boundary and len(mesh.boundary) != 4:
            raise ConfigurationError(
                f"Expected 4 boundary sides, got {len(mesh.boundary)}"
            )

        self.knots = tuple(_readonly(kv.knots) for kv in knot_vectors)
        self.degree = degree
        self.weights = weights

        try:
            self.spu = UnivariateSplineBasis.build(knot_vectors[0], degree[0], mesh.qn[0],
                                                   gradient=True, hessian=True)
            self.spv = UnivariateSplineBasis.build(knot_vectors[1], degree[1], mesh.qn[1],
                                                   gradient=True, hessian=True)
        except ValueError as exc:
            raise ConfigurationError(f"Cannot evaluate basis on mesh nodes: {exc}") from exc

        self.nsh_max = self.spu.nsh_max * self.spv.nsh_max
        self.ndof = self.spu.ndof * self.spv.ndof
        self.ndof_dir = (self.spu.ndof, self.spv.ndof)
        self.nsh = _readonly(np.outer(self.spv.nsh, self.spu.nsh).ravel(), dtype=int)

        self.boundary = self._build_boundary(mesh) if mesh.boundary else ()
        self.constructor = SpaceFactory(self.knots, self.degree, self.weights)

        logger.debug("NURBSSpace2D: degree %s, ndof_dir %s, nsh_max %d, %d boundary sides",
                     self.degree, self.ndof_dir, self.nsh_max, len(self.boundary))

    @classmethod
    def from_nurbs(cls, surface: 'NURBSSurface', mesh: Mesh2D) -> 'NURBSSpace2D':
        """
        Build the space of a NURBS surface: its knots, order - 1 and weights.
        """
        degree = tuple(order - 1 for order in surface.orders)
        return cls(surface.knots, degree, surface.weights_grid, mesh)

    @classmethod
    def build(cls, *args) -> 'NURBSSpace2D':
        """
        Build a space from either of the two argument forms:

            NURBSSpace2D.build(surface, mesh)
            NURBSSpace2D.build(knots, degree, weights, mesh)

        Raises:
            ConfigurationError: For any other number of arguments
        """
        if len(args) == 2:
            return cls.from_nurbs(*args)
        elif len(args) == 4:
            return cls(*args)
        raise ConfigurationError(
            f"NURBSSpace2D.build takes (surface, mesh) or "
            f"(knots, degree, weights, mesh), got {len(args)} arguments"
        )

    def dof_index(self, i, j):
        """Global index of the tensor function (i, j); works on arrays."""
        return np.asarray(i) + np.asarray(j) * self.ndof_dir[0]

    def boundary_dofs(self) -> np.ndarray:
        """Sorted indices of all functions living on the boundary."""
        mcp, ncp = self.ndof_dir
        i, j = np.meshgrid(np.arange(mcp), np.arange(ncp), indexing='ij')
        on_boundary = (i == 0) | (i == mcp - 1) | (j == 0) | (j == ncp - 1)
        return np.sort(self.dof_index(i[on_boundary], j[on_boundary]))

    def interior_dofs(self) -> np.ndarray:
        """Sorted indices of the functions vanishing on the whole boundary."""
        return np.setdiff1d(np.arange(self.ndof), self.boundary_dofs())

    def _build_boundary(self, mesh: Mesh2D) -> Tuple[BoundaryTrace, ...]:
        mcp, ncp = self.ndof_dir
        index_grid = self.dof_index(*np.meshgrid(np.arange(mcp), np.arange(ncp), indexing='ij'))

        # Sides 1, 2: first/last row; sides 3, 4: first/last column
        w_bnd = {1: self.weights[0, :], 2: self.weights[-1, :],
                 3: self.weights[:, 0], 4: self.weights[:, -1]}
        dofs = {1: index_grid[0, :], 2: index_grid[-1, :],
                3: index_grid[:, 0], 4: index_grid[:, -1]}

        traces = []
        for bnd in mesh.boundary:
            direction = EDGE_DIRECTION[bnd.side]
            axis = direction - 1
            bnodes = bnd.quad_nodes[axis].reshape(bnd.nqn, -1)

            trace = UnivariateSplineBasis.build(self.knots[axis], self.degree[axis], bnodes,
                                                gradient=True, hessian=False)
            traces.append(BoundaryTrace(
                side=bnd.side,
                direction=direction,
                basis=to_rational(trace, w_bnd[bnd.side]),
                dofs=_readonly(dofs[bnd.side], dtype=int),
            ))

        return tuple(traces)

    def _check_mesh(self, mesh: Mesh2D):
        expected = (self.spu.nel, self.spv.nel, self.spu.nqn, self.spv.nqn)
        actual = (mesh.nelu, mesh.nelv) + tuple(mesh.nqn_dir)
        if expected != actual:
            raise ConfigurationError(
                f"Mesh layout (nelu, nelv, nqn_u, nqn_v) = {actual} differs from "
                f"the one the space was built on {expected}; use constructor.rebind"
            )

    def evaluate_col(self, mesh: Mesh2D,
                     column: Union[ColumnDescriptor, int],
                     gradient: bool = False) -> SpaceColumn:
        """
        Evaluate the rational basis on one column of the mesh.

        Local function k = ku + kv * nsh_u combines function ku of the
        column's first-direction element with function kv of each
        second-direction element.

        Parameters:
            mesh: The mesh the space was built on
            column: ColumnDescriptor or first-direction element index
            gradient: Also compute physical gradients

        Returns:
            SpaceColumn with ncomp = 1
        """
        self._check_mesh(mesh)
        if not isinstance(column, ColumnDescriptor):
            column = mesh.columns()[column]
        iu = column.index

        spu, spv = self.spu, self.spv
        nqn = spu.nqn * spv.nqn
        nel_col = spv.nel

        # (qv, qu, kv, ku, e) -> (nqn, nsh_max, nel_col)
        def tensor(Nu, Nv):
            return np.einsum('ak,bme->bamke', Nu, Nv).reshape(nqn, self.nsh_max, nel_col)

        N = tensor(spu.shape_functions[:, :, iu], spv.shape_functions)

        conn_u = spu.connectivity[np.newaxis, :, iu, np.newaxis]
        conn_v = spv.connectivity[:, np.newaxis, :]
        connectivity = np.where((conn_u != NO_DOF) & (conn_v != NO_DOF),
                                conn_u + conn_v * self.ndof_dir[0], NO_DOF)
        connectivity = connectivity.reshape(self.nsh_max, nel_col)

        w_local = gather_local(self.weights.T.ravel(), connectivity)[np.newaxis, :, :]
        Nw = N * w_local
        W = np.sum(Nw, axis=1, keepdims=True)
        R = Nw / W

        gradients = None
        if gradient:
            dN = np.stack([
                tensor(spu.shape_function_gradients[:, :, iu], spv.shape_functions),
                tensor(spu.shape_functions[:, :, iu], spv.shape_function_gradients),
            ])
            dNw = dN * w_local
            dW = np.sum(dNw, axis=2, keepdims=True)
            dR = (dNw - R * dW) / W

            # Parametric to physical: grad_x = pinv(J)^T grad_u
            jac = mesh.geo_map_jac[:, :, :, column.elements]
            jac_pinv = np.linalg.pinv(jac.transpose(2, 3, 0, 1))
            gradients = np.einsum('qekr,kqse->rqse', jac_pinv, dR)[np.newaxis]

        return SpaceColumn(
            connectivity=connectivity,
            shape_functions=R[np.newaxis],
            elements=column.elements,
            nsh=spv.nsh * spu.nsh[iu],
            shape_function_gradients=gradients,
        )
