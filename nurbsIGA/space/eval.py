"""
Evaluation of discrete fields given by their degrees of freedom.

A field u_h = sum_i u_i phi_i is reconstructed at every quadrature node of
every element. The mesh is processed one column at a time:

    for each column:
        1. evaluate the space on the column (connectivity + shape functions)
        2. gather u through the connectivity; NO_DOF slots get coefficient 0
        3. broadcast the coefficients over the quadrature nodes
        4. per component, multiply by the shape functions and sum over the
           local functions
        5. scatter the result into eu at the column's elements

Columns cover disjoint element ranges, so they can be evaluated on several
threads without locking; each worker writes only its own columns of eu.

Usage:
    eu, F = evaluate_field(u, space, mesh)

    evaluator = FieldEvaluator(space, mesh, cache=True, n_workers=4)
    for u in snapshots:
        eu, F = evaluator.evaluate(u)
"""

import logging
import numpy as np
from typing import Dict, Optional, Sequence, Tuple, Union, TYPE_CHECKING
from concurrent.futures import ThreadPoolExecutor

from ..exceptions import ConfigurationError, DimensionMismatch
from ..discretization.mesh import Mesh2D, ColumnDescriptor
from ..geometry.bspline import gather_local
from .nurbs_2d import NURBSSpace2D, SpaceColumn
from .vector import VectorSpace

if TYPE_CHECKING:
    from ..geometry.nurbs import NURBSSurface

logger = logging.getLogger(__name__)

Space = Union[NURBSSpace2D, VectorSpace]


def _as_dof_vector(u: np.ndarray, space: Space) -> np.ndarray:
    u = np.asarray(u, dtype=np.float64)
    if u.ndim != 1 or u.shape[0] != space.ndof:
        raise DimensionMismatch(
            f"DOF vector of shape {u.shape} does not match space.ndof = {space.ndof}"
        )
    return u


class FieldEvaluator:
    """
    Column-wise evaluator of fields in a space on a mesh.

    The space and the mesh are only read. With cache=True the evaluated
    columns are kept and reused by later calls to evaluate(); otherwise
    every call recomputes them from the space.

    Attributes:
        space: NURBSSpace2D or VectorSpace
        mesh: The mesh the space was built on
        cache: Whether evaluated columns are kept between calls
        n_workers: Number of threads evaluating columns
    """

    def __init__(self, space: Space, mesh: Mesh2D,
                 cache: bool = False, n_workers: int = 1):
        if n_workers < 1:
            raise ConfigurationError(f"n_workers must be at least 1, got {n_workers}")

        self.space = space
        self.mesh = mesh
        self.cache = cache
        self.n_workers = n_workers
        self._columns = mesh.columns()
        self._cached: Dict[int, SpaceColumn] = {}

    def _space_column(self, descriptor: ColumnDescriptor) -> SpaceColumn:
        if not self.cache:
            return self.space.evaluate_col(self.mesh, descriptor, gradient=False)
        column = self._cached.get(descriptor.index)
        if column is None:
            column = self.space.evaluate_col(self.mesh, descriptor, gradient=False)
            self._cached[descriptor.index] = column
        return column

    def _evaluate_column(self, u: np.ndarray, descriptor: ColumnDescriptor,
                         eu: np.ndarray):
        column = self._space_column(descriptor)

        coeffs = gather_local(u, column.connectivity)
        weight = np.broadcast_to(coeffs[np.newaxis, :, :], column.shape_functions.shape[1:])

        for comp in range(self.space.ncomp):
            eu[comp][:, column.elements] = np.sum(weight * column.shape_functions[comp], axis=1)

    def evaluate(self, u: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate the field with DOF vector u.

        Parameters:
            u: DOF vector of length space.ndof

        Returns:
            (eu, F) where:
            - eu: Field values, shape (ncomp, nqn, nel)
            - F: mesh.geo_map, the physical coordinates of the nodes

        Raises:
            DimensionMismatch: If len(u) != space.ndof
        """
        u = _as_dof_vector(u, self.space)
        eu = np.zeros((self.space.ncomp, self.mesh.nqn, self.mesh.nel))

        if self.n_workers == 1:
            for descriptor in self._columns:
                self._evaluate_column(u, descriptor, eu)
        else:
            with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                futures = [executor.submit(self._evaluate_column, u, descriptor, eu)
                           for descriptor in self._columns]
                for future in futures:
                    future.result()

        logger.debug("Evaluated %d-component field on %d columns (%d elements)",
                     self.space.ncomp, len(self._columns), self.mesh.nel)

        return eu, self.mesh.geo_map


def evaluate_field(u: np.ndarray, space: Space, mesh: Mesh2D,
                   n_workers: int = 1) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate a field given by its DOFs at the nodes of a mesh.

    Parameters:
        u: DOF vector of length space.ndof
        space: Space built on mesh
        mesh: Mesh2D
        n_workers: Number of threads evaluating columns

    Returns:
        (eu, F) with eu of shape (space.ncomp, mesh.nqn, mesh.nel) and
        F = mesh.geo_map
    """
    return FieldEvaluator(space, mesh, n_workers=n_workers).evaluate(u)


def evaluate_at_points(u: np.ndarray, space: Space,
                       geometry: Optional['NURBSSurface'],
                       pts: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Evaluate a field on the tensor grid pts[0] x pts[1] of parametric points.

    The space is rebound to a mesh whose nodes are the given points.

    Parameters:
        u: DOF vector of length space.ndof
        space: Any space (only its constructor is used)
        geometry: Surface mapping the points; identity if None
        pts: Pair of 1D arrays of parametric coordinates

    Returns:
        (eu, F) where eu has shape (ncomp, len(pts[0]), len(pts[1])) and F
        has shape (rdim, len(pts[0]), len(pts[1]))
    """
    u = _as_dof_vector(u, space)
    mesh = Mesh2D.from_points(geometry, pts)
    eu, F = evaluate_field(u, space.constructor.rebind(mesh), mesh)

    n_u, n_v = mesh.nqn_dir
    eu = eu.reshape(eu.shape[0], n_v, n_u).transpose(0, 2, 1)
    F = F.reshape(F.shape[0], n_v, n_u).transpose(0, 2, 1)
    return eu, F
