"""
Structured tensor-product mesh for evaluating spaces on a 2D patch.

Mesh2D stores, per parametric direction, a table of evaluation nodes with
one column per element (quadrature points, or arbitrary points for
visualization), together with the geometric map of every node:

    geo_map[:, q, e]        physical coordinates of node q of element e
    geo_map_jac[:, :, q, e] Jacobian d(x)/d(u, v) at the same node

Numbering:
    element (iu, iv)  -> iu + iv * nelu
    node (qu, qv)     -> qu + qv * nqn_u

A column of the mesh is the set of elements sharing the same index iu in
the first direction. Columns are handed out explicitly by Mesh2D.columns()
and are the unit of work of the field evaluator.

Boundary sides are numbered 1..4 = {u-min, u-max, v-min, v-max}; each is
described by a BoundaryMesh holding the parametric coordinates of its
nodes.
"""

import logging
import numpy as np
from typing import Optional, Sequence, Tuple, TYPE_CHECKING
from dataclasses import dataclass

from ..exceptions import ConfigurationError
from ..quadrature.gauss import element_quadrature_1d

if TYPE_CHECKING:
    from ..geometry.nurbs import NURBSSurface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundaryMesh:
    """
    Nodes of one boundary side.

    Attributes:
        side: Side number (1..4)
        quad_nodes: Parametric coordinates, shape (2, nqn, nel)
    """
    side: int
    quad_nodes: np.ndarray

    @property
    def nqn(self) -> int:
        return self.quad_nodes.shape[1]

    @property
    def nel(self) -> int:
        return self.quad_nodes.shape[2]


@dataclass(frozen=True)
class ColumnDescriptor:
    """
    One column of the mesh.

    Attributes:
        index: Element index iu in the first direction
        elements: Global indices of the column's elements, ordered by iv
    """
    index: int
    elements: np.ndarray


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


def _grid_to_elements(grid: np.ndarray, nqn_dir: Tuple[int, int],
                      nel_dir: Tuple[int, int]) -> np.ndarray:
    """
    Reorder values sampled on the flattened node grid into (..., nqn, nel).

    grid has shape (nelu*nqn_u, nelv*nqn_v, *trailing), where the row index
    is iu*nqn_u + qu and the column index iv*nqn_v + qv.
    """
    (nqn_u, nqn_v), (nelu, nelv) = nqn_dir, nel_dir
    trailing = grid.shape[2:]
    split = grid.reshape((nelu, nqn_u, nelv, nqn_v) + trailing)
    n_trail = len(trailing)
    order = tuple(range(4, 4 + n_trail)) + (3, 1, 2, 0)
    return split.transpose(order).reshape(trailing + (nqn_u * nqn_v, nelu * nelv))


class Mesh2D:
    """
    Tensor-product mesh of a 2D parametric patch.

    Attributes:
        breaks: Element boundaries per direction
        qn: Node tables per direction, each of shape (nqn_dir, nel_dir)
        qw: Quadrature weight tables with the shapes of qn, or None
        nelu, nelv: Number of elements per direction
        nelw: Always 1 (columns hold nelv * nelw elements)
        nel: Total number of elements
        nqn_dir: Nodes per element per direction
        nqn: Nodes per element
        geo_map: Physical coordinates, shape (rdim, nqn, nel)
        geo_map_jac: Jacobians, shape (rdim, 2, nqn, nel)
        boundary: Tuple of 4 BoundaryMesh, or () when disabled
    """

    nelw = 1

    def __init__(self,
                 breaks: Sequence[np.ndarray],
                 nodes: Sequence[np.ndarray],
                 weights: Optional[Sequence[np.ndarray]] = None,
                 geometry: Optional['NURBSSurface'] = None,
                 boundary: bool = True):
        """
        Initialize a mesh from per-direction breakpoints and node tables.

        Parameters:
            breaks: Pair of breakpoint arrays
            nodes: Pair of node tables (nqn_dir, nel_dir)
            weights: Optional pair of quadrature weight tables
            geometry: Surface giving the geometric map; identity if None
            boundary: Whether to describe the four boundary sides

        Raises:
            ConfigurationError: On wrong number of directions or table shapes
        """
        if len(breaks) != 2 or len(nodes) != 2:
            raise ConfigurationError(
                f"Mesh2D needs breaks and nodes for 2 directions, "
                f"got {len(breaks)} and {len(nodes)}"
            )

        self.breaks = tuple(_readonly(np.ravel(b)) for b in breaks)
        self.qn = tuple(_readonly(n) for n in nodes)

        for d in range(2):
            if self.qn[d].ndim != 2:
                raise ConfigurationError(
                    f"Node table of direction {d + 1} must be (nqn, nel), "
                    f"got shape {self.qn[d].shape}"
                )
            if self.qn[d].shape[1] != len(self.breaks[d]) - 1:
                raise ConfigurationError(
                    f"Direction {d + 1}: {self.qn[d].shape[1]} node columns "
                    f"for {len(self.breaks[d]) - 1} elements"
                )

        if weights is not None:
            self.qw = tuple(_readonly(w) for w in weights)
            if any(w.shape != n.shape for w, n in zip(self.qw, self.qn)):
                raise ConfigurationError("Quadrature weights must match the node tables")
        else:
            self.qw = None

        self.nqn_dir = (self.qn[0].shape[0], self.qn[1].shape[0])
        self.nelu = self.qn[0].shape[1]
        self.nelv = self.qn[1].shape[1]

        self._compute_geometric_map(geometry)
        self.boundary = self._build_boundary() if boundary else ()

        logger.debug("Mesh2D: %d x %d elements, %d nodes per element, boundary=%s",
                     self.nelu, self.nelv, self.nqn, bool(self.boundary))

    @classmethod
    def build(cls, geometry: 'NURBSSurface',
              n_quad: Optional[Tuple[int, int]] = None,
              boundary: bool = True) -> 'Mesh2D':
        """
        Build a Gauss quadrature mesh on the knot spans of a surface.

        Parameters:
            geometry: NURBS surface
            n_quad: Gauss points per direction, defaults to degree + 1
            boundary: Whether to describe the boundary sides

        Returns:
            Mesh2D with the geometric map of the surface

        Example:
            surface = make_nurbs_unit_square(p=2, n_elem_u=4, n_elem_v=4)
            mesh = Mesh2D.build(surface)
        """
        if n_quad is None:
            n_quad = tuple(p + 1 for p in geometry.degrees)
        if len(n_quad) != 2:
            raise ConfigurationError(f"n_quad needs 2 entries, got {len(n_quad)}")

        breaks = [kv.unique_knots for kv in geometry.knot_vectors]
        rules = [element_quadrature_1d(brk, n) for brk, n in zip(breaks, n_quad)]

        return cls(breaks,
                   [rule[0] for rule in rules],
                   [rule[1] for rule in rules],
                   geometry=geometry,
                   boundary=boundary)

    @classmethod
    def from_points(cls, geometry: Optional['NURBSSurface'],
                    pts: Sequence[np.ndarray]) -> 'Mesh2D':
        """
        Build a visualization mesh whose nodes are the given points.

        Each direction holds a single element containing all its points,
        so the mesh has one column and no boundary.

        Parameters:
            geometry: Surface giving the geometric map; identity if None
            pts: Pair of 1D point arrays

        Returns:
            Mesh2D with nqn = len(pts[0]) * len(pts[1]) and nel = 1
        """
        if len(pts) != 2:
            raise ConfigurationError(f"Need points for 2 directions, got {len(pts)}")

        nodes = [np.ravel(np.asarray(p, dtype=np.float64)) for p in pts]
        if any(n.size == 0 for n in nodes):
            raise ConfigurationError("Point arrays must not be empty")
        breaks = [np.array([n[0], n[-1]]) for n in nodes]

        return cls(breaks, [n[:, np.newaxis] for n in nodes],
                   geometry=geometry, boundary=False)

    @property
    def nel(self) -> int:
        return self.nelu * self.nelv

    @property
    def nqn(self) -> int:
        return self.nqn_dir[0] * self.nqn_dir[1]

    @property
    def rdim(self) -> int:
        """Dimension of the physical space."""
        return self.geo_map.shape[0]

    def columns(self) -> Tuple[ColumnDescriptor, ...]:
        """
        Columns of the mesh, in order of their first-direction index.

        Element ranges of different columns are disjoint and together cover
        every element once.
        """
        rows = np.arange(self.nelv * self.nelw) * self.nelu
        return tuple(ColumnDescriptor(index=iu, elements=iu + rows)
                     for iu in range(self.nelu))

    def _compute_geometric_map(self, geometry: Optional['NURBSSurface']):
        # Flattened nodes: index iu*nqn_u + qu
        pts_u = self.qn[0].T.ravel()
        pts_v = self.qn[1].T.ravel()

        if geometry is None:
            points = np.empty((len(pts_u), len(pts_v), 2))
            points[:, :, 0] = pts_u[:, np.newaxis]
            points[:, :, 1] = pts_v[np.newaxis, :]
            jac = np.zeros((len(pts_u), len(pts_v), 2, 2))
            jac[:, :, 0, 0] = 1.0
            jac[:, :, 1, 1] = 1.0
        else:
            points, jac = geometry.eval_grid(pts_u, pts_v)

        nel_dir = (self.nelu, self.nelv)
        self.geo_map = _readonly(_grid_to_elements(points, self.nqn_dir, nel_dir))
        self.geo_map_jac = _readonly(_grid_to_elements(jac, self.nqn_dir, nel_dir))

    def _build_boundary(self) -> Tuple[BoundaryMesh, ...]:
        sides = []
        for side in range(1, 5):
            # Sides 1, 2 fix the first coordinate; sides 3, 4 the second
            fixed = 0 if side <= 2 else 1
            free = 1 - fixed
            value = self.breaks[fixed][0] if side % 2 == 1 else self.breaks[fixed][-1]

            free_nodes = self.qn[free]
            quad_nodes = np.empty((2,) + free_nodes.shape)
            quad_nodes[free] = free_nodes
            quad_nodes[fixed] = value
            sides.append(BoundaryMesh(side=side, quad_nodes=_readonly(quad_nodes)))

        return tuple(sides)
