"""
Vector-valued spaces built by stacking scalar spaces.

A field with several components (a 2D or 3D displacement, for instance)
uses one scalar space per component. The DOFs of component c follow those
of components 0..c-1, and on every element the local functions of
component c occupy their own block of local slots, where the other
components' shape functions are zero.
"""

import numpy as np
from typing import Tuple, Union
from dataclasses import dataclass

from ..exceptions import ConfigurationError
from ..discretization.mesh import Mesh2D, ColumnDescriptor
from ..geometry.bspline import NO_DOF
from .nurbs_2d import NURBSSpace2D, SpaceColumn, SpaceFactory


@dataclass(frozen=True)
class VectorSpaceFactory:
    """Factories of the component spaces; rebind() rebinds every component."""
    components: Tuple[SpaceFactory, ...]

    def rebind(self, mesh: Mesh2D) -> 'VectorSpace':
        return VectorSpace(*(factory.rebind(mesh) for factory in self.components))


class VectorSpace:
    """
    Space of vector fields with one scalar space per component.

    Attributes:
        components: The scalar spaces
        ncomp: Number of components
        ndof: Total number of DOFs over all components
        ndof_dir: Per-component (mcp, ncp)
        comp_dofs: Global DOF indices of each component
        nsh_max: Sum of the components' nsh_max
        constructor: VectorSpaceFactory
    """

    def __init__(self, *components: NURBSSpace2D):
        if not components:
            raise ConfigurationError("VectorSpace needs at least one component space")
        if any(sp.ncomp != 1 for sp in components):
            raise ConfigurationError("VectorSpace components must be scalar spaces")

        self.components = components
        self.ncomp = len(components)

        ndofs = [sp.ndof for sp in components]
        self._dof_offsets = np.concatenate([[0], np.cumsum(ndofs)])
        self.ndof = int(self._dof_offsets[-1])
        self.ndof_dir = tuple(sp.ndof_dir for sp in components)
        self.comp_dofs = tuple(np.arange(self._dof_offsets[c], self._dof_offsets[c + 1])
                               for c in range(self.ncomp))

        nsh_maxs = [sp.nsh_max for sp in components]
        self._slot_offsets = np.concatenate([[0], np.cumsum(nsh_maxs)])
        self.nsh_max = int(self._slot_offsets[-1])

        self.constructor = VectorSpaceFactory(tuple(sp.constructor for sp in components))

    @classmethod
    def repeat(cls, space: NURBSSpace2D, ncomp: int) -> 'VectorSpace':
        """Vector space whose ncomp components all use the same scalar space."""
        return cls(*([space] * ncomp))

    def evaluate_col(self, mesh: Mesh2D,
                     column: Union[ColumnDescriptor, int],
                     gradient: bool = False) -> SpaceColumn:
        """
        Evaluate all components on one column and stack them block-wise.

        Returns:
            SpaceColumn with ncomp = self.ncomp and nsh_max = self.nsh_max
        """
        if not isinstance(column, ColumnDescriptor):
            column = mesh.columns()[column]

        cols = [sp.evaluate_col(mesh, column, gradient=gradient) for sp in self.components]
        nqn, nel_col = cols[0].nqn, cols[0].nel

        connectivity = np.full((self.nsh_max, nel_col), NO_DOF)
        shape_functions = np.zeros((self.ncomp, nqn, self.nsh_max, nel_col))
        gradients = None
        if gradient:
            rdim = cols[0].shape_function_gradients.shape[1]
            gradients = np.zeros((self.ncomp, rdim, nqn, self.nsh_max, nel_col))

        for c, col in enumerate(cols):
            block = slice(self._slot_offsets[c], self._slot_offsets[c + 1])
            connectivity[block] = np.where(col.connectivity != NO_DOF,
                                           col.connectivity + self._dof_offsets[c], NO_DOF)
            shape_functions[c, :, block, :] = col.shape_functions[0]
            if gradient:
                gradients[c, :, :, block, :] = col.shape_function_gradients[0]

        return SpaceColumn(
            connectivity=connectivity,
            shape_functions=shape_functions,
            elements=column.elements,
            nsh=np.sum([col.nsh for col in cols], axis=0),
            shape_function_gradients=gradients,
        )
