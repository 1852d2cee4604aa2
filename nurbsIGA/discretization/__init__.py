"""
Discretization module for IGA.

Provides:
- KnotVector: Knot vector representation
- Mesh2D: Structured mesh with per-direction node tables and boundary sides
"""

from .knot_vector import KnotVector, make_open_knot_vector
from .mesh import Mesh2D, BoundaryMesh, ColumnDescriptor
