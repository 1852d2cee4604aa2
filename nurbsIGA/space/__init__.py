"""
Function spaces and field evaluation.
"""

from .nurbs_2d import NURBSSpace2D, BoundaryTrace, SpaceColumn, SpaceFactory, EDGE_DIRECTION
from .vector import VectorSpace
from .eval import FieldEvaluator, evaluate_field, evaluate_at_points
