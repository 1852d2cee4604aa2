"""
Unit tests for the tensor-product NURBS space and its boundary traces.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_array_equal

from nurbsIGA.discretization.mesh import Mesh2D
from nurbsIGA.exceptions import ConfigurationError
from nurbsIGA.geometry.bspline import NO_DOF
from nurbsIGA.quadrature.gauss import element_quadrature_1d
from nurbsIGA.space.nurbs_2d import EDGE_DIRECTION, NURBSSpace2D, SpaceFactory
from nurbsIGA.space.eval import evaluate_at_points


KNOTS_3x2 = (np.array([0.0, 0.0, 0.0, 1.0, 1.0, 1.0]), np.array([0.0, 0.0, 1.0, 1.0]))
DEGREE_3x2 = (2, 1)


def single_element_mesh(n_quad=(3, 2), boundary=True):
    rules = [element_quadrature_1d(np.array([0.0, 1.0]), n) for n in n_quad]
    return Mesh2D([[0.0, 1.0], [0.0, 1.0]],
                  [rule[0] for rule in rules],
                  [rule[1] for rule in rules],
                  boundary=boundary)


class TestSpaceConstruction:
    """Tests for the 3 x 2 quadratic-by-linear space on one element."""

    def test_without_boundary(self):
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones((3, 2)),
                             single_element_mesh(boundary=False))

        assert space.boundary == ()
        assert space.ndof == 6
        assert space.ndof_dir == (3, 2)
        assert space.nsh_max == 6
        assert space.ncomp == 1
        assert_array_equal(space.nsh, [6])

    def test_edge_dofs(self):
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones((3, 2)), single_element_mesh())

        assert len(space.boundary) == 4
        assert_array_equal(space.boundary[0].dofs, [0, 3])
        assert_array_equal(space.boundary[1].dofs, [2, 5])
        assert_array_equal(space.boundary[2].dofs, [0, 1, 2])
        assert_array_equal(space.boundary[3].dofs, [3, 4, 5])

    def test_edge_directions(self):
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones((3, 2)), single_element_mesh())

        assert [b.side for b in space.boundary] == [1, 2, 3, 4]
        assert [b.direction for b in space.boundary] == [2, 2, 1, 1]
        assert [EDGE_DIRECTION[s] for s in range(1, 5)] == [2, 2, 1, 1]
        assert [b.axis for b in space.boundary] == [1, 1, 0, 0]

        # Each trace is a space of the varying direction
        assert space.boundary[0].ndof == 2
        assert space.boundary[2].ndof == 3
        assert space.boundary[0].basis.degree == 1
        assert space.boundary[2].basis.degree == 2

    def test_corners_shared_by_two_edges(self):
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones((3, 2)), single_element_mesh())

        counts = np.bincount(np.concatenate([b.dofs for b in space.boundary]),
                             minlength=space.ndof)
        assert_array_equal(counts, [2, 1, 2, 2, 1, 2])

    def test_trace_weights_are_views(self):
        weights = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, weights, single_element_mesh())

        expected = {1: [1.0, 2.0], 2: [5.0, 6.0], 3: [1.0, 3.0, 5.0], 4: [2.0, 4.0, 6.0]}
        for trace in space.boundary:
            assert_array_equal(trace.basis.weights, expected[trace.side])
            assert np.shares_memory(trace.basis.weights, space.weights)
            assert trace.basis.shape_function_gradients is not None
            assert trace.basis.shape_function_hessians is None

    def test_weights_readonly_and_copied(self):
        weights = np.ones((3, 2))
        space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, weights, single_element_mesh())

        weights[0, 0] = 5.0
        assert space.weights[0, 0] == 1.0
        with pytest.raises(ValueError):
            space.weights[0, 0] = 2.0

    def test_univariate_spaces(self, square_space):
        assert square_space.spu.ndof == 6
        assert square_space.spv.ndof == 5
        assert square_space.spu.shape_function_hessians is not None
        assert square_space.nsh_max == 9
        assert square_space.nsh.shape == (12,)
        assert np.all(square_space.nsh == 9)

    def test_zero_weights_give_nan(self):
        mesh = single_element_mesh()
        with np.errstate(divide='ignore', invalid='ignore'):
            space = NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.zeros((3, 2)), mesh)
            column = space.evaluate_col(mesh, 0)

        assert np.all(np.isnan(column.shape_functions))


class TestBuildDispatch:

    def test_from_surface(self, unit_square, square_mesh):
        space = NURBSSpace2D.build(unit_square, square_mesh)

        assert space.degree == (2, 2)
        assert space.ndof_dir == (6, 5)
        assert_array_equal(space.weights, unit_square.weights_grid)

    def test_explicit(self):
        space = NURBSSpace2D.build(KNOTS_3x2, DEGREE_3x2, np.ones((3, 2)),
                                   single_element_mesh())
        assert space.ndof == 6

    @pytest.mark.parametrize("n_args", [0, 1, 3, 5])
    def test_wrong_argument_count(self, n_args):
        with pytest.raises(ConfigurationError):
            NURBSSpace2D.build(*([None] * n_args))

    def test_wrong_knot_count(self):
        with pytest.raises(ConfigurationError):
            NURBSSpace2D(KNOTS_3x2 + (KNOTS_3x2[0],), DEGREE_3x2, np.ones((3, 2)),
                         single_element_mesh())

    def test_wrong_degree_count(self):
        with pytest.raises(ConfigurationError):
            NURBSSpace2D(KNOTS_3x2, (2, 1, 1), np.ones((3, 2)), single_element_mesh())

    def test_wrong_weights_shape(self):
        with pytest.raises(ConfigurationError):
            NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones((2, 3)), single_element_mesh())
        with pytest.raises(ConfigurationError):
            NURBSSpace2D(KNOTS_3x2, DEGREE_3x2, np.ones(6), single_element_mesh())

    def test_invalid_knot_vector(self):
        with pytest.raises(ConfigurationError):
            NURBSSpace2D((KNOTS_3x2[0], np.array([0.0, 1.0])), DEGREE_3x2,
                         np.ones((3, 2)), single_element_mesh())

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            NURBSSpace2D.build(None)


class TestRebind:

    def test_factory(self, square_space):
        assert isinstance(square_space.constructor, SpaceFactory)
        assert square_space.constructor.degree == (2, 2)

    def test_rebind_to_other_mesh(self, unit_square, square_space):
        mesh = Mesh2D.build(unit_square, n_quad=(2, 5), boundary=False)
        rebound = square_space.constructor.rebind(mesh)

        assert rebound.ndof_dir == square_space.ndof_dir
        assert_array_equal(rebound.weights, square_space.weights)
        assert rebound.spu.nqn == 2
        assert rebound.spv.nqn == 5
        assert rebound.boundary == ()

    def test_mesh_layout_checked(self, unit_square, square_space):
        mesh = Mesh2D.build(unit_square, n_quad=(2, 2))
        with pytest.raises(ConfigurationError):
            square_space.evaluate_col(mesh, 0)


class TestDofSets:

    def test_dof_index(self, square_space):
        assert square_space.dof_index(0, 0) == 0
        assert square_space.dof_index(5, 0) == 5
        assert square_space.dof_index(0, 1) == 6
        assert_array_equal(square_space.dof_index([1, 2], [4, 4]), [25, 26])

    def test_boundary_and_interior(self, square_space):
        boundary = square_space.boundary_dofs()
        interior = square_space.interior_dofs()

        assert len(boundary) == 18
        assert len(interior) == 12
        assert len(np.intersect1d(boundary, interior)) == 0
        assert_array_equal(np.union1d(boundary, interior), np.arange(30))

    def test_boundary_dofs_match_traces(self, square_space):
        from_traces = np.unique(np.concatenate([b.dofs for b in square_space.boundary]))
        assert_array_equal(from_traces, square_space.boundary_dofs())


class TestEvaluateColumn:
    """Tests for column-wise evaluation of the rational basis."""

    def test_partition_of_unity(self, annulus_mesh, annulus_space):
        for descriptor in annulus_mesh.columns():
            column = annulus_space.evaluate_col(annulus_mesh, descriptor, gradient=True)

            assert column.ncomp == 1
            assert column.nel == annulus_mesh.nelv
            assert_array_almost_equal(np.sum(column.shape_functions[0], axis=1),
                                      np.ones((annulus_mesh.nqn, column.nel)))
            assert_array_almost_equal(np.sum(column.shape_function_gradients[0], axis=2),
                                      np.zeros((2, annulus_mesh.nqn, column.nel)))

    def test_connectivity(self, square_mesh, square_space):
        column = square_space.evaluate_col(square_mesh, 1)

        assert column.connectivity.shape == (9, 3)
        assert_array_equal(column.elements, [1, 5, 9])
        assert_array_equal(column.nsh, [9, 9, 9])
        # Element (1, 0): functions i = 1..3, j = 0..2
        expected = [i + 6 * j for j in range(3) for i in range(1, 4)]
        assert_array_equal(column.connectivity[:, 0], expected)
        assert np.all(column.connectivity != NO_DOF)

    def test_isoparametric_gradient(self, unit_square, square_mesh, square_space):
        """The first coordinate, expanded in the basis, has gradient (1, 0)."""
        x = unit_square.control_points[:, 0]

        for descriptor in square_mesh.columns():
            column = square_space.evaluate_col(square_mesh, descriptor, gradient=True)
            coeffs = x[column.connectivity]

            values = np.sum(column.shape_functions[0] * coeffs[np.newaxis], axis=1)
            grads = np.sum(column.shape_function_gradients[0] * coeffs[np.newaxis, np.newaxis],
                           axis=2)

            assert_array_almost_equal(values, square_mesh.geo_map[0][:, descriptor.elements])
            assert_array_almost_equal(grads[0], np.ones_like(values))
            assert_array_almost_equal(grads[1], np.zeros_like(values))

    def test_annulus_gradient_of_x(self, annulus, annulus_mesh, annulus_space,
                                   loose_tolerance):
        x = annulus.control_points[:, 0]
        column = annulus_space.evaluate_col(annulus_mesh, 0, gradient=True)
        coeffs = x[column.connectivity]

        grads = np.sum(column.shape_function_gradients[0] * coeffs[np.newaxis, np.newaxis], axis=2)

        assert np.allclose(grads[0], 1.0, atol=loose_tolerance)
        assert np.allclose(grads[1], 0.0, atol=loose_tolerance)


class TestBoundaryTraces:

    @pytest.mark.parametrize("side", [1, 2, 3, 4])
    def test_trace_matches_restriction(self, annulus, annulus_mesh, annulus_space, side):
        """Each trace reproduces the restriction of a field to its side."""
        rng = np.random.default_rng(side)
        u = rng.standard_normal(annulus_space.ndof)

        trace = annulus_space.boundary[side - 1]
        bnd = annulus_mesh.boundary[side - 1]
        coeffs = u[trace.dofs[trace.basis.connectivity]]
        on_trace = np.sum(trace.basis.shape_functions * coeffs[np.newaxis], axis=1)

        fixed = bnd.quad_nodes[1 - trace.axis, 0, 0]
        for e in range(bnd.nel):
            free = bnd.quad_nodes[trace.axis][:, e]
            pts = (free, [fixed]) if trace.axis == 0 else ([fixed], free)
            eu, _ = evaluate_at_points(u, annulus_space, annulus, pts)
            assert_array_almost_equal(on_trace[:, e], eu[0].ravel())

    def test_trace_partition_of_unity(self, annulus_space):
        for trace in annulus_space.boundary:
            assert trace.basis.is_rational
            assert_array_almost_equal(np.sum(trace.basis.shape_functions, axis=1),
                                      np.ones((trace.basis.nqn, trace.basis.nel)))
