"""
Unit tests for B-spline basis evaluation, univariate spaces and the
rational conversion of traces.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal, assert_array_equal

from nurbsIGA.discretization.knot_vector import make_open_knot_vector
from nurbsIGA.quadrature.gauss import element_quadrature_1d
from nurbsIGA.geometry.bspline import (
    NO_DOF, UnivariateSplineBasis, eval_basis_ders_1d, gather_local, to_rational
)


class TestBasisDerivatives1D:
    """Tests for the pointwise Piegl & Tiller evaluation."""

    def test_partition_of_unity(self):
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))

        for xi in [0.0, 0.25, 0.5, 0.75, 1.0]:
            ders = eval_basis_ders_1d(kv, xi, 1)
            assert_almost_equal(np.sum(ders[0]), 1.0, decimal=14)
            assert_almost_equal(np.sum(ders[1]), 0.0, decimal=12)

    def test_known_values_degree_2(self):
        """Single Bezier element: Bernstein polynomials and their derivatives."""
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))

        ders = eval_basis_ders_1d(kv, 0.5, 2)
        # B = [(1-t)^2, 2t(1-t), t^2], B' = [-2(1-t), 2-4t, 2t], B'' = [2, -4, 2]
        assert_array_almost_equal(ders[0], [0.25, 0.5, 0.25])
        assert_array_almost_equal(ders[1], [-1.0, 0.0, 1.0])
        assert_array_almost_equal(ders[2], [2.0, -4.0, 2.0])

    def test_derivatives_limited_by_degree(self):
        kv = make_open_knot_vector(n_basis=3, degree=1, domain=(0.0, 1.0))
        assert eval_basis_ders_1d(kv, 0.3, 2).shape == (2, 2)


class TestUnivariateSplineBasis:
    """Tests for the univariate space on structured node tables."""

    def test_quadrature_nodes(self):
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        nodes, _ = element_quadrature_1d(kv.unique_knots, 3)

        sp = UnivariateSplineBasis.build(kv.knots, 2, nodes, gradient=True, hessian=True)

        assert sp.ndof == 4
        assert sp.nsh_max == 3
        assert_array_equal(sp.nsh, [3, 3])
        assert_array_equal(sp.connectivity, [[0, 1], [1, 2], [2, 3]])
        assert sp.shape_functions.shape == (3, 3, 2)
        assert_array_almost_equal(np.sum(sp.shape_functions, axis=1), np.ones((3, 2)))
        assert_array_almost_equal(np.sum(sp.shape_function_gradients, axis=1), np.zeros((3, 2)))
        assert_array_almost_equal(np.sum(sp.shape_function_hessians, axis=1), np.zeros((3, 2)))
        assert not sp.is_rational

    def test_matches_pointwise_evaluation(self):
        kv = make_open_knot_vector(n_basis=5, degree=2, domain=(0.0, 1.0))
        nodes, _ = element_quadrature_1d(kv.unique_knots, 2)

        sp = UnivariateSplineBasis.build(kv, 2, nodes)

        for e in range(nodes.shape[1]):
            for q in range(nodes.shape[0]):
                ders = eval_basis_ders_1d(kv, nodes[q, e], 1)
                assert_array_almost_equal(sp.shape_functions[q, :, e], ders[0])
                assert_array_almost_equal(sp.shape_function_gradients[q, :, e], ders[1])

    def test_optional_derivatives(self):
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        nodes, _ = element_quadrature_1d(kv.unique_knots, 2)

        sp = UnivariateSplineBasis.build(kv.knots, 2, nodes, gradient=False)
        assert sp.shape_function_gradients is None
        assert sp.shape_function_hessians is None

        sp = UnivariateSplineBasis.build(kv.knots, 2, nodes)
        assert sp.shape_function_gradients is not None
        assert sp.shape_function_hessians is None

    def test_padding_when_element_spans_several_knot_spans(self):
        """Columns straddling a knot get more functions; the others are padded."""
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        nodes = np.array([[0.1, 0.25],
                          [0.2, 0.75]])

        sp = UnivariateSplineBasis.build(kv.knots, 2, nodes)

        assert_array_equal(sp.nsh, [3, 4])
        assert sp.nsh_max == 4
        assert_array_equal(sp.connectivity[:, 0], [0, 1, 2, NO_DOF])
        assert_array_equal(sp.connectivity[:, 1], [0, 1, 2, 3])
        assert_array_equal(sp.shape_functions[:, 3, 0], [0.0, 0.0])
        assert_array_almost_equal(np.sum(sp.shape_functions, axis=1), np.ones((2, 2)))

    def test_immutable(self):
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        nodes, _ = element_quadrature_1d(kv.unique_knots, 2)
        sp = UnivariateSplineBasis.build(kv.knots, 2, nodes)

        with pytest.raises(ValueError):
            sp.shape_functions[0, 0, 0] = 2.0

    def test_nodes_must_be_table(self):
        kv = make_open_knot_vector(n_basis=4, degree=2, domain=(0.0, 1.0))
        with pytest.raises(ValueError):
            UnivariateSplineBasis.build(kv.knots, 2, np.linspace(0, 1, 5))


class TestGatherLocal:

    def test_no_dof_maps_to_zero(self):
        u = np.array([10.0, 20.0, 30.0])
        connectivity = np.array([[0, 2], [NO_DOF, 1]])

        assert_array_equal(gather_local(u, connectivity), [[10.0, 30.0], [0.0, 20.0]])


class TestToRational:
    """Tests for the B-spline to NURBS conversion of univariate spaces."""

    def _bezier(self, nodes):
        kv = make_open_knot_vector(n_basis=3, degree=2, domain=(0.0, 1.0))
        return UnivariateSplineBasis.build(kv.knots, 2, nodes, gradient=True, hessian=True)

    def test_unit_weights_keep_bspline(self):
        sp = self._bezier(np.array([[0.1], [0.5], [0.9]]))
        nrb = to_rational(sp, np.ones(3))

        assert nrb.is_rational
        assert_array_almost_equal(nrb.shape_functions, sp.shape_functions)
        assert_array_almost_equal(nrb.shape_function_gradients, sp.shape_function_gradients)
        assert nrb.shape_function_hessians is None

    def test_known_rational_values(self):
        sp = self._bezier(np.array([[0.5]]))
        nrb = to_rational(sp, np.array([1.0, 2.0, 1.0]))

        # N = [1/4, 1/2, 1/4], N w = [1/4, 1, 1/4], W = 3/2
        assert_array_almost_equal(nrb.shape_functions[0, :, 0], [1/6, 2/3, 1/6])

    def test_rational_partition_of_unity(self):
        sp = self._bezier(np.linspace(0.0, 1.0, 7)[:, np.newaxis])
        nrb = to_rational(sp, np.array([1.0, np.sqrt(2.0) / 2.0, 1.0]))

        assert_array_almost_equal(np.sum(nrb.shape_functions, axis=1), np.ones((7, 1)))
        assert_array_almost_equal(np.sum(nrb.shape_function_gradients, axis=1), np.zeros((7, 1)))

    def test_gradient_matches_finite_difference(self):
        weights = np.array([1.0, 3.0, 0.5])
        h = 1e-6
        sp = self._bezier(np.array([[0.3 - h], [0.3], [0.3 + h]]))
        nrb = to_rational(sp, weights)

        fd = (nrb.shape_functions[2, :, 0] - nrb.shape_functions[0, :, 0]) / (2 * h)
        assert_array_almost_equal(nrb.shape_function_gradients[1, :, 0], fd, decimal=6)

    def test_weights_length_checked(self):
        sp = self._bezier(np.array([[0.5]]))
        with pytest.raises(ValueError):
            to_rational(sp, np.ones(4))
