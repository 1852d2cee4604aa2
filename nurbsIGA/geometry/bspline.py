"""
B-spline basis function evaluation.

B-splines are piecewise polynomial functions defined by:
1. A knot vector (non-decreasing sequence of parametric values)
2. A polynomial degree p

The i-th B-spline basis function of degree p is defined recursively:

    N_{i,0}(xi) = 1 if xi_i <= xi < xi_{i+1}, else 0

    N_{i,p}(xi) = (xi - xi_i)/(xi_{i+p} - xi_i) * N_{i,p-1}(xi)
                + (xi_{i+p+1} - xi)/(xi_{i+p+1} - xi_{i+1}) * N_{i+1,p-1}(xi)

Properties:
- Partition of unity: sum of all basis functions = 1
- Non-negativity: N_{i,p}(xi) >= 0
- Local support: N_{i,p} is non-zero only on [xi_i, xi_{i+p+1})

On top of the pointwise routine this module provides UnivariateSplineBasis,
the univariate space evaluated on a structured node table, and to_rational,
which turns such a space into its NURBS counterpart for a weight vector.
"""

import dataclasses
import logging
import numpy as np
from typing import Optional, Union
from dataclasses import dataclass

from ..discretization.knot_vector import KnotVector

logger = logging.getLogger(__name__)

#: Connectivity entry of a local slot with no contributing basis function.
NO_DOF = -1


def eval_basis_ders_1d(kv: KnotVector, xi: float, n_ders: int,
                       span: Optional[int] = None) -> np.ndarray:
    """
    Evaluate B-spline basis functions and derivatives at a parameter value.

    Uses the algorithm from Piegl & Tiller "The NURBS Book" (Algorithm A2.3).

    Parameters:
        kv: Knot vector
        xi: Parameter value
        n_ders: Number of derivatives to compute (0 = just values)
        span: Optional pre-computed span index

    Returns:
        Array of shape (min(n_ders, p)+1, p+1) where result[k, j] is the k-th
        derivative of the j-th non-zero basis function (N_{span-p+j, p})
    """
    p = kv.degree
    knots = kv.knots

    if span is None:
        span = int(kv.find_spans(xi))

    # Derivatives above the degree vanish
    n_ders = min(n_ders, p)

    ders = np.zeros((n_ders + 1, p + 1))

    # ndu[j][r] = N_{span-p+r, j} or knot differences
    ndu = np.zeros((p + 1, p + 1))
    ndu[0, 0] = 1.0

    left = np.zeros(p + 1)
    right = np.zeros(p + 1)

    for j in range(1, p + 1):
        left[j] = xi - knots[span + 1 - j]
        right[j] = knots[span + j] - xi

        saved = 0.0
        for r in range(j):
            # Upper triangle: knot differences
            ndu[j, r] = right[r + 1] + left[j - r]
            temp = ndu[r, j - 1] / ndu[j, r]

            # Lower triangle: basis functions
            ndu[r, j] = saved + right[r + 1] * temp
            saved = left[j - r] * temp

        ndu[j, j] = saved

    for j in range(p + 1):
        ders[0, j] = ndu[j, p]

    a = np.zeros((2, p + 1))

    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0, 0] = 1.0

        for k in range(1, n_ders + 1):
            d = 0.0
            rk = r - k
            pk = p - k

            if r >= k:
                a[s2, 0] = a[s1, 0] / ndu[pk + 1, rk]
                d = a[s2, 0] * ndu[rk, pk]

            j1 = 1 if rk >= -1 else -rk
            j2 = k - 1 if r - 1 <= pk else p - r

            for j in range(j1, j2 + 1):
                a[s2, j] = (a[s1, j] - a[s1, j - 1]) / ndu[pk + 1, rk + j]
                d += a[s2, j] * ndu[rk + j, pk]

            if r <= pk:
                a[s2, k] = -a[s1, k - 1] / ndu[pk + 1, r]
                d += a[s2, k] * ndu[r, pk]

            ders[k, r] = d
            s1, s2 = s2, s1

    # Multiply by factorial factors
    r = p
    for k in range(1, n_ders + 1):
        for j in range(p + 1):
            ders[k, j] *= r
        r *= (p - k)

    return ders


def _frozen(array: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if array is not None:
        array.setflags(write=False)
    return array


def gather_local(values: np.ndarray, connectivity: np.ndarray) -> np.ndarray:
    """
    Look up a global vector through a connectivity table.

    Slots tagged NO_DOF yield 0, so padded local functions contribute nothing
    once multiplied by the result.

    Parameters:
        values: Global vector (ndof,)
        connectivity: Integer table of any shape, entries in [0, ndof) or NO_DOF

    Returns:
        Float array with the shape of connectivity
    """
    active = connectivity != NO_DOF
    gathered = np.asarray(values)[np.where(active, connectivity, 0)]
    return np.where(active, gathered, 0.0)


@dataclass(frozen=True)
class UnivariateSplineBasis:
    """
    Univariate B-spline (or NURBS) space evaluated on a structured node table.

    Nodes are given per element as an (nqn, nel) table. The functions
    attached to an element are all functions active at any of its nodes;
    their count is nsh[e] and the local slots above nsh[e] are padding
    (connectivity NO_DOF, value 0).

    Attributes:
        knot_vector: Underlying KnotVector
        ndof: Number of basis functions
        nsh_max: Maximum number of local functions per element
        nsh: Local function count per element (nel,)
        connectivity: Local-to-global map (nsh_max, nel)
        shape_functions: Values (nqn, nsh_max, nel)
        shape_function_gradients: First derivatives, same shape, or None
        shape_function_hessians: Second derivatives, same shape, or None
        weights: NURBS weights (ndof,) for rational spaces, None for B-splines
    """
    knot_vector: KnotVector
    ndof: int
    nsh_max: int
    nsh: np.ndarray
    connectivity: np.ndarray
    shape_functions: np.ndarray
    shape_function_gradients: Optional[np.ndarray] = None
    shape_function_hessians: Optional[np.ndarray] = None
    weights: Optional[np.ndarray] = None

    @property
    def degree(self) -> int:
        return self.knot_vector.degree

    @property
    def nel(self) -> int:
        return self.connectivity.shape[1]

    @property
    def nqn(self) -> int:
        return self.shape_functions.shape[0]

    @property
    def is_rational(self) -> bool:
        return self.weights is not None

    @classmethod
    def build(cls, knots: Union[KnotVector, np.ndarray], degree: int,
              nodes: np.ndarray, gradient: bool = True,
              hessian: bool = False) -> 'UnivariateSplineBasis':
        """
        Evaluate the B-spline space of (knots, degree) on a node table.

        Parameters:
            knots: Knot vector (array or KnotVector)
            degree: Polynomial degree
            nodes: Evaluation nodes, shape (nqn, nel)
            gradient: Compute first derivatives
            hessian: Compute second derivatives

        Returns:
            UnivariateSplineBasis
        """
        if isinstance(knots, KnotVector):
            kv = knots if knots.degree == degree else KnotVector(knots.knots, degree)
        else:
            kv = KnotVector(knots, degree)

        nodes = np.asarray(nodes, dtype=np.float64)
        if nodes.ndim != 2:
            raise ValueError(f"Nodes must be an (nqn, nel) table, got shape {nodes.shape}")

        p = kv.degree
        nqn, nel = nodes.shape
        spans = kv.find_spans(nodes)

        first = spans.min(axis=0) - p
        nsh = spans.max(axis=0) - first + 1
        nsh_max = int(nsh.max())

        slots = np.arange(nsh_max)[:, np.newaxis]
        connectivity = np.where(slots < nsh[np.newaxis, :], first[np.newaxis, :] + slots, NO_DOF)

        n_ders = 2 if hessian else (1 if gradient else 0)
        values = np.zeros((n_ders + 1, nqn, nsh_max, nel))

        for e in range(nel):
            for q in range(nqn):
                span = spans[q, e]
                ders = eval_basis_ders_1d(kv, nodes[q, e], n_ders, span)
                offset = span - p - first[e]
                values[:ders.shape[0], q, offset:offset + p + 1, e] = ders

        logger.debug("Univariate basis: degree %d, ndof %d, nel %d, nsh_max %d",
                     p, kv.n_basis, nel, nsh_max)

        return cls(
            knot_vector=kv,
            ndof=kv.n_basis,
            nsh_max=nsh_max,
            nsh=_frozen(nsh),
            connectivity=_frozen(connectivity),
            shape_functions=_frozen(values[0]),
            shape_function_gradients=_frozen(values[1]) if n_ders >= 1 else None,
            shape_function_hessians=_frozen(values[2]) if n_ders >= 2 else None,
        )


def to_rational(trace: UnivariateSplineBasis,
                weights: np.ndarray) -> UnivariateSplineBasis:
    """
    Convert a univariate B-spline space into the NURBS space of a weight vector.

    R_i = N_i w_i / W with W = sum_j N_j w_j. First derivatives, when
    present, follow the quotient rule:

        dR_i = (dN_i w_i - R_i dW) / W

    Second-derivative data is dropped.

    Parameters:
        trace: B-spline space (typically a boundary trace)
        weights: NURBS weights, shape (trace.ndof,). Must be positive; this
                 is not checked.

    Returns:
        New UnivariateSplineBasis carrying the rational values and weights
    """
    weights = np.asarray(weights, dtype=np.float64)
    if weights.shape != (trace.ndof,):
        raise ValueError(
            f"Weight vector shape {weights.shape} does not match ndof ({trace.ndof})"
        )

    w_local = gather_local(weights, trace.connectivity)[np.newaxis, :, :]

    Nw = trace.shape_functions * w_local
    W = np.sum(Nw, axis=1, keepdims=True)
    R = Nw / W

    dR = None
    if trace.shape_function_gradients is not None:
        dNw = trace.shape_function_gradients * w_local
        dW = np.sum(dNw, axis=1, keepdims=True)
        dR = (dNw - R * dW) / W

    return dataclasses.replace(
        trace,
        shape_functions=_frozen(R),
        shape_function_gradients=_frozen(dR),
        shape_function_hessians=None,
        weights=weights,
    )
