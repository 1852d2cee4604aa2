"""
Knot vectors of open B-spline bases.

A knot vector is a non-decreasing sequence xi_0 <= ... <= xi_{n+p} that
fixes the parametric domain and the supports of the n basis functions of
degree p. Open vectors repeat their end knots p+1 times, so the first
and last basis functions interpolate at the domain ends.

Spaces only need four things from it: the basis count, the breakpoints
(used as element boundaries by Mesh2D), the span containing each
evaluation node and the Greville points placing control points of the
primitive geometries.
"""

import numpy as np
from typing import Tuple
from dataclasses import dataclass


@dataclass
class KnotVector:
    """
    Univariate knot vector.

    Attributes:
        knots: Non-decreasing knot values
        degree: Polynomial degree p
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        self.knots = np.asarray(self.knots, dtype=np.float64)
        self.degree = int(self.degree)

        if self.knots.ndim != 1:
            raise ValueError("Knot vector must be one-dimensional.")
        if self.degree < 0:
            raise ValueError(f"Degree must be non-negative, got {self.degree}.")
        if len(self.knots) < 2 * (self.degree + 1):
            raise ValueError(
                f"Knot vector too short for degree {self.degree}: "
                f"need {2 * (self.degree + 1)} knots, got {len(self.knots)}."
            )
        if np.any(np.diff(self.knots) < 0):
            raise ValueError("Knot vector must be non-decreasing.")

        self._breaks = np.unique(self.knots)

    @property
    def n_basis(self) -> int:
        """Number of basis functions, len(knots) - p - 1."""
        return len(self.knots) - self.degree - 1

    @property
    def unique_knots(self) -> np.ndarray:
        """Breakpoints: the distinct knot values."""
        return self._breaks.copy()

    @property
    def domain(self) -> Tuple[float, float]:
        return (self._breaks[0], self._breaks[-1])

    def find_spans(self, xi) -> np.ndarray:
        """
        Knot span index i with xi in [xi_i, xi_{i+1}) for every value of xi.

        The last span is closed at the domain end, and values outside the
        domain are assigned to the first or last span.

        Parameters:
            xi: Parameter value or array of values

        Returns:
            Integer array with the shape of xi
        """
        xi = np.asarray(xi, dtype=np.float64)
        spans = np.searchsorted(self.knots, xi, side='right') - 1
        return np.clip(spans, self.degree, self.n_basis - 1)

    def greville_abscissae(self) -> np.ndarray:
        """
        Greville points: averages of p consecutive interior knots,

            g_i = (xi_{i+1} + ... + xi_{i+p}) / p

        For p = 0 the span midpoints are returned.
        """
        p, n = self.degree, self.n_basis
        if p == 0:
            return 0.5 * (self.knots[:n] + self.knots[1:n + 1])
        windows = np.lib.stride_tricks.sliding_window_view(self.knots[1:n + p], p)
        return windows.mean(axis=1)


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Open knot vector with uniformly spaced interior knots.

    Parameters:
        n_basis: Number of basis functions
        degree: Polynomial degree p
        domain: Parametric domain (start, end)

    Returns:
        KnotVector with p+1 repeated knots at each end
    """
    n_internal = n_basis - degree - 1
    if n_internal < 0:
        raise ValueError(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}"
        )

    a, b = domain
    internal = np.linspace(a, b, n_internal + 2)[1:-1]
    knots = np.concatenate([np.full(degree + 1, a), internal, np.full(degree + 1, b)])
    return KnotVector(knots, degree)
