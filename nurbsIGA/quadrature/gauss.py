"""
Gauss-Legendre quadrature for numerical integration.

Gauss quadrature provides optimal polynomial integration:
n points integrate exactly polynomials up to degree 2n-1.

For IGA with polynomial degree p, we typically need n_gauss = p+1
points per direction.

The reference domain is [0, 1]. Standard Gauss points on [-1, 1] are
mapped accordingly, then onto every element of a breakpoint sequence
to give the structured per-direction node tables used by Mesh2D.

Usage:
    points, weights = gauss_legendre_1d(n)          # 1D rule on [0,1]
    nodes, weights = element_quadrature_1d(brk, n)   # (n, n_elements) tables
"""

import numpy as np
from typing import Tuple
from functools import lru_cache


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre quadrature points and weights on [0, 1].

    Parameters:
        n: Number of quadrature points

    Returns:
        (points, weights) where:
        - points: Array of n quadrature points in [0, 1]
        - weights: Array of n quadrature weights (sum to 1)
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")

    points_std, weights_std = np.polynomial.legendre.leggauss(n)

    # Map to [0, 1]: x = (xi + 1) / 2, dx = 1/2 * dxi
    points = 0.5 * (points_std + 1.0)
    weights = 0.5 * weights_std

    points.setflags(write=False)
    weights.setflags(write=False)
    return points, weights


def element_quadrature_1d(breaks: np.ndarray, n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Map the n-point Gauss rule onto every interval of a breakpoint sequence.

    Parameters:
        breaks: Strictly increasing breakpoints (n_elements + 1,)
        n: Number of quadrature points per element

    Returns:
        (nodes, weights), both of shape (n, n_elements). Weights are scaled
        by the element length, so they integrate over the physical interval.
    """
    breaks = np.asarray(breaks, dtype=np.float64)
    if breaks.ndim != 1 or len(breaks) < 2:
        raise ValueError("Need at least two breakpoints")
    if np.any(np.diff(breaks) <= 0):
        raise ValueError("Breakpoints must be strictly increasing")

    points, weights = gauss_legendre_1d(n)
    lengths = np.diff(breaks)

    nodes = breaks[:-1][np.newaxis, :] + np.outer(points, lengths)
    scaled = np.outer(weights, lengths)

    return nodes, scaled
