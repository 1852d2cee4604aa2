"""
Exceptions raised by nurbsIGA.

Both classes derive from ValueError, so code that guards calls with
``except ValueError`` keeps working.

- ConfigurationError: malformed arguments when building a mesh, a space
  or a problem from a configuration file. Raised before any partial
  object is returned.
- DimensionMismatch: a coefficient vector whose length does not match
  the number of degrees of freedom of the space it is evaluated in.

Non-positive NURBS weights and degenerate knot vectors are not checked
here; they show up as NaN/Inf in the evaluated quantities.
"""


class ConfigurationError(ValueError):
    """Wrong argument count, shape or content at construction time."""


class DimensionMismatch(ValueError):
    """DOF vector length differs from ``space.ndof``."""
