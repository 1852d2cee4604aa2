"""
Problem setup from configuration files.

A JSON document describes the geometry, the quadrature mesh and the
evaluation options:

    {
      "geometry": {"type": "rectangle", "x_range": [0, 2], "y_range": [0, 1],
                   "degree": 2, "elements": [8, 4]},
      "quadrature": {"points": [3, 3], "boundary": true},
      "evaluation": {"components": 1, "cache": true, "workers": 4}
    }

Geometry types:
    unit_square      degree, elements
    rectangle        x_range, y_range, degree, elements
    quarter_annulus  inner_radius, outer_radius, degree, elements
    explicit         knots, degree, control_points (n_u x n_v x d), weights (n_u x n_v)

Only "geometry" is required; the other sections fall back to Gauss rules
with degree + 1 points, boundary description on, scalar fields, no cache
and a single worker.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from ..exceptions import ConfigurationError
from ..discretization.knot_vector import KnotVector
from ..discretization.mesh import Mesh2D
from ..geometry.nurbs import NURBSSurface
from ..geometry.primitives import (
    make_nurbs_unit_square, make_nurbs_rectangle, make_nurbs_quarter_annulus
)
from ..space.nurbs_2d import NURBSSpace2D
from ..space.vector import VectorSpace
from ..space.eval import FieldEvaluator

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = {
    "unit_square": ("degree", "elements"),
    "rectangle": ("x_range", "y_range", "degree", "elements"),
    "quarter_annulus": ("inner_radius", "outer_radius", "degree", "elements"),
    "explicit": ("knots", "degree", "control_points"),
}


def load_config(filename: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a problem configuration from a JSON file.

    Raises:
        ConfigurationError: If the file is not valid JSON or lacks a
                            usable "geometry" section
    """
    path = Path(filename)
    try:
        with open(path) as f:
            config = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path}: invalid JSON ({exc})") from exc

    validate_config(config)
    logger.debug("Loaded configuration from %s", path)
    return config


def validate_config(config: Dict[str, Any]):
    """Check the sections and keys needed by setup_from_config."""
    if not isinstance(config, dict) or "geometry" not in config:
        raise ConfigurationError("Configuration needs a 'geometry' section")

    geometry = config["geometry"]
    kind = geometry.get("type")
    if kind not in _REQUIRED_KEYS:
        raise ConfigurationError(
            f"Unknown geometry type: {kind}. Use one of {sorted(_REQUIRED_KEYS)}"
        )
    missing = [key for key in _REQUIRED_KEYS[kind] if key not in geometry]
    if missing:
        raise ConfigurationError(f"Geometry '{kind}' is missing {missing}")
    if "elements" in geometry and len(geometry["elements"]) != 2:
        raise ConfigurationError(f"'elements' needs 2 entries, got {geometry['elements']}")

    components = config.get("evaluation", {}).get("components", 1)
    if not isinstance(components, int) or components < 1:
        raise ConfigurationError(f"'components' must be a positive integer, got {components}")


def _make_geometry(section: Dict[str, Any]) -> NURBSSurface:
    kind = section["type"]
    if kind == "explicit":
        degree = section["degree"]
        try:
            kv_u = KnotVector(section["knots"][0], degree[0])
            kv_v = KnotVector(section["knots"][1], degree[1])
            return NURBSSurface(kv_u, kv_v, section["control_points"], section.get("weights"))
        except (ValueError, IndexError, TypeError) as exc:
            raise ConfigurationError(f"Invalid explicit geometry: {exc}") from exc

    n_u, n_v = section["elements"]
    if kind == "unit_square":
        return make_nurbs_unit_square(p=section["degree"], n_elem_u=n_u, n_elem_v=n_v)
    elif kind == "rectangle":
        return make_nurbs_rectangle(tuple(section["x_range"]), tuple(section["y_range"]),
                                    p=section["degree"], n_elem_u=n_u, n_elem_v=n_v)
    else:
        if n_v != 1:
            raise ConfigurationError("quarter_annulus has a single angular element")
        return make_nurbs_quarter_annulus(section["inner_radius"], section["outer_radius"],
                                          p_radial=section["degree"], n_elem_radial=n_u)


def setup_from_config(config: Dict[str, Any]) -> Tuple[NURBSSurface, Mesh2D,
                                                        Union[NURBSSpace2D, VectorSpace],
                                                        FieldEvaluator]:
    """
    Build geometry, mesh, space and evaluator from a configuration.

    Returns:
        (geometry, mesh, space, evaluator)
    """
    validate_config(config)

    geometry = _make_geometry(config["geometry"])

    quadrature = config.get("quadrature", {})
    n_quad = quadrature.get("points")
    mesh = Mesh2D.build(geometry,
                        n_quad=tuple(n_quad) if n_quad is not None else None,
                        boundary=quadrature.get("boundary", True))

    space = NURBSSpace2D.from_nurbs(geometry, mesh)

    evaluation = config.get("evaluation", {})
    ncomp = evaluation.get("components", 1)
    if ncomp > 1:
        space = VectorSpace.repeat(space, ncomp)

    evaluator = FieldEvaluator(space, mesh,
                               cache=evaluation.get("cache", False),
                               n_workers=evaluation.get("workers", 1))

    logger.debug("Problem set up: %s geometry, %d elements, %d DOFs",
                 config["geometry"]["type"], mesh.nel, space.ndof)

    return geometry, mesh, space, evaluator
