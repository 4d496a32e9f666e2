import json
import logging
import os

import numpy as np
import yaml

from core.exceptions import InputFormatError
from core.parameters.global_parameters import GlobalParameters
from geometry.entities import TriMesh

logger = logging.getLogger("directional_fields")


def load_data(filename):
    """Load a driver input from a JSON or YAML file.

    Expected format:
    {
        "vertices": [[x, y, z], ...],
        "faces": [[i, j, k], ...],
        "field": [[x0, y0, z0, x1, y1, z1, ...], ...],    # optional, per face
        "seams": [e0, e1, ...],                            # optional edge indices
        "global_parameters": {"degree": 4, ...}            # optional
    }"""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise InputFormatError(f"Unsupported file format for: {filename_str}")

    return data


def parse_mesh(data: dict):
    """Return ``(mesh, global_parameters)`` from a loaded input dictionary."""
    if "vertices" not in data or "faces" not in data:
        raise InputFormatError("Input needs both 'vertices' and 'faces'.")

    global_params = GlobalParameters()
    global_params.update(data.get("global_parameters", {}) or {})

    for key in ("degree", "comb_seed_face"):
        val = global_params.get(key)
        if isinstance(val, str):
            try:
                global_params.set(key, int(val))
            except ValueError:
                logger.warning("global_parameters.%s should be an integer; got %r", key, val)

    mesh = TriMesh(data["vertices"], data["faces"])
    logger.info(
        "Loaded mesh with %d vertices, %d faces.", mesh.n_vertices, mesh.n_faces
    )
    return mesh, global_params


def _jsonable(value):
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (np.floating,)):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def save_results(results: dict, path: str, *, compact: bool = False) -> None:
    """Write a dictionary of (possibly numpy) results as JSON."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w") as f:
        if compact:
            json.dump(_jsonable(results), f, separators=(",", ":"))
        else:
            json.dump(_jsonable(results), f, indent=4)
    logger.info("Saved results to %s", path)
