"""Singularity indices from matching effort."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from fields.cartesian_field import CartesianField
from runtime.matching import principal_matching

logger = logging.getLogger("directional_fields")


def cycle_indices(
    field: CartesianField, effort: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Return the index of every dual cycle in units of ``1/N``.

    index = (sum of signed effort around the cycle + N * curvature) / 2pi

    which is an integer for any field, since the effort accumulated around a
    loop cancels the holonomy up to whole turns.
    """
    if effort is None:
        effort = field.effort
    if effort is None:
        _, effort = principal_matching(field, assign=False)

    tb = field.tb
    effort = np.where(np.isfinite(effort), effort, 0.0)
    raw = (tb.cycles @ effort + field.N * tb.cycle_curvatures) / (2.0 * np.pi)
    indices = np.rint(raw).astype(int)

    if raw.size:
        drift = float(np.max(np.abs(raw - indices)))
        if drift > 1e-6:
            logger.warning(
                "Cycle indices deviate from integers by up to %.3e; "
                "check face orientation and the field's vector ordering.",
                drift,
            )
    return indices


def effort_to_indices(
    field: CartesianField, effort: Optional[np.ndarray] = None
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(singular_vertices, singular_indices, generator_indices)``.

    Only interior vertices are reported; vertices with index zero are
    omitted and the list is ordered by vertex index.
    """
    indices = cycle_indices(field, effort)
    dual = field.tb.dual_cycles
    local_to_cycle = dual.local_to_cycle

    vertices = np.flatnonzero(local_to_cycle >= 0)
    vertex_indices = indices[local_to_cycle[vertices]]
    singular = vertex_indices != 0

    generator_indices = indices[dual.n_local_cycles :]
    return vertices[singular], vertex_indices[singular], generator_indices


def compute_singularities(field: CartesianField) -> Tuple[np.ndarray, np.ndarray]:
    """Detect singularities from the field's effort and store them on it."""
    sing_vertices, sing_indices, _ = effort_to_indices(field)
    field.set_singularities(sing_vertices, sing_indices)
    logger.info(
        "Found %d singular vertices (total index %d/%d).",
        field.sing_elements.size,
        int(field.sing_indices.sum()),
        field.N,
    )
    return field.sing_elements, field.sing_indices
