"""Principal matching of raw directional fields across dual edges."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from core.parameters.global_parameters import GlobalParameters
from fields.cartesian_field import CartesianField

logger = logging.getLogger("directional_fields")


def matching_residuals(field: CartesianField, edges: np.ndarray) -> np.ndarray:
    """Residual rotation angles for every matching candidate.

    Returns an array of shape ``(len(edges), N, N)`` where entry
    ``[i, k, j]`` is the angle from vector ``j`` of ``EF[e, 0]``,
    transported through the connection, to vector ``(j + k) mod N`` of
    ``EF[e, 1]``, wrapped to ``(-pi, pi]``.
    """
    N = field.N
    z = field.complex_field()
    f0 = field.adj_spaces[edges, 0]
    f1 = field.adj_spaces[edges, 1]
    transported = z[f0] * field.tb.connection[edges][:, None]
    target = z[f1]

    residuals = np.empty((edges.size, N, N), dtype=float)
    for k in range(N):
        shifted = np.roll(target, -k, axis=1)
        residuals[:, k, :] = np.angle(shifted * np.conj(transported))
    return residuals


def principal_matching(
    field: CartesianField,
    *,
    global_params: Optional[GlobalParameters] = None,
    assign: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute the matching and effort of every dual edge of a raw field.

    For an inner edge the matching is the cyclic shift ``k`` in ``[0, N)``
    minimising the summed absolute residual angle between the transported
    vectors of ``EF[e, 0]`` and the shifted vectors of ``EF[e, 1]``. Ties
    (within ``matching_tie_tolerance``) go to the smaller net rotation and
    then to the smaller ``k``. The effort is the summed signed residual of
    the chosen shift. Boundary edges get matching ``-1`` and effort ``0``.

    With ``assign`` the result is also stored on the field.
    """
    field.require_raw("principal_matching")
    params = global_params or field.tb.global_params
    tol = float(params.get("matching_tie_tolerance", 1e-12))

    n_edges = field.adj_spaces.shape[0]
    matching = np.full(n_edges, -1, dtype=int)
    effort = np.zeros(n_edges, dtype=float)

    inner = field.tb.inner_edges
    if inner.size:
        z = field.complex_field()
        zero_rows = np.flatnonzero(np.any(np.abs(z) < 1e-15, axis=1))
        if zero_rows.size:
            logger.warning(
                "%d tangent space(s) hold zero vectors; their matching is arbitrary.",
                zero_rows.size,
            )

        residuals = matching_residuals(field, inner)
        misalignment = np.abs(residuals).sum(axis=2)
        rotation = np.abs(residuals.sum(axis=2))

        best_misalignment = misalignment.min(axis=1)
        candidates = misalignment <= best_misalignment[:, None] + tol
        best_rotation = np.where(candidates, rotation, np.inf).min(axis=1)
        candidates &= rotation <= best_rotation[:, None] + tol
        # first remaining candidate is the smallest shift
        best = np.argmax(candidates, axis=1)

        matching[inner] = best
        effort[inner] = residuals[np.arange(inner.size), best, :].sum(axis=1)

    logger.debug(
        "Principal matching: %d inner edges, %d non-identity.",
        inner.size,
        int(np.count_nonzero(matching[inner] > 0)) if inner.size else 0,
    )

    if assign:
        field.set_matching(matching, effort)
    return matching, effort
