"""Combing of raw directional fields.

Combing reorders the vectors of every face (keeping their counter-clockwise
order) so that the matching becomes the identity across every dual edge the
flood fill crosses. What is left over with a non-zero matching is a seam.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field as dataclass_field
from typing import List, Optional

import numpy as np

from core.exceptions import DisconnectedRegionError, ShapeMismatchError
from core.parameters.global_parameters import COMB_UNREACHED_POLICIES, GlobalParameters
from fields.cartesian_field import CartesianField, FieldType
from geometry.entities import TriMesh
from runtime.matching import principal_matching
from runtime.topology import validate_topology

logger = logging.getLogger("directional_fields")


@dataclass
class CombingResult:
    field: CartesianField
    space_turns: np.ndarray
    tree_edges: np.ndarray
    seeds: List[int] = dataclass_field(default_factory=list)

    @property
    def seam_edges(self) -> np.ndarray:
        """Inner edges whose combed matching is not the identity."""
        matching = self.field.matching
        return np.flatnonzero(matching > 0)


def seam_mask_from_edges(mesh: TriMesh, seam_edges) -> np.ndarray:
    """Return a ``(#F, 3)`` mask marking ``seam_edges`` from both sides."""
    seam = np.zeros(mesh.n_edges, dtype=bool)
    seam[np.asarray(list(seam_edges), dtype=int)] = True
    return seam[mesh.FE]


def _resolve_face_is_cut(mesh: TriMesh, face_is_cut) -> np.ndarray:
    if face_is_cut is None:
        return np.zeros((mesh.n_faces, 3), dtype=bool)
    cut = np.asarray(face_is_cut)
    if cut.ndim == 2:
        if cut.shape != (mesh.n_faces, 3):
            raise ShapeMismatchError(
                f"Face cut mask must have shape ({mesh.n_faces}, 3); got {cut.shape}.",
                expected=(mesh.n_faces, 3),
                actual=cut.shape,
            )
        return cut.astype(bool)
    return seam_mask_from_edges(mesh, cut.reshape(-1))


def comb_field(
    raw_field: CartesianField,
    face_is_cut=None,
    *,
    global_params: Optional[GlobalParameters] = None,
) -> CombingResult:
    """
    Comb a raw field by flood-filling rotations through the dual graph.

    ``face_is_cut`` optionally forces seams: either a ``(#F, 3)`` mask where
    ``face_is_cut[f, i]`` stops the traversal from leaving face ``f``
    through edge ``FE[f, i]``, or a flat list of edge indices cut from both
    sides. The input field is not modified; its matching is computed on the
    fly if it has none.
    """
    raw_field.require_raw("combing")
    tb = raw_field.tb
    mesh = tb.mesh
    params = global_params or tb.global_params

    policy = params.get("comb_unreached_policy", "reseed")
    if policy not in COMB_UNREACHED_POLICIES:
        raise ValueError(
            f"comb_unreached_policy must be one of {COMB_UNREACHED_POLICIES}; "
            f"got {policy!r}."
        )
    if params.get("validate_topology", True):
        validate_topology(mesh)

    N = raw_field.N
    n_spaces = tb.n_spaces
    adj_spaces = raw_field.adj_spaces
    one_ring = raw_field.one_ring
    face_is_cut = _resolve_face_is_cut(mesh, face_is_cut)

    matching = raw_field.matching
    effort = raw_field.effort
    if matching is None:
        logger.debug("Raw field has no matching; computing principal matching.")
        matching, effort = principal_matching(
            raw_field, global_params=params, assign=False
        )

    raw_int = raw_field.int_field
    combed_int = np.zeros_like(raw_int)
    space_turns = np.zeros(n_spaces, dtype=int)
    visited = np.zeros(n_spaces, dtype=bool)
    tree_edges: List[int] = []
    seeds: List[int] = []

    def flood(seed: int) -> None:
        seeds.append(seed)
        queue = deque([(seed, 0, -1)])
        while queue:
            f, turn, via_edge = queue.popleft()
            if visited[f]:
                continue
            visited[f] = True
            if via_edge != -1:
                tree_edges.append(via_edge)

            # combing the field to start from the matching index
            combed_int[f, : 2 * (N - turn)] = raw_int[f, 2 * turn :]
            combed_int[f, 2 * (N - turn) :] = raw_int[f, : 2 * turn]
            space_turns[f] = turn

            for i in range(3):
                e = int(one_ring[f, i])
                f0, f1 = int(adj_spaces[e, 0]), int(adj_spaces[e, 1])
                next_face = f1 if f0 == f else f0
                sign = 1 if f0 == f else -1
                next_turn = (int(matching[e]) * sign + turn) % N
                if next_face != -1 and not visited[next_face] and not face_is_cut[f, i]:
                    queue.append((next_face, next_turn, e))

    if n_spaces:
        seed = int(params.get("comb_seed_face", 0))
        if not 0 <= seed < n_spaces:
            raise ShapeMismatchError(
                f"Combing seed face {seed} is outside [0, {n_spaces}).",
                expected=n_spaces,
                actual=seed,
            )
        flood(seed)

    unreached = np.flatnonzero(~visited)
    if unreached.size:
        if policy == "raise":
            raise DisconnectedRegionError(
                f"{unreached.size} face(s) cannot be reached from seed face "
                f"{seeds[0]} without crossing a seam.",
                unreached_faces=unreached.tolist(),
            )
        if policy == "ignore":
            logger.warning(
                "%d face(s) unreached by combing; left with zero vectors.",
                unreached.size,
            )
        else:
            while unreached.size:
                flood(int(unreached[0]))
                unreached = np.flatnonzero(~visited)
            logger.info(
                "Combing re-seeded %d additional region(s).", len(seeds) - 1
            )

    combed_matching = np.full(adj_spaces.shape[0], -1, dtype=int)
    inner = tb.inner_edges
    combed_matching[inner] = (
        space_turns[adj_spaces[inner, 0]]
        - space_turns[adj_spaces[inner, 1]]
        + matching[inner]
    ) % N

    combed = CartesianField(tb, FieldType.RAW, N)
    combed.set_intrinsic_field(combed_int)
    combed.set_matching(
        combed_matching, None if effort is None else np.array(effort, dtype=float)
    )
    combed.sing_elements = raw_field.sing_elements.copy()
    combed.sing_indices = raw_field.sing_indices.copy()

    logger.debug(
        "Combing visited %d faces from %d seed(s); %d seam edge(s) remain.",
        int(visited.sum()),
        len(seeds),
        int(np.count_nonzero(combed_matching[inner])),
    )
    return CombingResult(
        field=combed,
        space_turns=space_turns,
        tree_edges=np.asarray(tree_edges, dtype=int),
        seeds=seeds,
    )


def combing(raw_field: CartesianField, face_is_cut=None, **kwargs) -> CartesianField:
    """Return the combed field only; see ``comb_field``."""
    return comb_field(raw_field, face_is_cut, **kwargs).field
