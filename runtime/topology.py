"""Topology checking and mesh consistency functions."""

import logging
from typing import Iterable, Optional, Tuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import connected_components

from core.exceptions import DisconnectedRegionError, TopologyInconsistencyError
from geometry.entities import TriMesh

logger = logging.getLogger("directional_fields")


def validate_topology(mesh: TriMesh) -> None:
    """
    Check that face-edge and edge-face adjacency reference each other.

    Raises TopologyInconsistencyError on the first violation found:
    - a face without three distinct valid edges,
    - a face edge whose endpoints are not consecutive face corners,
    - a face listing an edge that does not list the face back,
    - an edge listing a face that does not list the edge back,
    - a boundary edge whose single face is not stored in slot 0.
    """
    F, FE, EF, EV = mesh.F, mesh.FE, mesh.EF, mesh.EV
    n_edges = EV.shape[0]

    if FE.shape != F.shape:
        raise TopologyInconsistencyError(
            f"Face-edge table has shape {FE.shape}, expected {F.shape}."
        )

    for f in range(F.shape[0]):
        edges = FE[f]
        if np.any(edges < 0) or np.any(edges >= n_edges) or len(set(edges.tolist())) != 3:
            raise TopologyInconsistencyError(
                f"Face {f} does not have three distinct valid edges: {edges.tolist()}.",
                face_index=f,
            )
        for k in range(3):
            e = int(edges[k])
            corners = {int(F[f, k]), int(F[f, (k + 1) % 3])}
            if set(EV[e].tolist()) != corners:
                raise TopologyInconsistencyError(
                    f"Edge {e} of face {f} does not join vertices {sorted(corners)}.",
                    edge_index=e,
                    face_index=f,
                )
            if f not in EF[e]:
                raise TopologyInconsistencyError(
                    f"Face {f} references edge {e}, which does not reference it back.",
                    edge_index=e,
                    face_index=f,
                )

    for e in range(n_edges):
        f0, f1 = int(EF[e, 0]), int(EF[e, 1])
        if f0 == -1:
            raise TopologyInconsistencyError(
                f"Edge {e} has no face in slot 0.", edge_index=e
            )
        if f0 == f1:
            raise TopologyInconsistencyError(
                f"Edge {e} lists face {f0} on both sides.", edge_index=e, face_index=f0
            )
        for f in (f0, f1):
            if f != -1 and e not in FE[f]:
                raise TopologyInconsistencyError(
                    f"Edge {e} claims face {f}, which does not reference it back.",
                    edge_index=e,
                    face_index=f,
                )

    logger.debug("Topology validated: %d faces, %d edges.", F.shape[0], n_edges)


def dual_adjacency(
    mesh: TriMesh, blocked_edges: Optional[Iterable[int]] = None
) -> sp.csr_matrix:
    """Face-to-face adjacency through inner edges, minus ``blocked_edges``."""
    keep = np.ones(mesh.n_edges, dtype=bool)
    if blocked_edges is not None:
        keep[np.asarray(list(blocked_edges), dtype=int)] = False
    inner = mesh.inner_edges[keep[mesh.inner_edges]]
    f0 = mesh.EF[inner, 0]
    f1 = mesh.EF[inner, 1]
    n = mesh.n_faces
    data = np.ones(inner.size, dtype=float)
    return sp.csr_matrix((data, (f0, f1)), shape=(n, n))


def face_components(
    mesh: TriMesh, blocked_edges: Optional[Iterable[int]] = None
) -> Tuple[int, np.ndarray]:
    """Return ``(n_components, labels)`` of the dual graph."""
    if mesh.n_faces == 0:
        return 0, np.zeros(0, dtype=int)
    graph = dual_adjacency(mesh, blocked_edges)
    n_components, labels = connected_components(graph, directed=False)
    return int(n_components), labels


def require_connected(mesh: TriMesh) -> None:
    """Raise DisconnectedRegionError if the dual graph has several components."""
    n_components, labels = face_components(mesh)
    if n_components > 1:
        unreached = np.flatnonzero(labels != labels[0])
        raise DisconnectedRegionError(
            f"Mesh has {n_components} disconnected face components.",
            unreached_faces=unreached.tolist(),
            n_components=n_components,
        )
