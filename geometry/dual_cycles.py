"""Dual cycle basis of a triangle mesh.

A dual cycle is a closed loop of dual edges (face to face across a primal
edge), stored as a row of a signed incidence matrix over mesh edges: ``+1``
when the loop crosses edge ``e`` from ``EF[e, 0]`` to ``EF[e, 1]`` and ``-1``
for the opposite direction.

The basis consists of, in row order,

- one *local* cycle per interior vertex, running counter-clockwise around
  the vertex; its curvature is the vertex angle defect,
- one *boundary* cycle per boundary loop except the longest, the ring of
  faces around the loop; its curvature is the summed boundary angle defect
  of the loop vertices, and
- the homology *generators* from a tree-cotree decomposition; their
  curvature is the holonomy of the connection around the loop, wrapped to
  ``(-pi, pi]``.

Boundary and generator cycles together are the non-local cycles; on a
surface of genus ``g`` with ``b > 0`` boundary loops there are
``2g + b - 1`` of them.

Summing an edge quantity over a cycle is a sparse matrix-vector product
``cycles @ values``.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
import scipy.sparse as sp
from scipy.sparse.csgraph import minimum_spanning_tree

from geometry.entities import TriMesh

logger = logging.getLogger("directional_fields")


@dataclass
class DualCycles:
    cycles: sp.csr_matrix
    cycle_curvatures: np.ndarray
    local_to_cycle: np.ndarray
    n_local_cycles: int
    n_boundary_cycles: int = 0

    @property
    def n_cycles(self) -> int:
        return int(self.cycles.shape[0])

    @property
    def n_generators(self) -> int:
        """Number of non-local cycles (boundary rings and tree-cotree loops)."""
        return self.n_cycles - self.n_local_cycles


def vertex_cycles(
    mesh: TriMesh,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Return triplets of the local cycle incidence and the cycle numbering.

    Returns ``(rows, cols, vals, curvatures, local_to_cycle)`` where
    ``local_to_cycle[v]`` is the cycle row of vertex ``v`` or ``-1`` for
    boundary (and unreferenced) vertices.
    """
    F, FE, EF = mesh.F, mesh.FE, mesh.EF
    referenced = np.zeros(mesh.n_vertices, dtype=bool)
    referenced[F.reshape(-1)] = True
    interior = referenced & ~mesh.boundary_vertex_mask()

    local_to_cycle = np.full(mesh.n_vertices, -1, dtype=int)
    local_to_cycle[interior] = np.arange(int(interior.sum()))

    faces = np.arange(mesh.n_faces)
    rows, cols, vals = [], [], []
    for p in range(3):
        v = F[:, p]
        # In face (v, a, b) the counter-clockwise neighbour around v lies
        # across the edge from b back to v.
        e = FE[:, (p + 2) % 3]
        sign = np.where(EF[e, 0] == faces, 1.0, -1.0)
        keep = interior[v]
        rows.append(local_to_cycle[v[keep]])
        cols.append(e[keep])
        vals.append(sign[keep])

    rows = np.concatenate(rows) if rows else np.zeros(0, dtype=int)
    cols = np.concatenate(cols) if cols else np.zeros(0, dtype=int)
    vals = np.concatenate(vals) if vals else np.zeros(0, dtype=float)
    curvatures = mesh.angle_defects()[interior]
    return rows, cols, vals, curvatures, local_to_cycle


def boundary_loop_cycles(mesh: TriMesh) -> Tuple[List[Dict[int, float]], np.ndarray]:
    """Return the dual rings around boundary loops and their curvatures.

    The ring of a loop chains the counter-clockwise fans of its vertices,
    skipping boundary edges; chords between two vertices of the same loop
    are crossed in both directions and cancel. The longest loop is left
    out since all rings plus all local cycles sum to zero.
    """
    loops = mesh.boundary_loops()
    if len(loops) < 2:
        return [], np.zeros(0, dtype=float)

    skip = max(range(len(loops)), key=lambda i: (len(loops[i]), -i))
    kept = [i for i in range(len(loops)) if i != skip]

    loop_of = np.full(mesh.n_vertices, -1, dtype=int)
    for i in kept:
        loop_of[loops[i]] = i

    F, FE, EF = mesh.F, mesh.FE, mesh.EF
    faces = np.arange(mesh.n_faces)
    rings: Dict[int, Dict[int, float]] = {i: {} for i in kept}
    for p in range(3):
        v = F[:, p]
        e = FE[:, (p + 2) % 3]
        sign = np.where(EF[e, 0] == faces, 1.0, -1.0)
        keep = (loop_of[v] >= 0) & (EF[e, 1] != -1)
        for f in np.flatnonzero(keep):
            ring = rings[int(loop_of[v[f]])]
            edge = int(e[f])
            ring[edge] = ring.get(edge, 0.0) + float(sign[f])

    defects = mesh.angle_defects()
    cycles = [{k: s for k, s in rings[i].items() if s != 0.0} for i in kept]
    curvatures = np.array([float(defects[loops[i]].sum()) for i in kept])
    logger.debug(
        "%d boundary loop(s); %d ring cycle(s) added.", len(loops), len(cycles)
    )
    return cycles, curvatures


def primal_spanning_tree(mesh: TriMesh) -> np.ndarray:
    """Return a boolean edge mask of a primal spanning forest.

    Boundary edges are preferred so that every boundary loop is contracted
    into the tree except for one edge.
    """
    n_verts = mesh.n_vertices
    in_tree = np.zeros(mesh.n_edges, dtype=bool)
    if mesh.n_edges == 0:
        return in_tree

    EV = mesh.EV
    lo = np.minimum(EV[:, 0], EV[:, 1])
    hi = np.maximum(EV[:, 0], EV[:, 1])
    weights = np.where((mesh.EF[:, 0] == -1) | (mesh.EF[:, 1] == -1), 1.0, 2.0)
    graph = sp.csr_matrix((weights, (lo, hi)), shape=(n_verts, n_verts))

    tree = minimum_spanning_tree(graph).tocoo()
    edge_of: Dict[Tuple[int, int], int] = {
        (int(a), int(b)): e for e, (a, b) in enumerate(zip(lo, hi))
    }
    for i, j in zip(tree.row, tree.col):
        key = (int(min(i, j)), int(max(i, j)))
        in_tree[edge_of[key]] = True
    return in_tree


def _dual_spanning_tree(
    mesh: TriMesh, blocked: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Breadth-first dual forest avoiding ``blocked`` edges.

    Returns ``(parent_face, parent_edge, in_cotree)``; roots have parent -1.
    """
    n_faces = mesh.n_faces
    parent_face = np.full(n_faces, -1, dtype=int)
    parent_edge = np.full(n_faces, -1, dtype=int)
    in_cotree = np.zeros(mesh.n_edges, dtype=bool)
    visited = np.zeros(n_faces, dtype=bool)

    for root in range(n_faces):
        if visited[root]:
            continue
        visited[root] = True
        queue = deque([root])
        while queue:
            f = queue.popleft()
            for e in mesh.FE[f]:
                if blocked[e] or mesh.is_boundary_edge(e):
                    continue
                f0, f1 = mesh.EF[e]
                g = f1 if f0 == f else f0
                if visited[g]:
                    continue
                visited[g] = True
                parent_face[g] = f
                parent_edge[g] = e
                in_cotree[e] = True
                queue.append(g)
    return parent_face, parent_edge, in_cotree


def _path_to_root(
    mesh: TriMesh, face: int, parent_face: np.ndarray, parent_edge: np.ndarray
) -> List[Tuple[int, float]]:
    """Signed dual edges walked from ``face`` up to its tree root."""
    path = []
    while parent_face[face] != -1:
        e = int(parent_edge[face])
        path.append((e, 1.0 if mesh.EF[e, 0] == face else -1.0))
        face = int(parent_face[face])
    return path


def homology_generators(mesh: TriMesh) -> List[Dict[int, float]]:
    """Return generator cycles as ``{edge: sign}`` dictionaries.

    Every interior edge outside both the primal tree and the dual cotree
    closes exactly one generator loop; on a closed surface of genus ``g``
    there are ``2g`` of them.
    """
    in_tree = primal_spanning_tree(mesh)
    parent_face, parent_edge, in_cotree = _dual_spanning_tree(mesh, in_tree)

    generators: List[Dict[int, float]] = []
    for e in mesh.inner_edges.tolist():
        if in_tree[e] or in_cotree[e]:
            continue
        f0, f1 = (int(x) for x in mesh.EF[e])
        loop: Dict[int, float] = {e: 1.0}
        for edge, sign in _path_to_root(mesh, f1, parent_face, parent_edge):
            loop[edge] = loop.get(edge, 0.0) + sign
        # Walking down from the root to f0 reverses f0's upward path.
        for edge, sign in _path_to_root(mesh, f0, parent_face, parent_edge):
            loop[edge] = loop.get(edge, 0.0) - sign
        generators.append({k: v for k, v in loop.items() if v != 0.0})

    logger.debug("Tree-cotree decomposition found %d generator(s).", len(generators))
    return generators


def dual_cycles(mesh: TriMesh, connection: Optional[np.ndarray] = None) -> DualCycles:
    """Assemble the full dual cycle basis and per-cycle curvature.

    ``connection`` (one unit complex number per edge) is needed for the
    tree-cotree generator curvatures; without it they are reported as zero.
    """
    rows, cols, vals, local_curv, local_to_cycle = vertex_cycles(mesh)
    n_local = int(local_curv.shape[0])

    rings, ring_curv = boundary_loop_cycles(mesh)
    generators = homology_generators(mesh)
    gen_curv = np.zeros(len(generators), dtype=float)
    if connection is not None:
        for i, loop in enumerate(generators):
            holonomy = sum(
                sign * float(np.angle(connection[edge])) for edge, sign in loop.items()
            )
            gen_curv[i] = float(np.angle(np.exp(1j * holonomy)))

    g_rows, g_cols, g_vals = [], [], []
    for i, loop in enumerate(rings + generators):
        for edge, sign in loop.items():
            g_rows.append(n_local + i)
            g_cols.append(edge)
            g_vals.append(sign)

    all_rows = np.concatenate([rows, np.asarray(g_rows, dtype=int)])
    all_cols = np.concatenate([cols, np.asarray(g_cols, dtype=int)])
    all_vals = np.concatenate([vals, np.asarray(g_vals, dtype=float)])
    n_cycles = n_local + len(rings) + len(generators)

    cycles = sp.csr_matrix(
        (all_vals, (all_rows, all_cols)), shape=(n_cycles, mesh.n_edges)
    )
    return DualCycles(
        cycles=cycles,
        cycle_curvatures=np.concatenate([local_curv, ring_curv, gen_curv]),
        local_to_cycle=local_to_cycle,
        n_local_cycles=n_local,
        n_boundary_cycles=len(rings),
    )
