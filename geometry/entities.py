# entities.py

import logging
from typing import List, Optional

import numpy as np

from core.exceptions import ShapeMismatchError, TopologyInconsistencyError
from geometry.triangle_ops import (
    triangle_corner_angles,
    triangle_local_bases,
    triangle_normals_and_areas,
    vertex_unit_normals_from_triangles,
)

logger = logging.getLogger("directional_fields")


class TriMesh:
    """Indexed triangle mesh with edge topology and per-face frames.

    Edge topology conventions:

    - ``EV[e]`` holds the two endpoint vertices of edge ``e``.
    - ``EF[e, 0]`` is the face that traverses the edge from ``EV[e, 0]`` to
      ``EV[e, 1]``; ``EF[e, 1]`` is the face on the other side, or ``-1`` if
      the edge lies on the boundary.
    - ``FE[f, k]`` is the edge running from ``F[f, k]`` to ``F[f, (k+1) % 3]``.

    Per-face frames follow the first face edge: ``FBx`` is the unit vector
    along ``v1 - v0``, ``FBy = n x FBx``.
    """

    def __init__(self, vertices, faces):
        V = np.asarray(vertices, dtype=float)
        F = np.asarray(faces, dtype=int)
        if V.ndim != 2 or V.shape[1] != 3:
            raise ShapeMismatchError(
                f"Vertices must have shape (n, 3); got {V.shape}.",
                expected=(None, 3),
                actual=V.shape,
            )
        if F.ndim != 2 or F.shape[1] != 3:
            raise ShapeMismatchError(
                f"Faces must have shape (m, 3); got {F.shape}.",
                expected=(None, 3),
                actual=F.shape,
            )
        if F.size and (F.min() < 0 or F.max() >= len(V)):
            raise TopologyInconsistencyError(
                "Face table references a vertex index outside the vertex array."
            )

        self.V = V
        self.F = F

        self._boundary_loops: Optional[List[List[int]]] = None
        self._angle_sums: Optional[np.ndarray] = None

        self.build_edge_topology()
        self.build_geometry()

    @property
    def n_vertices(self) -> int:
        return int(self.V.shape[0])

    @property
    def n_faces(self) -> int:
        return int(self.F.shape[0])

    @property
    def n_edges(self) -> int:
        return int(self.EV.shape[0])

    def build_edge_topology(self) -> None:
        """Build ``EV``, ``EF`` and ``FE`` from the face table."""
        F = self.F
        n_faces = F.shape[0]

        for f in range(n_faces):
            if len(set(F[f].tolist())) != 3:
                raise TopologyInconsistencyError(
                    f"Face {f} repeats a vertex: {F[f].tolist()}.", face_index=f
                )

        src = F.reshape(-1)
        dst = np.roll(F, -1, axis=1).reshape(-1)
        keys = np.sort(np.column_stack([src, dst]), axis=1)
        if keys.size == 0:
            self.EV = np.zeros((0, 2), dtype=int)
            self.EF = np.zeros((0, 2), dtype=int)
            self.FE = np.zeros((0, 3), dtype=int)
            self.inner_edges = np.zeros(0, dtype=int)
            self.boundary_edges = np.zeros(0, dtype=int)
            return

        _, inverse, counts = np.unique(
            keys, axis=0, return_inverse=True, return_counts=True
        )
        inverse = np.asarray(inverse).reshape(-1)

        bad = np.flatnonzero(counts > 2)
        if bad.size:
            raise TopologyInconsistencyError(
                f"Edge {int(bad[0])} has {int(counts[bad[0]])} incident faces "
                "(non-manifold).",
                edge_index=int(bad[0]),
            )

        n_edges = counts.shape[0]
        EV = np.full((n_edges, 2), -1, dtype=int)
        EF = np.full((n_edges, 2), -1, dtype=int)

        for h in range(src.shape[0]):
            e = int(inverse[h])
            f = h // 3
            a = int(src[h])
            b = int(dst[h])
            if EF[e, 0] == -1:
                EV[e, 0] = a
                EV[e, 1] = b
                EF[e, 0] = f
            elif EV[e, 0] == a and EV[e, 1] == b:
                raise TopologyInconsistencyError(
                    f"Faces {int(EF[e, 0])} and {f} traverse edge {e} in the "
                    "same direction (inconsistent orientation).",
                    edge_index=e,
                    face_index=f,
                )
            else:
                EF[e, 1] = f

        self.EV = EV
        self.EF = EF
        self.FE = inverse.reshape(n_faces, 3)

        interior = (EF[:, 0] != -1) & (EF[:, 1] != -1)
        self.inner_edges = np.flatnonzero(interior)
        self.boundary_edges = np.flatnonzero(~interior)

        logger.debug(
            "Edge topology: %d edges (%d inner, %d boundary).",
            n_edges,
            self.inner_edges.size,
            self.boundary_edges.size,
        )

    def build_geometry(self) -> None:
        """Compute normals, areas, barycenters and face frames."""
        V, F = self.V, self.F
        raw_normals, areas = triangle_normals_and_areas(V, F)
        if areas.size and np.any(areas < 1e-15):
            logger.warning(
                "Mesh has %d degenerate face(s) with near-zero area.",
                int(np.sum(areas < 1e-15)),
            )
        self.face_areas = areas
        self.FBx, self.FBy, self.face_normals = triangle_local_bases(V, F)
        self.barycenters = V[F].mean(axis=1) if F.size else np.zeros((0, 3))
        self.vertex_normals = vertex_unit_normals_from_triangles(
            n_verts=self.n_vertices, tri_rows=F, tri_normals=raw_normals
        )

    def is_boundary_edge(self, edge: int) -> bool:
        return bool(self.EF[edge, 0] == -1 or self.EF[edge, 1] == -1)

    def boundary_vertex_mask(self) -> np.ndarray:
        mask = np.zeros(self.n_vertices, dtype=bool)
        if self.boundary_edges.size:
            mask[self.EV[self.boundary_edges].reshape(-1)] = True
        return mask

    def boundary_loops(self) -> List[List[int]]:
        """Return ordered boundary vertex loops.

        Loops follow the orientation of their adjacent faces and start at
        their smallest vertex index; loops are sorted by that start vertex.
        """
        if self._boundary_loops is not None:
            return self._boundary_loops

        next_edges: dict[int, List[int]] = {}
        for e in self.boundary_edges.tolist():
            next_edges.setdefault(int(self.EV[e, 0]), []).append(e)
        for vid, eids in next_edges.items():
            eids.sort()
            if len(eids) != 1:
                logger.warning(
                    "Boundary vertex %d starts %d boundary edges (expected 1).",
                    vid,
                    len(eids),
                )

        remaining = set(self.boundary_edges.tolist())
        loops: List[List[int]] = []
        while remaining:
            start_eid = min(remaining, key=lambda e: (int(self.EV[e, 0]), e))
            remaining.remove(start_eid)
            start_vid = int(self.EV[start_eid, 0])
            current_vid = int(self.EV[start_eid, 1])
            loop = [start_vid]

            while current_vid != start_vid:
                loop.append(current_vid)
                next_eid = None
                for eid in next_edges.get(current_vid, []):
                    if eid in remaining:
                        next_eid = eid
                        break
                if next_eid is None:
                    logger.warning(
                        "Boundary loop ended prematurely at vertex %d.", current_vid
                    )
                    break
                remaining.remove(next_eid)
                current_vid = int(self.EV[next_eid, 1])

            start = loop.index(min(loop))
            loops.append(loop[start:] + loop[:start])

        loops.sort(key=lambda lp: lp[0])
        self._boundary_loops = loops
        return loops

    def vertex_angle_sums(self) -> np.ndarray:
        """Return per-vertex sums of incident triangle corner angles."""
        if self._angle_sums is None:
            sums = np.zeros(self.n_vertices, dtype=float)
            if self.n_faces:
                angles = triangle_corner_angles(self.V, self.F)
                for k in range(3):
                    np.add.at(sums, self.F[:, k], angles[:, k])
            self._angle_sums = sums
        return self._angle_sums

    def angle_defects(self) -> np.ndarray:
        """Discrete Gaussian curvature per vertex.

        ``2pi - angle_sum`` at interior vertices, ``pi - angle_sum`` (the
        discrete geodesic curvature) at boundary vertices.
        """
        sums = self.vertex_angle_sums()
        defects = 2.0 * np.pi - sums
        boundary = self.boundary_vertex_mask()
        defects[boundary] = np.pi - sums[boundary]
        return defects

    def euler_characteristic(self) -> int:
        referenced = np.unique(self.F) if self.F.size else np.zeros(0, dtype=int)
        return int(referenced.size - self.n_edges + self.n_faces)

    def __repr__(self):
        return (
            f"TriMesh(vertices={self.n_vertices}, edges={self.n_edges}, "
            f"faces={self.n_faces})"
        )
