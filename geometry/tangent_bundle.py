"""Face-based intrinsic tangent bundle.

Every face carries its own 2D tangent space spanned by the orthonormal pair
``(FBx, FBy)``. Tangent vectors are stored as complex numbers ``x + iy`` in
that basis. Neighbouring spaces are related through the *connection*: for a
dual edge ``e`` between faces ``f0 = EF[e, 0]`` and ``f1 = EF[e, 1]``, let
``ef`` and ``eg`` be the unit edge direction written in the frames of ``f0``
and ``f1``. Then

    connection[e] = eg / ef

rotates coordinates in the frame of ``f0`` into the frame of ``f1`` while
keeping the angle to the shared edge (discrete Levi-Civita transport).
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import scipy.sparse as sp

from core.exceptions import ShapeMismatchError
from core.parameters.global_parameters import GlobalParameters
from geometry.dual_cycles import DualCycles, dual_cycles
from geometry.entities import TriMesh

logger = logging.getLogger("directional_fields")


def compute_connection(mesh: TriMesh) -> np.ndarray:
    """Return one complex transport ratio per edge (NaN on boundary edges)."""
    connection = np.full(mesh.n_edges, np.nan + 0j, dtype=complex)
    inner = mesh.inner_edges
    if inner.size == 0:
        return connection

    EV, EF = mesh.EV[inner], mesh.EF[inner]
    edge_vecs = mesh.V[EV[:, 1]] - mesh.V[EV[:, 0]]
    edge_vecs = edge_vecs / np.linalg.norm(edge_vecs, axis=1)[:, None]

    f0, f1 = EF[:, 0], EF[:, 1]
    ef = np.einsum("ij,ij->i", edge_vecs, mesh.FBx[f0]) + 1j * np.einsum(
        "ij,ij->i", edge_vecs, mesh.FBy[f0]
    )
    eg = np.einsum("ij,ij->i", edge_vecs, mesh.FBx[f1]) + 1j * np.einsum(
        "ij,ij->i", edge_vecs, mesh.FBy[f1]
    )
    connection[inner] = eg / ef
    return connection


def harmonic_stiffness_weights(mesh: TriMesh, mass_weights: np.ndarray) -> np.ndarray:
    """Per-edge "harmonic" weights from [Brandt et al. 2020].

    ``3 * |e|^2 / (mass[f0] + mass[f0])``; boundary edges get zero.
    """
    weights = np.zeros(mesh.n_edges, dtype=float)
    inner = mesh.inner_edges
    if inner.size == 0:
        return weights
    EV = mesh.EV[inner]
    f0 = mesh.EF[inner, 0]
    length_sq = np.sum((mesh.V[EV[:, 0]] - mesh.V[EV[:, 1]]) ** 2, axis=1)
    # Both terms read face 0 of the edge, as in the published weighting code.
    weights[inner] = 3.0 * length_sq / (mass_weights[f0] + mass_weights[f0])
    return weights


class IntrinsicFaceTangentBundle:
    """Tangent spaces on faces, adjacency by dual edges, cycles around vertices."""

    def __init__(self, mesh: TriMesh, global_params: Optional[GlobalParameters] = None):
        self.mesh = mesh
        self.global_params = global_params or GlobalParameters()

        # adjacency relation is by dual edges
        self.adj_spaces = mesh.EF
        self.one_ring = mesh.FE
        self.sources = mesh.barycenters
        self.normals = mesh.face_normals
        self.cycle_sources = mesh.V
        self.cycle_normals = mesh.vertex_normals

        self.connection = compute_connection(mesh)
        self._check_connection()

        # mass are face areas
        self.mass_weights = mesh.face_areas.copy()
        self.stiffness_weights = harmonic_stiffness_weights(mesh, self.mass_weights)

        self.dual_cycles: DualCycles = dual_cycles(mesh, self.connection)

        logger.debug(
            "Tangent bundle: %d spaces, %d dual edges, %d cycles (%d generators).",
            self.n_spaces,
            mesh.n_edges,
            self.dual_cycles.n_cycles,
            self.dual_cycles.n_generators,
        )

    @property
    def n_spaces(self) -> int:
        return self.mesh.n_faces

    @property
    def cycles(self) -> sp.csr_matrix:
        return self.dual_cycles.cycles

    @property
    def cycle_curvatures(self) -> np.ndarray:
        return self.dual_cycles.cycle_curvatures

    @property
    def local_to_cycle(self) -> np.ndarray:
        return self.dual_cycles.local_to_cycle

    @property
    def inner_edges(self) -> np.ndarray:
        return self.mesh.inner_edges

    def _check_connection(self) -> None:
        inner = self.mesh.inner_edges
        if inner.size == 0:
            return
        tol = float(self.global_params.get("connection_tolerance", 1e-9))
        deviation = np.abs(np.abs(self.connection[inner]) - 1.0)
        if np.any(deviation > tol):
            logger.warning(
                "Connection is not a pure rotation on %d edge(s) (max |c|-1 = %.3e).",
                int(np.sum(deviation > tol)),
                float(deviation.max()),
            )

    def _resolve_spaces(self, tangent_spaces, n_rows: int) -> np.ndarray:
        spaces = np.asarray(
            tangent_spaces if tangent_spaces is not None else [], dtype=int
        ).reshape(-1)
        if spaces.size == 0:
            spaces = np.arange(self.n_spaces)
        if spaces.shape[0] != n_rows:
            raise ShapeMismatchError(
                f"Got {spaces.shape[0]} tangent spaces for {n_rows} vector rows.",
                expected=n_rows,
                actual=spaces.shape[0],
            )
        return spaces

    def project_to_intrinsic(self, tangent_spaces, ext_directionals) -> np.ndarray:
        """Project ambient vectors onto the bases of the given faces.

        ``ext_directionals`` has ``3N`` columns; the result has ``2N``. Any
        component along the face normal is dropped. An empty
        ``tangent_spaces`` means "all faces, in order".
        """
        ext = np.atleast_2d(np.asarray(ext_directionals, dtype=float))
        if ext.shape[1] % 3 != 0:
            raise ShapeMismatchError(
                f"Extrinsic rows need a multiple of 3 columns; got {ext.shape[1]}.",
                expected="3N",
                actual=ext.shape[1],
            )
        spaces = self._resolve_spaces(tangent_spaces, ext.shape[0])
        n = ext.shape[1] // 3
        vecs = ext.reshape(ext.shape[0], n, 3)
        bx = self.mesh.FBx[spaces][:, None, :]
        by = self.mesh.FBy[spaces][:, None, :]
        out = np.empty((ext.shape[0], n, 2), dtype=float)
        out[..., 0] = np.sum(vecs * bx, axis=2)
        out[..., 1] = np.sum(vecs * by, axis=2)
        return out.reshape(ext.shape[0], 2 * n)

    def project_to_extrinsic(self, tangent_spaces, int_directionals) -> np.ndarray:
        """Embed intrinsic ``2N``-column rows as ambient ``3N``-column rows."""
        intr = np.atleast_2d(np.asarray(int_directionals, dtype=float))
        if intr.shape[1] % 2 != 0:
            raise ShapeMismatchError(
                f"Intrinsic rows need an even number of columns; got {intr.shape[1]}.",
                expected="2N",
                actual=intr.shape[1],
            )
        spaces = self._resolve_spaces(tangent_spaces, intr.shape[0])
        n = intr.shape[1] // 2
        coords = intr.reshape(intr.shape[0], n, 2)
        bx = self.mesh.FBx[spaces][:, None, :]
        by = self.mesh.FBy[spaces][:, None, :]
        ext = coords[..., 0:1] * bx + coords[..., 1:2] * by
        return ext.reshape(intr.shape[0], 3 * n)

    def gradient_operator(self, N: int = 1) -> sp.csr_matrix:
        """Intrinsic per-face gradient of piecewise-linear vertex functions.

        Shape ``(2N * #F, N * #V)``; function slot ``j`` maps to vector slot
        ``j`` of every face.
        """
        mesh = self.mesh
        V, F = mesh.V, mesh.F
        rows, cols, vals = [], [], []
        for j in range(3):
            e = V[F[:, (j + 2) % 3]] - V[F[:, (j + 1) % 3]]
            scale = 1.0 / np.maximum(2.0 * mesh.face_areas, 1e-20)
            # rotating the opposite edge by 90 degrees inside the face
            gx = -np.einsum("ij,ij->i", e, mesh.FBy) * scale
            gy = np.einsum("ij,ij->i", e, mesh.FBx) * scale
            faces = np.arange(mesh.n_faces)
            rows.extend([2 * faces, 2 * faces + 1])
            cols.extend([F[:, j], F[:, j]])
            vals.extend([gx, gy])

        rows = np.concatenate(rows)
        cols = np.concatenate(cols)
        vals = np.concatenate(vals)

        if N == 1:
            return sp.csr_matrix(
                (vals, (rows, cols)), shape=(2 * mesh.n_faces, mesh.n_vertices)
            )

        face, comp = rows // 2, rows % 2
        n_rows, n_cols, n_vals = [], [], []
        for j in range(N):
            n_rows.append(2 * N * face + 2 * j + comp)
            n_cols.append(N * cols + j)
            n_vals.append(vals)
        return sp.csr_matrix(
            (np.concatenate(n_vals), (np.concatenate(n_rows), np.concatenate(n_cols))),
            shape=(2 * N * mesh.n_faces, N * mesh.n_vertices),
        )

    def curl_operator(self, N: int = 1, matching=None) -> sp.csr_matrix:
        """Discrete curl across inner edges.

        Row ``N*i + j`` measures ``<v_right - v_left, e>`` for inner edge
        ``i`` between vector slot ``j`` of the left face and slot
        ``(j + matching) mod N`` of the right face.
        """
        mesh = self.mesh
        inner = mesh.inner_edges
        if matching is None:
            matching = np.zeros(mesh.n_edges, dtype=int)
        matching = np.asarray(matching, dtype=int)

        EV, EF = mesh.EV[inner], mesh.EF[inner]
        e = mesh.V[EV[:, 1]] - mesh.V[EV[:, 0]]
        left, right = EF[:, 0], EF[:, 1]
        left_x = np.einsum("ij,ij->i", e, mesh.FBx[left])
        left_y = np.einsum("ij,ij->i", e, mesh.FBy[left])
        right_x = np.einsum("ij,ij->i", e, mesh.FBx[right])
        right_y = np.einsum("ij,ij->i", e, mesh.FBy[right])

        idx = np.arange(inner.size)
        rows, cols, vals = [], [], []
        for j in range(N):
            right_slot = (j + matching[inner]) % N
            row = N * idx + j
            rows.extend([row, row, row, row])
            cols.extend(
                [
                    2 * N * left + 2 * j,
                    2 * N * left + 2 * j + 1,
                    2 * N * right + 2 * right_slot,
                    2 * N * right + 2 * right_slot + 1,
                ]
            )
            vals.extend([-left_x, -left_y, right_x, right_y])

        return sp.csr_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(N * inner.size, 2 * N * mesh.n_faces),
        )
