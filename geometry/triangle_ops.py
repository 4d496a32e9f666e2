"""Vectorized triangle geometry helpers used by ``geometry.entities``."""

from __future__ import annotations

import numpy as np


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Compute cross products for arrays of 3D vectors."""
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]
    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


def triangle_normals_and_areas(
    positions: np.ndarray, tri_rows: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Return unnormalized triangle normals and triangle areas."""
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]
    normals = _fast_cross(v1 - v0, v2 - v0)
    areas = 0.5 * np.linalg.norm(normals, axis=1)
    return normals, areas


def vertex_unit_normals_from_triangles(
    *,
    n_verts: int,
    tri_rows: np.ndarray,
    tri_normals: np.ndarray,
    eps: float = 1e-12,
) -> np.ndarray:
    """Accumulate triangle normals to vertices and normalize to unit length."""
    normals = np.zeros((n_verts, 3), dtype=float)
    if tri_rows.size == 0:
        return normals
    np.add.at(normals, tri_rows[:, 0], tri_normals)
    np.add.at(normals, tri_rows[:, 1], tri_normals)
    np.add.at(normals, tri_rows[:, 2], tri_normals)
    lens = np.linalg.norm(normals, axis=1)
    mask = lens >= eps
    normals[mask] /= lens[mask][:, None]
    return normals


def triangle_local_bases(
    positions: np.ndarray, tri_rows: np.ndarray, eps: float = 1e-15
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return per-triangle orthonormal frames ``(bx, by, n)``.

    ``bx`` follows the first triangle edge ``v1 - v0``, ``n`` is the unit
    normal and ``by = n x bx`` completes a right-handed frame.
    """
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]

    bx = v1 - v0
    bx_len = np.maximum(np.linalg.norm(bx, axis=1), eps)
    bx = bx / bx_len[:, None]

    n = _fast_cross(v1 - v0, v2 - v0)
    n_len = np.maximum(np.linalg.norm(n, axis=1), eps)
    n = n / n_len[:, None]

    by = _fast_cross(n, bx)
    return bx, by, n


def triangle_corner_angles(positions: np.ndarray, tri_rows: np.ndarray) -> np.ndarray:
    """Return the interior angle at each triangle corner, shape ``(F, 3)``."""
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]

    a = np.linalg.norm(v2 - v1, axis=1)
    b = np.linalg.norm(v0 - v2, axis=1)
    c = np.linalg.norm(v1 - v0, axis=1)

    eps = 1e-15
    a = np.maximum(a, eps)
    b = np.maximum(b, eps)
    c = np.maximum(c, eps)

    cos0 = np.clip((b * b + c * c - a * a) / (2.0 * b * c), -1.0, 1.0)
    cos1 = np.clip((c * c + a * a - b * b) / (2.0 * c * a), -1.0, 1.0)
    cos2 = np.clip((a * a + b * b - c * c) / (2.0 * a * b), -1.0, 1.0)

    return np.column_stack([np.arccos(cos0), np.arccos(cos1), np.arccos(cos2)])
