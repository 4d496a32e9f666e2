"""Conversions between directional field representations.

All functions work on complex arrays with one row per tangent space:

- *raw*: ``(F, N)`` explicit vectors, counter-clockwise ordered.
- *power*: ``(F, 1)`` holding ``u = z^N`` of an N-RoSy.
- *poly-vector*: ``(F, N)`` coefficients ``c_0 .. c_{N-1}`` of the monic
  polynomial ``z^N + c_{N-1} z^{N-1} + ... + c_0`` whose roots are the
  field vectors.
"""

from __future__ import annotations

import numpy as np


def raw_to_power(raw: np.ndarray, N: int) -> np.ndarray:
    """Return the power field ``z_0^N`` of the first vector of each space."""
    raw = np.asarray(raw, dtype=complex)
    return (raw[:, 0] ** N)[:, None]


def power_to_raw(power: np.ndarray, N: int) -> np.ndarray:
    """Return the N roots of each power vector, starting at the principal root."""
    power = np.asarray(power, dtype=complex).reshape(-1)
    magnitude = np.abs(power) ** (1.0 / N)
    base = np.angle(power) / N
    turns = 2.0 * np.pi * np.arange(N) / N
    return magnitude[:, None] * np.exp(1j * (base[:, None] + turns[None, :]))


def raw_to_polyvector(raw: np.ndarray) -> np.ndarray:
    """Return polynomial coefficients (lowest degree first) of each raw row."""
    raw = np.asarray(raw, dtype=complex)
    n_rows, N = raw.shape
    coeffs = np.empty((n_rows, N), dtype=complex)
    for f in range(n_rows):
        # np.poly lists [1, a_1, ..., a_N] highest degree first
        coeffs[f] = np.poly(raw[f])[1:][::-1]
    return coeffs


def polyvector_to_raw(
    polyvector: np.ndarray, N: int, sign_symmetry: bool = False
) -> np.ndarray:
    """Return the roots of each poly-vector, sorted by argument.

    The roots are found as eigenvalues of the companion matrix. With
    ``sign_symmetry`` the field is assumed to be invariant under ``z -> -z``
    (only even coefficients are used) and the second half of the roots is
    the negation of the first.
    """
    pv = np.asarray(polyvector, dtype=complex)
    n_rows = pv.shape[0]
    raw = np.empty((n_rows, N), dtype=complex)

    for f in range(n_rows):
        if not sign_symmetry:
            M = np.zeros((N, N), dtype=complex)
            for i in range(1, N):
                M[i, i - 1] = 1.0
            M[:, N - 1] = -pv[f, :N]
            roots = np.linalg.eigvals(M)
            raw[f] = roots[np.argsort(np.angle(roots), kind="stable")]
        else:
            half = N // 2
            M = np.zeros((half, half), dtype=complex)
            for i in range(1, half):
                M[i, i - 1] = 1.0
            M[:, half - 1] = -pv[f, 0:N:2]
            roots = np.sqrt(np.linalg.eigvals(M))
            roots = roots[np.argsort(np.angle(roots), kind="stable")]
            raw[f, :half] = roots
            raw[f, half:] = -roots
    return raw
