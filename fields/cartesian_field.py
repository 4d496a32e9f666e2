"""Directional fields in cartesian coordinates over a tangent bundle."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import numpy as np

from core.exceptions import FieldTypeError, ShapeMismatchError
from fields.representations import (
    polyvector_to_raw,
    power_to_raw,
    raw_to_polyvector,
    raw_to_power,
)
from geometry.tangent_bundle import IntrinsicFaceTangentBundle

logger = logging.getLogger("directional_fields")


class FieldType(Enum):
    RAW = "raw"
    POWER = "power"
    POLYVECTOR = "polyvector"


class CartesianField:
    """An N-directional field with one row of vectors per tangent space.

    The intrinsic field (``2N`` reals per space, or 2 for power fields) is
    the single source of truth. The extrinsic field (``3N`` reals per space)
    is its embedding through each face basis; it is recomputed on first
    access after any change to the intrinsic field.

    ``matching[e]`` (``-1`` on boundary edges) means vector ``k`` of
    ``EF[e, 0]`` corresponds to vector ``(k + matching[e]) mod N`` of
    ``EF[e, 1]``. ``effort[e]`` is the residual rotation across the edge.
    Both are ``None`` until a matching is assigned.
    """

    def __init__(
        self,
        tangent_bundle: IntrinsicFaceTangentBundle,
        field_type: FieldType | str = FieldType.RAW,
        N: int = 1,
    ):
        self.init_field(tangent_bundle, field_type, N)

    def init_field(
        self,
        tangent_bundle: IntrinsicFaceTangentBundle,
        field_type: FieldType | str,
        N: int,
    ) -> None:
        if int(N) < 1:
            raise ShapeMismatchError(
                f"Field degree must be at least 1; got {N}.", expected=">=1", actual=N
            )
        self.tb = tangent_bundle
        self.field_type = FieldType(field_type)
        self.N = int(N)

        self.adj_spaces = tangent_bundle.adj_spaces
        self.one_ring = tangent_bundle.one_ring
        self.sources = tangent_bundle.sources
        self.normals = tangent_bundle.normals
        self.cycle_sources = tangent_bundle.cycle_sources
        self.cycle_normals = tangent_bundle.cycle_normals

        self._int_field = np.zeros((tangent_bundle.n_spaces, self.int_columns))
        self._ext_field: Optional[np.ndarray] = None

        self.matching: Optional[np.ndarray] = None
        self.effort: Optional[np.ndarray] = None
        self.sing_elements = np.zeros(0, dtype=int)
        self.sing_indices = np.zeros(0, dtype=int)

    @property
    def mesh(self):
        return self.tb.mesh

    @property
    def int_columns(self) -> int:
        return 2 if self.field_type is FieldType.POWER else 2 * self.N

    @property
    def ext_columns(self) -> int:
        return 3 * self.int_columns // 2

    @property
    def int_field(self) -> np.ndarray:
        return self._int_field

    @property
    def ext_field(self) -> np.ndarray:
        if self._ext_field is None:
            self._ext_field = self.tb.project_to_extrinsic(None, self._int_field)
        return self._ext_field

    def _invalidate_derived(self) -> None:
        self._ext_field = None
        self.matching = None
        self.effort = None
        self.sing_elements = np.zeros(0, dtype=int)
        self.sing_indices = np.zeros(0, dtype=int)

    def _check_rows(self, n_rows: int) -> None:
        if n_rows != self.tb.n_spaces:
            raise ShapeMismatchError(
                f"Field has {n_rows} rows but the bundle has {self.tb.n_spaces} "
                "tangent spaces.",
                expected=self.tb.n_spaces,
                actual=n_rows,
            )

    def set_intrinsic_field(self, int_field) -> None:
        """Store the intrinsic field and invalidate everything derived from it.

        Real input has ``2N`` columns (2 for power fields); complex input has
        ``N`` columns (1 for power fields) and is split into real/imaginary
        column pairs.
        """
        values = np.asarray(int_field)
        if values.ndim != 2:
            raise ShapeMismatchError(
                f"Intrinsic field must be 2-dimensional; got {values.ndim} dims.",
                expected=2,
                actual=values.ndim,
            )
        if np.iscomplexobj(values):
            expected = self.int_columns // 2
            if values.shape[1] != expected:
                raise ShapeMismatchError(
                    f"{self.field_type.value} field of degree {self.N} needs "
                    f"{expected} complex columns; got {values.shape[1]}.",
                    expected=expected,
                    actual=values.shape[1],
                )
            split = np.empty((values.shape[0], 2 * expected), dtype=float)
            split[:, 0::2] = values.real
            split[:, 1::2] = values.imag
            values = split
        elif values.shape[1] != self.int_columns:
            raise ShapeMismatchError(
                f"{self.field_type.value} field of degree {self.N} needs "
                f"{self.int_columns} columns; got {values.shape[1]}.",
                expected=self.int_columns,
                actual=values.shape[1],
            )
        self._check_rows(values.shape[0])
        self._int_field = np.array(values, dtype=float)
        self._invalidate_derived()

    def set_extrinsic_field(self, ext_field) -> None:
        """Project ambient vectors into the face bases and store them.

        The projection drops any component along the face normal, so
        ``ext_field`` reads back as the tangential part of the input.
        """
        values = np.asarray(ext_field, dtype=float)
        if values.ndim != 2 or values.shape[1] != self.ext_columns:
            raise ShapeMismatchError(
                f"{self.field_type.value} field of degree {self.N} needs "
                f"{self.ext_columns} extrinsic columns; got shape {values.shape}.",
                expected=self.ext_columns,
                actual=values.shape,
            )
        self._check_rows(values.shape[0])
        self._int_field = self.tb.project_to_intrinsic(None, values)
        self._invalidate_derived()

    def project_to_intrinsic(self, tangent_spaces, ext_directionals) -> np.ndarray:
        return self.tb.project_to_intrinsic(tangent_spaces, ext_directionals)

    def complex_field(self) -> np.ndarray:
        """Return the intrinsic field as complex numbers, one column per vector."""
        return self._int_field[:, 0::2] + 1j * self._int_field[:, 1::2]

    def set_matching(self, matching, effort=None) -> None:
        matching = np.asarray(matching, dtype=int).reshape(-1)
        n_edges = self.adj_spaces.shape[0]
        if matching.shape[0] != n_edges:
            raise ShapeMismatchError(
                f"Matching needs one entry per dual edge ({n_edges}); "
                f"got {matching.shape[0]}.",
                expected=n_edges,
                actual=matching.shape[0],
            )
        if effort is not None:
            effort = np.asarray(effort, dtype=float).reshape(-1)
            if effort.shape[0] != n_edges:
                raise ShapeMismatchError(
                    f"Effort needs one entry per dual edge ({n_edges}); "
                    f"got {effort.shape[0]}.",
                    expected=n_edges,
                    actual=effort.shape[0],
                )
        self.matching = matching
        self.effort = effort

    def set_singularities(self, sing_vertices, sing_indices) -> None:
        """Store singular vertices, dropping zero indices and boundary vertices.

        The stored list is ordered by ascending vertex index.
        """
        sing_vertices = np.asarray(sing_vertices, dtype=int).reshape(-1)
        sing_indices = np.asarray(sing_indices, dtype=int).reshape(-1)
        if sing_vertices.shape != sing_indices.shape:
            raise ShapeMismatchError(
                f"Got {sing_vertices.size} singular vertices but "
                f"{sing_indices.size} indices.",
                expected=sing_vertices.size,
                actual=sing_indices.size,
            )

        vertex_indices = np.zeros(self.mesh.n_vertices, dtype=int)
        vertex_indices[sing_vertices] = sing_indices

        # boundary vertices cannot carry singularities
        dropped = 0
        for loop in self.mesh.boundary_loops():
            dropped += int(np.count_nonzero(vertex_indices[loop]))
            vertex_indices[loop] = 0
        if dropped:
            logger.debug("Dropped %d singularities on boundary vertices.", dropped)

        self.sing_elements = np.flatnonzero(vertex_indices)
        self.sing_indices = vertex_indices[self.sing_elements]

    def copy(self) -> "CartesianField":
        other = CartesianField(self.tb, self.field_type, self.N)
        other._int_field = self._int_field.copy()
        if self.matching is not None:
            other.matching = self.matching.copy()
        if self.effort is not None:
            other.effort = self.effort.copy()
        other.sing_elements = self.sing_elements.copy()
        other.sing_indices = self.sing_indices.copy()
        return other

    def to_raw(self, sign_symmetry: bool = False) -> "CartesianField":
        """Return an equivalent raw field (a copy when already raw)."""
        if self.field_type is FieldType.RAW:
            return self.copy()
        values = self.complex_field()
        if self.field_type is FieldType.POWER:
            raw = power_to_raw(values, self.N)
        else:
            raw = polyvector_to_raw(values, self.N, sign_symmetry=sign_symmetry)
        out = CartesianField(self.tb, FieldType.RAW, self.N)
        out.set_intrinsic_field(raw)
        return out

    def to_power(self) -> "CartesianField":
        self.require_raw("to_power")
        out = CartesianField(self.tb, FieldType.POWER, self.N)
        out.set_intrinsic_field(raw_to_power(self.complex_field(), self.N))
        return out

    def to_polyvector(self) -> "CartesianField":
        self.require_raw("to_polyvector")
        out = CartesianField(self.tb, FieldType.POLYVECTOR, self.N)
        out.set_intrinsic_field(raw_to_polyvector(self.complex_field()))
        return out

    def require_raw(self, operation: str) -> None:
        if self.field_type is not FieldType.RAW:
            raise FieldTypeError(
                f"{operation} needs a raw field; got a {self.field_type.value} "
                "field (convert with to_raw() first)."
            )

    def __repr__(self):
        return (
            f"CartesianField(type={self.field_type.value}, N={self.N}, "
            f"spaces={self.tb.n_spaces})"
        )
