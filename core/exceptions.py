"""Custom exception types for directional field processing."""

from __future__ import annotations

from typing import Any, Sequence


class DirectionalFieldError(Exception):
    """Base class for domain-specific errors."""


class ShapeMismatchError(DirectionalFieldError, ValueError):
    """Raised when an input array does not fit the field's degree or type."""

    def __init__(
        self,
        message: str,
        *,
        expected: Any | None = None,
        actual: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class FieldTypeError(DirectionalFieldError, TypeError):
    """Raised when an operation needs a different field representation."""


class InputFormatError(DirectionalFieldError, ValueError):
    """Raised when a driver input file lacks a required entry or format."""


class TopologyInconsistencyError(DirectionalFieldError):
    """Raised when edge/face adjacency does not describe a clean 2-manifold."""

    def __init__(
        self,
        message: str,
        *,
        edge_index: int | None = None,
        face_index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.edge_index = edge_index
        self.face_index = face_index


class DisconnectedRegionError(DirectionalFieldError):
    """Raised when faces cannot be reached from the traversal seed."""

    def __init__(
        self,
        message: str,
        *,
        unreached_faces: Sequence[int] = (),
        n_components: int | None = None,
    ) -> None:
        super().__init__(message)
        self.unreached_faces = list(unreached_faces)
        self.n_components = n_components


__all__ = [
    "DirectionalFieldError",
    "ShapeMismatchError",
    "FieldTypeError",
    "InputFormatError",
    "TopologyInconsistencyError",
    "DisconnectedRegionError",
]
