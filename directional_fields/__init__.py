"""Package utilities for directional-fields.

The library itself lives in the top-level packages `core/`, `geometry/`,
`fields/` and `runtime/`. This package only exposes the installed
distribution version.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("directional-fields")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
