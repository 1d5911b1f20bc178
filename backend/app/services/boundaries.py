"""Static administrative boundary layers read from disk.

Each level in ``BOUNDARY_LEVELS`` maps to ``{boundary_dir}/{level}.geojson``.
The files are returned verbatim as parsed JSON; nothing is cached since
the files are small and may be swapped out between deploys.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import pathlib

    from app.db import models as db_models


class BoundaryNotFoundError(LookupError):
    """Raised when the file backing a boundary level is missing."""

    def __init__(self, level: str) -> None:
        super().__init__(f"{level} boundary not found")
        self.level = level


def boundary_path(
    boundary_dir: pathlib.Path,
    level: db_models.BoundaryLevel,
) -> pathlib.Path:
    return boundary_dir / f"{level}.geojson"


def read_boundary(
    boundary_dir: pathlib.Path,
    level: db_models.BoundaryLevel,
) -> Any:
    """Load one boundary layer.

    Args:
        boundary_dir: Directory holding the boundary GeoJSON files.
        level: Boundary level name.

    Returns:
        The decoded file contents.

    Raises:
        BoundaryNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    path = boundary_path(boundary_dir, level)
    if not path.is_file():
        raise BoundaryNotFoundError(level)
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)
