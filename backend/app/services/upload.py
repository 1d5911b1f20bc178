"""GeoJSON upload parsing and feature table replacement.

This module turns an uploaded GeoJSON FeatureCollection into insertable
rows and hands them to the repository in fixed-size batches. The
repository performs the replacement inside a single transaction, so the
feature table is either untouched or fully replaced.

Features lacking a geometry or a ``properties.type`` label are skipped
silently. They are counted as scanned but not inserted.

Example:
    Replace the feature table from a staged upload:
        >>> from app.db import database
        >>> from app.services import upload
        >>> repo = database.InMemoryFeatureRepository()
        >>> result = upload.ingest_feature_collection(
        ...     pathlib.Path("landuse.geojson"), repo, batch_size=500
        ... )
        >>> result.inserted, result.skipped
        (2, 1)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from app.db import models as db_models

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterator, Sequence

    from app.db import database

logger = logging.getLogger(__name__)

INVALID_FORMAT_MESSAGE = "Invalid GeoJSON format"


class InvalidUploadError(ValueError):
    """Raised when an uploaded file is not a GeoJSON FeatureCollection."""


def load_feature_collection(path: pathlib.Path) -> list[Any]:
    """Read a staged upload and return its ``features`` array.

    Args:
        path: Location of the staged upload.

    Returns:
        The raw feature objects in file order.

    Raises:
        InvalidUploadError: If the file is not JSON, or is JSON without a
            FeatureCollection type and a list of features.
    """
    try:
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidUploadError(f"{INVALID_FORMAT_MESSAGE}: {exc}") from exc

    if (
        not isinstance(data, dict)
        or data.get("type") != "FeatureCollection"
        or not isinstance(data.get("features"), list)
    ):
        raise InvalidUploadError(INVALID_FORMAT_MESSAGE)

    return data["features"]


def to_row(feature: Any) -> db_models.FeatureRow | None:
    """Build an insertable row, or None if geometry or type is missing."""
    if not isinstance(feature, dict):
        return None
    geometry = feature.get("geometry")
    properties = feature.get("properties") or {}
    feature_type = properties.get("type") if isinstance(properties, dict) else None
    if geometry is None or not feature_type:
        return None
    return db_models.FeatureRow(geometry=geometry, type=str(feature_type))


def iter_row_batches(
    features: Sequence[Any],
    batch_size: int,
) -> Iterator[list[db_models.FeatureRow]]:
    """Yield the insertable rows of each consecutive batch of features.

    A batch whose features are all skipped yields an empty list; the
    repository issues no INSERT for it.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    for start in range(0, len(features), batch_size):
        batch = features[start:start + batch_size]
        rows = [row for row in map(to_row, batch) if row is not None]
        if len(rows) < len(batch):
            logger.debug(
                "Skipping %d features without geometry or type in batch at %d",
                len(batch) - len(rows),
                start,
            )
        yield rows


def ingest_feature_collection(
    path: pathlib.Path,
    repo: database.FeatureRepositoryProtocol,
    batch_size: int,
) -> db_models.UploadResult:
    """Replace every stored feature with the contents of an uploaded file.

    Validation happens before the repository is touched, so an invalid
    file never opens a transaction.

    Args:
        path: Staged upload containing a GeoJSON FeatureCollection.
        repo: Feature repository performing the transactional replacement.
        batch_size: Maximum number of features per INSERT statement.

    Returns:
        Counts of scanned and inserted features.

    Raises:
        InvalidUploadError: If the file is not a valid FeatureCollection.
        DatabaseError: If the replacement transaction fails.
    """
    features = load_feature_collection(path)
    inserted = repo.replace_all(iter_row_batches(features, batch_size))
    result = db_models.UploadResult(scanned=len(features), inserted=inserted)
    logger.info(
        "Replaced land-use features: %d inserted, %d skipped",
        result.inserted,
        result.skipped,
    )
    return result
