"""Bulk GeoJSON upload endpoint.

Uploading replaces the entire land-use feature table. The file is staged
to disk, parsed, validated and inserted in batches inside one database
transaction, then the staged copy is removed whatever the outcome.

Example:
    Replace every feature from a local file:
        >>> with open("landuse.geojson", "rb") as fh:
        ...     response = client.post(
        ...         "/api/upload",
        ...         files={"geojson": ("landuse.geojson", fh)},
        ...     )
        >>> response.json()["message"]
        'GeoJSON uploaded and database updated successfully! Inserted 2 features.'
"""

from __future__ import annotations

import logging
import pathlib
import tempfile
from typing import Any

import fastapi

from app.api import dependencies
from app.core import config
from app.db import database
from app.services import upload as upload_service

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api", tags=["upload"])

_CHUNK_SIZE = 1024 * 1024


def _save_upload(
    file: fastapi.UploadFile,
    storage_dir: pathlib.Path,
    max_size: int,
) -> pathlib.Path:
    """Persist an uploaded file to disk with size validation.

    The file gets a unique name inside the storage directory; the client
    supplied filename is never used as a path.

    Args:
        file: FastAPI UploadFile object containing the file data.
        storage_dir: Directory where the file should be saved.
        max_size: Maximum allowed file size in bytes.

    Returns:
        Path to the saved file.

    Raises:
        HTTPException: If the file exceeds the maximum size limit. The
            partial file is removed first, as it is when reading or
            writing fails.
    """
    storage_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=storage_dir,
        prefix="upload_",
        suffix=".geojson",
    ) as tmp:
        target_path = pathlib.Path(tmp.name)
        size = 0
        try:
            for chunk in iter(lambda: file.file.read(_CHUNK_SIZE), b""):
                size += len(chunk)
                if size > max_size:
                    break

                tmp.write(chunk)
        except BaseException:
            tmp.close()
            target_path.unlink(missing_ok=True)
            raise

    if size > max_size:
        target_path.unlink(missing_ok=True)
        raise fastapi.HTTPException(
            status_code=413,
            detail="Upload too large",
        )

    return target_path


@router.post("/upload")
def upload_geojson(
    geojson: fastapi.UploadFile | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.FeatureRepositoryProtocol = fastapi.Depends(dependencies.get_repo),  # noqa: B008
) -> dict[str, Any]:
    """Replace all land-use features with an uploaded FeatureCollection.

    Features missing a geometry or a ``properties.type`` label are skipped.
    The reported count is the number of rows actually inserted.

    Args:
        geojson: Uploaded GeoJSON file from the ``geojson`` form field.
        settings: Application settings (injected via FastAPI Depends).
        repo: Feature repository (injected via FastAPI Depends).

    Returns:
        Dictionary with a success message and inserted/skipped counts.

    Raises:
        HTTPException: 400 if no file was sent or it is not a
            FeatureCollection, 413 if it is too large, 500 if the database
            replacement fails (the table then keeps its previous contents).
    """
    if geojson is None:
        raise fastapi.HTTPException(status_code=400, detail="No file uploaded")

    staged_path = _save_upload(
        geojson,
        settings.storage_dir,
        settings.max_upload_size_bytes,
    )
    try:
        result = upload_service.ingest_feature_collection(
            staged_path,
            repo,
            settings.upload_batch_size,
        )
    except upload_service.InvalidUploadError as exc:
        logger.warning("Rejected upload %r: %s", geojson.filename, exc)
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) from exc
    except database.DatabaseError as exc:
        logger.error("Upload error: %s", exc)
        raise fastapi.HTTPException(
            status_code=500,
            detail=str(exc) or "Failed to upload and save GeoJSON",
        ) from exc
    finally:
        staged_path.unlink(missing_ok=True)

    return {
        "message": (
            "GeoJSON uploaded and database updated successfully! "
            f"Inserted {result.inserted} features."
        ),
        "inserted": result.inserted,
        "skipped": result.skipped,
    }
