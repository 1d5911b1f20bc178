"""FastAPI dependencies shared by the API routers."""

import fastapi

from app.core import config
from app.db import database


def get_repo(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> database.FeatureRepositoryProtocol:
    """Resolve the feature repository dependency.

    Args:
        settings: Application settings (injected via FastAPI Depends).

    Returns:
        FeatureRepositoryProtocol implementation
            (PostgresFeatureRepository in production).
    """
    return database.get_feature_repository(settings)
