"""Database interface and repository abstractions.

This package holds the land-use feature models and the repositories that
read and replace them. Handlers depend on FeatureRepositoryProtocol only,
so production (PostGIS) and testing (in-memory) backends are
interchangeable.

Example:
    Use in a service or FastAPI dependency:
        >>> from app.db import database
        >>> repo = database.get_feature_repository(settings)
        >>> repo.page(limit=100, offset=0)
"""
