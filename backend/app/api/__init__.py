"""API router subpackage for the land-use map backend.

Each module exposes its own APIRouter for composition in the application's
main FastAPI instance.

Submodules:
    - boundaries: Static local, district and province boundary layers.
    - features: Paged and filtered land-use features and area totals.
    - upload: Bulk replacement of the feature table from a GeoJSON upload.
    - dependencies: Shared dependency providers (feature repository).
"""
