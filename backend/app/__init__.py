"""App package initializer for the land-use map backend.

This package serves administrative boundary layers and land-use features
stored in PostGIS to the map frontend, and lets an administrator replace
the whole feature set by uploading a GeoJSON FeatureCollection.

- Boundary layers (local, district, province) are static GeoJSON files
- Land-use features are paged, filtered by category and aggregated by
  geodesic area straight from PostGIS
- Uploads replace the feature table in one transaction, in batches
- Repositories are injected through FastAPI dependencies so tests can
  swap in an in-memory store

See README and module sub-docstrings for details on architecture and usage.
"""
