"""Data models for land-use features and their GeoJSON envelopes.

Features are owned by the database; these dataclasses are the explicit
shape handed between repositories and the API layer, so column naming
never leaks into the wire format. Serialization to GeoJSON happens in
``to_geojson``/``to_json`` only.

Example:
    Wrapping a page of features for the API:
        >>> from app.db.models import Feature, FeatureCollection
        >>> feature = Feature(
        ...     id=1,
        ...     geometry={"type": "Polygon", "coordinates": [...]},
        ...     type="Forest",
        ... )
        >>> FeatureCollection([feature]).to_geojson()["type"]
        'FeatureCollection'
"""

from __future__ import annotations

import dataclasses
from typing import Any, Literal

GeoJSON = dict[str, Any]
BoundaryLevel = Literal["local", "district", "province"]

BOUNDARY_LEVELS: tuple[BoundaryLevel, ...] = ("local", "district", "province")
SRID = 4326
SQUARE_METERS_PER_HECTARE = 10_000


@dataclasses.dataclass(frozen=True)
class Feature:
    """A single land-use record as stored in the feature table.

    Attributes:
        id: Server-assigned sequential identifier.
        geometry: GeoJSON geometry object in EPSG:4326.
        type: Free-text land-use category label.
    """

    id: int
    geometry: GeoJSON | None
    type: str | None

    def to_geojson(self) -> GeoJSON:
        """Render as a GeoJSON Feature with non-geometry columns as properties."""
        return {
            "type": "Feature",
            "geometry": self.geometry,
            "properties": {"id": self.id, "type": self.type},
        }


@dataclasses.dataclass(frozen=True)
class FeatureCollection:
    features: list[Feature] = dataclasses.field(default_factory=list)

    def __len__(self) -> int:
        return len(self.features)

    def to_geojson(self) -> GeoJSON:
        return {
            "type": "FeatureCollection",
            "features": [feature.to_geojson() for feature in self.features],
        }


@dataclasses.dataclass(frozen=True)
class AreaSummary:
    """Aggregate area of every feature matching a category.

    Attributes:
        type: Category name exactly as requested.
        total_area_m2: Sum of geodesic areas in square meters.
        feature_count: Number of matching features.
    """

    type: str
    total_area_m2: float
    feature_count: int

    @property
    def hectares(self) -> float:
        return self.total_area_m2 / SQUARE_METERS_PER_HECTARE

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "totalAreaSquareMeters": self.total_area_m2,
            "totalAreaHectares": self.hectares,
            "featureCount": self.feature_count,
        }


@dataclasses.dataclass(frozen=True)
class FeatureRow:
    """One insertable row: a GeoJSON geometry and its category label."""

    geometry: GeoJSON
    type: str


@dataclasses.dataclass(frozen=True)
class UploadResult:
    scanned: int
    inserted: int

    @property
    def skipped(self) -> int:
        return self.scanned - self.inserted
