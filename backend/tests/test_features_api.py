"""API endpoint tests for land-use queries and area aggregation.

The feature repository is always injected using dependency overrides per
project testability standards: an InMemoryFeatureRepository stands in for
PostGIS, and a failing repository exercises the 500 paths.

See Also:
    - backend/app/api/features.py for API implementation,
    - backend/app/db/database.py for repository protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import psycopg2
import psycopg2.pool
import pytest
from fastapi import testclient

from app import main
from app.api import dependencies
from app.core import config
from app.db import database
from app.db import models as db_models

if TYPE_CHECKING:
    import pathlib

SQUARE = {
    "type": "Polygon",
    "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]],
}
SMALL_SQUARE = {
    "type": "Polygon",
    "coordinates": [[[10, 10], [10.5, 10], [10.5, 10.5], [10, 10.5], [10, 10]]],
}


class FailingRepository(database.InMemoryFeatureRepository):
    def page(self, limit: int, offset: int) -> db_models.FeatureCollection:
        raise database.DatabaseError("relation \"landuse\" does not exist")

    def filter_by_type(
        self,
        feature_type: str,
        limit: int,
        offset: int,
    ) -> db_models.FeatureCollection:
        raise database.DatabaseError("connection refused")

    def area_by_type(self, feature_type: str) -> db_models.AreaSummary:
        raise database.DatabaseError("connection refused")


def _repo(*types: str) -> database.InMemoryFeatureRepository:
    return database.InMemoryFeatureRepository(
        db_models.FeatureRow(geometry=SQUARE, type=t) for t in types
    )


def _client(
    tmp_path: pathlib.Path,
    repo: database.FeatureRepositoryProtocol,
    **overrides: object,
) -> testclient.TestClient:
    settings = config.Settings(
        storage_dir=tmp_path / "uploads",
        boundary_dir=tmp_path / "data",
        frontend_dir=tmp_path / "frontend",
        **overrides,  # type: ignore[arg-type]
    )
    app = main.create_app(settings)
    app.dependency_overrides[dependencies.get_repo] = lambda: repo
    return testclient.TestClient(app)


def _ids(payload: dict) -> list[int]:
    return [f["properties"]["id"] for f in payload["features"]]


def test_land_use_defaults(tmp_path: pathlib.Path) -> None:
    """Test the default page returns every feature as a FeatureCollection."""
    client = _client(tmp_path, _repo("Forest", "Water", "Residential"))
    response = client.get("/api/land_use")
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "FeatureCollection"
    assert _ids(body) == [1, 2, 3]
    assert body["features"][0] == {
        "type": "Feature",
        "geometry": SQUARE,
        "properties": {"id": 1, "type": "Forest"},
    }


def test_land_use_limit_and_offset(tmp_path: pathlib.Path) -> None:
    """Test at most limit features after skipping offset, ordered by id."""
    client = _client(tmp_path, _repo("a", "b", "c", "d", "e"))
    assert _ids(client.get("/api/land_use?limit=2&offset=1").json()) == [2, 3]
    assert _ids(client.get("/api/land_use?limit=10&offset=4").json()) == [5]
    assert _ids(client.get("/api/land_use?offset=5").json()) == []


def test_land_use_default_page_size(tmp_path: pathlib.Path) -> None:
    """Test that the configured default applies to missing or bad limits."""
    client = _client(tmp_path, _repo("a", "b", "c", "d"), default_page_limit=3)
    for query in ("", "?limit=abc", "?limit=0", "?limit=-4"):
        assert _ids(client.get(f"/api/land_use{query}").json()) == [1, 2, 3]
    assert _ids(client.get("/api/land_use?offset=xyz").json()) == [1, 2, 3]
    assert _ids(client.get("/api/land_use?offset=-2").json()) == [1, 2, 3]


def test_land_use_empty_table(tmp_path: pathlib.Path) -> None:
    client = _client(tmp_path, database.InMemoryFeatureRepository())
    response = client.get("/api/land_use")
    assert response.status_code == 200
    assert response.json() == {"type": "FeatureCollection", "features": []}


def test_filter_case_insensitive(tmp_path: pathlib.Path) -> None:
    """Test Residential, residential and RESIDENTIAL give identical results."""
    client = _client(
        tmp_path,
        _repo("Residential", "Forest", "residential", "Water"),
    )
    bodies = [
        client.get(f"/api/filter/{name}").json()
        for name in ("Residential", "residential", "RESIDENTIAL")
    ]
    assert _ids(bodies[0]) == [1, 3]
    assert bodies[0] == bodies[1] == bodies[2]


def test_filter_paging(tmp_path: pathlib.Path) -> None:
    client = _client(tmp_path, _repo("x", "y", "x", "x"))
    assert _ids(client.get("/api/filter/x?limit=1&offset=1").json()) == [3]


def test_filter_not_found(tmp_path: pathlib.Path) -> None:
    """Test an empty result answers 404 naming the type."""
    client = _client(tmp_path, _repo("Forest"))
    response = client.get("/api/filter/Wetland")
    assert response.status_code == 404
    assert response.json() == {"error": "No features found with type 'Wetland'"}

    past_end = client.get("/api/filter/forest?offset=1")
    assert past_end.status_code == 404


def test_area_for_two_forest_polygons(tmp_path: pathlib.Path) -> None:
    """Test area totals for two Forest polygons of known area."""
    repo = database.InMemoryFeatureRepository(
        [
            db_models.FeatureRow(geometry=SQUARE, type="Forest"),
            db_models.FeatureRow(geometry=SMALL_SQUARE, type="Forest"),
            db_models.FeatureRow(geometry=SQUARE, type="Water"),
        ]
    )
    client = _client(tmp_path, repo)
    response = client.get("/api/area/forest")
    assert response.status_code == 200
    body = response.json()
    expected = database.geodesic_area(SQUARE) + database.geodesic_area(SMALL_SQUARE)
    assert body["type"] == "forest"
    assert body["featureCount"] == 2
    assert body["totalAreaSquareMeters"] == pytest.approx(expected)
    assert body["totalAreaSquareMeters"] == pytest.approx(1.2309e10 * 1.24, rel=2e-2)
    assert body["totalAreaHectares"] == body["totalAreaSquareMeters"] / 10000


def test_area_not_found(tmp_path: pathlib.Path) -> None:
    client = _client(tmp_path, _repo("Forest"))
    response = client.get("/api/area/desert")
    assert response.status_code == 404
    assert response.json() == {"error": "No features found with type 'desert'"}


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("/api/land_use", "Database error fetching land use"),
        ("/api/filter/forest", "Database error filtering land use"),
        ("/api/area/forest", "Database error calculating area"),
    ],
)
def test_database_errors(
    tmp_path: pathlib.Path,
    path: str,
    message: str,
) -> None:
    """Test database failures answer 500 with a JSON error."""
    client = _client(tmp_path, FailingRepository())
    response = client.get(path)
    assert response.status_code == 500
    assert response.json() == {"error": message}


def test_land_use_limit_reads_leading_digits(tmp_path: pathlib.Path) -> None:
    """Test limit and offset use the leading integer of the query value."""
    client = _client(tmp_path, _repo("a", "b", "c", "d"))
    assert _ids(client.get("/api/land_use?limit=1.5").json()) == [1]
    assert _ids(client.get("/api/land_use?limit=2abc").json()) == [1, 2]
    assert _ids(client.get("/api/land_use?limit=%202&offset=1.9").json()) == [2, 3]


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("/api/land_use", "Database error fetching land use"),
        ("/api/filter/forest", "Database error filtering land use"),
        ("/api/area/forest", "Database error calculating area"),
    ],
)
def test_unreachable_database_is_json_error(
    tmp_path: pathlib.Path,
    monkeypatch: pytest.MonkeyPatch,
    path: str,
    message: str,
) -> None:
    """Test a database that refuses connections answers the JSON 500."""

    def refuse(*args: object) -> None:
        raise psycopg2.OperationalError("could not connect to server")

    monkeypatch.setattr(psycopg2.pool, "ThreadedConnectionPool", refuse)
    monkeypatch.setattr(database, "_repositories", {})
    settings = config.Settings(
        storage_dir=tmp_path / "uploads",
        boundary_dir=tmp_path / "data",
        frontend_dir=tmp_path / "frontend",
    )
    client = testclient.TestClient(main.create_app(settings))

    response = client.get(path)
    assert response.status_code == 500
    assert response.json() == {"error": message}


def test_exhausted_pool_is_json_error(tmp_path: pathlib.Path) -> None:
    """Test a pool with no connection to give answers the JSON 500."""

    class ExhaustedPool:
        def getconn(self) -> None:
            raise psycopg2.pool.PoolError("connection pool exhausted")

        def putconn(self, conn: object) -> None:
            return None

    repo = database.PostgresFeatureRepository(
        config.Settings(),
        pool=ExhaustedPool(),  # type: ignore[arg-type]
    )
    client = _client(tmp_path, repo)
    response = client.get("/api/area/forest")
    assert response.status_code == 500
    assert response.json() == {"error": "Database error calculating area"}
