"""Database helpers and repositories for land-use features."""

from __future__ import annotations

import contextlib
import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol

import psycopg2
import psycopg2.extensions
import psycopg2.extras
import psycopg2.pool
import pyproj
from psycopg2 import sql
from shapely import geometry as shapely_geometry
from shapely.geometry import polygon as shapely_polygon

from app.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from app.core import config

logger = logging.getLogger(__name__)

_GEOD = pyproj.Geod(ellps="WGS84")


class DatabaseError(RuntimeError):
    """Raised when the feature store fails to answer a query or transaction."""


class FeatureRepositoryProtocol(Protocol):
    """Protocol interface for querying and replacing land-use features.

    Implementations provide persistence for Feature records, supporting
    both in-memory (testing) and PostGIS (production) backends. Category
    matching is case-insensitive in every method.
    """

    def page(self, limit: int, offset: int) -> db_models.FeatureCollection: ...

    def filter_by_type(
        self,
        feature_type: str,
        limit: int,
        offset: int,
    ) -> db_models.FeatureCollection: ...

    def area_by_type(self, feature_type: str) -> db_models.AreaSummary: ...

    def replace_all(
        self,
        batches: Iterable[list[db_models.FeatureRow]],
    ) -> int: ...


def geodesic_area(geometry: db_models.GeoJSON | None) -> float:
    """Area of a GeoJSON geometry on the WGS84 ellipsoid in square meters.

    Each polygon part is oriented and measured independently so ring
    direction never cancels out areas. Points and lines measure zero.
    """
    if not geometry:
        return 0.0
    shape = shapely_geometry.shape(geometry)
    parts = getattr(shape, "geoms", [shape])
    return float(
        sum(
            abs(_GEOD.geometry_area_perimeter(shapely_polygon.orient(part))[0])
            for part in parts
            if part.geom_type == "Polygon"
        )
    )


class InMemoryFeatureRepository(FeatureRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Stores features in a list ordered by id. Data is lost when the process
    exits. Replacement is staged and swapped in only after every batch has
    been consumed, so a failing upload leaves the previous contents intact.
    """

    def __init__(
        self,
        rows: Iterable[db_models.FeatureRow] = (),
    ) -> None:
        self._features: list[db_models.Feature] = []
        self._next_id = 1
        self._lock = threading.Lock()
        if rows:
            self.replace_all([list(rows)])

    def _matching(self, feature_type: str) -> list[db_models.Feature]:
        wanted = feature_type.lower()
        return [
            feature
            for feature in self._features
            if feature.type is not None and feature.type.lower() == wanted
        ]

    def page(self, limit: int, offset: int) -> db_models.FeatureCollection:
        return db_models.FeatureCollection(
            self._features[offset:offset + limit]
        )

    def filter_by_type(
        self,
        feature_type: str,
        limit: int,
        offset: int,
    ) -> db_models.FeatureCollection:
        matching = self._matching(feature_type)
        return db_models.FeatureCollection(matching[offset:offset + limit])

    def area_by_type(self, feature_type: str) -> db_models.AreaSummary:
        matching = self._matching(feature_type)
        return db_models.AreaSummary(
            type=feature_type,
            total_area_m2=sum(geodesic_area(f.geometry) for f in matching),
            feature_count=len(matching),
        )

    def replace_all(
        self,
        batches: Iterable[list[db_models.FeatureRow]],
    ) -> int:
        with self._lock:
            next_id = self._next_id
            staged: list[db_models.Feature] = []
            for rows in batches:
                for row in rows:
                    staged.append(
                        db_models.Feature(
                            id=next_id,
                            geometry=row.geometry,
                            type=row.type,
                        )
                    )
                    next_id += 1
            self._features = staged
            self._next_id = next_id
        return len(staged)


class PostgresFeatureRepository(FeatureRepositoryProtocol):
    """PostgreSQL/PostGIS-backed repository for land-use features.

    Holds a thread-safe connection pool; each call borrows one connection
    and returns it on completion. Callers beyond the pool size wait for a
    free connection instead of failing. The pool, the PostGIS extension,
    the feature table and its indexes are created on first use, so an
    unreachable database surfaces as DatabaseError from the query that
    needed it.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS {table} (
      id SERIAL PRIMARY KEY,
      geom geometry(Geometry, 4326),
      type TEXT
    );
    """

    INSERT_TEMPLATE = "(ST_SetSRID(ST_GeomFromGeoJSON(%s), {srid}), %s)"

    def __init__(
        self,
        settings: config.Settings,
        pool: psycopg2.pool.AbstractConnectionPool | None = None,
    ) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL,
                pool sizing and the feature table name.
            pool: Pre-built connection pool; one is created from settings
                when omitted.
        """
        self.settings = settings
        self._table = sql.Identifier(settings.feature_table)
        self._pool = pool
        self._schema_ready = False
        self._init_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(settings.db_pool_max_size)

    def _get_pool(self) -> psycopg2.pool.AbstractConnectionPool:
        """Create the pool and schema once, retrying after a failure.

        Raises:
            DatabaseError: If the database cannot be reached or the schema
                cannot be created.
        """
        with self._init_lock:
            if self._pool is None:
                try:
                    self._pool = psycopg2.pool.ThreadedConnectionPool(
                        self.settings.db_pool_min_size,
                        self.settings.db_pool_max_size,
                        self.settings.database_url,
                    )
                except psycopg2.Error as exc:
                    raise DatabaseError(str(exc).strip()) from exc
            if not self._schema_ready:
                self._ensure_schema(self._pool)
                self._schema_ready = True
            return self._pool

    @contextlib.contextmanager
    def _borrow(
        self,
        pool: psycopg2.pool.AbstractConnectionPool,
    ) -> Iterator[psycopg2.extensions.connection]:
        """Hold one pool slot and connection for the duration of the block."""
        with self._slots:
            try:
                conn = pool.getconn()
            except psycopg2.Error as exc:
                raise DatabaseError(str(exc).strip()) from exc
            try:
                yield conn
            finally:
                pool.putconn(conn)

    @contextlib.contextmanager
    def _connection(self) -> Iterator[psycopg2.extensions.connection]:
        """Borrow a pooled connection for the duration of the block."""
        with self._borrow(self._get_pool()) as conn:
            yield conn

    def _ensure_schema(self, pool: psycopg2.pool.AbstractConnectionPool) -> None:
        """Ensure PostGIS extension, feature table and indexes exist."""
        table = self.settings.feature_table
        statements = [
            sql.SQL("CREATE EXTENSION IF NOT EXISTS postgis;"),
            sql.SQL(self.CREATE_TABLE_SQL).format(table=self._table),
            sql.SQL(
                "CREATE INDEX IF NOT EXISTS {name} ON {table} USING GIST (geom);"
            ).format(
                name=sql.Identifier(f"{table}_geom_idx"),
                table=self._table,
            ),
            sql.SQL(
                "CREATE INDEX IF NOT EXISTS {name} ON {table} (lower(type));"
            ).format(
                name=sql.Identifier(f"{table}_type_idx"),
                table=self._table,
            ),
        ]
        with self._borrow(pool) as conn:
            try:
                with conn, conn.cursor() as cur:
                    for statement in statements:
                        cur.execute(statement)
            except psycopg2.Error as exc:
                raise DatabaseError(str(exc).strip()) from exc

    def _fetch(
        self,
        query: sql.Composable,
        params: tuple[Any, ...],
    ) -> list[tuple[Any, ...]]:
        """Run a read-only query in its own short transaction."""
        with self._connection() as conn:
            try:
                with conn, conn.cursor() as cur:
                    cur.execute(query, params)
                    return list(cur.fetchall())
            except psycopg2.Error as exc:
                raise DatabaseError(str(exc).strip()) from exc

    def _select_features(self, where: sql.Composable) -> sql.Composed:
        return sql.SQL(
            "SELECT id, ST_AsGeoJSON(geom)::json, type FROM {table} {where} "
            "ORDER BY id OFFSET %s LIMIT %s"
        ).format(table=self._table, where=where)

    def page(self, limit: int, offset: int) -> db_models.FeatureCollection:
        rows = self._fetch(self._select_features(sql.SQL("")), (offset, limit))
        return self._collection(rows)

    def filter_by_type(
        self,
        feature_type: str,
        limit: int,
        offset: int,
    ) -> db_models.FeatureCollection:
        rows = self._fetch(
            self._select_features(sql.SQL("WHERE lower(type) = lower(%s)")),
            (feature_type, offset, limit),
        )
        return self._collection(rows)

    def area_by_type(self, feature_type: str) -> db_models.AreaSummary:
        query = sql.SQL(
            "SELECT COUNT(*), SUM(ST_Area(geom::geography)) FROM {table} "
            "WHERE lower(type) = lower(%s)"
        ).format(table=self._table)
        rows = self._fetch(query, (feature_type,))
        count, area = rows[0] if rows else (0, None)
        return db_models.AreaSummary(
            type=feature_type,
            total_area_m2=float(area or 0),
            feature_count=int(count),
        )

    def replace_all(
        self,
        batches: Iterable[list[db_models.FeatureRow]],
    ) -> int:
        """Delete every feature and insert the given batches atomically.

        Each non-empty batch becomes a single multi-row INSERT. Empty batches
        issue no statement. Any failure rolls the whole transaction back so
        the table keeps its previous contents.

        Args:
            batches: Row batches in insertion order.

        Returns:
            Number of rows inserted.

        Raises:
            DatabaseError: If any statement or the commit fails.
        """
        delete = sql.SQL("DELETE FROM {table}").format(table=self._table)
        insert = sql.SQL("INSERT INTO {table} (geom, type) VALUES %s").format(
            table=self._table
        )
        template = self.INSERT_TEMPLATE.format(srid=db_models.SRID)
        inserted = 0
        with self._connection() as conn:
            try:
                with conn.cursor() as cur:
                    cur.execute(delete)
                    for rows in batches:
                        if not rows:
                            continue
                        psycopg2.extras.execute_values(
                            cur,
                            insert,
                            [(json.dumps(row.geometry), row.type) for row in rows],
                            template=template,
                            page_size=len(rows),
                        )
                        inserted += len(rows)
                conn.commit()
            except Exception as exc:
                self._rollback(conn)
                raise DatabaseError(str(exc).strip() or repr(exc)) from exc
        return inserted

    @staticmethod
    def _rollback(conn: psycopg2.extensions.connection) -> None:
        """Roll back, logging instead of raising if that fails too."""
        try:
            conn.rollback()
        except psycopg2.Error:
            logger.exception("Rollback of feature replacement failed")

    @staticmethod
    def _collection(
        rows: Iterable[tuple[Any, ...]],
    ) -> db_models.FeatureCollection:
        """Convert (id, geometry, type) rows to a FeatureCollection."""
        return db_models.FeatureCollection(
            [
                db_models.Feature(id=int(row[0]), geometry=row[1], type=row[2])
                for row in rows
            ]
        )


_repositories: dict[str, PostgresFeatureRepository] = {}
_repositories_lock = threading.Lock()


def get_feature_repository(
    settings: config.Settings,
) -> FeatureRepositoryProtocol:
    """Return the shared PostGIS repository for the configured database.

    One repository, and therefore one connection pool, exists per database
    URL for the lifetime of the process.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresFeatureRepository instance for production use.
    """
    with _repositories_lock:
        repo = _repositories.get(settings.database_url)
        if repo is None:
            repo = PostgresFeatureRepository(settings)
            _repositories[settings.database_url] = repo
        return repo
