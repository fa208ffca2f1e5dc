"""
cars/store.py -- SQLAlchemy-backed persistence layer for car listings.

Uses SQLAlchemy Core (not ORM) so the dataclasses in cars/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change, not a rewrite.

Pattern: Repository + Data Mapper. CarStore is the repository; the
_row_to_car function is the mapper. Services never touch SQL directly.

Ownership: every read and write method takes owner_id and puts it in the
WHERE clause next to the record id. No method fetches or mutates a car by
id alone.

Tags live in their own table (one row per tag, ordered by position) so
search can match "any tag contains keyword" with an EXISTS subquery instead
of pattern-matching serialized JSON. Images are never searched and stay a
JSON array in a text column.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CarStore("sqlite:///carvault.db")
    car_id = store.create_car(Car(title="Civic", description="clean", owner_id=uid, tags=["sedan"]))
    cars = store.search_cars(uid, "SEDAN")
    store.close()
"""

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    or_,
    select,
)
from sqlalchemy.engine import Connection, Engine

from cars.models import Car, CarUpdate

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_cars = Table(
    "cars",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("owner_id", String(32), nullable=False, index=True),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=False),
    Column("images", Text, nullable=False, server_default="[]"),  # JSON array serialized as text
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_car_tags = Table(
    "car_tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("car_id", String(32), nullable=False, index=True),
    Column("position", Integer, nullable=False),
    Column("tag", Text, nullable=False),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _like_pattern(keyword: str) -> str:
    """Wrap keyword for a literal substring LIKE match.

    Backslash is the escape character, so it is escaped first, then the two
    LIKE wildcards. "50%" matches the text "50%", not "50 anything".
    """
    escaped = keyword.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _insert_tags(conn: Connection, car_id: str, tags: list[str]) -> None:
    if not tags:
        return
    conn.execute(
        _car_tags.insert(),
        [{"car_id": car_id, "position": i, "tag": tag} for i, tag in enumerate(tags)],
    )


def _load_tags(conn: Connection, car_ids: list[str]) -> dict[str, list[str]]:
    """Return {car_id: [tag, ...]} for the given cars in one query."""
    tags: dict[str, list[str]] = {car_id: [] for car_id in car_ids}
    if not car_ids:
        return tags
    rows = conn.execute(
        select(_car_tags.c.car_id, _car_tags.c.tag)
        .where(_car_tags.c.car_id.in_(car_ids))
        .order_by(_car_tags.c.car_id, _car_tags.c.position)
    ).fetchall()
    for row in rows:
        tags[row.car_id].append(row.tag)
    return tags


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _casefold(value):
    return value.casefold() if value is not None else None


def _on_sqlite_connect(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and register the casefold() SQL function.

    SQLite's own lower() folds ASCII only, so search compares casefold()
    of both sides instead.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.create_function("casefold", 1, _casefold, deterministic=True)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CarStore:
    def __init__(self, db_url: str) -> None:
        self._sqlite = db_url.startswith("sqlite")
        connect_args: dict = {}
        if self._sqlite:
            # SQLite requires check_same_thread=False when used from FastAPI's
            # thread pool, where one pooled connection may serve many threads.
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if self._sqlite:
            event.listen(self.engine, "connect", _on_sqlite_connect)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_car(self, car: Car) -> str:
        """Insert a car and its tags in one transaction and return the new ID."""
        car_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _cars.insert().values(
                    id=car_id,
                    owner_id=car.owner_id,
                    title=car.title,
                    description=car.description,
                    images=json.dumps(car.images),
                    created_at=now,
                    updated_at=now,
                )
            )
            _insert_tags(conn, car_id, car.tags)
            conn.commit()
        return car_id

    def update_car(self, car_id: str, owner_id: str, update: CarUpdate) -> Optional[Car]:
        """Apply the non-None fields of update to the car matching id AND owner.

        owner_id is only ever a filter here; it is not among the written
        columns. Tags are replaced wholesale when update.tags is not None.

        Returns the updated Car, or None if no car matched (nothing written).
        """
        values: dict = {"updated_at": _now_iso()}
        if update.title is not None:
            values["title"] = update.title
        if update.description is not None:
            values["description"] = update.description
        if update.images is not None:
            values["images"] = json.dumps(update.images)

        with self.engine.connect() as conn:
            result = conn.execute(
                _cars.update().where((_cars.c.id == car_id) & (_cars.c.owner_id == owner_id)).values(**values)
            )
            if result.rowcount == 0:
                conn.rollback()
                return None
            if update.tags is not None:
                conn.execute(_car_tags.delete().where(_car_tags.c.car_id == car_id))
                _insert_tags(conn, car_id, update.tags)
            conn.commit()
        return self.get_car(car_id, owner_id)

    def delete_car(self, car_id: str, owner_id: str) -> bool:
        """Hard-delete the car matching id AND owner, with its tags.

        Returns True if a car was deleted, False if none matched.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_cars.delete().where((_cars.c.id == car_id) & (_cars.c.owner_id == owner_id)))
            if result.rowcount > 0:
                conn.execute(_car_tags.delete().where(_car_tags.c.car_id == car_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_car(self, car_id: str, owner_id: str) -> Optional[Car]:
        """Fetch one car by id, scoped to owner.

        Returns None both when the id does not exist and when it belongs to
        someone else -- callers cannot tell the two apart.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                _cars.select().where((_cars.c.id == car_id) & (_cars.c.owner_id == owner_id))
            ).fetchone()
            if row is None:
                return None
            tags = _load_tags(conn, [row.id])
        return _row_to_car(row, tags[row.id])

    def list_cars(self, owner_id: str) -> list[Car]:
        """Return every car owned by owner_id in insertion order."""
        stmt = _cars.select().where(_cars.c.owner_id == owner_id)
        return self._fetch(stmt)

    def search_cars(self, owner_id: str, keyword: str) -> list[Car]:
        """Return owner's cars whose title, description or any tag contains keyword.

        Matching is a case-insensitive literal substring test (ILIKE with
        wildcards escaped). On SQLite both sides go through the casefold()
        function registered at connect time, so "ŠKODA" matches "Škoda".
        """
        pattern = _like_pattern(keyword)
        tag_match = (
            select(_car_tags.c.id)
            .where((_car_tags.c.car_id == _cars.c.id) & self._contains(_car_tags.c.tag, pattern))
            .exists()
        )
        stmt = _cars.select().where(
            (_cars.c.owner_id == owner_id)
            & or_(
                self._contains(_cars.c.title, pattern),
                self._contains(_cars.c.description, pattern),
                tag_match,
            )
        )
        return self._fetch(stmt)

    def _contains(self, column, pattern: str):
        if self._sqlite:
            return func.casefold(column).like(func.casefold(pattern), escape="\\")
        return column.ilike(pattern, escape="\\")

    def _fetch(self, stmt) -> list[Car]:
        stmt = stmt.order_by(_cars.c.created_at, _cars.c.id)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
            tags = _load_tags(conn, [r.id for r in rows])
        return [_row_to_car(r, tags[r.id]) for r in rows]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(select(_cars.c.id).limit(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern -- DB row -> domain dataclass)
# ---------------------------------------------------------------------------


def _row_to_car(row, tags: list[str]) -> Car:
    return Car(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title,
        description=row.description,
        tags=tags,
        images=json.loads(row.images) if row.images else [],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
