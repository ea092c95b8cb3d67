"""SQLite-backed persistent store.

Resources, current statuses and check history live in three tables with the
full record kept as JSON. Check history grows until ``cleanup_old_checks``
prunes it. Read caching is layered on top by ``CachedStore``.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from resource_health.domain.models import (
    ResourceDescriptor,
    ResourceHealthCheck,
    ResourceHealthStatus,
    utc_now_iso,
)
from resource_health.stores.base import CheckPage, HealthStore, StatusFilters, StoreError, page_bounds

logger = logging.getLogger(__name__)
logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS resources (
        id          TEXT PRIMARY KEY,
        name        TEXT NOT NULL DEFAULT '',
        type        TEXT NOT NULL,
        subtype     TEXT,
        enabled     INTEGER NOT NULL DEFAULT 1,
        owner       TEXT,
        env         TEXT,
        criticality TEXT,
        tags        TEXT NOT NULL DEFAULT '[]',
        data        TEXT NOT NULL,
        updated_at  TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS health_status (
        resource_id          TEXT PRIMARY KEY,
        resource_type        TEXT NOT NULL,
        resource_subtype     TEXT,
        current_status       TEXT NOT NULL,
        consecutive_failures INTEGER NOT NULL DEFAULT 0,
        data                 TEXT NOT NULL,
        updated_at           TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS health_checks (
        id             TEXT PRIMARY KEY,
        resource_id    TEXT NOT NULL,
        executed_at    TEXT NOT NULL,
        execution_type TEXT NOT NULL,
        final_status   TEXT NOT NULL,
        duration_ms    INTEGER NOT NULL,
        data           TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_checks_resource
        ON health_checks (resource_id, executed_at DESC);
"""


def database_path(url: str) -> str:
    """Accept a bare path, ``:memory:``, or a ``sqlite:///`` URL."""
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            return url[len(prefix):] or ":memory:"
    return url


class SQLiteStore(HealthStore):
    def __init__(self, db_path: Path | str) -> None:
        self._db_path = database_path(str(db_path))
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._init_db()
        logger.info("SQLiteStore ready at %s", self._db_path)

    # ── Connection ────────────────────────────────────────────────────────

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        with self._guard("init") as conn:
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _guard(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Serialize access; wrap database failures in ``StoreError``."""
        with self._lock:
            try:
                yield self._get_conn()
            except sqlite3.Error as e:
                if self._conn is not None:
                    try:
                        self._conn.rollback()
                    except sqlite3.Error:
                        self._conn = None
                logger.error("SQLite %s failed: %s", operation, e)
                raise StoreError(f"{operation} failed: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    # ── Resources ─────────────────────────────────────────────────────────

    @staticmethod
    def _resource_params(res: ResourceDescriptor) -> tuple[Any, ...]:
        return (
            res.id, res.name, res.type.value, res.subtype, int(res.enabled),
            res.owner, res.env, res.criticality, json.dumps(res.tags),
            res.model_dump_json(), utc_now_iso(),
        )

    _UPSERT_RESOURCE = (
        "INSERT INTO resources "
        "(id, name, type, subtype, enabled, owner, env, criticality, tags, data, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
        "ON CONFLICT(id) DO UPDATE SET "
        "name = excluded.name, type = excluded.type, subtype = excluded.subtype, "
        "enabled = excluded.enabled, owner = excluded.owner, env = excluded.env, "
        "criticality = excluded.criticality, tags = excluded.tags, "
        "data = excluded.data, updated_at = excluded.updated_at"
    )

    def set_resources(self, resources: list[ResourceDescriptor]) -> None:
        with self._guard("set_resources") as conn:
            conn.execute("DELETE FROM resources")
            conn.executemany(self._UPSERT_RESOURCE, [self._resource_params(r) for r in resources])
            conn.commit()

    def list_resources(self) -> list[ResourceDescriptor]:
        with self._guard("list_resources") as conn:
            rows = conn.execute("SELECT data FROM resources ORDER BY name, id").fetchall()
        return [ResourceDescriptor.model_validate_json(r["data"]) for r in rows]

    def upsert_resource(self, resource: ResourceDescriptor) -> None:
        with self._guard("upsert_resource") as conn:
            conn.execute(self._UPSERT_RESOURCE, self._resource_params(resource))
            conn.commit()

    def get_resource(self, resource_id: str) -> ResourceDescriptor | None:
        with self._guard("get_resource") as conn:
            row = conn.execute("SELECT data FROM resources WHERE id = ?", (resource_id,)).fetchone()
        return ResourceDescriptor.model_validate_json(row["data"]) if row else None

    def remove_resource(self, resource_id: str) -> None:
        with self._guard("remove_resource") as conn:
            conn.execute("DELETE FROM resources WHERE id = ?", (resource_id,))
            conn.execute("DELETE FROM health_status WHERE resource_id = ?", (resource_id,))
            conn.execute("DELETE FROM health_checks WHERE resource_id = ?", (resource_id,))
            conn.commit()

    # ── Status ────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_status(row: sqlite3.Row) -> ResourceHealthStatus:
        st = ResourceHealthStatus.model_validate_json(row["data"])
        return st.model_copy(update={
            "consecutive_failures": row["consecutive_failures"],
            "updated_at": row["updated_at"],
        })

    def upsert_status(self, status: ResourceHealthStatus) -> None:
        with self._guard("upsert_status") as conn:
            conn.execute(
                "INSERT INTO health_status "
                "(resource_id, resource_type, resource_subtype, current_status, "
                "consecutive_failures, data, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(resource_id) DO UPDATE SET "
                "resource_type = excluded.resource_type, "
                "resource_subtype = excluded.resource_subtype, "
                "current_status = excluded.current_status, "
                "consecutive_failures = excluded.consecutive_failures, "
                "data = excluded.data, updated_at = excluded.updated_at",
                (
                    status.resource_id, status.resource_type.value, status.resource_subtype,
                    status.current_status.value, status.consecutive_failures,
                    status.model_dump_json(), utc_now_iso(),
                ),
            )
            conn.commit()

    def get_status(self, resource_id: str) -> ResourceHealthStatus | None:
        with self._guard("get_status") as conn:
            row = conn.execute(
                "SELECT * FROM health_status WHERE resource_id = ?", (resource_id,),
            ).fetchone()
        return self._row_to_status(row) if row else None

    def list_status(self, filters: StatusFilters | None = None) -> list[ResourceHealthStatus]:
        f = filters or StatusFilters()
        clauses: list[str] = []
        params: list[Any] = []

        if f.type:
            clauses.append("hs.resource_type = ?")
            params.append(f.type)
        if f.subtype:
            clauses.append("hs.resource_subtype = ?")
            params.append(f.subtype)
        if f.status_value():
            clauses.append("hs.current_status = ?")
            params.append(f.status_value())
        if f.tag:
            clauses.append("EXISTS (SELECT 1 FROM json_each(r.tags) WHERE json_each.value = ?)")
            params.append(f.tag)
        if f.owner:
            clauses.append("r.owner = ?")
            params.append(f.owner)
        if f.env:
            clauses.append("r.env = ?")
            params.append(f.env)

        sql = "SELECT hs.* FROM health_status hs LEFT JOIN resources r ON r.id = hs.resource_id"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        # Most recently checked first; never-checked last
        sql += (
            " ORDER BY json_extract(hs.data, '$.last_check_at') IS NULL,"
            " json_extract(hs.data, '$.last_check_at') DESC, hs.resource_id"
        )

        with self._guard("list_status") as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_status(r) for r in rows]

    def increment_failures(self, resource_id: str) -> None:
        with self._guard("increment_failures") as conn:
            conn.execute(
                "UPDATE health_status SET consecutive_failures = consecutive_failures + 1, "
                "updated_at = ? WHERE resource_id = ?",
                (utc_now_iso(), resource_id),
            )
            conn.commit()

    def reset_failures(self, resource_id: str) -> None:
        with self._guard("reset_failures") as conn:
            conn.execute(
                "UPDATE health_status SET consecutive_failures = 0, updated_at = ? "
                "WHERE resource_id = ?",
                (utc_now_iso(), resource_id),
            )
            conn.commit()

    # ── Checks ────────────────────────────────────────────────────────────

    def add_check(self, check: ResourceHealthCheck) -> None:
        with self._guard("add_check") as conn:
            conn.execute(
                "INSERT INTO health_checks "
                "(id, resource_id, executed_at, execution_type, final_status, duration_ms, data) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    check.id, check.resource_id, check.executed_at,
                    check.execution_type.value, check.final_status.value,
                    check.duration_ms, check.model_dump_json(),
                ),
            )
            conn.commit()

    def list_checks(self, resource_id: str, limit: int = 20, offset: int = 0) -> CheckPage:
        limit, offset = page_bounds(limit, offset)
        with self._guard("list_checks") as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM health_checks WHERE resource_id = ?", (resource_id,),
            ).fetchone()[0]
            rows = conn.execute(
                "SELECT data FROM health_checks WHERE resource_id = ? "
                "ORDER BY executed_at DESC, rowid DESC LIMIT ? OFFSET ?",
                (resource_id, limit, offset),
            ).fetchall()
        return CheckPage(
            items=[ResourceHealthCheck.model_validate_json(r["data"]) for r in rows],
            total=total,
        )

    def get_check(self, check_id: str) -> ResourceHealthCheck | None:
        with self._guard("get_check") as conn:
            row = conn.execute("SELECT data FROM health_checks WHERE id = ?", (check_id,)).fetchone()
        return ResourceHealthCheck.model_validate_json(row["data"]) if row else None

    def cleanup_old_checks(self, days: int = 30) -> int:
        """Remove check records older than N days."""
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()
        with self._guard("cleanup_old_checks") as conn:
            cursor = conn.execute("DELETE FROM health_checks WHERE executed_at < ?", (cutoff,))
            conn.commit()
        return cursor.rowcount
