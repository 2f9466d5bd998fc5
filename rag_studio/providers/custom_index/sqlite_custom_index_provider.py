"""SQLite-backed custom index provider.

Persists user-defined index definitions to a local SQLite database at
``data/custom_indexes.db``.  Uses ``aiosqlite`` for async I/O.  The
``UNIQUE(owner_id, slug)`` constraint is the single source of truth for
slug uniqueness.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from rag_studio.interfaces.custom_index_provider import ICustomIndexProvider
from rag_studio.models.index import (
    CreateIndexParams,
    CustomIndex,
    IconName,
    IndexStatus,
    SearchWeights,
    UpdateIndexParams,
)
from rag_studio.utils.errors import DocumentStoreError, SlugConflictError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/custom_indexes.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS custom_rag_indexes (
    id              TEXT    PRIMARY KEY,
    owner_id        TEXT    NOT NULL,
    slug            TEXT    NOT NULL,
    name            TEXT    NOT NULL,
    description     TEXT,
    icon            TEXT    NOT NULL DEFAULT 'Database',
    category        TEXT    NOT NULL DEFAULT 'custom',
    schema_config   TEXT    NOT NULL DEFAULT '{}',
    embedding_model TEXT    NOT NULL DEFAULT 'text-embedding-3-small',
    vector_weight   REAL    NOT NULL DEFAULT 0.7,
    text_weight     REAL    NOT NULL DEFAULT 0.3,
    status          TEXT    NOT NULL DEFAULT 'active',
    document_count  INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL,
    UNIQUE(owner_id, slug)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_custom_indexes_owner ON custom_rag_indexes(owner_id);",
]

_INSERT_SQL = """\
INSERT INTO custom_rag_indexes
    (id, owner_id, slug, name, description, icon, schema_config, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_COLUMNS = (
    "id, owner_id, slug, name, description, icon, category, schema_config, "
    "embedding_model, vector_weight, text_weight, status, document_count, "
    "created_at, updated_at"
)


def _utcnow_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()  # noqa: UP017


class SQLiteCustomIndexProvider(ICustomIndexProvider):
    """SQLite-backed custom index persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("custom_index_db_initialized", path=str(self._db_path))

    async def create_index(self, owner_id: str, params: CreateIndexParams) -> CustomIndex:
        index_pk = str(uuid.uuid4())
        now = _utcnow_iso()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        index_pk,
                        owner_id,
                        params.slug,
                        params.name,
                        params.description or None,
                        params.icon.value,
                        json.dumps(params.schema_config, ensure_ascii=False),
                        now,
                        now,
                    ),
                )
                await db.commit()
        except aiosqlite.IntegrityError as exc:
            raise SlugConflictError(params.slug) from exc

        logger.info("custom_index_created", owner_id=owner_id, slug=params.slug, id=index_pk)
        created = await self.get_index(index_pk)
        if created is None:
            raise DocumentStoreError(
                message=f'Custom index "{index_pk}" vanished after insert',
                provider_name=self.get_provider_name(),
            )
        return created

    async def list_indexes(self, owner_id: str) -> list[CustomIndex]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM custom_rag_indexes "  # noqa: S608
                "WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
                (owner_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_index(dict(r)) for r in rows]

    async def get_index(self, index_pk: str) -> CustomIndex | None:
        return await self._select_one("id = ?", (index_pk,))

    async def get_index_by_slug(self, owner_id: str, slug: str) -> CustomIndex | None:
        return await self._select_one("owner_id = ? AND slug = ?", (owner_id, slug))

    async def update_index(self, index_pk: str, params: UpdateIndexParams) -> CustomIndex:
        assignments: list[str] = ["updated_at = ?"]
        values: list[Any] = [_utcnow_iso()]
        if params.name is not None:
            assignments.append("name = ?")
            values.append(params.name)
        if params.description is not None:
            assignments.append("description = ?")
            values.append(params.description)
        if params.icon is not None:
            assignments.append("icon = ?")
            values.append(params.icon.value)
        if params.status is not None:
            assignments.append("status = ?")
            values.append(params.status.value)
        if params.schema_config is not None:
            assignments.append("schema_config = ?")
            values.append(json.dumps(params.schema_config, ensure_ascii=False))
        values.append(index_pk)

        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                f"UPDATE custom_rag_indexes SET {', '.join(assignments)} WHERE id = ?",  # noqa: S608
                tuple(values),
            )
            await db.commit()
            updated_rows = cursor.rowcount

        if updated_rows == 0:
            raise DocumentStoreError(
                message=f'Custom index "{index_pk}" not found',
                provider_name=self.get_provider_name(),
            )
        logger.info("custom_index_updated", id=index_pk)
        updated = await self.get_index(index_pk)
        if updated is None:
            raise DocumentStoreError(
                message=f'Custom index "{index_pk}" vanished after update',
                provider_name=self.get_provider_name(),
            )
        return updated

    async def delete_index(self, index_pk: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("DELETE FROM custom_rag_indexes WHERE id = ?", (index_pk,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("custom_index_deleted", id=index_pk)
        return deleted

    async def count_slug(self, owner_id: str, slug: str) -> int:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM custom_rag_indexes WHERE owner_id = ? AND slug = ?",
                (owner_id, slug),
            )
            row = await cursor.fetchone()
        return int(row[0]) if row else 0

    def get_provider_name(self) -> str:
        return "sqlite_custom_index"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _select_one(self, where: str, params: tuple[Any, ...]) -> CustomIndex | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM custom_rag_indexes WHERE {where}",  # noqa: S608
                params,
            )
            row = await cursor.fetchone()
        return self._row_to_index(dict(row)) if row else None

    @staticmethod
    def _row_to_index(row: dict[str, Any]) -> CustomIndex:
        try:
            status = IndexStatus(row["status"])
        except ValueError:
            status = IndexStatus.DISABLED
        return CustomIndex(
            id=row["id"],
            owner_id=row["owner_id"],
            slug=row["slug"],
            name=row["name"],
            description=row["description"],
            icon=IconName.parse(row["icon"]),
            category=row["category"],
            schema_config=json.loads(row["schema_config"] or "{}"),
            embedding_model=row["embedding_model"],
            search_weights=SearchWeights(vector=row["vector_weight"], text=row["text_weight"]),
            status=status,
            document_count=row["document_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
