"""
Cache-backed CRUD over a single table.

Every manager keeps the rows it has seen in ``cache`` (primary key -> model),
filled once by ``load_cache()`` at startup and kept in step with the
database by ``add()``, ``update()`` and ``destroy()``. There is no eviction.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from lunarbridge.config.logging import get_logger
from lunarbridge.database.connection import ConnectionManager
from lunarbridge.database.models import Model

logger = get_logger(__name__)

M = TypeVar("M", bound=Model)


class ModelManager(Generic[M]):
    """Read-through cache plus write-through CRUD for one model type."""

    def __init__(self, db: ConnectionManager, model: type[M]) -> None:
        self.db = db
        self.model = model
        self.cache: dict[Any, M] = {}

    def _cache_key(self, key: Any) -> Any:
        return key

    def _columns_for(self, values: dict[str, Any]) -> list[str]:
        columns = self.model.columns()
        unknown = [name for name in values if name not in columns]
        if unknown:
            raise ValueError(f"unknown {self.model.__table__} column(s): {', '.join(unknown)}")
        return list(values)

    async def load_cache(self) -> dict[Any, M]:
        """Replace the cache with every row of the table."""
        self.sweep_cache()

        cursor = await self.db.connection.execute(f"SELECT * FROM {self.model.__table__}")
        for row in await cursor.fetchall():
            model = self.model.from_row(row)
            self.cache[self._cache_key(model.primary_key)] = model

        logger.info(f"[{self.model.__table__.upper()}]: {len(self.cache)} cached")
        return self.cache

    def sweep_cache(self) -> None:
        self.cache.clear()

    async def fetch(self, *, cache: bool = True, **where: Any) -> M | None:
        """
        Fetch the first row matching every ``column=value`` pair.

        Args:
            cache: whether to store the result in the cache
            **where: column filters, combined with AND
        """
        if not where:
            raise ValueError("fetch() requires at least one filter")

        columns = self._columns_for(where)
        clause = " AND ".join(f"{column} = ?" for column in columns)
        cursor = await self.db.connection.execute(
            f"SELECT * FROM {self.model.__table__} WHERE {clause} LIMIT 1",
            tuple(where[column] for column in columns),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        model = self.model.from_row(row)
        if cache:
            self.cache[self._cache_key(model.primary_key)] = model
        return model

    async def add(self, model: M) -> M:
        """Insert (or replace) ``model`` and cache it."""
        row = model.to_row()
        columns = list(row)
        placeholders = ", ".join("?" for _ in columns)

        async with self.db.transaction() as conn:
            await conn.execute(
                f"INSERT OR REPLACE INTO {self.model.__table__} ({', '.join(columns)}) VALUES ({placeholders})",
                tuple(row.values()),
            )

        self.cache[self._cache_key(model.primary_key)] = model
        return model

    async def update(self, model: M, **changes: Any) -> M:
        """Apply ``changes`` to the database row and to ``model`` itself."""
        if not changes:
            return model

        columns = self._columns_for(changes)
        assignments = ", ".join(f"{column} = ?" for column in columns)

        async with self.db.transaction() as conn:
            await conn.execute(
                f"UPDATE {self.model.__table__} SET {assignments} WHERE {self.model.__primary_key__} = ?",
                (*(changes[column] for column in columns), model.primary_key),
            )

        for column, value in changes.items():
            setattr(model, column, value)

        self.cache[self._cache_key(model.primary_key)] = model
        return model

    async def destroy(self, id_or_model: M | Any) -> M | None:
        """Delete the row and drop it from the cache."""
        key = self.resolve_id(id_or_model)

        async with self.db.transaction() as conn:
            await conn.execute(
                f"DELETE FROM {self.model.__table__} WHERE {self.model.__primary_key__} = ?",
                (key,),
            )

        return self.cache.pop(self._cache_key(key), None)

    def resolve(self, id_or_model: M | Any) -> M | None:
        """Model instance for a primary key (cache only), or the instance itself."""
        if isinstance(id_or_model, self.model):
            return id_or_model
        return self.cache.get(self._cache_key(id_or_model))

    def resolve_id(self, id_or_model: M | Any) -> Any:
        if isinstance(id_or_model, self.model):
            return id_or_model.primary_key
        return id_or_model
