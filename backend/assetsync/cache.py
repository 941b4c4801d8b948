from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetsync.db.models import AssetDataCache
from assetsync.schemas.asset import CachedSnapshot

logger = logging.getLogger(__name__)

GRADES_HISTORY_PREFIX = "grades_history:"


def ensure_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


def _upsert_statement(session: AsyncSession, values: dict[str, Any]):
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
    stmt = insert(AssetDataCache).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=[AssetDataCache.symbol],
        set_={
            "data": stmt.excluded.data,
            "last_updated_at": stmt.excluded.last_updated_at,
        },
    )


class SnapshotCache:
    """Persisted cache store: one row per symbol or auxiliary key."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> CachedSnapshot | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(AssetDataCache, key)
        except (SQLAlchemyError, OSError):
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None

        if row is None or not isinstance(row.data, dict):
            return None
        return CachedSnapshot(
            key=row.symbol,
            payload=row.data,
            updated_at=ensure_utc(row.last_updated_at),
        )

    async def upsert(
        self, key: str, payload: dict[str, Any], updated_at: datetime.datetime
    ) -> bool:
        values = {"symbol": key, "data": payload, "last_updated_at": ensure_utc(updated_at)}
        try:
            async with self._session_factory() as session:
                await session.execute(_upsert_statement(session, values))
                await session.commit()
        except (SQLAlchemyError, OSError):
            logger.warning("Cache write failed for %s", key, exc_info=True)
            return False
        return True

    async def updated_at_map(self, keys: Iterable[str]) -> dict[str, datetime.datetime]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return {}
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(AssetDataCache.symbol, AssetDataCache.last_updated_at).where(
                        AssetDataCache.symbol.in_(wanted)
                    )
                )
                rows = result.all()
        except (SQLAlchemyError, OSError):
            logger.warning("Freshness lookup failed for %d keys", len(wanted), exc_info=True)
            return {}
        return {symbol: ensure_utc(updated_at) for symbol, updated_at in rows}
