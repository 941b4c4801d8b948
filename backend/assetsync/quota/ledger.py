from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from typing import Protocol

from sqlalchemy import case, func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from assetsync.config.settings import QuotaSettings
from assetsync.db.models import Profile
from assetsync.schemas.quota import QuotaRecord, QuotaStatus

logger = logging.getLogger(__name__)


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.UTC).date()


class QuotaStore(Protocol):
    async def load(self, user_id: str) -> QuotaRecord | None: ...

    async def increment(self, user_id: str, today: datetime.date) -> None: ...


class SqlQuotaStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, user_id: str) -> QuotaRecord | None:
        async with self._session_factory() as session:
            profile = await session.get(Profile, user_id)
        if profile is None:
            return None
        return QuotaRecord(
            user_id=profile.id,
            calls_made_today=profile.api_calls_made or 0,
            last_call_date=profile.last_api_call_date,
            role=profile.role,
        )

    async def increment(self, user_id: str, today: datetime.date) -> None:
        # Single conditional UPDATE so the day rollover and the +1 happen atomically.
        stmt = (
            update(Profile)
            .where(Profile.id == user_id)
            .values(
                api_calls_made=case(
                    (
                        Profile.last_api_call_date == today,
                        func.coalesce(Profile.api_calls_made, 0) + 1,
                    ),
                    else_=1,
                ),
                last_api_call_date=today,
            )
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()


class QuotaLedger:
    """Per-user, per-day budget of upstream refreshes."""

    def __init__(
        self,
        store: QuotaStore,
        quota_settings: QuotaSettings,
        today: Callable[[], datetime.date] = utc_today,
    ) -> None:
        self._store = store
        self._settings = quota_settings
        self._today = today

    async def _load(self, user_id: str | None) -> QuotaRecord | None:
        if not user_id:
            return None
        try:
            return await self._store.load(user_id)
        except Exception:
            logger.warning("Could not load quota record for %s", user_id, exc_info=True)
            return None

    async def check_availability(self, user_id: str | None) -> bool:
        record = await self._load(user_id)
        if record is None:
            return False
        limit = self._settings.limit_for(record.role)
        if limit is None:
            return True
        calls = record.effective_calls(self._today())
        if calls >= limit:
            logger.info("Daily quota reached for %s (%d/%d)", user_id, calls, limit)
            return False
        return True

    async def increment(self, user_id: str | None) -> None:
        if not user_id:
            return
        await self._store.increment(user_id, self._today())

    async def status(self, user_id: str | None) -> QuotaStatus:
        record = await self._load(user_id)
        if record is None:
            return QuotaStatus(user_id=user_id, available=False)
        limit = self._settings.limit_for(record.role)
        used = record.effective_calls(self._today())
        remaining = None if limit is None else max(limit - used, 0)
        return QuotaStatus(
            user_id=user_id,
            role=record.role,
            used=used,
            limit=limit,
            remaining=remaining,
            available=limit is None or used < limit,
        )
