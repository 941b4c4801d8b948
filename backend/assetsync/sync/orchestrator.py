"""Freshness-tiered snapshot retrieval.

Cache age decides the path taken for every request:

* fresh (< 2h): served from cache, no quota consumed.
* degraded (2h - 24h): served from cache in trusted mode or when the quota
  is spent, always with a visible notice.
* expired (>= 24h): needs a refresh; falls back to cache only when the
  refresh itself fails.

Quota is charged only after a refresh has succeeded end to end.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import ValidationError
from redis.exceptions import RedisError

from assetsync.cache import GRADES_HISTORY_PREFIX, SnapshotCache
from assetsync.config.settings import Settings
from assetsync.errors import NotFoundError, QuotaExceededError, UpstreamError
from assetsync.jobs.queue import enqueue_cache_write
from assetsync.parsing.responses import normalize
from assetsync.providers.fmp import FmpClient
from assetsync.quota.ledger import QuotaLedger
from assetsync.schemas.asset import (
    AuxiliaryResult,
    CachedSnapshot,
    CanonicalAssetSnapshot,
    FreshnessReport,
    FreshnessTier,
    NoticeReason,
    SnapshotResult,
    StaleDataNotice,
    SymbolFreshness,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


class AssetSyncOrchestrator:
    def __init__(
        self,
        cache: SnapshotCache,
        ledger: QuotaLedger,
        client: FmpClient,
        settings: Settings,
        clock: Callable[[], datetime.datetime] = utc_now,
    ) -> None:
        self.cache = cache
        self.ledger = ledger
        self.client = client
        self.settings = settings
        self._clock = clock

    def tier_for(self, age: datetime.timedelta) -> FreshnessTier:
        seconds = age.total_seconds()
        if seconds < self.settings.freshness.fresh_seconds:
            return "fresh"
        if seconds < self.settings.freshness.stale_seconds:
            return "degraded"
        return "expired"

    def _notice(
        self, reason: NoticeReason, updated_at: datetime.datetime, age: datetime.timedelta
    ) -> StaleDataNotice:
        as_of = updated_at.isoformat(timespec="minutes")
        messages = {
            "trusted_cache": f"Showing cached data from {as_of}.",
            "quota_exhausted": f"Daily quota exhausted, showing last-known data from {as_of}.",
            "refresh_failed": f"Could not refresh, showing data from {as_of}.",
        }
        return StaleDataNotice(
            reason=reason,
            as_of=updated_at,
            age_hours=int(age.total_seconds() // 3600),
            message=messages[reason],
        )

    def _from_cache(
        self,
        cached: CachedSnapshot,
        snapshot: CanonicalAssetSnapshot,
        now: datetime.datetime,
        reason: NoticeReason | None = None,
    ) -> SnapshotResult:
        age = now - cached.updated_at
        notice = self._notice(reason, cached.updated_at, age) if reason else None
        if notice is not None:
            logger.info("Serving %s from cache (%s): %s", cached.key, reason, notice.message)
        return SnapshotResult(
            snapshot=snapshot,
            updated_at=cached.updated_at,
            source="cache",
            tier=self.tier_for(age),
            notice=notice,
        )

    @staticmethod
    def _decode(cached: CachedSnapshot | None) -> CanonicalAssetSnapshot | None:
        if cached is None:
            return None
        try:
            return CanonicalAssetSnapshot.model_validate(cached.payload)
        except ValidationError:
            logger.warning("Ignoring unreadable cache row for %s", cached.key)
            return None

    async def _persist(
        self, key: str, payload: dict[str, Any], updated_at: datetime.datetime
    ) -> None:
        if self.settings.cache_write_mode == "queue":
            try:
                enqueue_cache_write(key=key, payload=payload, updated_at=updated_at.isoformat())
                return
            except RedisError:
                logger.warning("Could not enqueue cache write for %s, writing inline", key, exc_info=True)
        await self.cache.upsert(key, payload, updated_at)

    async def _charge_quota(self, user_id: str | None) -> None:
        try:
            await self.ledger.increment(user_id)
        except Exception:
            logger.warning("Quota increment failed for %s", user_id, exc_info=True)

    async def _refresh(self, symbol: str) -> CanonicalAssetSnapshot:
        responses = await self.client.fetch_all(symbol)
        try:
            return normalize(symbol, responses)
        except ValidationError as exc:
            raise UpstreamError(f"Malformed upstream data for {symbol}.", symbol=symbol) from exc

    async def get_snapshot(
        self,
        symbol: str,
        user_id: str | None = None,
        *,
        trusted: bool = False,
        force_refresh: bool = False,
    ) -> SnapshotResult:
        symbol = normalize_symbol(symbol)
        freshness = self.settings.freshness
        now = self._clock()

        cached = await self.cache.get(symbol)
        cached_snapshot = self._decode(cached)
        age = now - cached.updated_at if cached is not None and cached_snapshot else None

        if age is not None and not force_refresh:
            if age.total_seconds() < freshness.fresh_seconds:
                logger.debug("Cache hit for %s (age %s)", symbol, age)
                return self._from_cache(cached, cached_snapshot, now)
            if trusted and age.total_seconds() < freshness.stale_seconds:
                return self._from_cache(cached, cached_snapshot, now, "trusted_cache")

        if not await self.ledger.check_availability(user_id):
            if age is not None and age.total_seconds() < freshness.quota_fallback_max_age_seconds:
                return self._from_cache(cached, cached_snapshot, now, "quota_exhausted")
            raise QuotaExceededError(
                f"Daily quota exhausted and no recent data for {symbol}.", symbol=symbol
            )

        try:
            snapshot = await self._refresh(symbol)
        except NotFoundError:
            raise
        except UpstreamError:
            if age is not None:
                return self._from_cache(cached, cached_snapshot, now, "refresh_failed")
            raise

        updated_at = self._clock()
        await self._charge_quota(user_id)
        await self._persist(symbol, snapshot.model_dump(mode="json"), updated_at)
        logger.info("Refreshed %s from upstream", symbol)
        return SnapshotResult(
            snapshot=snapshot, updated_at=updated_at, source="upstream", tier="fresh"
        )

    async def get_auxiliary(
        self, key: str, loader: Callable[[], Awaitable[Any]]
    ) -> AuxiliaryResult:
        now = self._clock()
        cached = await self.cache.get(key)
        age = now - cached.updated_at if cached is not None else None
        if age is not None and age.total_seconds() < self.settings.freshness.auxiliary_max_age_seconds:
            return AuxiliaryResult(
                key=key, data=cached.payload.get("data"), updated_at=cached.updated_at, source="cache"
            )

        try:
            data = await loader()
        except UpstreamError:
            if cached is None:
                raise
            return AuxiliaryResult(
                key=key,
                data=cached.payload.get("data"),
                updated_at=cached.updated_at,
                source="cache",
                notice=self._notice("refresh_failed", cached.updated_at, age),
            )

        updated_at = self._clock()
        await self._persist(key, {"data": data}, updated_at)
        return AuxiliaryResult(key=key, data=data, updated_at=updated_at, source="upstream")

    async def get_grades_history(self, symbol: str) -> AuxiliaryResult:
        symbol = normalize_symbol(symbol)
        return await self.get_auxiliary(
            f"{GRADES_HISTORY_PREFIX}{symbol}",
            lambda: self.client.fetch_endpoint("grades_historical", symbol),
        )

    async def freshness(self, symbols: Iterable[str]) -> FreshnessReport:
        wanted = list(dict.fromkeys(normalize_symbol(symbol) for symbol in symbols if symbol.strip()))
        updated = await self.cache.updated_at_map(wanted)
        now = self._clock()
        items = [
            SymbolFreshness(
                symbol=symbol,
                updated_at=updated.get(symbol),
                tier=self.tier_for(now - updated[symbol]) if symbol in updated else "missing",
            )
            for symbol in wanted
        ]
        return FreshnessReport(
            items=items, oldest_update=min(updated.values()) if updated else None
        )
