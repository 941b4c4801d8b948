from __future__ import annotations

import asyncio
import datetime
from typing import Any

from assetsync.cache import SnapshotCache
from assetsync.db.session import AsyncSessionLocal


async def _write(key: str, payload: dict[str, Any], updated_at: str) -> bool:
    cache = SnapshotCache(AsyncSessionLocal)
    return await cache.upsert(key, payload, datetime.datetime.fromisoformat(updated_at))


def run_cache_write(key: str, payload: dict[str, Any], updated_at: str) -> bool:
    return asyncio.run(_write(key, payload, updated_at))
