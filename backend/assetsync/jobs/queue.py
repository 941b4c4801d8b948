from __future__ import annotations

from typing import Any

from redis import Redis
from rq import Queue
from rq.job import Job

from assetsync.config.settings import settings
from assetsync.jobs.cache_write import run_cache_write


def get_redis_connection() -> Redis:
    return Redis.from_url(settings.redis_url)


def get_queue(name: str | None = None) -> Queue:
    queue_name = name or settings.cache_write_queue_name
    return Queue(name=queue_name, connection=get_redis_connection())


def enqueue_cache_write(key: str, payload: dict[str, Any], updated_at: str) -> Job:
    queue = get_queue()
    return queue.enqueue(run_cache_write, key=key, payload=payload, updated_at=updated_at)
