import asyncio
import datetime
from unittest.mock import Mock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from assetsync.jobs import cache_write
from assetsync.jobs.queue import enqueue_cache_write


def test_enqueue_cache_write_targets_configured_queue() -> None:
    queue = Mock()
    queue.enqueue.return_value = Mock(id="job-1")

    with patch("assetsync.jobs.queue.get_queue", return_value=queue):
        job = enqueue_cache_write(key="AAPL", payload={"symbol": "AAPL"}, updated_at="2026-03-10T12:00:00+00:00")

    assert job.id == "job-1"
    queue.enqueue.assert_called_once_with(
        cache_write.run_cache_write,
        key="AAPL",
        payload={"symbol": "AAPL"},
        updated_at="2026-03-10T12:00:00+00:00",
    )


def test_run_cache_write_parses_timestamp() -> None:
    cache = Mock()
    seen = {}

    async def upsert(key, payload, updated_at):
        seen.update(key=key, payload=payload, updated_at=updated_at)
        return True

    cache.upsert = upsert
    with patch("assetsync.jobs.cache_write.SnapshotCache", return_value=cache):
        assert cache_write.run_cache_write("AAPL", {"symbol": "AAPL"}, "2026-03-10T12:00:00+00:00") is True

    assert seen["key"] == "AAPL"
    assert seen["updated_at"] == datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.UTC)


def test_queue_outage_falls_back_to_inline_write(orchestrator, fake_cache, settings, monkeypatch) -> None:
    settings.cache_write_mode = "queue"

    def unavailable(**kwargs):
        raise RedisConnectionError("redis down")

    monkeypatch.setattr("assetsync.sync.orchestrator.enqueue_cache_write", unavailable)

    asyncio.run(orchestrator.get_snapshot("AAPL", "user-1"))

    assert fake_cache.writes == ["AAPL"]
