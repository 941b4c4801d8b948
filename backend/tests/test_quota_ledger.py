import asyncio
import datetime

from assetsync.schemas.quota import QuotaRecord


def test_fresh_user_has_quota(ledger) -> None:
    assert asyncio.run(ledger.check_availability("user-1")) is True


def test_limit_reached_today_blocks(ledger, quota_store, clock) -> None:
    quota_store.records["user-1"] = QuotaRecord(
        user_id="user-1", calls_made_today=10, last_call_date=clock.today(), role="basico"
    )
    assert asyncio.run(ledger.check_availability("user-1")) is False


def test_stale_date_resets_effective_count(ledger, quota_store, clock) -> None:
    yesterday = clock.today() - datetime.timedelta(days=1)
    quota_store.records["user-1"] = QuotaRecord(
        user_id="user-1", calls_made_today=500, last_call_date=yesterday, role="basico"
    )
    assert asyncio.run(ledger.check_availability("user-1")) is True


def test_unlimited_role_always_available(ledger, quota_store, clock) -> None:
    quota_store.records["admin"] = QuotaRecord(
        user_id="admin", calls_made_today=10_000, last_call_date=clock.today(), role="administrador"
    )
    assert asyncio.run(ledger.check_availability("admin")) is True


def test_unknown_role_uses_default_limit(ledger, quota_store, clock) -> None:
    quota_store.records["user-2"] = QuotaRecord(
        user_id="user-2", calls_made_today=10, last_call_date=clock.today(), role="legacy"
    )
    assert asyncio.run(ledger.check_availability("user-2")) is False


def test_fails_closed_without_user_or_record(ledger, quota_store) -> None:
    assert asyncio.run(ledger.check_availability(None)) is False
    assert asyncio.run(ledger.check_availability("ghost")) is False
    quota_store.fail_loads = True
    assert asyncio.run(ledger.check_availability("user-1")) is False


def test_check_does_not_mutate(ledger, quota_store) -> None:
    asyncio.run(ledger.check_availability("user-1"))
    assert quota_store.records["user-1"].calls_made_today == 0
    assert quota_store.records["user-1"].last_call_date is None


def test_increment_same_day_and_rollover(ledger, quota_store, clock) -> None:
    asyncio.run(ledger.increment("user-1"))
    asyncio.run(ledger.increment("user-1"))
    record = quota_store.records["user-1"]
    assert record.calls_made_today == 2
    assert record.last_call_date == clock.today()

    clock.advance(days=1)
    asyncio.run(ledger.increment("user-1"))
    record = quota_store.records["user-1"]
    assert record.calls_made_today == 1
    assert record.last_call_date == clock.today()


def test_status_reports_remaining(ledger, quota_store, clock) -> None:
    quota_store.records["user-1"] = QuotaRecord(
        user_id="user-1", calls_made_today=4, last_call_date=clock.today(), role="basico"
    )
    status = asyncio.run(ledger.status("user-1"))
    assert status.used == 4
    assert status.limit == 10
    assert status.remaining == 6
    assert status.available is True

    anonymous = asyncio.run(ledger.status(None))
    assert anonymous.available is False
