import datetime
from typing import Any

import pytest

from assetsync.config.settings import Settings
from assetsync.errors import NotFoundError
from assetsync.providers.fmp import ASSET_ENDPOINTS
from assetsync.quota.ledger import QuotaLedger
from assetsync.schemas.asset import CachedSnapshot
from assetsync.schemas.quota import QuotaRecord
from assetsync.sync.orchestrator import AssetSyncOrchestrator

T0 = datetime.datetime(2026, 3, 10, 12, 0, tzinfo=datetime.UTC)


class FakeClock:
    def __init__(self, now: datetime.datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + datetime.timedelta(**kwargs)

    def today(self) -> datetime.date:
        return self.now.date()


class FakeCache:
    def __init__(self) -> None:
        self.rows: dict[str, CachedSnapshot] = {}
        self.writes: list[str] = []

    async def get(self, key: str) -> CachedSnapshot | None:
        return self.rows.get(key)

    async def upsert(self, key: str, payload: dict, updated_at: datetime.datetime) -> bool:
        self.writes.append(key)
        self.rows[key] = CachedSnapshot(key=key, payload=payload, updated_at=updated_at)
        return True

    async def updated_at_map(self, keys) -> dict[str, datetime.datetime]:
        return {key: self.rows[key].updated_at for key in keys if key in self.rows}


class FakeQuotaStore:
    def __init__(self) -> None:
        self.records: dict[str, QuotaRecord] = {}
        self.fail_loads = False

    async def load(self, user_id: str) -> QuotaRecord | None:
        if self.fail_loads:
            raise ConnectionError("store offline")
        record = self.records.get(user_id)
        return record.model_copy() if record else None

    async def increment(self, user_id: str, today: datetime.date) -> None:
        record = self.records[user_id]
        if record.last_call_date == today:
            record.calls_made_today += 1
        else:
            record.calls_made_today = 1
            record.last_call_date = today


class FakeClient:
    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = responses
        self.error: Exception | None = None
        self.calls: list[str] = []
        self.endpoint_payloads: dict[str, Any] = {}

    async def fetch_all(self, symbol: str) -> list[Any]:
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        return list(self.responses)

    async def fetch_endpoint(self, endpoint: str, symbol: str) -> Any:
        self.calls.append(f"{endpoint}:{symbol}")
        if self.error is not None:
            raise self.error
        return self.endpoint_payloads.get(endpoint)


class PerSymbolClient(FakeClient):
    def __init__(self, by_symbol: dict[str, list[Any]]) -> None:
        super().__init__()
        self.by_symbol = by_symbol

    async def fetch_all(self, symbol: str) -> list[Any]:
        self.calls.append(symbol)
        if symbol not in self.by_symbol:
            raise NotFoundError(f"No profile for {symbol}.", symbol=symbol)
        return list(self.by_symbol[symbol])


def build_raw_responses(symbol: str = "AAPL", price: float = 100.0) -> list[Any]:
    by_endpoint: dict[str, Any] = {
        "profile": [{"symbol": symbol, "companyName": f"{symbol} Inc.", "price": price}],
        "key_metrics": [{"symbol": symbol, "peRatioTTM": 28.1}],
        "quote": [{"symbol": symbol, "price": price}],
        "historical": {
            "symbol": symbol,
            "historical": [
                {"date": "2024-01-03", "close": 99.0, "adjClose": 98.0},
                {"date": "2024-01-02", "close": 97.0},
                {"date": "2024-01-04", "close": 101.0, "adjClose": 100.0},
            ],
        },
        "price_target": [{"symbol": symbol, "lastMonthAvgPriceTarget": 120.0}],
        "dcf": [
            {"date": "2023-12-31", "dcf": 104.0},
            {"date": "2024-12-31", "dcf": "108.5"},
        ],
        "rating": [{"symbol": symbol, "rating": "A"}],
        "revenue_geographic": [
            {"date": "2024-09-28", "data": {"Americas Segment": 167.0, "Europe Segment": 101.0}}
        ],
        "revenue_product": [{"date": "2024-09-28", "data": {"iPhone": 201.0, "Mac": 29.9}}],
        "price_target_consensus": [{"symbol": symbol, "targetConsensus": 115.0}],
        "grades_consensus": [{"symbol": symbol, "consensus": "Buy"}],
        "analyst_estimates": [{"symbol": symbol, "date": "2025-09-27", "epsAvg": 7.2}],
        "ratios": [{"symbol": symbol, "date": "2024-09-28", "currentRatio": 0.87}],
        "key_metrics_yearly": [{"symbol": symbol, "date": "2024-09-28", "roe": 1.6}],
        "levered_dcf": [{"symbol": symbol, "equityValuePerShare": 110.0}],
        "stock_price_change": [{"symbol": symbol, "1D": 0.5}],
    }
    return [by_endpoint[endpoint] for endpoint in ASSET_ENDPOINTS]


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def quota_store() -> FakeQuotaStore:
    store = FakeQuotaStore()
    store.records["user-1"] = QuotaRecord(user_id="user-1", role="basico")
    return store


@pytest.fixture
def fake_cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient(build_raw_responses())


@pytest.fixture
def ledger(quota_store, settings, clock) -> QuotaLedger:
    return QuotaLedger(quota_store, settings.quota, today=clock.today)


@pytest.fixture
def orchestrator(fake_cache, ledger, fake_client, settings, clock) -> AssetSyncOrchestrator:
    return AssetSyncOrchestrator(
        cache=fake_cache,
        ledger=ledger,
        client=fake_client,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def raw_responses():
    return build_raw_responses


@pytest.fixture
def client_factory():
    return FakeClient
