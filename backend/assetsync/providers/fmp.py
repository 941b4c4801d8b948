from __future__ import annotations

import asyncio
import json
import logging
import socket
from concurrent.futures import ThreadPoolExecutor
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from assetsync.config.settings import ProviderSettings
from assetsync.errors import UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

# Fixed refresh set, in the order the normalizer consumes it.
ASSET_ENDPOINTS: tuple[str, ...] = (
    "profile",
    "key_metrics",
    "quote",
    "historical",
    "price_target",
    "dcf",
    "rating",
    "revenue_geographic",
    "revenue_product",
    "price_target_consensus",
    "grades_consensus",
    "analyst_estimates",
    "ratios",
    "key_metrics_yearly",
    "levered_dcf",
    "stock_price_change",
)


class FmpClient:
    def __init__(self, provider_settings: ProviderSettings) -> None:
        self.settings = provider_settings
        # Own pool so a whole refresh runs at once instead of queueing on the loop default.
        self.max_workers = max(provider_settings.max_workers, len(ASSET_ENDPOINTS))
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="fmp",
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _build_url(self, endpoint: str, symbol: str) -> str:
        try:
            path = self.settings.endpoints[endpoint]
        except KeyError:
            raise UpstreamError(
                f"No path configured for endpoint '{endpoint}'.", symbol=symbol, endpoint=endpoint
            ) from None
        params = {"symbol": symbol, **self.settings.extra_params.get(endpoint, {})}
        if self.settings.api_key:
            params["apikey"] = self.settings.api_key
        base_url = self.settings.base_url.rstrip("/")
        return f"{base_url}/{path.lstrip('/')}?{urlencode(params)}"

    def _get_json(self, endpoint: str, symbol: str) -> Any:
        url = self._build_url(endpoint, symbol)
        request = Request(url, headers={"Accept": "application/json"})
        try:
            with urlopen(request, timeout=self.settings.timeout_seconds) as response:
                body = response.read().decode("utf-8")
            payload = json.loads(body)
        except HTTPError as exc:
            raise UpstreamError(
                f"{endpoint} returned HTTP {exc.code} for {symbol}.",
                symbol=symbol,
                endpoint=endpoint,
                status_code=exc.code,
            ) from exc
        except (TimeoutError, socket.timeout) as exc:
            raise UpstreamTimeoutError(
                f"{endpoint} timed out for {symbol}.", symbol=symbol, endpoint=endpoint
            ) from exc
        except (URLError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise UpstreamError(
                f"{endpoint} failed for {symbol}: {exc}", symbol=symbol, endpoint=endpoint
            ) from exc

        if isinstance(payload, dict) and payload.get("Error Message"):
            raise UpstreamError(
                str(payload["Error Message"]), symbol=symbol, endpoint=endpoint
            )
        return payload

    async def fetch_endpoint(self, endpoint: str, symbol: str) -> Any:
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        def call() -> Any:
            loop.call_soon_threadsafe(started.set)
            return self._get_json(endpoint, symbol)

        future = loop.run_in_executor(self._executor, call)
        # The timeout covers the request only, not time spent waiting for a worker.
        # A worker thread cannot be cancelled; urlopen's own timeout bounds it.
        try:
            await started.wait()
        except asyncio.CancelledError:
            future.cancel()
            raise
        try:
            return await asyncio.wait_for(future, timeout=self.settings.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeoutError(
                f"{endpoint} timed out for {symbol}.", symbol=symbol, endpoint=endpoint
            ) from exc

    async def fetch_all(self, symbol: str) -> list[Any]:
        results = await asyncio.gather(
            *(self.fetch_endpoint(endpoint, symbol) for endpoint in ASSET_ENDPOINTS),
            return_exceptions=True,
        )
        for endpoint, result in zip(ASSET_ENDPOINTS, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Refresh of %s failed at %s: %s", symbol, endpoint, result)
                if isinstance(result, UpstreamError):
                    raise result
                raise UpstreamError(
                    f"{endpoint} failed for {symbol}: {result}", symbol=symbol, endpoint=endpoint
                ) from result
        return list(results)
