"""
TapTools market data connector.

REST client for https://openapi.taptools.io. Implements MarketDataProvider:
every public method returns an empty result (or None for address info) on
failure and never raises.
"""

import logging
import math
import os
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

from core.exceptions import ConfigurationError
from core.interfaces import AddressInfo, AssetBalance, MarketDataProvider, VolumeToken

logger = logging.getLogger(__name__)

TAPTOOLS_BASE = "https://openapi.taptools.io/api/v1"


class TapToolsClient(MarketDataProvider):
    """
    TapTools API connector.

    Retries on 429/5xx and network errors with exponential backoff; client
    errors (4xx) are not retried.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = TAPTOOLS_BASE,
        timeout_s: float = 10.0,
        max_retries: int = 3,
        metrics=None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or os.getenv("TAP_TOOLS_API_KEY", "")
        if not self.api_key:
            raise ConfigurationError("TAP_TOOLS_API_KEY environment variable is required")
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(1, int(max_retries))
        self.metrics = metrics
        self.session = session or requests.Session()
        self.session.headers.update({"accept": "application/json", "X-API-Key": self.api_key})

    def _req(self, method: str, path: str, params: Optional[dict] = None, body: Any = None) -> Any:
        """
        Make HTTP request to TapTools with exponential backoff.

        Raises the last requests exception when all attempts fail.
        """
        url = f"{self.base_url}{path}"
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            start = time.perf_counter()
            try:
                response = self.session.request(method, url, params=params, json=body, timeout=self.timeout_s)
                response.raise_for_status()
                self._record(path, time.perf_counter() - start, "ok")
                return response.json()

            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else 0
                self._record(path, time.perf_counter() - start, str(status_code))

                if 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"TapTools client error on {path}: {status_code} - {e.response.text[:200]}")
                    raise

                if status_code == 429:
                    logger.warning(f"Rate limited (429) on {path}, attempt {attempt + 1}/{self.max_retries}")
                else:
                    logger.warning(f"Server error ({status_code}) on {path}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                self._record(path, time.perf_counter() - start, "network")
                logger.warning(f"Network error on {path}: {e}, attempt {attempt + 1}/{self.max_retries}")
                last_exception = e

            if attempt < self.max_retries - 1:
                time.sleep(min(2 ** attempt, 8))

        raise last_exception

    def _record(self, endpoint: str, duration: float, status: str) -> None:
        if self.metrics is not None:
            self.metrics.record_api_call("taptools", endpoint, duration, status)

    def _safe(self, label: str, default, method: str, path: str, params=None, body=None):
        try:
            data = self._req(method, path, params=params, body=body)
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Error fetching {label}: {e}")
            if self.metrics is not None:
                self.metrics.record_external_error("taptools")
            return default
        return data if data is not None else default

    # --- MarketDataProvider -------------------------------------------------

    def top_volume_tokens(self, n: int = 10) -> List[VolumeToken]:
        data = self._safe("top volume tokens", [], "GET", "/token/top/volume", params={"perPage": n})
        if not isinstance(data, list):
            logger.warning(f"Unexpected top volume payload: {type(data).__name__}")
            return []

        tokens = []
        for row in data[:n]:
            if not isinstance(row, dict) or not row.get("unit"):
                continue
            tokens.append(
                VolumeToken(
                    ticker=str(row.get("ticker") or ""),
                    unit=str(row["unit"]),
                    price=_to_float(row.get("price")),
                    volume=_to_float(row.get("volume")),
                )
            )
        return tokens

    def prices(self, units: Iterable[str]) -> Dict[str, float]:
        units = [u for u in units if u]
        if not units:
            return {}
        data = self._safe("token prices", {}, "POST", "/token/prices", body=units)
        if not isinstance(data, dict):
            return {}
        return {unit: _to_float(price) for unit, price in data.items()}

    def price_change(self, unit: str, timeframes: str = "1h,4h,24h") -> Dict[str, Any]:
        data = self._safe(f"price change for {unit}", {}, "GET", "/token/prices/chg",
                          params={"unit": unit, "timeframes": timeframes})
        return data if isinstance(data, dict) else {}

    def pools(self, unit: str, ada_only: bool = True) -> List[Dict[str, Any]]:
        data = self._safe(f"pools for {unit}", [], "GET", "/token/pools",
                          params={"unit": unit, "adaOnly": 1 if ada_only else 0})
        return data if isinstance(data, list) else []

    def ohlcv(self, unit: str, interval: str = "1h", count: int = 24) -> List[Dict[str, Any]]:
        data = self._safe(f"OHLCV for {unit}", [], "GET", "/token/ohlcv",
                          params={"unit": unit, "interval": interval, "numIntervals": count})
        return data if isinstance(data, list) else []

    def trading_stats(self, unit: str, timeframe: str = "24h") -> Dict[str, Any]:
        data = self._safe(f"trading stats for {unit}", {}, "GET", "/token/trading/stats",
                          params={"unit": unit, "timeframe": timeframe})
        return data if isinstance(data, dict) else {}

    def market_cap(self, unit: str) -> Dict[str, Any]:
        data = self._safe(f"mcap for {unit}", {}, "GET", "/token/mcap", params={"unit": unit})
        return data if isinstance(data, dict) else {}

    def address_info(self, address: str) -> Optional[AddressInfo]:
        data = self._safe("address info", None, "GET", "/address/info", params={"address": address})
        if not isinstance(data, dict):
            return None

        try:
            lovelace = int(data.get("lovelace") or 0)
        except (TypeError, ValueError, OverflowError):
            logger.error(f"Invalid lovelace balance in address info: {data.get('lovelace')!r}")
            return None

        assets = []
        for asset in data.get("assets") or []:
            try:
                assets.append(AssetBalance(unit=str(asset["unit"]), quantity=int(asset.get("quantity") or 0)))
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                logger.warning(f"Skipping malformed asset entry {asset!r}: {e}")
        return AddressInfo(lovelace=lovelace, assets=assets)


def _to_float(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0
