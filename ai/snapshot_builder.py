"""
Token Context Builder - Assemble market data for the decision model.

One context per token per iteration:
- listing data (ticker, unit, price, 24h volume)
- aggregated price and 1h/4h/24h price change
- ADA pools, hourly OHLCV, 24h trading stats, market cap
"""

import logging
from datetime import datetime, timezone
from typing import Any

from core.interfaces import MarketDataProvider

logger = logging.getLogger(__name__)

PRICE_CHANGE_TIMEFRAMES = "1h,4h,24h"
OHLCV_INTERVAL = "1h"
OHLCV_BARS = 24
STATS_TIMEFRAME = "24h"


def build_token_context(
    market_data: MarketDataProvider,
    ticker: str,
    unit: str,
    price: float = 0.0,
    volume: float = 0.0,
) -> dict[str, Any]:
    """
    Fetch extended market data for one token.

    Provider failures surface as empty values; any exception raised here is
    handled by the caller as a per-token failure.
    """
    context: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ticker": ticker,
        "unit": unit,
        "volume_24h": volume,
        "price": price,
    }

    context["aggregated_price"] = market_data.prices([unit]).get(unit)
    context["price_change"] = market_data.price_change(unit, PRICE_CHANGE_TIMEFRAMES)
    context["pools"] = market_data.pools(unit, ada_only=True)
    context["ohlcv"] = market_data.ohlcv(unit, OHLCV_INTERVAL, OHLCV_BARS)
    context["trading_stats"] = market_data.trading_stats(unit, STATS_TIMEFRAME)
    context["mcap"] = market_data.market_cap(unit)

    missing = [k for k in ("price_change", "pools", "ohlcv", "trading_stats", "mcap") if not context[k]]
    if missing:
        logger.debug(f"[DATA] {ticker}: no data for {', '.join(missing)}")

    return context
