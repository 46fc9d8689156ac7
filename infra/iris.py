"""
Iris (Indigo) API connector.

Asset metadata (decimals) and ADA liquidity pool discovery.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from core.exceptions import ExternalServiceError
from core.interfaces import AssetMetadataProvider
from core.tokens import LOVELACE_UNIT, split_unit

logger = logging.getLogger(__name__)

IRIS_BASE = "https://iris.indigoprotocol.io"


@dataclass(frozen=True)
class LiquidityPool:
    identifier: str
    dex: str
    address: str
    order_address: str
    token_a: str
    token_b: str
    reserve_a: int
    reserve_b: int
    tvl: int
    fee_percent: float = 0.0

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "LiquidityPool":
        state = row.get("state") or {}
        return cls(
            identifier=str(row.get("identifier", "")),
            dex=str(row.get("dex", "")),
            address=str(row.get("address", "")),
            order_address=str(row.get("orderAddress", "")),
            token_a=_token_id(row.get("tokenA")),
            token_b=_token_id(row.get("tokenB")),
            reserve_a=int(state.get("reserveA") or 0),
            reserve_b=int(state.get("reserveB") or 0),
            tvl=int(state.get("tvl") or 0),
            fee_percent=float(state.get("feePercent") or 0.0),
        )


def _token_id(token: Any) -> str:
    if token is None or token == LOVELACE_UNIT:
        return LOVELACE_UNIT
    if isinstance(token, dict):
        return f"{token.get('policyId', '')}{token.get('nameHex', '')}"
    return str(token)


class IrisClient(AssetMetadataProvider):

    def __init__(self, base_url: str = IRIS_BASE, timeout_s: float = 10.0,
                 session: Optional[requests.Session] = None, metrics=None):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        self.session.headers.update({"accept": "application/json"})
        self.metrics = metrics
        self._decimals_cache: Dict[str, int] = {}

    def _get(self, path: str, params: dict) -> Any:
        try:
            response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout_s)
            response.raise_for_status()
            return response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            if self.metrics is not None:
                self.metrics.record_external_error("iris")
            raise ExternalServiceError(f"iris {path}", e)

    def decimals(self, unit: str) -> int:
        """
        Decimals for a unit. Unknown assets resolve to 0.

        Raises:
            ExternalServiceError: when the Iris API call fails
        """
        unit = unit.lower()
        if unit in self._decimals_cache:
            return self._decimals_cache[unit]

        policy_id, name_hex = split_unit(unit)
        payload = self._get("/api/assets", {"policyId": policy_id, "nameHex": name_hex})
        rows = payload.get("data", []) if isinstance(payload, dict) else []

        decimals = 0
        if rows:
            try:
                decimals = max(0, int(rows[0].get("decimals") or 0))
            except (TypeError, ValueError):
                decimals = 0
        else:
            logger.debug(f"[IRIS] No metadata for {unit}, assuming 0 decimals")

        self._decimals_cache[unit] = decimals
        return decimals

    def find_pools(self, unit: str) -> List[LiquidityPool]:
        """ADA/token pools for a unit, deepest (highest TVL) first."""
        policy_id, name_hex = split_unit(unit)
        payload = self._get(
            "/api/liquidity-pools",
            {"tokenA": LOVELACE_UNIT, "tokenB": f"{policy_id}.{name_hex}"},
        )
        rows = payload.get("data", []) if isinstance(payload, dict) else []

        pools = []
        for row in rows:
            try:
                pools.append(LiquidityPool.from_api(row))
            except (TypeError, ValueError) as e:
                logger.warning(f"[IRIS] Skipping malformed pool for {unit}: {e}")
        pools.sort(key=lambda p: p.tvl, reverse=True)
        return pools

    def find_best_pool(self, unit: str) -> Optional[LiquidityPool]:
        pools = self.find_pools(unit)
        return pools[0] if pools else None
