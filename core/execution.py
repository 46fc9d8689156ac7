"""
Swap Execution

DRY_RUN executor that only logs, and a swap-service executor that routes
the order through the deepest Iris ADA pool and hands it to an external
signing service holding the wallet.

Includes deterministic swap ID generation so a retried submission of the
same order within the same minute carries the same idempotency key.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional

import requests

from core.exceptions import ConfigurationError, ExternalServiceError
from core.interfaces import SwapExecutor
from core.orders import SizedOrder, SwapEvent

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_PERCENT = 2.0


@dataclass
class ExecutionResult:
    """Outcome of draining a swap executor's event stream"""
    success: bool
    tx_id: Optional[str]
    direction: str
    amount_ada: float
    unit: str
    error: Optional[str] = None
    events: List[SwapEvent] = field(default_factory=list)
    timestamp: datetime = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(timezone.utc)


def generate_swap_id(order: SizedOrder, timestamp: Optional[datetime] = None) -> str:
    """
    Deterministic swap ID from order attributes.

    Timestamp is truncated to the minute. Format: "swap_" + 16 hex chars.
    """
    if timestamp is None:
        timestamp = datetime.now(timezone.utc)
    ts_minute = timestamp.replace(second=0, microsecond=0).isoformat()
    input_str = f"{order.unit}|{order.direction}|{order.amount_lovelace}|{ts_minute}"
    return "swap_" + hashlib.sha256(input_str.encode("utf-8")).hexdigest()[:16]


def collect_events(order: SizedOrder, events: Iterable[SwapEvent]) -> ExecutionResult:
    """Drain an event stream into an ExecutionResult. Stops at the first error."""
    seen: List[SwapEvent] = []
    for event in events:
        seen.append(event)
        logger.info(f"[SWAP] {order.ticker or order.unit[:10]}: {event.kind}"
                    + (f" tx={event.tx_id}" if event.tx_id else "")
                    + (f" reason={event.reason}" if event.reason else ""))
        if event.kind == "error":
            return ExecutionResult(False, None, order.direction, order.amount_ada, order.unit,
                                   error=event.reason, events=seen)
        if event.kind == "submitted":
            return ExecutionResult(True, event.tx_id, order.direction, order.amount_ada, order.unit,
                                   events=seen)

    return ExecutionResult(False, None, order.direction, order.amount_ada, order.unit,
                           error="no_submission", events=seen)


class DryRunSwapExecutor(SwapExecutor):
    """Logs the order and emits a synthetic submission. Nothing leaves the process and nothing is kept."""

    def execute(self, order: SizedOrder) -> Iterator[SwapEvent]:
        yield SwapEvent.building()
        logger.info(
            f"DRY_RUN: would {order.direction} {order.ticker or order.unit} "
            f"for {order.amount_ada:.2f} ADA ({order.amount_lovelace} lovelace)"
        )
        yield SwapEvent.submitted(f"dryrun_{generate_swap_id(order)}")


class SwapServiceExecutor(SwapExecutor):
    """
    Submits swaps to an external signing service.

    Buy swaps lovelace in for the token, sell swaps the token for lovelace
    out. Only the ADA amount, direction and pool are sent; the service
    builds, signs and submits the transaction.
    """

    def __init__(
        self,
        service_url: str,
        pool_finder,
        auth_token: Optional[str] = None,
        slippage_percent: float = DEFAULT_SLIPPAGE_PERCENT,
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not service_url:
            raise ConfigurationError("execution.swap_service_url is required for the swap service executor")
        self.service_url = service_url.rstrip("/")
        self.pool_finder = pool_finder
        self.slippage_percent = slippage_percent
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        if auth_token:
            self.session.headers.update({"Authorization": f"Bearer {auth_token}"})

    def execute(self, order: SizedOrder) -> Iterator[SwapEvent]:
        yield SwapEvent.building()

        try:
            pool = self.pool_finder.find_best_pool(order.unit)
        except ExternalServiceError as e:
            yield SwapEvent.error(f"pool_lookup_failed: {e}")
            return
        if pool is None:
            yield SwapEvent.error(f"no_ada_pool for {order.unit}")
            return

        payload = {
            "swap_id": generate_swap_id(order),
            "direction": order.direction,
            "unit": order.unit,
            "pool": pool.identifier,
            "dex": pool.dex,
            "slippage_percent": self.slippage_percent,
        }
        if order.direction == "buy":
            payload["swap_in_lovelace"] = order.amount_lovelace
        else:
            payload["swap_out_lovelace"] = order.amount_lovelace

        logger.info(
            f"LIVE: submitting {order.direction} {order.ticker or order.unit} "
            f"{order.amount_ada:.2f} ADA via {pool.dex} pool {pool.identifier} (TVL {pool.tvl})"
        )

        try:
            response = self.session.post(f"{self.service_url}/swap", json=payload, timeout=self.timeout_s)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            text = e.response.text[:200] if e.response is not None else ""
            yield SwapEvent.error(f"swap_service_http_{status_code}: {text}")
            return
        except (requests.exceptions.RequestException, ValueError) as e:
            yield SwapEvent.error(f"swap_service_unreachable: {e}")
            return

        tx_id = (body.get("tx_hash") or body.get("tx_id")) if isinstance(body, dict) else None
        if not tx_id:
            yield SwapEvent.error(f"swap_service_no_tx: {str(body)[:200]}")
            return
        yield SwapEvent.submitted(str(tx_id))


def create_swap_executor(
    mode: str,
    executor: str = "dry_run",
    service_url: Optional[str] = None,
    pool_finder=None,
    auth_token: Optional[str] = None,
    slippage_percent: float = DEFAULT_SLIPPAGE_PERCENT,
) -> SwapExecutor:
    """
    Build the swap executor for a run mode.

    DRY_RUN always gets the dry-run executor regardless of the configured one.

    Raises:
        ConfigurationError: unknown mode/executor or missing service settings
    """
    mode = mode.upper()
    if mode not in ("DRY_RUN", "LIVE"):
        raise ConfigurationError(f"Unknown mode: {mode}. Use 'DRY_RUN' or 'LIVE'")
    if mode == "DRY_RUN":
        return DryRunSwapExecutor()

    executor = executor.lower()
    if executor == "dry_run":
        logger.warning("LIVE mode with dry_run executor: swaps will only be logged")
        return DryRunSwapExecutor()
    if executor == "swap_service":
        if pool_finder is None:
            raise ConfigurationError("swap_service executor requires a pool finder")
        return SwapServiceExecutor(
            service_url=service_url or "",
            pool_finder=pool_finder,
            auth_token=auth_token,
            slippage_percent=slippage_percent,
        )
    raise ConfigurationError(f"Unknown executor: {executor}. Use 'dry_run' or 'swap_service'")
