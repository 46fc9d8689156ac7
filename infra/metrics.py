"""Prometheus-backed metrics hooks for the trading loop and collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from prometheus_client import REGISTRY, Counter, Gauge, Summary, start_http_server

logger = logging.getLogger(__name__)

METRIC_PREFIXES = ("dextrader_", "dex_api_")


@dataclass
class IterationStats:
    status: str
    tokens: int
    approved: int
    executed: int
    duration_seconds: float


class MetricsRecorder:
    """
    Expose trading loop stats via Prometheus.

    Singleton pattern to prevent duplicate metric registration errors.
    """
    _instance: Optional['MetricsRecorder'] = None
    _initialized: bool = False

    def __new__(cls, enabled: bool = True, port: int = 9100):
        """Ensure only one MetricsRecorder instance exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, enabled: bool = True, port: int = 9100) -> None:
        if self.__class__._initialized:
            return

        self._enabled = bool(enabled)
        self._port = port
        self._started = False
        self.__class__._initialized = True

        self._last_iteration: Optional[IterationStats] = None
        self._last_api_event: Optional[Dict[str, str]] = None
        self._outcome_counts: Dict[str, int] = {}
        self._external_errors: Dict[str, int] = {}
        self._last_category_values: Dict[str, float] = {}

        if not self._enabled:
            self._iteration_summary = None
            self._iteration_counter = None
            self._iteration_gauge = None
            self._token_outcome_counter = None
            self._category_value_gauge = None
            self._total_value_gauge = None
            self._api_latency_summary = None
            self._api_errors_counter = None
            return

        self._iteration_summary = Summary(
            "dextrader_iteration_duration_seconds",
            "Duration of a full trading loop iteration",
        )
        self._iteration_counter = Counter(
            "dextrader_iteration_total",
            "Total trading iterations by status",
            labelnames=("status",),
        )
        self._iteration_gauge = Gauge(
            "dextrader_iteration_stage_count",
            "Per-iteration counts (tokens, approved, executed)",
            labelnames=("stage",),
        )
        self._token_outcome_counter = Counter(
            "dextrader_token_outcomes_total",
            "Per-token outcomes (executed, skipped reasons, errors)",
            labelnames=("outcome",),
        )
        self._category_value_gauge = Gauge(
            "dextrader_category_value_ada",
            "Portfolio value per category in ADA",
            labelnames=("category",),
        )
        self._total_value_gauge = Gauge(
            "dextrader_portfolio_value_ada",
            "Total portfolio value in ADA",
        )
        self._api_latency_summary = Summary(
            "dex_api_latency_seconds",
            "Latency of external API calls",
            labelnames=("service", "endpoint", "status"),
        )
        self._api_errors_counter = Counter(
            "dex_api_errors_total",
            "Total number of failed external API calls",
            labelnames=("service",),
        )

    @classmethod
    def _reset_for_testing(cls) -> None:
        """
        Reset singleton state for testing.
        WARNING: Only call from test fixtures/teardown.
        """
        for collector in list(REGISTRY._collector_to_names):
            names = REGISTRY._collector_to_names.get(collector, set())
            if any(name.startswith(METRIC_PREFIXES) for name in names):
                REGISTRY.unregister(collector)

        cls._instance = None
        cls._initialized = False

    def start(self) -> None:
        if not self._enabled or self._started:
            return

        ports_to_try = [self._port, self._port + 1, self._port + 2, self._port + 3]
        last_error = None

        for port in ports_to_try:
            try:
                start_http_server(port)
                self._started = True
                if port != self._port:
                    logger.warning(
                        "Port %s in use, successfully bound to port %s instead",
                        self._port, port
                    )
                    self._port = port
                logger.info("Prometheus metrics exporter listening on 0.0.0.0:%s", self._port)
                return
            except OSError as exc:
                last_error = exc
                if port != ports_to_try[-1]:
                    logger.debug("Port %s in use, trying next port...", port)
                continue

        self._enabled = False
        logger.error(
            "Failed to start metrics exporter after trying ports %s: %s",
            ports_to_try, last_error
        )

    def is_enabled(self) -> bool:
        return self._enabled

    def observe_iteration(self, stats: IterationStats) -> None:
        if self._enabled:
            assert self._iteration_summary and self._iteration_counter and self._iteration_gauge
            self._iteration_summary.observe(stats.duration_seconds)
            self._iteration_counter.labels(status=stats.status).inc()
            self._iteration_gauge.labels(stage="tokens").set(stats.tokens)
            self._iteration_gauge.labels(stage="approved").set(stats.approved)
            self._iteration_gauge.labels(stage="executed").set(stats.executed)

        self._last_iteration = stats

    def record_token_outcome(self, outcome: str) -> None:
        # Outcome strings are a closed set (executed / skip reasons / error)
        self._outcome_counts[outcome] = self._outcome_counts.get(outcome, 0) + 1
        if self._enabled and self._token_outcome_counter:
            self._token_outcome_counter.labels(outcome=outcome).inc()

    def record_portfolio(self, category_values: Mapping[str, float], total_ada: float) -> None:
        """Record per-category and total portfolio value in ADA."""
        self._last_category_values = {str(k): float(v) for k, v in category_values.items()}
        if self._enabled and self._category_value_gauge and self._total_value_gauge:
            for category, value in self._last_category_values.items():
                self._category_value_gauge.labels(category=category).set(max(value, 0.0))
            self._total_value_gauge.set(max(total_ada, 0.0))

    def record_api_call(self, service: str, endpoint: str, duration: float, status: str) -> None:
        self._last_api_event = {
            "service": service,
            "endpoint": endpoint,
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self._enabled and self._api_latency_summary:
            self._api_latency_summary.labels(
                service=service,
                endpoint=endpoint,
                status=status,
            ).observe(duration)

    def record_external_error(self, service: str) -> None:
        self._external_errors[service] = self._external_errors.get(service, 0) + 1
        if self._enabled and self._api_errors_counter:
            self._api_errors_counter.labels(service=service).inc()

    def last_iteration(self) -> Optional[IterationStats]:
        return self._last_iteration

    def last_api_event(self) -> Optional[Dict[str, str]]:
        return dict(self._last_api_event) if self._last_api_event else None

    def outcome_snapshot(self) -> Dict[str, int]:
        return dict(self._outcome_counts)

    def external_error_snapshot(self) -> Dict[str, int]:
        return dict(self._external_errors)

    def portfolio_snapshot(self) -> Dict[str, float]:
        return dict(self._last_category_values)


__all__ = ["MetricsRecorder", "IterationStats"]
