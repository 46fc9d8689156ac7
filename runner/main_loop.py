"""
cardano-dex-trader Runner: Main Loop

Schedules the trading pipeline on a fixed interval.

Flow per iteration:
1. Resolve token universe
2. Value the wallet portfolio (once)
3. Per token: market data -> LLM decision -> gate -> position sizer -> swap

Iterations never overlap: the next one is scheduled only after the previous
one has completed. SIGINT/SIGTERM stop the loop after the current iteration.
"""

import hashlib
import logging
import os
import signal
import time
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from ai.advisor import LLMDecisionSource
from ai.model_client import create_model_client
from core.audit_log import AuditLogger
from core.categories import TargetRatios
from core.decision_gate import DecisionGate
from core.exceptions import ConfigurationError
from core.execution import create_swap_executor
from core.interfaces import AssetMetadataProvider, DecisionSource, MarketDataProvider, SwapExecutor
from core.position_sizer import PositionSizer
from core.tokens import PolicyClassifier, TokenRegistry
from core.trading_cycle import IterationResult, TradingCyclePipeline
from core.universe import TokenSource, UniverseResolver
from core.valuation import PortfolioValuationEngine
from infra.iris import IrisClient
from infra.metrics import IterationStats, MetricsRecorder
from infra.taptools import TapToolsClient

logger = logging.getLogger(__name__)

CONFIG_FILES = ("app.yaml", "portfolio.yaml", "tokens.yaml")
PROVIDER_KEY_ENV = {"openai": "OPENAI_API_KEY", "anthropic": "ANTHROPIC_API_KEY"}
SLEEP_SLICE_SECONDS = 1.0


class TradingLoop:
    """
    Main trading loop orchestrator.

    Responsibilities:
    - Load and validate config
    - Build collaborators (market data, metadata, decision source, executor)
    - Run periodic iterations
    - Record metrics and audit entries
    """

    def __init__(self,
                 config_dir: str = "config",
                 market_data: Optional[MarketDataProvider] = None,
                 metadata: Optional[AssetMetadataProvider] = None,
                 decision_source: Optional[DecisionSource] = None,
                 executor: Optional[SwapExecutor] = None):
        self.config_dir = Path(config_dir)
        from tools.config_validator import validate_all_configs
        validation_errors = validate_all_configs(config_dir)
        if validation_errors:
            logger.error("=" * 80)
            logger.error("CONFIGURATION VALIDATION FAILED")
            logger.error("=" * 80)
            for idx, error in enumerate(validation_errors, start=1):
                lines = str(error).splitlines()
                if not lines:
                    continue
                logger.error(f"{idx:>2}. {lines[0]}")
            logger.error("=" * 80)
            raise ConfigurationError(f"Invalid configuration: {len(validation_errors)} error(s) found")

        self.app_config = self._load_yaml("app.yaml")
        self.portfolio_config = self._load_yaml("portfolio.yaml")
        self.tokens_config = self._load_yaml("tokens.yaml")

        self.config_hash = self._compute_config_hash()

        self.mode = (self.app_config.get("app") or {}).get("mode", "DRY_RUN").upper()

        log_cfg = self.app_config.get("logging") or {}
        log_file = log_cfg.get("file", "logs/cardano-dex-trader.log")
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        logging.basicConfig(
            level=getattr(logging, log_cfg.get("level", "INFO").upper()),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            handlers=[logging.FileHandler(log_file), logging.StreamHandler()],
        )

        logger.info(f"Starting cardano-dex-trader in mode={self.mode}")
        logger.info(f"Configuration hash: {self.config_hash} (app+portfolio+tokens)")

        load_dotenv()

        loop_cfg = self.app_config.get("loop") or {}
        self.loop_interval_seconds = float(loop_cfg.get("interval_seconds", 60))

        # Portfolio constraints
        sizing_cfg = self.portfolio_config.get("sizing") or {}
        self.target_ratios = TargetRatios(self.portfolio_config["target_ratios"])
        classifier = PolicyClassifier(self.portfolio_config.get("category_policies") or {})
        self.tokens = TokenRegistry.from_config(self.tokens_config, classifier=classifier)

        self.gate = DecisionGate(
            confidence_threshold=sizing_cfg.get("confidence_threshold", 0.6),
            default_min_trade_size=sizing_cfg.get("default_min_trade_size", 50.0),
            default_max_trade_size=sizing_cfg.get("default_max_trade_size", 500.0),
        )
        self.sizer = PositionSizer(
            target_ratios=self.target_ratios,
            fee_reserve_ada=sizing_cfg.get("fee_reserve_ada", 2.0),
            dust_threshold_ada=sizing_cfg.get("dust_threshold_ada", 1.0),
            verify_sell_holdings=bool(sizing_cfg.get("verify_sell_holdings", False)),
        )

        # Observability
        monitoring_cfg = self.app_config.get("monitoring") or {}
        self.metrics = MetricsRecorder(
            enabled=bool(monitoring_cfg.get("metrics_enabled", False)),
            port=int(monitoring_cfg.get("metrics_port", 9100)),
        )
        self.metrics.start()
        self.audit = AuditLogger(monitoring_cfg.get("audit_file", "logs/audit.jsonl"))

        # Collaborators
        self.market_data = market_data or self._build_market_data()
        iris_cfg = self.app_config.get("iris") or {}
        self.iris = IrisClient(
            base_url=iris_cfg.get("base_url", "https://iris.indigoprotocol.io"),
            timeout_s=float(iris_cfg.get("timeout_s", 10.0)),
            metrics=self.metrics,
        )
        self.metadata = metadata or self.iris
        self.decision_source = decision_source or self._build_decision_source()
        self.executor = executor or self._build_executor()

        self.address = os.getenv("CARDANO_ADDRESS") or None

        universe_cfg = self.app_config.get("universe") or {}
        self.universe = UniverseResolver(
            registry=self.tokens,
            market_data=self.market_data,
            source=TokenSource.parse(universe_cfg.get("source", "PREDEFINED_LIST")),
            top_volume_count=int(universe_cfg.get("top_volume_count", 10)),
        )

        self.pipeline = TradingCyclePipeline(
            universe=self.universe,
            market_data=self.market_data,
            valuation=PortfolioValuationEngine(self.tokens, metadata=self.metadata),
            decision_source=self.decision_source,
            gate=self.gate,
            sizer=self.sizer,
            executor=self.executor,
            address=self.address,
            target_ratios=self.target_ratios,
            decrement_snapshot=bool(sizing_cfg.get("decrement_snapshot_after_order", True)),
            metrics=self.metrics,
        )

        self.iteration = 0

        # Shutdown flag
        self._running = True
        signal.signal(signal.SIGINT, self._handle_stop)
        signal.signal(signal.SIGTERM, self._handle_stop)

        logger.info(f"Initialized TradingLoop in {self.mode} mode with {len(self.tokens)} configured tokens")

    def _handle_stop(self, *_):
        """Stop after the current iteration completes."""
        logger.info("Stop signal received, finishing current iteration...")
        self._running = False

    @staticmethod
    def _require_env(name: str) -> str:
        value = os.getenv(name)
        if not value:
            raise ConfigurationError(f"{name} environment variable is required")
        return value

    def _build_market_data(self) -> MarketDataProvider:
        cfg = self.app_config.get("market_data") or {}
        return TapToolsClient(
            api_key=self._require_env("TAP_TOOLS_API_KEY"),
            base_url=cfg.get("base_url", "https://openapi.taptools.io/api/v1"),
            timeout_s=float(cfg.get("timeout_s", 10.0)),
            max_retries=int(cfg.get("max_retries", 3)),
            metrics=self.metrics,
        )

    def _build_decision_source(self) -> DecisionSource:
        cfg = self.app_config.get("ai") or {}
        provider = cfg.get("provider", "openai").lower()
        api_key = self._require_env(PROVIDER_KEY_ENV[provider]) if provider in PROVIDER_KEY_ENV else None
        client = create_model_client(
            provider,
            api_key=api_key,
            model=cfg.get("model"),
            temperature=cfg.get("temperature", 0.1),
            max_tokens=cfg.get("max_tokens", 1000),
        )
        logger.info(f"Decision source: provider={provider} model={client.model}")
        return LLMDecisionSource(client, timeout_s=float(cfg.get("timeout_s", 30.0)))

    def _build_executor(self) -> SwapExecutor:
        cfg = self.app_config.get("execution") or {}
        return create_swap_executor(
            mode=self.mode,
            executor=cfg.get("executor", "dry_run"),
            service_url=cfg.get("swap_service_url"),
            pool_finder=self.iris,
            auth_token=os.getenv("SWAP_SERVICE_TOKEN"),
            slippage_percent=float(cfg.get("slippage_percent", 2.0)),
        )

    def _load_yaml(self, filename: str) -> dict:
        """Load YAML config file"""
        path = self.config_dir / filename
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def _compute_config_hash(self) -> str:
        """
        SHA256 of the config files, first 16 hex chars.

        Recorded with every audit entry for configuration drift detection.
        """
        hasher = hashlib.sha256()
        for filename in CONFIG_FILES:
            with open(self.config_dir / filename, 'rb') as f:
                hasher.update(f.read())
        return hasher.hexdigest()[:16]

    def run_iteration(self) -> Optional[IterationResult]:
        """
        Run one iteration and record it.

        Returns None when the iteration itself crashed; the schedule continues.
        """
        self.iteration += 1
        logger.info("=" * 80)
        logger.info(f"ITERATION {self.iteration} START (mode={self.mode})")
        logger.info("=" * 80)

        start = time.monotonic()
        try:
            result = self.pipeline.execute_iteration(self.iteration)
        except Exception as e:
            logger.error(f"Iteration {self.iteration} crashed: {e}", exc_info=True)
            self.metrics.observe_iteration(
                IterationStats(status="error", tokens=0, approved=0, executed=0,
                               duration_seconds=time.monotonic() - start)
            )
            return None

        self.metrics.observe_iteration(
            IterationStats(
                status=result.status,
                tokens=len(result.outcomes),
                approved=result.approved,
                executed=result.executed,
                duration_seconds=result.duration_seconds,
            )
        )
        self.audit.log_iteration(result, mode=self.mode, config_hash=self.config_hash)
        return result

    def run_forever(self, interval_seconds: Optional[float] = None):
        """
        Run trading loop continuously with time-aware sleep.

        Args:
            interval_seconds: Seconds between iteration starts
        """
        configured_interval = float(interval_seconds) if interval_seconds else self.loop_interval_seconds
        configured_interval = max(configured_interval, 1.0)

        logger.info(f"Starting continuous loop (interval={configured_interval}s)")

        while self._running:
            start = time.monotonic()
            self.run_iteration()
            elapsed = time.monotonic() - start

            if not self._running:
                break

            sleep_for = max(1.0, configured_interval - elapsed)
            logger.info(f"Iteration took {elapsed:.2f}s, sleeping {sleep_for:.2f}s")
            self._sleep_until_stopped(sleep_for)

        logger.info("Trading loop stopped cleanly.")

    def _sleep_until_stopped(self, seconds: float):
        """Sleep for up to seconds, returning early once a stop is requested."""
        deadline = time.monotonic() + seconds
        while self._running:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(remaining, SLEEP_SLICE_SECONDS))


def main():
    """Entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="cardano-dex-trader swap agent")
    parser.add_argument("--once", action="store_true", help="Run one iteration and exit")
    parser.add_argument("--interval", type=float, default=None,
                        help="Seconds between iterations (default: loop.interval_seconds)")
    parser.add_argument("--config-dir", default="config", help="Config directory")

    args = parser.parse_args()

    loop = TradingLoop(config_dir=args.config_dir)

    if args.once:
        loop.run_iteration()
    else:
        loop.run_forever(interval_seconds=args.interval)


if __name__ == "__main__":
    main()
