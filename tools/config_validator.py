"""
Configuration Validation Module

Validates app.yaml, portfolio.yaml, and tokens.yaml against Pydantic schemas.
Ensures config files are correct before system startup.

Usage:
    from tools.config_validator import validate_all_configs

    errors = validate_all_configs("config")
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        sys.exit(1)
"""
import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from core.categories import RATIO_SUM_TOLERANCE, Category
from core.tokens import POLICY_ID_LENGTH

logger = logging.getLogger(__name__)

CATEGORY_NAMES = [c.value for c in Category]
_HEX = re.compile(r"^[0-9a-fA-F]+$")


# ===== App Schema =====
class AppSection(BaseModel):
    mode: str = Field(default="DRY_RUN", pattern="^(DRY_RUN|LIVE)$", description="Run mode")


class LoopConfig(BaseModel):
    interval_seconds: float = Field(default=60, gt=0, description="Seconds between iteration starts")


class UniverseConfig(BaseModel):
    source: str = Field(default="PREDEFINED_LIST", pattern="^(PREDEFINED_LIST|TOP_VOLUME|COMBINED)$")
    top_volume_count: int = Field(default=10, gt=0, le=100, description="Top-volume tokens to include")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    file: str = Field(default="logs/cardano-dex-trader.log", min_length=1)


class MonitoringConfig(BaseModel):
    metrics_enabled: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=9100, gt=0, lt=65536)
    audit_file: str = Field(default="logs/audit.jsonl", min_length=1)


class AIConfig(BaseModel):
    provider: str = Field(default="openai", pattern="^(openai|anthropic|mock)$")
    model: Optional[str] = Field(default=None, description="Provider model name")
    temperature: float = Field(default=0.1, ge=0, le=2)
    max_tokens: int = Field(default=1000, gt=0)
    timeout_s: float = Field(default=30.0, gt=0)


class MarketDataConfig(BaseModel):
    base_url: str = Field(default="https://openapi.taptools.io/api/v1", min_length=1)
    timeout_s: float = Field(default=10.0, gt=0)
    max_retries: int = Field(default=3, ge=1, le=10)


class IrisConfig(BaseModel):
    base_url: str = Field(default="https://iris.indigoprotocol.io", min_length=1)
    timeout_s: float = Field(default=10.0, gt=0)


class ExecutionConfig(BaseModel):
    executor: str = Field(default="dry_run", pattern="^(dry_run|swap_service)$")
    slippage_percent: float = Field(default=2.0, gt=0, le=50)
    swap_service_url: Optional[str] = Field(default=None, description="Swap signing service base URL")


class AppSchema(BaseModel):
    """Complete app configuration schema"""
    app: AppSection = Field(default_factory=AppSection)
    loop: LoopConfig = Field(default_factory=LoopConfig)
    universe: UniverseConfig = Field(default_factory=UniverseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    market_data: MarketDataConfig = Field(default_factory=MarketDataConfig)
    iris: IrisConfig = Field(default_factory=IrisConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)


# ===== Portfolio Schema =====
class SizingConfig(BaseModel):
    """Gate and position sizer parameters"""
    confidence_threshold: float = Field(default=0.6, ge=0, le=1)
    fee_reserve_ada: float = Field(default=2.0, ge=0, description="ADA kept back for network fees")
    dust_threshold_ada: float = Field(default=1.0, ge=0, description="Orders below this are skipped")
    default_min_trade_size: float = Field(default=50.0, gt=0)
    default_max_trade_size: float = Field(default=500.0, gt=0)
    verify_sell_holdings: bool = Field(default=False, description="Cap sells to the held token value")
    decrement_snapshot_after_order: bool = Field(default=True, description="Apply accepted orders to the iteration snapshot")

    @model_validator(mode="after")
    def validate_trade_bounds(self) -> "SizingConfig":
        if self.default_min_trade_size > self.default_max_trade_size:
            raise ValueError(
                f"default_min_trade_size ({self.default_min_trade_size}) must be "
                f"<= default_max_trade_size ({self.default_max_trade_size})"
            )
        return self


class PortfolioSchema(BaseModel):
    """Complete portfolio configuration schema"""
    target_ratios: Dict[str, float]
    category_policies: Dict[str, List[str]] = Field(default_factory=dict)
    sizing: SizingConfig = Field(default_factory=SizingConfig)

    @field_validator('target_ratios')
    @classmethod
    def validate_ratios(cls, v: Dict[str, float]) -> Dict[str, float]:
        """Every category present, each in [0, 1], summing to 1"""
        unknown = sorted(set(v) - set(CATEGORY_NAMES))
        if unknown:
            raise ValueError(f"Unknown categories: {', '.join(unknown)}")
        missing = [c for c in CATEGORY_NAMES if c not in v]
        if missing:
            raise ValueError(f"Missing categories: {', '.join(missing)}")
        for category, ratio in v.items():
            if not 0 <= ratio <= 1:
                raise ValueError(f"Ratio for {category} must be within [0, 1], got {ratio}")
        total = math.fsum(v.values())
        if abs(total - 1.0) > RATIO_SUM_TOLERANCE:
            raise ValueError(f"Target ratios must sum to 1.0, got {total:.6f}")
        return v

    @field_validator('category_policies')
    @classmethod
    def validate_policies(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        for category, policies in v.items():
            if category not in CATEGORY_NAMES:
                raise ValueError(f"Unknown category in category_policies: {category}")
            for policy_id in policies:
                if len(policy_id) != POLICY_ID_LENGTH or not _HEX.match(policy_id):
                    raise ValueError(
                        f"Policy id for {category} must be {POLICY_ID_LENGTH} hex chars, got {policy_id!r}"
                    )
        return v


# ===== Tokens Schema =====
class TokenEntry(BaseModel):
    unit: str = Field(min_length=POLICY_ID_LENGTH, description="policy id + asset name hex")
    ticker: str = Field(min_length=1)
    category: str
    min_trade_size: float = Field(gt=0, description="Minimum trade size in ADA")
    max_trade_size: float = Field(gt=0, description="Maximum trade size in ADA")
    decimals: Optional[int] = Field(default=None, ge=0)

    @field_validator('unit')
    @classmethod
    def validate_unit(cls, v: str) -> str:
        if not _HEX.match(v):
            raise ValueError(f"Unit must be hex, got {v!r}")
        return v

    @field_validator('category')
    @classmethod
    def validate_category(cls, v: str) -> str:
        if v.strip().lower() not in CATEGORY_NAMES:
            raise ValueError(f"Unknown category {v!r} (allowed: {', '.join(CATEGORY_NAMES)})")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "TokenEntry":
        if self.min_trade_size > self.max_trade_size:
            raise ValueError(
                f"{self.ticker}: min_trade_size ({self.min_trade_size}) > max_trade_size ({self.max_trade_size})"
            )
        return self


class TokensSchema(BaseModel):
    """Complete tokens configuration schema"""
    tokens: List[TokenEntry] = Field(default_factory=list)

    @field_validator('tokens')
    @classmethod
    def validate_unique_units(cls, v: List[TokenEntry]) -> List[TokenEntry]:
        seen = set()
        for entry in v:
            unit = entry.unit.lower()
            if unit in seen:
                raise ValueError(f"Duplicate token unit: {entry.unit}")
            seen.add(unit)
        return v


# ===== Validation Functions =====
def _format_yaml_error(file_path: Path, error: yaml.YAMLError) -> str:
    """Return enriched message with line/column context for YAML errors."""

    message = f"Malformed YAML in {file_path}: {error}"
    mark = getattr(error, "problem_mark", None)
    if mark is None:
        return message

    line = getattr(mark, "line", None)
    column = getattr(mark, "column", None)
    if line is None or column is None:
        return message

    raw_lines = file_path.read_text().splitlines()
    start = max(line - 2, 0)
    end = min(line + 3, len(raw_lines))

    snippet = "\n".join(
        f"{'▶' if idx == line else ' '} {idx + 1:04d} | {raw_lines[idx]}"
        for idx in range(start, end)
    )
    problem = getattr(error, "problem", str(error))

    return (
        f"Malformed YAML in {file_path}: line {line + 1}, column {column + 1}: {problem}\n"
        f"Context:\n{snippet}"
    )


def load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """
    Load YAML file and return as dict.

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is malformed
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, 'r') as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise yaml.YAMLError(_format_yaml_error(file_path, e))


def _validate_file(config_dir: Path, filename: str, schema) -> List[str]:
    errors = []
    try:
        config = load_yaml_file(config_dir / filename)
        schema(**config)
        logger.info(f"✅ {filename} validation passed")
    except FileNotFoundError as e:
        errors.append(f"{filename}: {e}")
    except yaml.YAMLError as e:
        errors.append(f"{filename}: Invalid YAML - {e}")
    except ValidationError as e:
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error['loc'])
            errors.append(f"{filename}: {field}: {error['msg']}")
    except TypeError as e:
        errors.append(f"{filename}: top level must be a mapping - {e}")
    return errors


def validate_app(config_dir: Path) -> List[str]:
    """Validate app.yaml against schema."""
    return _validate_file(config_dir, "app.yaml", AppSchema)


def validate_portfolio(config_dir: Path) -> List[str]:
    """Validate portfolio.yaml against schema."""
    return _validate_file(config_dir, "portfolio.yaml", PortfolioSchema)


def validate_tokens(config_dir: Path) -> List[str]:
    """Validate tokens.yaml against schema."""
    return _validate_file(config_dir, "tokens.yaml", TokensSchema)


def validate_sanity_checks(config_dir: Path) -> List[str]:
    """
    Perform logical consistency checks across configuration files.

    Detects:
    - Policy ids mapped to more than one category
    - Tokens whose configured category contradicts category_policies
    - Token trade bounds that can never pass the dust threshold
    - LIVE swap service execution without a service URL
    - PREDEFINED_LIST universe with no configured tokens
    """
    errors = []

    app = load_yaml_file(config_dir / "app.yaml")
    portfolio = load_yaml_file(config_dir / "portfolio.yaml")
    tokens = load_yaml_file(config_dir / "tokens.yaml").get("tokens") or []

    policy_to_category: Dict[str, str] = {}
    for category, policies in (portfolio.get("category_policies") or {}).items():
        for policy_id in policies:
            policy_id = policy_id.lower()
            previous = policy_to_category.get(policy_id)
            if previous is not None and previous != category:
                errors.append(
                    f"CONTRADICTION: Policy {policy_id} mapped to both '{previous}' and '{category}'"
                )
            policy_to_category[policy_id] = category

    dust = float((portfolio.get("sizing") or {}).get("dust_threshold_ada", 1.0))
    for token in tokens:
        policy_id = str(token["unit"])[:POLICY_ID_LENGTH].lower()
        mapped = policy_to_category.get(policy_id)
        if mapped is not None and mapped != str(token["category"]).strip().lower():
            errors.append(
                f"CONTRADICTION: {token['ticker']} configured as '{token['category']}' "
                f"but its policy is mapped to '{mapped}' in category_policies"
            )
        if float(token["max_trade_size"]) < dust:
            errors.append(
                f"UNSAFE: {token['ticker']} max_trade_size ({token['max_trade_size']}) is below "
                f"dust_threshold_ada ({dust}); it can never trade"
            )

    mode = (app.get("app") or {}).get("mode", "DRY_RUN")
    execution = app.get("execution") or {}
    if mode == "LIVE" and execution.get("executor") == "swap_service" and not execution.get("swap_service_url"):
        errors.append("MISSING: execution.swap_service_url is required for LIVE swap_service execution")

    source = (app.get("universe") or {}).get("source", "PREDEFINED_LIST")
    if source == "PREDEFINED_LIST" and not tokens:
        errors.append("INCOMPLETE: universe.source is PREDEFINED_LIST but tokens.yaml lists no tokens")

    if not errors:
        logger.info("✅ Configuration sanity checks passed")
    else:
        logger.warning(f"⚠️  {len(errors)} sanity check issue(s) found")

    return errors


def validate_all_configs(config_dir: str = "config") -> List[str]:
    """
    Validate all configuration files.

    Performs:
    1. Schema validation (Pydantic type checks)
    2. Sanity checks (logical consistency)

    Args:
        config_dir: Path to config directory (string or Path)

    Returns:
        List of all error messages (empty if all valid)
    """
    config_path = Path(config_dir)

    all_errors = []
    all_errors.extend(validate_app(config_path))
    all_errors.extend(validate_portfolio(config_path))
    all_errors.extend(validate_tokens(config_path))

    # Sanity checks (only if schema validation passed)
    if not all_errors:
        all_errors.extend(validate_sanity_checks(config_path))

    if not all_errors:
        logger.info("✅ All config files validated successfully")
    else:
        logger.error(f"❌ {len(all_errors)} validation error(s) found")

    return all_errors


if __name__ == "__main__":
    """Run validation from command line"""
    import sys

    logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')

    config_dir = sys.argv[1] if len(sys.argv) > 1 else "config"

    errors = validate_all_configs(config_dir)

    if errors:
        print("\n❌ Configuration Validation Failed:\n")
        for error in errors:
            print(f"  • {error}")
        print()
        sys.exit(1)
    else:
        print("\n✅ All configuration files are valid!\n")
        sys.exit(0)
