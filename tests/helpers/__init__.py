"""Test helpers for cardano-dex-trader test suite"""

from tests.helpers.market_stubs import (
    TALOS_UNIT,
    RAD_UNIT,
    DJED_UNIT,
    SNEK_UNIT,
    LQ_UNIT,
    WMTX_UNIT,
    DEFAULT_RATIOS,
    FakeMarketData,
    FakeMetadata,
    ScriptedDecisionSource,
    RecordingExecutor,
    make_registry,
    rec,
)

__all__ = [
    "TALOS_UNIT",
    "RAD_UNIT",
    "DJED_UNIT",
    "SNEK_UNIT",
    "LQ_UNIT",
    "WMTX_UNIT",
    "DEFAULT_RATIOS",
    "FakeMarketData",
    "FakeMetadata",
    "ScriptedDecisionSource",
    "RecordingExecutor",
    "make_registry",
    "rec",
]
