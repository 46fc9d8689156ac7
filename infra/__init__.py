"""Infrastructure modules for cardano-dex-trader"""

from .metrics import MetricsRecorder, IterationStats  # noqa: F401
from .taptools import TapToolsClient  # noqa: F401
from .iris import IrisClient, LiquidityPool  # noqa: F401

__all__ = [
	"MetricsRecorder",
	"IterationStats",
	"TapToolsClient",
	"IrisClient",
	"LiquidityPool",
]
