"""
Audit Logger

Structured record of every trading iteration for debugging and analysis.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Structured audit trail logger.

    Logs every iteration including:
    - Portfolio snapshot (per-category ADA values)
    - Per-token outcomes (executed, skip reason, error)
    - Iteration status and fatal errors

    Output format: JSONL (one JSON object per line)
    """

    def __init__(self, audit_file: Optional[str] = None):
        """
        Initialize audit logger.

        Args:
            audit_file: Path to audit log file (default: logs/audit.jsonl)
        """
        if audit_file:
            self.audit_file = Path(audit_file)
        else:
            self.audit_file = Path("logs/audit.jsonl")

        self.audit_file.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Initialized AuditLogger at {self.audit_file}")

    def log_iteration(self, result: Any, mode: str, config_hash: Optional[str] = None) -> None:
        """
        Append one iteration record.

        Args:
            result: IterationResult from the trading pipeline
            mode: Trading mode (DRY_RUN, LIVE)
            config_hash: Hash of the loaded configuration for drift detection
        """
        entry = {
            "timestamp": result.started_at.isoformat(),
            "iteration": result.iteration,
            "mode": mode,
            "status": self._determine_status(result),
            "error": result.error,
            "config_hash": config_hash,
            "duration_seconds": round(result.duration_seconds, 3),
            "universe_size": result.universe_size,
            "constrained": result.constrained,
            "portfolio": result.snapshot.summary() if result.snapshot is not None else None,
            "summary": {
                "tokens": len(result.outcomes),
                "approved": result.approved,
                "executed": result.executed,
                "failed": result.failed,
            },
            "tokens": [outcome.to_dict() for outcome in result.outcomes],
        }

        try:
            with open(self.audit_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to write audit log: {e}")
            return

        logger.debug(f"Audited iteration {result.iteration}: status={entry['status']}")

    @staticmethod
    def _determine_status(result: Any) -> str:
        if result.status == "fatal":
            return "FATAL"
        if result.executed:
            return "EXECUTED"
        if result.status == "empty_universe":
            return "EMPTY_UNIVERSE"
        return "NO_TRADE"

    def get_recent_iterations(self, n: int = 10) -> List[Dict[str, Any]]:
        """
        Get the N most recent iteration records.

        Returns:
            List of iteration entries (most recent first)
        """
        if not self.audit_file.exists():
            return []

        with open(self.audit_file, "r", encoding="utf-8") as f:
            lines = f.readlines()

        iterations = []
        for line in lines[-n:]:
            try:
                iterations.append(json.loads(line))
            except json.JSONDecodeError:
                continue

        return list(reversed(iterations))
