"""Audit logging for sandboxed code executions."""

import hashlib
import json
import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any


class ExecutionAuditLogger:
    """Writes one JSON line per sandbox execution."""

    def __init__(self, config: dict = None):
        """
        Initialize audit logger.

        Args:
            config: Configuration dict with ``enabled`` and ``log_file``
        """
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)
        log_file = self.config.get("log_file", "logs/code_execution_audit.log")

        if not self.enabled:
            self.logger = None
            return

        # One logger per file so tests with separate files don't share handlers
        self.logger = logging.getLogger(f"code_execution_audit.{log_file}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
        except (PermissionError, OSError):
            # Fallback to local logs directory for CI/test environments
            fallback_dir = Path("logs")
            fallback_dir.mkdir(parents=True, exist_ok=True)
            log_path = fallback_dir / "code_execution_audit.log"

        if not self.logger.handlers:
            handler = RotatingFileHandler(
                log_path,
                maxBytes=100 * 1024 * 1024,  # 100MB
                backupCount=10,
            )
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

    def log_execution(
        self,
        code: str,
        execution_result: Any,
        dataset_path: str = None,
        output_format: str = None,
    ) -> None:
        """
        Log a finished execution.

        Args:
            code: The analysis code that was run (without the envelope)
            execution_result: ExecutionResult of the run
            dataset_path: Dataset the script loaded
            output_format: Requested chart format
        """
        if not self.enabled or self.logger is None:
            return

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "code_execution",
            "execution_id": getattr(execution_result, "execution_id", None),
            "code_hash": hashlib.sha256(code.encode()).hexdigest()[:16],
            "code": code[:1000],
            "code_length": len(code),
            "dataset_path": dataset_path,
            "output_format": output_format,
            "state": str(getattr(execution_result, "state", "")),
            "success": getattr(execution_result, "success", None),
            "exit_code": getattr(execution_result, "exit_code", None),
            "error_type": getattr(execution_result, "error_type", None),
            "execution_time": getattr(execution_result, "execution_time", None),
        }

        if log_entry["success"]:
            self.logger.info(json.dumps(log_entry))
        else:
            log_entry["error"] = (getattr(execution_result, "error", None) or "")[:500]
            self.logger.warning(json.dumps(log_entry))

    def log_timeout(self, execution_id: str, timeout_seconds: float, pid: int = None) -> None:
        """Log a process killed for exceeding its wall-clock budget."""
        if not self.enabled or self.logger is None:
            return

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "resource_limit_exceeded",
            "resource_type": "timeout",
            "execution_id": execution_id,
            "limit": timeout_seconds,
        }
        if pid is not None:
            log_entry["pid"] = pid

        self.logger.warning(json.dumps(log_entry))
