"""Structured logging configuration.

Provides:
  - JSON-formatted log output for unattended fuzzing campaigns
  - Human-readable colored output for local runs
  - Divergence context (target, operation, implementation) on every record
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Extra record attributes promoted into structured output
CONTEXT_FIELDS = (
    "target",
    "operation",
    "implementation",
    "diff_type",
    "case_status",
    "input_len",
    "input_bytes",
    "inputs",
    "outcomes",
)


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for campaign logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.pathname:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored human-readable formatter."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        prefix = f"{color}{ts} [{record.levelname:>8s}]{self.RESET}"
        msg = record.getMessage()

        target = getattr(record, "target", None)
        if target:
            msg = f"[{target}] {msg}"

        base = f"{prefix} {record.name}: {msg}"
        for key in ("input_bytes", "inputs"):
            value = getattr(record, key, None)
            if value:
                base += f"\n    {key}: {value}"
        for outcome in getattr(record, "outcomes", None) or ():
            status = "ok" if outcome["success"] else f"error: {outcome['error']}"
            base += f"\n    {outcome['implementation']}: {status} {outcome['output']}".rstrip()
        if record.exc_info and record.exc_info[1]:
            base += "\n" + self.formatException(record.exc_info)
        return base


def setup_logging(env: str = "development", log_level: str = "INFO") -> None:
    """Configure logging for the harness.

    Args:
        env: Application environment (development/staging/production)
        log_level: Minimum log level
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    root.handlers.clear()

    # stderr keeps stdout free for libFuzzer and report output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    if env in ("staging", "production"):
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevFormatter())

    root.addHandler(handler)


class TargetLogFilter(logging.Filter):
    """Filter that stamps the active fuzz target onto log records."""

    def __init__(self, target: str = "") -> None:
        super().__init__()
        self.target = target

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "target"):
            record.target = self.target  # type: ignore[attr-defined]
        return True
