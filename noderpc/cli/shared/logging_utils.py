"""Loguru helpers for consistent logging in CLI commands."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}
_STDERR_SINK_ID: int | None = None


def _log_dir() -> Path:
    return Path.home() / ".noderpc" / "logs"


def configure_stderr(verbose: bool = False) -> None:
    """Replace loguru's default stderr sink; DEBUG when verbose, WARNING otherwise."""
    global _STDERR_SINK_ID
    if _STDERR_SINK_ID is None:
        logger.remove()
    else:
        logger.remove(_STDERR_SINK_ID)
    # sys.stderr is looked up per message
    _STDERR_SINK_ID = logger.add(lambda msg: sys.stderr.write(msg), level="DEBUG" if verbose else "WARNING")


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = _log_dir() / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    log_path.parent.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
