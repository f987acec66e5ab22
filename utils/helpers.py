#!/usr/bin/env python3
"""
Helper Utilities
Per-request trace logging and formatting helpers for log lines
"""

import logging
import shlex
import uuid
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

TraceFn = Callable[..., None]


def make_trace_logger() -> tuple[str, TraceFn]:
    """Create a per-request trace logger with a short id."""
    trace_id = uuid.uuid4().hex[:8]

    def log(stage: str, message: str, level: int = logging.INFO):
        logger.log(level, f"[{trace_id}] {stage} | {message}")

    return trace_id, log


def emit_log(log_fn: Optional[TraceFn], stage: str, message: str, level: int = logging.INFO):
    """Emit a log line using the trace logger if provided."""
    if log_fn:
        log_fn(stage, message, level)
    else:
        logger.log(level, f"{stage} | {message}")


def quote_args(args: List[str]) -> str:
    """Shell-quote each argument; empty tokens survive as ''."""
    return " ".join(shlex.quote(str(part)) for part in args)


def safe_cmd(command: str, args: List[str]) -> str:
    """Return the command line as the shell will see it, for logging."""
    return f"{command} {quote_args(args)}".rstrip()


def truncate(text: str, limit: int = 200) -> str:
    """Truncate long text for logs."""
    if len(text) <= limit:
        return text
    return text[:limit] + "... [truncated]"
