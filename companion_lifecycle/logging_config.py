"""
Structured JSON logging for lifecycle observability.

Provides structured logging with run IDs for correlating logs across
lifecycle steps, plus a context manager for step-level timing.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variables for run correlation
run_id_var: ContextVar[str | None] = ContextVar("run_id", default=None)
step_var: ContextVar[str | None] = ContextVar("step", default=None)

# Extra record attributes copied into JSON output when present
EXTRA_FIELDS = (
    "event",
    "duration_ms",
    "records_selected",
    "records_processed",
    "conversation_id",
    "archive_id",
    "request_id",
    "channel",
    "recipient",
    "protected_by_hold",
)


# -----------------------------------------------------------------------------
# JSON Formatter
# -----------------------------------------------------------------------------


class JSONFormatter(logging.Formatter):
    """
    Format log records as single-line JSON.

    Output format:
    {"timestamp": "...", "level": "INFO", "message": "...", "run_id": "...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_var.get()
        if run_id:
            log_data["run_id"] = run_id

        step = getattr(record, "step", None) or step_var.get()
        if step:
            log_data["step"] = step

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def configure_logging(json_format: bool = True, level: str = "INFO") -> None:
    """
    Configure logging for deployed or local runs.

    Args:
        json_format: If True, use JSON format. If False, use human-readable format.
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


# -----------------------------------------------------------------------------
# Context Managers
# -----------------------------------------------------------------------------


@contextmanager
def log_run(run_id: str):
    """Bind a run ID to every log line emitted inside the block."""
    token = run_id_var.set(run_id)
    try:
        yield
    finally:
        run_id_var.reset(token)


@contextmanager
def log_step(step: str):
    """
    Context manager for step-level logging.

    Logs step start and end with duration, automatically tracks timing.

    Usage:
        with log_step("archive"):
            # ... step logic ...
    """
    token = step_var.set(step)

    start_time = time.time()
    logger = logging.getLogger("lifecycle")

    logger.info(f"Step {step} started", extra={"event": "step_start", "step": step})

    try:
        yield
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Step {step} completed",
            extra={
                "event": "step_complete",
                "step": step,
                "duration_ms": duration_ms,
            },
        )
    except Exception as e:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"Step {step} failed: {e}",
            extra={
                "event": "step_failed",
                "step": step,
                "duration_ms": duration_ms,
            },
            exc_info=True,
        )
        raise
    finally:
        step_var.reset(token)


def mask_phone(phone_number: str | None) -> str:
    """Mask a phone number for logs, keeping the last three digits."""
    if not phone_number:
        return "<none>"
    return f"***{phone_number[-3:]}"
