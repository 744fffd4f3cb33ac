"""
Centralized logging configuration for nsrip.

Provides structured JSONL logging with rotation, context injection,
and component-specific loggers. File output is opt-in through
environment variables or the CLI so that stdout stays reserved for
scan results.

Run ID Propagation:
    Use `set_run_id()` at the start of a scan. The run ID will be
    automatically included in all JSON log records emitted from the
    same async context, including every dispatcher worker task.

    Example:
        from nsrip.logging_config import set_run_id, get_logger

        token = set_run_id(uuid.uuid4().hex)
        logger = get_logger("dispatcher")
        logger.info("Dispatch started", extra={"queries": 42})
        # Log will include: "run_id": "<hex>"
"""
import contextvars
import json
import logging
import logging.handlers
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional


COMPONENTS = ["cli", "pipeline", "resolver", "query", "dispatcher", "progress", "sink", "sources"]

# Context variable for run ID propagation across tasks
_run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "run_id", default=""
)


def set_run_id(run_id: str) -> contextvars.Token:
    """
    Set the current run ID for this async context.

    Args:
        run_id: The run ID to set

    Returns:
        Token that can be used to reset the context variable
    """
    return _run_id_var.set(run_id)


def get_run_id() -> str:
    """Get the current run ID, or empty string if not set."""
    return _run_id_var.get()


def reset_run_id(token: contextvars.Token) -> None:
    _run_id_var.reset(token)


class JSONLFormatter(logging.Formatter):
    """
    Formatter that outputs logs in JSON Lines format.
    Each log entry is a single-line JSON object with standardized fields.
    Automatically includes run_id from contextvars if set.
    """

    # Extra attributes copied from `logger.x("msg", extra={...})`
    EXTRA_ATTRS = [
        "worker_id", "nameserver", "nameserver_ip", "domain", "records",
        "outcome", "state", "error_type", "queries", "nameservers",
        "resolved", "domains", "workers", "completed", "total", "duration",
        "path", "provider",
    ]

    def __init__(self, component: str = "nsrip"):
        super().__init__()
        self.component = component

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "message": record.getMessage(),
            "process_id": record.process,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        run_id = get_run_id()
        if run_id:
            log_data["run_id"] = run_id

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        for attr in self.EXTRA_ATTRS:
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)

        return json.dumps(log_data, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that automatically injects context into log records.
    Used to tag every record of a dispatcher worker with its worker_id.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    component: str = "nsrip",
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: int = 5,
    enable_console: bool = True,
) -> logging.Logger:
    """
    Set up logging configuration for an nsrip component.

    Args:
        component: Component name (resolver, dispatcher, sink, etc.)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a JSONL log file (default: $NSRIP_LOG_FILE, none if unset)
        max_bytes: Max bytes per log file before rotation (default: 10MB)
        backup_count: Number of backup files to keep
        enable_console: Whether to log human-readable lines to stderr

    Returns:
        Configured logger instance
    """
    log_level = (log_level or os.getenv("NSRIP_LOG_LEVEL", "WARNING")).upper()
    log_file = log_file or os.getenv("NSRIP_LOG_FILE") or None
    max_bytes = max_bytes or int(os.getenv("NSRIP_LOG_MAX_BYTES", str(10 * 1024 * 1024)))

    numeric_level = getattr(logging, log_level, logging.WARNING)

    logger = logging.getLogger(f"nsrip.{component}")
    logger.setLevel(numeric_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(JSONLFormatter(component=component))
            logger.addHandler(file_handler)
        except OSError as e:
            sys.stderr.write(f"Failed to set up file logging to {log_file}: {e}\n")

    if enable_console:
        # stderr: stdout carries scan results
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(console_handler)

    # Nothing at all configured still needs a sink, or logging falls back to lastResort
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.debug(
        "Logging configured",
        extra={"state": "configured", "path": log_file},
    )

    return logger


def get_logger(component: str, context: Optional[Dict[str, Any]] = None) -> logging.Logger:
    """
    Get or create a logger for a component with optional context.

    Args:
        component: Component name (resolver, dispatcher, sink, etc.)
        context: Optional context dictionary to inject into all logs

    Returns:
        Logger or ContextAdapter if context is provided
    """
    logger = logging.getLogger(f"nsrip.{component}")

    if not logger.handlers:
        logger = setup_logging(component)

    if context:
        return ContextAdapter(logger, context)  # type: ignore[return-value]

    return logger


def init_component_loggers(**kwargs: Any) -> Dict[str, logging.Logger]:
    """(Re)configure the loggers of every nsrip component with the same options."""
    return {component: setup_logging(component, **kwargs) for component in COMPONENTS}
