"""
OMS Agent Maintenance Logging Configuration.

Provides consistent logging across the maintenance components with:
- Structured JSON output for production
- Human-readable output for development
- Console echo of ``info``/``error``/``debug`` lines on stdout for the
  onboarding scripts, which can be suppressed independently of the log
- Optional syslog forwarding to the facility named in the agent config
- Sensitive data filtering

Usage:
    from oms_maintenance.logging import get_logger, configure_logging

    # At application startup
    configure_logging(level="INFO", facility="local0", echo=True)

    # In modules
    logger = get_logger(__name__)
    logger.info("Renewing the certificates")
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "oms_maintenance"
SYSLOG_SOCKET = "/dev/log"
SYSLOG_IDENT = "omsagent-maintenance: "

# Sensitive field patterns to filter from logs
SENSITIVE_PATTERNS = frozenset(
    {
        "password",
        "secret",
        "shared_key",
        "private_key",
        "privatekey",
        "key_pem",
        "credential",
    }
)


def _is_sensitive_key(key: str) -> bool:
    """Check if a key name suggests sensitive data."""
    key_lower = key.lower()
    return any(pattern in key_lower for pattern in SENSITIVE_PATTERNS)


def _filter_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively filter sensitive values from a dictionary."""
    if not isinstance(data, dict):
        return data

    filtered = {}
    for key, value in data.items():
        if _is_sensitive_key(key):
            filtered[key] = "[REDACTED]"
        elif isinstance(value, dict):
            filtered[key] = _filter_sensitive(value)
        else:
            filtered[key] = value
    return filtered


_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if isinstance(value, dict):
                extra_fields[key] = _filter_sensitive(value)
            elif not _is_sensitive_key(key):
                extra_fields[key] = value
            else:
                extra_fields[key] = "[REDACTED]"

        if extra_fields:
            log_data["extra"] = extra_fields

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.utcnow().strftime("%H:%M:%S.%f")[:-3]
        name = record.name.split(".")[-1][:15].ljust(15)
        formatted = f"{timestamp} {record.levelname:8} {name} {record.getMessage()}"

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


class ConsoleEchoFormatter(logging.Formatter):
    """Formats records as ``<level>\\t<message>`` for the calling shell scripts."""

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname.lower()
        if level == "warning":
            level = "warn"
        return f"{level}\t{record.getMessage()}"


class StdoutSuppressFilter(logging.Filter):
    """Drops console echo records while ``suppressed`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.suppressed = False

    def filter(self, record: logging.LogRecord) -> bool:
        return not self.suppressed


class _StdoutHandler(logging.StreamHandler):
    """StreamHandler bound to whatever ``sys.stdout`` is at emit time."""

    def __init__(self) -> None:
        super().__init__(sys.stdout)

    @property
    def stream(self):
        return sys.stdout

    @stream.setter
    def stream(self, value):
        pass


_echo_filter = StdoutSuppressFilter()


def set_stdout_suppressed(suppressed: bool) -> None:
    """Suppress (or restore) the stdout echo without touching other handlers."""
    _echo_filter.suppressed = suppressed


def _syslog_handler(facility: str, json_format: bool, address: Any = SYSLOG_SOCKET) -> Optional[logging.Handler]:
    facility_code = logging.handlers.SysLogHandler.facility_names.get(facility.lower())
    if facility_code is None:
        return None
    if isinstance(address, str) and not os.path.exists(address):
        return None
    try:
        handler = logging.handlers.SysLogHandler(address=address, facility=facility_code)
    except OSError:
        return None
    handler.ident = SYSLOG_IDENT
    # JSON output includes record extras such as the error payload
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter("%(message)s"))
    return handler


def configure_logging(
    level: str = "INFO",
    json_format: Optional[bool] = None,
    stream: Any = None,
    facility: Optional[str] = None,
    echo: bool = False,
    syslog_address: Any = SYSLOG_SOCKET,
) -> None:
    """
    Configure logging for the maintenance components.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON output. Default: True in production, False otherwise
        stream: Output stream. Default: sys.stderr
        facility: Syslog facility (e.g. ``local0``) from the agent config
        echo: Also print ``<level>\\t<message>`` lines on stdout
        syslog_address: Syslog socket path, or a (host, port) pair
    """
    if json_format is None:
        env = os.environ.get("OMS_ENVIRONMENT", "development")
        json_format = env == "production"

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    if echo:
        echo_handler = _StdoutHandler()
        echo_handler.setFormatter(ConsoleEchoFormatter())
        echo_handler.addFilter(_echo_filter)
        root_logger.addHandler(echo_handler)
    else:
        handler = logging.StreamHandler(stream or sys.stderr)
        if json_format:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(DevelopmentFormatter())
        root_logger.addHandler(handler)

    if facility:
        syslog = _syslog_handler(facility, json_format, syslog_address)
        if syslog is not None:
            root_logger.addHandler(syslog)

    root_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a maintenance module.

    Usage:
        logger = get_logger(__name__)
        logger.info("Message")
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# Initialize with default config when module is imported
# (can be reconfigured later with configure_logging())
if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
    configure_logging()


__all__ = [
    "configure_logging",
    "get_logger",
    "set_stdout_suppressed",
    "ConsoleEchoFormatter",
    "DevelopmentFormatter",
    "StructuredFormatter",
]
