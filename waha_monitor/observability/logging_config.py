"""Logging configuration with Loki integration and structured logging.

Provides setup for both local logging (text/JSON) and remote logging to Loki.

Adds a ContextFilter to inject core fields (service, environment, host,
correlation_id) into every record and a SecretRedactionFilter that scrubs
configured secrets (the gateway API key) from messages and extra fields.
"""

import logging
import os
import socket
import sys
from typing import Iterable, Optional

from pythonjsonlogger import jsonlogger

from waha_monitor.utils.correlation import get_correlation_id

REDACTED = "[REDACTED]"


class _ExcludeLoggerFilter(logging.Filter):
    """Filter out records coming from specific logger name prefixes.

    Prevents feedback loops when the Loki handler uses ``requests``/``urllib3``
    which also emit logs routed to the same handlers.
    """

    def __init__(self, *prefixes: str) -> None:
        super().__init__()
        self._prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        return not any(name.startswith(p) for p in self._prefixes)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self, log_record: dict, record: logging.LogRecord, message_dict: dict
    ) -> None:
        """Add timestamp, level, logger and context fields to the JSON record."""
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        for key in ("service", "environment", "host", "correlation_id"):
            if getattr(record, key, None) is not None:
                log_record[key] = getattr(record, key)


class _ContextFilter(logging.Filter):
    """Inject default context fields into every log record if missing."""

    def __init__(self, service_name: str, environment: str) -> None:
        super().__init__()
        self._service = service_name
        self._environment = environment
        # Prefer ENV HOSTNAME over socket hostname for consistency in containers
        self._host = os.getenv("HOSTNAME", socket.gethostname())

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "service"):
            record.service = self._service
        if not hasattr(record, "environment"):
            record.environment = self._environment
        if not hasattr(record, "host"):
            record.host = self._host
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = get_correlation_id()
        return True


class SecretRedactionFilter(logging.Filter):
    """Replace configured secret values wherever they appear in a record."""

    def __init__(self, secrets: Iterable[Optional[str]]) -> None:
        super().__init__()
        self._secrets = tuple(s for s in secrets if s)

    def _scrub(self, value: str) -> str:
        for secret in self._secrets:
            value = value.replace(secret, REDACTED)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        scrubbed = self._scrub(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        for key, value in list(record.__dict__.items()):
            if isinstance(value, str) and key not in ("msg", "name", "levelname"):
                setattr(record, key, self._scrub(value))
        return True


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    service_name: str = "waha-monitor",
    environment: str = "development",
    loki_url: Optional[str] = None,
    secrets: Iterable[Optional[str]] = (),
) -> None:
    """Setup logging with console and optional Loki handlers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - 'json' or 'text'
        service_name: Service name for log labels
        environment: Deployment environment label
        loki_url: Optional Loki URL for remote logging (e.g., http://loki:3100)
        secrets: Values that must never appear in emitted records
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    for existing in list(root_logger.filters):
        root_logger.removeFilter(existing)

    context_filter = _ContextFilter(service_name, environment)
    redaction_filter = SecretRedactionFilter(secrets)

    # === Console Handler ===
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    # Handler-level filters also see records propagated from child loggers
    console_handler.addFilter(context_filter)
    console_handler.addFilter(redaction_filter)

    if log_format == "json":
        console_handler.setFormatter(
            CustomJsonFormatter(
                "%(timestamp)s %(level)s %(logger)s %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    else:
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(console_handler)

    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, numeric_level))
    logging.getLogger("httpcore").setLevel(max(logging.WARNING, numeric_level))

    # === Loki Handler (Optional) ===
    if loki_url:
        try:
            import logging_loki

            loki_handler = logging_loki.LokiHandler(
                url=f"{loki_url}/loki/api/v1/push",
                tags={"service": service_name},
                version="1",
            )
            loki_handler.setLevel(numeric_level)
            loki_handler.addFilter(context_filter)
            loki_handler.addFilter(redaction_filter)
            loki_handler.addFilter(
                _ExcludeLoggerFilter("requests", "urllib3", "logging_loki")
            )
            root_logger.addHandler(loki_handler)

            for noisy in ("requests", "urllib3", "logging_loki"):
                nl = logging.getLogger(noisy)
                nl.setLevel(max(logging.WARNING, numeric_level))
                nl.propagate = False

            root_logger.info(
                "Loki handler configured",
                extra={"loki_url": loki_url, "service": service_name},
            )
        except ImportError:
            root_logger.warning(
                "python-logging-loki not installed, skipping Loki handler. "
                "Install with: pip install python-logging-loki"
            )

    root_logger.info(
        "Logging configured",
        extra={
            "level": level,
            "format": log_format,
            "service": service_name,
            "loki_enabled": loki_url is not None,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get logger instance for a module.

    Args:
        name: Logger name (usually __name__ from calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
