"""
Structured Logging
==================

One JSON object per log line in deployed environments, plain text locally.

Every record carries the service name and environment; request logs add
the correlation ID set by CorrelationIDMiddleware. Values under keys that
look like secrets (the Slack webhook URL in particular) are masked.

Usage:
    from civictrack.shared.infrastructure.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Ticket created", extra={"ticket_id": "TKT1A2B3C4D5E6F"})
"""

import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "civictrack"

# Substrings of extra keys whose values never reach the logs
SENSITIVE_KEY_PARTS = ("webhook", "password", "secret", "token")

PLAIN_ENVIRONMENTS = ("development", "test")

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "apscheduler": logging.WARNING,
    "watchdog": logging.WARNING,
    "httpx": logging.WARNING,
}


class CivicJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service, environment and UTC timestamp."""

    def __init__(self, *args: Any, environment: str = "unknown", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record.setdefault(
            "timestamp",
            datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        )
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = self.environment

        for key in list(log_record):
            if any(part in key.lower() for part in SENSITIVE_KEY_PARTS):
                log_record[key] = "***REDACTED***"


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install a single stdout handler on the root logger.

    Called once from the application lifespan; any handlers already on
    the root logger are replaced.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if environment in PLAIN_ENVIRONMENTS:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
        ))
    else:
        handler.setFormatter(CivicJsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            environment=environment,
        ))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(max(noisy_level, numeric_level))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def log_latency(logger: logging.Logger, operation: str, **extra_context: Any) -> Iterator[None]:
    """
    Log how long the wrapped block took, even when it raises.

    Usage:
        with log_latency(logger, "sla_sweep", tickets=42):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(
            f"{operation} completed",
            extra={
                "operation": operation,
                "latency_ms": round((time.perf_counter() - start) * 1000, 2),
                **extra_context,
            },
        )
