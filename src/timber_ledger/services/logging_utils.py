"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across purchase, production and audit
operations.

Usage:
    from timber_ledger.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="record_production_run",
        outcome="success",
        batch_id=12,
        efficiency=87.5,
    )

    log_operation(
        logger,
        operation="record_production_run",
        outcome="over_draft",
        level=logging.WARNING,
        log_id=4,
        shortfall=5,
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "timber_ledger.services"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'timber_ledger.services.<module>'.

    Example:
        >>> get_service_logger("timber_ledger.services.production_service").name
        'timber_ledger.services.production_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter so handlers that
    understand structured records can pick the fields up individually.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_log_record", "reconcile")
        outcome: Outcome description (e.g., "success", "physics_violation")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, error details, etc.)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a console handler to the application loggers (CLI use)."""
    root = logging.getLogger("timber_ledger")
    if not any(getattr(h, "_timber_ledger", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._timber_ledger = True
        root.addHandler(handler)
    root.setLevel(level)
