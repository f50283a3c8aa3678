"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across ledger, BOM and production
operations.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="produce",
        outcome="committed",
        component_id=12,
        production_id=340,
    )

    log_operation(
        logger,
        operation="record_consumption",
        outcome="insufficient_stock",
        level=logging.WARNING,
        supply_id=7,
        required="12.5",
        available="3",
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "gp_inventory.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named ``gp_inventory.services.<module>``

    Example:
        >>> get_service_logger("src.services.ledger_service").name
        'gp_inventory.services.ledger_service'
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

    The message is ``"<operation>: <outcome>"``; the operation, outcome and
    every context field are attached to the record via ``extra`` so
    structured handlers can pick them up.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "produce", "set_recipe")
        outcome: Outcome description (e.g., "committed", "validation_failed")
        level: Log level (default: INFO). Use DEBUG for stage transitions.
        **context: Additional context fields (entity IDs, quantities, errors)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
