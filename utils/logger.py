"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict, Optional

REDACTED = "***REDACTED***"

SENSITIVE_FIELDS = {
    'password', 'token', 'secret', 'api_key', 'session_id', 'authorization'
}


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove credentials from a dict before it is passed as logging ``extra``.

    One-time tokens are bearer credentials for their whole lifetime, so even
    a prefix is too much: any key naming a sensitive field is fully redacted.
    Digests are keyed ``token_hash`` and are redacted as well; log the
    ``user_id`` instead.

    Args:
        data: Dictionary that may contain sensitive fields

    Returns:
        Sanitized copy safe for logging
    """
    sanitized = data.copy()

    for key, value in sanitized.items():
        if any(sensitive in key.lower() for sensitive in SENSITIVE_FIELDS):
            if value is not None:
                sanitized[key] = REDACTED

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_database_query(
    logger: logging.Logger,
    query_type: str,
    table: str,
    duration_ms: float,
    rows_affected: Optional[int] = None
):
    """
    Log a bulk database operation in a structured format.

    Args:
        logger: Logger instance
        query_type: Type of query (SELECT, INSERT, UPDATE, DELETE)
        table: Table name
        duration_ms: Query duration in milliseconds
        rows_affected: Number of rows affected (for INSERT/UPDATE/DELETE)

    Usage:
        log_database_query(logger, "DELETE", "one_time_tokens", 12.5, rows_affected=3)
    """
    log_data = {
        "query_type": query_type,
        "table": table,
        "duration_ms": round(duration_ms, 2)
    }

    if rows_affected is not None:
        log_data["rows_affected"] = rows_affected

    # Sweeps hold row locks while they run; flag slow ones
    if duration_ms > 1000:
        logger.warning(
            f"Slow {query_type} on {table}",
            extra=log_data
        )
    else:
        logger.info(
            f"{query_type} on {table}",
            extra=log_data
        )
