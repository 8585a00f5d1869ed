"""
Exception logging helpers for the route layer.

Both helpers must never raise: they run inside the catch-all handlers that
turn unexpected failures into ``500`` responses.
"""

import logging


def _safe_str(obj) -> str:
    """
    Safely convert an object to string, handling cases where __str__ or __repr__ might fail.
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _safe_get_exceptions(exception_group) -> list:
    try:
        return list(exception_group.exceptions)
    except Exception:
        return []


def format_exception_message(exception: Exception) -> str:
    """
    Format an exception for the ``detail`` field of an error response.

    Exception groups (raised out of anyio task groups while streaming) are
    flattened into their sub-exceptions.

    Args:
        exception: The exception to format

    Returns:
        A formatted string describing the exception
    """
    if exception is None:
        return "None"

    sub_exceptions = _safe_get_exceptions(exception)
    message = _safe_str(exception)
    if not sub_exceptions:
        return message or type(exception).__name__

    parts = []
    for sub_exc in sub_exceptions:
        parts.append(f"{type(sub_exc).__name__}: {_safe_str(sub_exc)}")
    return f"{message} (Sub-exceptions: {'; '.join(parts)})"


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: Exception,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception with its traceback, one entry per sub-exception for exception groups.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g., "[Meta]", "[Download]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        sub_exceptions = _safe_get_exceptions(exception)
        if not sub_exceptions:
            logger.log(
                level,
                f"{prefix} Exception: {_safe_str(exception)}",
                exc_info=exception if exception is not None else False,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(sub_exceptions)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub_exc in enumerate(sub_exceptions):
            logger.log(
                level,
                f"{prefix} Sub-exception {i+1}: {type(sub_exc).__name__}: {_safe_str(sub_exc)}",
                exc_info=sub_exc,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            # Logging itself is broken; nothing left to report to.
            pass
