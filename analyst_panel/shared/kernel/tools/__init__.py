from .logger import (
    configure_logging,
    get_log_context,
    get_logger,
    log_context,
    log_event,
    sanitize_for_logging,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "get_log_context",
    "log_context",
    "log_event",
    "sanitize_for_logging",
]
