from .logger import setup_logging, get_logger, api_logger, feed_logger, quality_logger
from .retry import RetryPolicy, RetryExecutor, calculate_delay, is_retryable_error
from .utcnow import utcnow, ensure_utc, to_iso

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "api_logger",
    "feed_logger",
    "quality_logger",

    # Retry
    "RetryPolicy",
    "RetryExecutor",
    "calculate_delay",
    "is_retryable_error",

    # Time
    "utcnow",
    "ensure_utc",
    "to_iso",
]
