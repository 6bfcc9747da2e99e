"""Utility modules for common functionality"""

from .retry import async_retry_with_backoff, RetryableError, RateLimitError

__all__ = [
    'async_retry_with_backoff',
    'RetryableError',
    'RateLimitError',
]
