"""Retry utilities with exponential backoff for backend lookups"""

import logging
from typing import TypeVar, Callable, Optional
from functools import wraps
import asyncio

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryableError(Exception):
    """Base class for errors that should trigger retries"""
    pass


class RateLimitError(RetryableError):
    """Error raised when the backend answers 429"""
    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


def async_retry_with_backoff(
    max_retries: int = 2,
    initial_delay: float = 0.25,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (RetryableError,)
):
    """
    Decorator for retrying async functions with exponential backoff
    
    A RateLimitError carrying retry_after waits that long instead of the
    computed delay (still capped at max_delay).
    
    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff calculation
        exceptions: Tuple of exceptions to catch and retry
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            delay = initial_delay
            
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(
                            f"{func.__name__} failed after {max_retries} retries: {e}"
                        )
                        raise
                    
                    wait = delay
                    if isinstance(e, RateLimitError) and e.retry_after is not None:
                        wait = min(e.retry_after, max_delay)
                        logger.warning(
                            f"{func.__name__} hit rate limit (429), attempt {attempt + 1}/{max_retries}, "
                            f"backing off for {wait:.2f}s"
                        )
                    else:
                        logger.warning(
                            f"{func.__name__} failed attempt {attempt + 1}/{max_retries}: {e}, "
                            f"retrying in {wait:.2f}s"
                        )
                    
                    await asyncio.sleep(wait)
                    delay = min(delay * exponential_base, max_delay)
        
        return wrapper
    return decorator
