# dispatch_admin/infra/retry.py
"""
Retry for idempotent backend calls.

Only reads, updates, fire and delete calls are wrapped.  ``create`` calls
must never be retried automatically: a retry after a lost response would
issue a second account and a second set of credentials.
"""
from __future__ import annotations
import asyncio
from functools import wraps
from typing import Callable

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.config import settings
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)


def is_transient_error(exc: Exception) -> bool:
    """
    Check if a backend failure is transient (should retry).

    Transient errors:
    - Connection errors / timeouts (status 0)
    - Rate limiting (429)
    - Server errors (5xx)
    """
    if isinstance(exc, TransportError):
        return exc.retryable
    return isinstance(exc, asyncio.TimeoutError)


def retry_on_transient_error(
    max_retries: int | None = None,
    initial_delay: float | None = None,
    backoff_factor: float = 2.0,
    max_delay: float | None = None,
):
    """
    Decorator to retry an async backend call on transient errors.

    Defaults come from settings (``api_max_retries``,
    ``api_retry_initial_delay``, ``api_retry_max_delay``) and are read at
    call time so tests can patch them.

    Example:
        @retry_on_transient_error()
        async def get_active(self):
            return await self._api.get_json(...)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            retries = settings.api_max_retries if max_retries is None else max_retries
            delay = settings.api_retry_initial_delay if initial_delay is None else initial_delay
            ceiling = settings.api_retry_max_delay if max_delay is None else max_delay

            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    if not is_transient_error(exc):
                        raise

                    if attempt >= retries:
                        logger.error(f"Max retries ({retries}) exceeded in {func.__name__}: {exc}")
                        raise

                    logger.warning(
                        f"Transient error in {func.__name__} (attempt {attempt + 1}/{retries}): {exc}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
                    delay = min(delay * backoff_factor, ceiling)

        return wrapper
    return decorator
