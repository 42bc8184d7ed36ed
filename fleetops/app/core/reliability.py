"""
Reliability utilities.

Bounded retry with exponential backoff for transient store failures.
Only idempotent operations (reads, keyed updates) are wrapped; inserts are
attempted once so a retry can never duplicate a row.
"""

import logging
from typing import Tuple, Type

from sqlalchemy.exc import DBAPIError, OperationalError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from fleetops.app.core.config import settings

logger = logging.getLogger("fleetops.reliability")

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (OperationalError, ConnectionError, TimeoutError)


def is_transient(exc: BaseException) -> bool:
    """True for connection-level failures worth another attempt."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return isinstance(exc, TRANSIENT_ERRORS)


def retry_transient(attempts: int = None, base_delay: float = None):
    """
    Decorator factory for async store calls.

    Args:
        attempts: Total attempts including the first one
        base_delay: Multiplier for the exponential wait (seconds)

    Returns:
        A tenacity retry decorator that re-raises the last error.
    """
    return retry(
        stop=stop_after_attempt(attempts or settings.store_retry_attempts),
        wait=wait_exponential(multiplier=base_delay if base_delay is not None else settings.store_retry_base_delay, max=5),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
