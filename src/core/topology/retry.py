import asyncio
import logging

from src.config.constants import (
    CONNECT_MAX_ATTEMPTS,
    CONNECT_RETRY_MAX_DELAY_SECONDS,
    CONNECT_RETRY_STEP_SECONDS,
)
from src.core.errors import StoreConnectionError
from src.core.store.interface import StoreConnection

logger = logging.getLogger(__name__)


def retry_delay_seconds(attempt: int) -> float:
    """Backoff before the next connect attempt: min(attempt * 200ms, 2s)"""
    return min(attempt * CONNECT_RETRY_STEP_SECONDS, CONNECT_RETRY_MAX_DELAY_SECONDS)


async def connect_with_retry(
    connection: StoreConnection,
    max_attempts: int = CONNECT_MAX_ATTEMPTS,
) -> StoreConnection:
    """
    Connect, retrying with linear backoff.

    Only connection failures are retried; any other error propagates from
    the attempt that raised it.

    Args:
        connection: Unconnected store handle
        max_attempts: Attempts before giving up

    Returns:
        The same handle, connected

    Raises:
        StoreConnectionError: When every attempt failed
    """
    last_error: Exception | None = None

    for attempt in range(1, max_attempts + 1):
        try:
            await connection.connect()
            if attempt > 1:
                logger.info(f"[{connection.label}] Connected on attempt {attempt}/{max_attempts}")
            return connection
        except StoreConnectionError as e:
            last_error = e

        logger.warning(
            f"[{connection.label}] Connect attempt {attempt}/{max_attempts} failed: {last_error}"
        )

        if attempt < max_attempts:
            await asyncio.sleep(retry_delay_seconds(attempt))

    logger.error(f"[{connection.label}] Giving up after {max_attempts} connect attempts")
    raise StoreConnectionError(
        f"Could not connect to store after {max_attempts} attempts: {last_error}",
        last_error,
    )
