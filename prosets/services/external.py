"""
Helpers for calling blocking third-party SDKs (boto3, stripe) from async code.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from prosets.config import settings
from prosets.exceptions import ExternalServiceTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_external(
    service_name: str,
    fn: Callable[..., T],
    *args: Any,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> T:
    """
    Run a blocking SDK call in a worker thread with a bounded timeout.

    Timeouts surface as ExternalServiceTimeoutError; any other SDK error
    propagates unchanged so the caller can classify it.
    """
    timeout = timeout if timeout is not None else settings.external_timeout_seconds
    call = functools.partial(fn, *args, **kwargs)

    try:
        return await asyncio.wait_for(asyncio.to_thread(call), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"{service_name} call timed out after {timeout}s")
        raise ExternalServiceTimeoutError(f"{service_name} did not respond in time")
