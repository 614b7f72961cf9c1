"""Shared async HTTP helper with exponential-backoff retry.

Every REST client (CryptoCompare, AwesomeAPI) goes through
``request_with_retry`` so retry policy and logging stay in one place.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger("confluence")

_MAX_ATTEMPTS = 3
_BASE_DELAY = 2.0  # seconds; doubles each attempt
_TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})
_TIMEOUT = 30.0


def _backoff(attempt: int, base_delay: float) -> float:
    return base_delay * (2 ** attempt)


async def request_with_retry(
    method: str,
    url: str,
    headers: Optional[dict] = None,
    retry_base_delay: float = _BASE_DELAY,
    **kwargs,
) -> httpx.Response:
    """Send ``method`` to *url*, retrying transient failures.

    Rate limits (429), gateway errors (502/503/504) and transport errors
    are retried up to three attempts with a doubling delay.  Any other
    non-2xx status raises ``httpx.HTTPStatusError`` straight away.  When
    every attempt fails, the last error is raised.
    """
    failure: Optional[Exception] = None

    for attempt in range(_MAX_ATTEMPTS):
        delay = _backoff(attempt, retry_base_delay)
        try:
            async with httpx.AsyncClient() as client:
                send = getattr(client, method)
                resp = await send(url, headers=headers, timeout=_TIMEOUT, **kwargs)
        except httpx.TransportError as exc:
            failure = exc
            logger.warning(
                "%s %s failed (%s), attempt %d/%d, backing off %.1fs",
                method.upper(), url, exc, attempt + 1, _MAX_ATTEMPTS, delay,
            )
            await asyncio.sleep(delay)
            continue

        if resp.status_code not in _TRANSIENT_STATUSES:
            resp.raise_for_status()
            return resp

        failure = httpx.HTTPStatusError(
            f"Transient upstream status {resp.status_code}",
            request=resp.request,
            response=resp,
        )
        logger.warning(
            "%s %s returned %d, attempt %d/%d, backing off %.1fs",
            method.upper(), url, resp.status_code, attempt + 1, _MAX_ATTEMPTS, delay,
        )
        await asyncio.sleep(delay)

    raise failure  # type: ignore[misc]
