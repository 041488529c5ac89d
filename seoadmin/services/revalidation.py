from __future__ import annotations

from dataclasses import dataclass
import logging
import time

import httpx

from seoadmin.core.config import Settings, get_settings
from seoadmin.services.resilience import RetryPolicy, retry_async


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevalidationResult:
    sent: bool
    status_code: int | None
    message: str


def _retryable(exc: Exception) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, TimeoutError)):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and status >= 500


async def trigger_revalidation(
    path: str,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RevalidationResult:
    # Ask the public site to rebuild a page; failures are logged and never raised.
    settings = settings or get_settings()
    if not settings.revalidation_url:
        return RevalidationResult(sent=False, status_code=None, message="Revalidation is not configured")

    payload = {"path": path, "secret": settings.revalidation_secret or ""}
    timeout_s = settings.revalidation_timeout_ms / 1000.0
    policy = RetryPolicy(
        timeout_ms=settings.revalidation_timeout_ms,
        max_attempts=settings.ext_retry_max_attempts,
        backoff_ms=settings.ext_retry_backoff_ms,
    )
    start = time.monotonic()

    async def _call() -> httpx.Response:
        async with httpx.AsyncClient(timeout=timeout_s, transport=transport) as client:
            return await client.post(settings.revalidation_url, json=payload)

    try:
        response = await retry_async(_call, policy=policy, retryable=_retryable)
    except Exception as exc:  # noqa: BLE001 - revalidation failures are non-fatal
        logger.warning(
            "revalidation_failed path=%s latency_ms=%.1f",
            path,
            (time.monotonic() - start) * 1000.0,
            exc_info=exc,
        )
        return RevalidationResult(sent=False, status_code=None, message=str(exc) or type(exc).__name__)

    if response.status_code >= 400:
        logger.warning("revalidation_rejected path=%s status=%s", path, response.status_code)
        return RevalidationResult(
            sent=False,
            status_code=response.status_code,
            message=f"Revalidation responded with status {response.status_code}",
        )
    logger.debug("revalidation_sent path=%s status=%s", path, response.status_code)
    return RevalidationResult(sent=True, status_code=response.status_code, message="Revalidation triggered")
