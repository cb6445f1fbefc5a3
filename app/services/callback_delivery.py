"""Webhook delivery of terminal job results.

Delivery is at-least-once with a bounded number of attempts. A delivery that
ultimately fails is logged and reported to the caller as ``False``; it never
raises and never touches the job, which stays retrievable by polling.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

import httpx
from tenacity import AsyncRetrying
from tenacity import RetryCallState
from tenacity import retry_if_exception_type
from tenacity import stop_after_attempt
from tenacity import wait_incrementing

from app.models.job_models import Job
from app.models.job_models import JobStatus
from app.models.research_models import CallbackSpec

logger = logging.getLogger(__name__)

RESERVED_PAYLOAD_KEYS = frozenset({"job_id", "status", "output", "error"})


class CallbackDeliveryError(Exception):
    """Raised for a single failed delivery attempt (non-2xx response)."""


def build_callback_payload(job: Job, metadata: dict[str, Any] | None = None) -> dict[str, Any]:
    """Normalize a terminal job into the webhook contract."""
    completed = job.status == JobStatus.COMPLETE
    payload: dict[str, Any] = {
        "job_id": job.id,
        "status": "completed" if completed else "failed",
    }

    # Caller metadata (deliverable_id, contract_id, title, ...) is echoed at the top level
    for key, value in (metadata or {}).items():
        if key not in RESERVED_PAYLOAD_KEYS and value is not None:
            payload[key] = value

    if completed and job.output is not None:
        payload["output"] = {
            "content_raw": job.output.full_document_markdown,
            "content_structured": job.output.model_dump(mode="json"),
        }
    if not completed:
        payload["error"] = job.error or f"Job ended with status: {job.status.value}"
    return payload


class CallbackDelivery:
    def __init__(
        self,
        max_attempts: int,
        retry_delay: float,
        timeout: float,
        secret: str | None = None,
        secret_header: str = "x-api-key",
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.secret = secret
        self.secret_header = secret_header
        self._transport = transport
        self._sleep = sleep

    async def deliver(self, callback: CallbackSpec, job: Job) -> bool:
        """POST the job result to ``callback.url``. Returns True once an attempt succeeds."""
        url = str(callback.url)
        payload = build_callback_payload(job, callback.metadata)
        headers = {"Content-Type": "application/json"}
        secret = callback.api_key or self.secret
        if secret:
            headers[self.secret_header] = secret

        logger.info("[%s] Delivering %s result to %s", job.id, payload["status"], url)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            # delay, 2*delay, 3*delay, ...
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception_type((CallbackDeliveryError, httpx.HTTPError)),
            before_sleep=self._log_failed_attempt(job.id),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async for attempt in retrying:
                    with attempt:
                        await self._post(client, url, payload, headers)
        except (CallbackDeliveryError, httpx.HTTPError) as e:
            logger.error(
                "[%s] Failed to deliver callback to %s after %d attempts: %s",
                job.id,
                url,
                self.max_attempts,
                str(e),
            )
            return False

        logger.info("[%s] Successfully delivered callback to %s", job.id, url)
        return True

    @staticmethod
    async def _post(client: httpx.AsyncClient, url: str, payload: dict[str, Any], headers: dict[str, str]) -> None:
        response = await client.post(url, json=payload, headers=headers)
        if response.is_success:
            return
        raise CallbackDeliveryError(f"Callback endpoint returned {response.status_code}: {response.text[:200]}")

    def _log_failed_attempt(self, job_id: str) -> Callable[[RetryCallState], None]:
        def _log(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "[%s] Callback attempt %d/%d failed: %s",
                job_id,
                retry_state.attempt_number,
                self.max_attempts,
                exc,
            )

        return _log
