"""Concurrent execution of the adapters making up one intelligence stream."""

import asyncio
import logging
from typing import Any

from app.models.intelligence_models import ErrorKind
from app.models.intelligence_models import GatheringError
from app.models.intelligence_models import StreamResult
from app.models.research_models import Subject
from app.models.results import Err
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials

logger = logging.getLogger(__name__)


class StreamGatherer:
    def __init__(self, credentials: ProviderCredentials):
        self.credentials = credentials

    def enabled(self, adapters: list[ProviderAdapter], subject: Subject) -> list[ProviderAdapter]:
        """Adapters that have credentials and apply to *subject*; the rest are skipped silently."""
        selected = []
        for adapter in adapters:
            if not adapter.is_configured(self.credentials):
                logger.debug("Skipping %s: credentials not configured", adapter.name)
            elif not adapter.applies_to(subject):
                logger.debug("Skipping %s for %s: not applicable", adapter.name, subject.name)
            else:
                selected.append(adapter)
        return selected

    async def gather(
        self,
        subject: Subject,
        stream: str,
        adapters: list[ProviderAdapter],
        options: dict[str, Any] | None = None,
    ) -> StreamResult:
        """Run every enabled adapter concurrently. Never raises; failures are recorded on the result."""
        result = StreamResult(name=stream)
        selected = self.enabled(adapters, subject)
        if not selected:
            return result

        outcomes = await asyncio.gather(
            *(adapter.fetch(subject, self.credentials, options) for adapter in selected),
            return_exceptions=True,
        )

        for adapter, outcome in zip(selected, outcomes):
            if isinstance(outcome, BaseException):
                # Adapters are not supposed to raise; record it like any other permanent failure
                logger.error("%s raised for %s: %r", adapter.name, subject.name, outcome)
                result.errors.append(
                    GatheringError(
                        stream=stream,
                        provider=adapter.name,
                        kind=ErrorKind.PERMANENT,
                        message=f"Adapter raised {type(outcome).__name__}: {outcome}",
                    )
                )
            elif isinstance(outcome, Err):
                error = outcome.error
                if error.kind == ErrorKind.FEATURE_UNAVAILABLE:
                    logger.info("%s unavailable on current plan for %s, using empty payload", adapter.name, subject.name)
                    if adapter.empty_payload is not None:
                        result.data[adapter.field] = adapter.empty_payload()
                    continue
                result.errors.append(
                    GatheringError(stream=stream, provider=error.provider, kind=error.kind, message=error.message)
                )
            else:
                result.data[adapter.field] = outcome.value

        logger.info(
            "Stream %s for %s: %d field(s), %d error(s)",
            stream,
            subject.name,
            len(result.data),
            len(result.errors),
        )
        return result
