"""Fan-out/fan-in of intelligence gathering across subjects and streams."""

import asyncio
import logging
from typing import Any

from app.models.intelligence_models import ErrorKind
from app.models.intelligence_models import GatheringError
from app.models.intelligence_models import IntelligencePackage
from app.models.intelligence_models import StreamResult
from app.models.intelligence_models import SubjectIntelligence
from app.models.research_models import Subject
from app.models.results import Err
from app.services.ad_analysis import AdCreativeAnalyzer
from app.services.providers.base import ProviderAdapter
from app.services.providers.firecrawl import WebsiteCrawlAdapter
from app.services.providers.registry import CRAWL_STREAM
from app.services.providers.registry import PAID
from app.services.stream_gatherer import StreamGatherer

logger = logging.getLogger(__name__)


class IntelligenceOrchestrator:
    """Gathers every stream for the primary and comparison subjects into one IntelligencePackage.

    Each subject runs as an independent unit: its long-running website crawl is
    submitted first, its streams are gathered concurrently while the crawl runs
    and the crawl is polled last under a hard timeout. Ad creatives found by the
    paid stream are analyzed before the crawl is collected. Subject units run
    concurrently with each other.
    """

    def __init__(
        self,
        streams: dict[str, list[ProviderAdapter]],
        gatherer: StreamGatherer,
        crawler: WebsiteCrawlAdapter | None = None,
        crawl_timeout: float = 600.0,
        crawl_stream: str = CRAWL_STREAM,
        ad_analyzer: AdCreativeAnalyzer | None = None,
        paid_stream: str = PAID,
    ):
        self.streams = streams
        self.gatherer = gatherer
        self.crawler = crawler
        self.crawl_timeout = crawl_timeout
        self.crawl_stream = crawl_stream
        self.ad_analyzer = ad_analyzer
        self.paid_stream = paid_stream

    async def gather(
        self,
        primary: Subject,
        comparisons: list[Subject] | None = None,
        job_id: str = "-",
        options: dict[str, Any] | None = None,
    ) -> IntelligencePackage:
        """Never raises: provider failures and broken subject units are recorded as errors."""
        subjects = [primary, *(comparisons or [])]
        logger.info("[%s] Gathering intelligence for %d subject(s)", job_id, len(subjects))

        outcomes = await asyncio.gather(
            *(self._gather_subject(subject, job_id, options) for subject in subjects),
            return_exceptions=True,
        )

        merged: list[SubjectIntelligence] = []
        for subject, outcome in zip(subjects, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("[%s] Intelligence gathering failed for %s: %r", job_id, subject.name, outcome)
                merged.append(self._complete_failure(subject, outcome))
            else:
                merged.append(outcome)

        package = IntelligencePackage(primary=merged[0], comparisons=merged[1:])
        logger.info(
            "[%s] Intelligence gathered: %d subject(s), %d error(s)",
            job_id,
            len(package.subjects),
            len(package.all_errors),
        )
        return package

    async def _gather_subject(self, subject: Subject, job_id: str, options: dict[str, Any] | None) -> SubjectIntelligence:
        crawl_id, crawl_error = await self._submit_crawl(subject)

        names = list(self.streams)
        try:
            results = await asyncio.gather(
                *(self.gatherer.gather(subject, name, self.streams[name], options) for name in names)
            )
        except Exception:
            if crawl_id is not None:
                logger.warning(
                    "[%s] Abandoning crawl %s for %s: stream gathering failed", job_id, crawl_id, subject.domain
                )
            raise
        streams: dict[str, StreamResult] = dict(zip(names, results))

        if self.ad_analyzer is not None and self.paid_stream in streams:
            await self._analyze_ads(subject, streams[self.paid_stream], job_id)

        if crawl_id is not None:
            crawl_error = await self._collect_crawl(subject, crawl_id, streams, job_id)
        if crawl_error is not None:
            streams.setdefault(self.crawl_stream, StreamResult(name=self.crawl_stream)).errors.append(crawl_error)

        errors = [error for result in streams.values() for error in result.errors]
        return SubjectIntelligence(name=subject.name, domain=subject.domain, streams=streams, errors=errors)

    async def _analyze_ads(self, subject: Subject, paid: StreamResult, job_id: str) -> None:
        analyzer = self.ad_analyzer
        ads = analyzer.collect_ads(paid.data)
        if not ads:
            return
        logger.info("[%s] Analyzing %d ad creative(s) for %s", job_id, len(ads), subject.name)
        analysis = await analyzer.analyze(subject.name, ads)
        if isinstance(analysis, Err):
            error = analysis.error
            paid.errors.append(
                GatheringError(stream=paid.name, provider=error.provider, kind=error.kind, message=error.message)
            )
            return
        paid.data[analyzer.field] = analysis.value

    async def _submit_crawl(self, subject: Subject) -> tuple[str | None, GatheringError | None]:
        crawler = self.crawler
        if crawler is None or not crawler.is_configured(self.gatherer.credentials) or not crawler.applies_to(subject):
            return None, None

        submitted = await crawler.submit(subject, self.gatherer.credentials)
        if isinstance(submitted, Err):
            error = submitted.error
            if error.kind == ErrorKind.FEATURE_UNAVAILABLE:
                return None, None
            return None, GatheringError(
                stream=self.crawl_stream, provider=error.provider, kind=error.kind, message=error.message
            )
        return submitted.value, None

    async def _collect_crawl(
        self,
        subject: Subject,
        crawl_id: str,
        streams: dict[str, StreamResult],
        job_id: str,
    ) -> GatheringError | None:
        crawler = self.crawler
        try:
            collected = await asyncio.wait_for(
                crawler.collect(subject, crawl_id, self.gatherer.credentials),
                timeout=self.crawl_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[%s] Crawl %s for %s timed out after %ss", job_id, crawl_id, subject.domain, self.crawl_timeout)
            return GatheringError(
                stream=self.crawl_stream,
                provider=crawler.name,
                kind=ErrorKind.TRANSIENT,
                message=f"Crawl did not complete within {self.crawl_timeout:g}s",
            )

        if isinstance(collected, Err):
            error = collected.error
            return GatheringError(stream=self.crawl_stream, provider=error.provider, kind=error.kind, message=error.message)

        stream = streams.setdefault(self.crawl_stream, StreamResult(name=self.crawl_stream))
        stream.data[crawler.field] = collected.value
        return None

    def _complete_failure(self, subject: Subject, exc: BaseException) -> SubjectIntelligence:
        return SubjectIntelligence(
            name=subject.name,
            domain=subject.domain,
            streams={name: StreamResult(name=name) for name in self.streams},
            errors=[
                GatheringError(
                    stream="all",
                    kind=ErrorKind.PERMANENT,
                    message=f"Complete failure: {exc}",
                )
            ],
        )
