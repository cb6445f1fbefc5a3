"""Builds the long-lived service objects shared by the API and background jobs."""

import logging
from dataclasses import dataclass

from app.core.config import Settings
from app.core.exceptions import ConfigurationError
from app.generation_logic.stage import PromptBudgets
from app.services.ad_analysis import AdCreativeAnalyzer
from app.services.callback_delivery import CallbackDelivery
from app.services.intelligence import IntelligenceOrchestrator
from app.services.job_store import JobStore
from app.services.llm import OpenAIGenerationProvider
from app.services.pipeline import PipelineRunner
from app.services.providers.base import ProviderCredentials
from app.services.providers.registry import build_crawler
from app.services.providers.registry import build_streams
from app.services.stream_gatherer import StreamGatherer

logger = logging.getLogger(__name__)


@dataclass
class ResearchServices:
    store: JobStore
    runner: PipelineRunner
    delivery: CallbackDelivery


def build_services(settings: Settings) -> ResearchServices:
    """Wire every component from *settings*. Raises ConfigurationError when the generation key is missing."""
    if not settings.llm_api_key:
        raise ConfigurationError("LLM_API_KEY is not configured; the generation pipeline cannot run.")

    credentials = ProviderCredentials.from_settings(settings)
    missing = [name for name, value in credentials.model_dump().items() if not value]
    if missing:
        logger.warning("Data provider credentials missing, matching adapters disabled: %s", ", ".join(missing))

    provider = OpenAIGenerationProvider.from_settings(settings)
    orchestrator = IntelligenceOrchestrator(
        streams=build_streams(settings),
        gatherer=StreamGatherer(credentials),
        crawler=build_crawler(settings),
        crawl_timeout=settings.crawl_timeout,
        ad_analyzer=AdCreativeAnalyzer(provider),
    )
    runner = PipelineRunner(
        orchestrator=orchestrator,
        provider=provider,
        model=settings.model_id,
        budgets=PromptBudgets.from_settings(settings),
    )
    delivery = CallbackDelivery(
        max_attempts=settings.callback_max_attempts,
        retry_delay=settings.callback_retry_delay,
        timeout=settings.callback_timeout,
        secret=settings.outbound_secret,
        secret_header=settings.callback_header,
    )
    return ResearchServices(store=JobStore(ttl_seconds=settings.job_ttl_seconds), runner=runner, delivery=delivery)
