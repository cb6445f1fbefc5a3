"""Model-written analysis of the ad creatives gathered for a subject."""

import logging

from pydantic import ValidationError

from app.generation_logic.stage import GenerationProvider
from app.models.intelligence_models import AdCreative
from app.models.intelligence_models import AdCreativeAnalysis
from app.models.intelligence_models import ErrorKind
from app.models.intelligence_models import ProviderError
from app.models.results import Err
from app.models.results import Ok
from app.models.results import Result
from app.services.llm import JSONParsingError
from app.services.llm import LLMError
from app.services.llm import extract_json
from app.services.llm import render_prompt

logger = logging.getLogger(__name__)

AD_FIELDS = ("linkedin_ads", "google_ads")


class AdCreativeAnalyzer:
    """Runs once per subject after the paid stream, when it found any ads.

    The result lands in the paid stream under ``field``. Failures come back as
    a ``ProviderError`` like any other data source.
    """

    name = "ad_creative_analysis"
    field = "ad_creative_analysis"

    def __init__(self, provider: GenerationProvider, max_ads_per_platform: int = 20):
        self.provider = provider
        self.max_ads_per_platform = max_ads_per_platform

    def collect_ads(self, paid_data: dict) -> list[AdCreative]:
        ads = []
        for field in AD_FIELDS:
            ads.extend((paid_data.get(field) or [])[: self.max_ads_per_platform])
        return ads

    async def analyze(self, company: str, ads: list[AdCreative]) -> Result[AdCreativeAnalysis, ProviderError]:
        try:
            system = render_prompt("ad_analysis_system.jinja2")
            user = render_prompt("ad_creative_analysis.jinja2", company=company, ads=ads)
            text = await self.provider.generate(system, user)
        except LLMError as e:
            logger.warning("Ad analysis failed for %s: %s", company, str(e))
            return Err(ProviderError(provider=self.name, kind=ErrorKind.TRANSIENT, message=str(e)))
        except Exception as e:
            logger.exception("Unexpected error in ad analysis for %s", company)
            return Err(ProviderError(provider=self.name, kind=ErrorKind.PERMANENT, message=f"Unexpected error: {e}"))

        try:
            return Ok(AdCreativeAnalysis.model_validate(extract_json(text)))
        except (JSONParsingError, ValidationError) as e:
            # Keep the prose rather than lose the analysis
            logger.warning("Ad analysis for %s was not valid JSON (%s), keeping raw summary", company, str(e))
            return Ok(AdCreativeAnalysis(summary=text.strip()[:500]))
