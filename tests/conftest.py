import asyncio
from datetime import UTC
from datetime import datetime
from typing import Any

import pytest

from app.models.document_models import DocumentMetadata
from app.models.document_models import GeneratedDocument
from app.models.document_models import IntelligenceSummary
from app.models.intelligence_models import ErrorKind
from app.models.intelligence_models import GatheringError
from app.models.intelligence_models import IntelligencePackage
from app.models.intelligence_models import LinkedInCompany
from app.models.intelligence_models import MozDomainMetrics
from app.models.intelligence_models import ProviderError
from app.models.intelligence_models import StreamResult
from app.models.intelligence_models import SubjectIntelligence
from app.models.research_models import ResearchRequest
from app.models.research_models import Subject
from app.models.results import Err
from app.models.results import Ok
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials


class StubAdapter(ProviderAdapter):
    """Adapter returning a canned Ok/Err (or raising) without any network I/O."""

    def __init__(
        self,
        name,
        field,
        payload=None,
        error_kind=None,
        raises=None,
        empty_payload=None,
        applies=True,
        delay=0.0,
        events=None,
    ):
        super().__init__()
        self.name = name
        self.field = field
        self.payload = payload
        self.error_kind = error_kind
        self.raises = raises
        self.empty_payload = empty_payload
        self.applies = applies
        self.delay = delay
        self.events = events if events is not None else []
        self.calls: list[str] = []

    def applies_to(self, subject):
        return self.applies

    async def fetch(self, subject, credentials, options=None):
        self.calls.append(subject.name)
        self.events.append(f"fetch {self.name}")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error_kind is not None:
            return Err(ProviderError(provider=self.name, kind=self.error_kind, message=f"{self.name} failed"))
        return Ok(self.payload)

    async def _fetch(self, client, subject, credentials, options) -> Any:  # pragma: no cover
        raise NotImplementedError


@pytest.fixture
def stub_adapter():
    return StubAdapter


@pytest.fixture
def credentials():
    return ProviderCredentials(
        apify_api_key="apify",
        youtube_api_key="yt",
        moz_api_key="moz",
        firecrawl_api_key="fc",
        spyfu_api_key="spyfu",
    )


@pytest.fixture
def client_subject():
    return Subject(
        name="Acme Robotics",
        domain="acme.example",
        linkedin_handle="company/acme-robotics",
        youtube_channel_id="UCacme",
    )


@pytest.fixture
def competitor_subject():
    return Subject(name="Globex", domain="https://globex.example/")


@pytest.fixture
def research_request(client_subject, competitor_subject):
    return ResearchRequest(client=client_subject, competitors=[competitor_subject])


# Fixture factory for finished documents
@pytest.fixture
def make_document():
    def _make_document(title: str = "Doc") -> GeneratedDocument:
        return GeneratedDocument(
            title=title,
            summary="summary",
            sections=[],
            full_document_markdown=f"# {title}",
            metadata=DocumentMetadata(
                model="test-model",
                version=1,
                generated_at=datetime(2025, 1, 1, tzinfo=UTC),
                total_word_count=0,
                intelligence_summary=IntelligenceSummary(
                    companies_analyzed=1, data_sources_succeeded=0, data_sources_failed=0
                ),
            ),
        )

    return _make_document


class FakeProvider:
    """GenerationProvider returning queued replies and recording every prompt."""

    def __init__(self, replies=None, default="Generated analysis."):
        self.replies = list(replies or [])
        self.default = default
        self.prompts: list[tuple[str, str]] = []

    async def generate(self, system: str, user: str) -> str:
        self.prompts.append((system, user))
        if not self.replies:
            return self.default
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def intelligence_package(client_subject, competitor_subject):
    primary = SubjectIntelligence(
        name=client_subject.name,
        domain=client_subject.domain,
        streams={
            "social": StreamResult(
                name="social", data={"linkedin": LinkedInCompany(name="Acme Robotics", followers=12400)}
            ),
            "organic": StreamResult(
                name="organic", data={"domain_metrics": MozDomainMetrics(domain="acme.example", domain_authority=41)}
            ),
            "paid": StreamResult(name="paid"),
        },
    )
    paid_error = GatheringError(stream="paid", provider="spyfu_ppc_keywords", kind=ErrorKind.TRANSIENT, message="HTTP 503")
    comparison = SubjectIntelligence(
        name=competitor_subject.name,
        domain=competitor_subject.domain,
        streams={"paid": StreamResult(name="paid", errors=[paid_error])},
        errors=[paid_error],
    )
    return IntelligencePackage(primary=primary, comparisons=[comparison])
