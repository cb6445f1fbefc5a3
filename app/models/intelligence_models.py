"""Typed payloads returned by data providers and the aggregate intelligence package."""

from datetime import UTC
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import Field

# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    FEATURE_UNAVAILABLE = "feature_unavailable"
    PERMANENT = "permanent"


class ProviderError(BaseModel):
    """Why a provider produced no data. Returned, never raised."""

    provider: str
    kind: ErrorKind
    message: str


class GatheringError(BaseModel):
    """A failure recorded in the intelligence package."""

    stream: str
    provider: str | None = None
    kind: ErrorKind = ErrorKind.PERMANENT
    message: str

    def describe(self) -> str:
        source = f"{self.stream}/{self.provider}" if self.provider else self.stream
        return f"{source} ({self.kind.value}): {self.message}"


# ---------------------------------------------------------------------------
# Social
# ---------------------------------------------------------------------------


class LinkedInPost(BaseModel):
    text: str | None = None
    likes: int | None = None
    comments: int | None = None


class LinkedInCompany(BaseModel):
    name: str | None = None
    followers: int | None = None
    employee_count: int | None = None
    industry: str | None = None
    description: str | None = None
    specialties: list[str] = Field(default_factory=list)
    recent_posts: list[LinkedInPost] = Field(default_factory=list)


class YouTubeVideo(BaseModel):
    video_id: str | None = None
    title: str
    view_count: int | None = None
    published_at: str | None = None


class YouTubeChannel(BaseModel):
    channel_id: str
    title: str | None = None
    subscriber_count: int | None = None
    video_count: int | None = None
    view_count: int | None = None
    recent_videos: list[YouTubeVideo] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Organic
# ---------------------------------------------------------------------------


class MozDomainMetrics(BaseModel):
    domain: str
    domain_authority: float | None = None
    page_authority: float | None = None
    spam_score: float | None = None
    external_links: int | None = None
    linking_domains: int | None = None


class MozKeyword(BaseModel):
    keyword: str
    ranking_position: int | None = None
    search_volume: int | None = None


class MozTopPage(BaseModel):
    url: str
    page_authority: float | None = None
    external_links: int | None = None


class WebsitePage(BaseModel):
    url: str
    title: str | None = None
    markdown: str
    status_code: int | None = None


# ---------------------------------------------------------------------------
# Paid
# ---------------------------------------------------------------------------


class AdCreative(BaseModel):
    platform: str
    headline: str | None = None
    body: str | None = None
    cta: str | None = None
    format: str | None = None


class PpcKeyword(BaseModel):
    keyword: str
    position: float | None = None
    cost_per_click: float | None = None
    monthly_cost: float | None = None


class AdHistoryItem(BaseModel):
    keyword: str | None = None
    headline: str | None = None
    description: str | None = None


class AdCreativeAnalysis(BaseModel):
    """Model-written read of a subject's ad creatives."""

    summary: str
    themes: list[str] = Field(default_factory=list)
    messaging_patterns: list[str] = Field(default_factory=list)
    visual_patterns: list[str] = Field(default_factory=list)
    cta_patterns: list[str] = Field(default_factory=list)
    targeting_observations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class StreamResult(BaseModel):
    """Whatever one stream produced for one subject. Missing fields mean no data."""

    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    errors: list[GatheringError] = Field(default_factory=list)

    def get(self, field: str, default: Any = None) -> Any:
        return self.data.get(field, default)


class SubjectIntelligence(BaseModel):
    name: str
    domain: str
    streams: dict[str, StreamResult] = Field(default_factory=dict)
    errors: list[GatheringError] = Field(default_factory=list)

    def stream(self, name: str) -> StreamResult:
        return self.streams.get(name) or StreamResult(name=name)

    def lookup(self, stream: str, field: str, default: Any = None) -> Any:
        return self.stream(stream).get(field, default)

    @property
    def populated_fields(self) -> int:
        return sum(1 for s in self.streams.values() for value in s.data.values() if value)


class IntelligencePackage(BaseModel):
    primary: SubjectIntelligence
    comparisons: list[SubjectIntelligence] = Field(default_factory=list)
    gathered_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def subjects(self) -> list[SubjectIntelligence]:
        return [self.primary, *self.comparisons]

    @property
    def all_errors(self) -> list[GatheringError]:
        return [err for subject in self.subjects for err in subject.errors]
