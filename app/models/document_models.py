from datetime import datetime

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class DocumentSection(BaseModel):
    """One numbered section of the generated document."""

    model_config = ConfigDict(frozen=True)

    section_number: int
    section_title: str
    markdown: str
    word_count: int


class ScoreJustification(BaseModel):
    organic_seo: str
    social_media: str
    content_strategy: str
    paid_media: str
    brand_positioning: str


class CompetitorScore(BaseModel):
    """Marketing maturity scores for one company, each on a 1-10 scale."""

    organic_seo: float = Field(ge=0, le=10)
    social_media: float = Field(ge=0, le=10)
    content_strategy: float = Field(ge=0, le=10)
    paid_media: float = Field(ge=0, le=10)
    brand_positioning: float = Field(ge=0, le=10)
    overall: float = Field(ge=0, le=10)
    justification: ScoreJustification


class IntelligenceSummary(BaseModel):
    companies_analyzed: int
    data_sources_succeeded: int
    data_sources_failed: int
    errors: list[str] = Field(default_factory=list)


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    model: str
    version: int
    generated_at: datetime
    total_word_count: int
    intelligence_summary: IntelligenceSummary


class GeneratedDocument(BaseModel):
    """The finished research document. Immutable once assembled."""

    model_config = ConfigDict(frozen=True)

    type: str = "research"
    title: str
    summary: str
    sections: list[DocumentSection]
    competitive_scores: dict[str, CompetitorScore] = Field(default_factory=dict)
    full_document_markdown: str
    metadata: DocumentMetadata
