from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import HttpUrl


class Subject(BaseModel):
    """A company under analysis, either the primary subject or a comparison subject."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Company name.")
    domain: str = Field(..., min_length=1, description="Primary web domain, e.g. 'example.com'.")
    linkedin_handle: str | None = Field(default=None, description="e.g. 'company/example'.")
    youtube_channel_id: str | None = Field(default=None, description="e.g. 'UCxxxxxx'.")

    @property
    def bare_domain(self) -> str:
        domain = self.domain.removeprefix("https://").removeprefix("http://")
        return domain.rstrip("/")


class ResearchContext(BaseModel):
    """Optional market framing supplied by the strategist."""

    industry_description: str | None = None
    solution_category: str | None = None
    target_verticals: list[str] = Field(default_factory=list)


class ResearchRequest(BaseModel):
    """Validated payload for a research document job."""

    client: Subject
    competitors: list[Subject] = Field(default_factory=list, max_length=4)
    context: ResearchContext = Field(default_factory=ResearchContext)
    rag_context: str | None = Field(default=None, description="Discovery notes or meeting context.")
    instructions: str | None = Field(default=None, description="Strategist instructions for this document.")
    title: str | None = Field(default=None, description="Custom title override.")
    previous_document: dict[str, Any] | None = Field(
        default=None,
        description="A previously generated document, used as continuation context for an updated version.",
    )

    @property
    def subjects(self) -> list[Subject]:
        return [self.client, *self.competitors]


class CallbackSpec(BaseModel):
    """Where to push the terminal job result."""

    url: HttpUrl
    metadata: dict[str, Any] = Field(default_factory=dict)
    api_key: str | None = Field(default=None, description="Secret for this callback; overrides the configured one.")


class ResearchSubmission(ResearchRequest):
    """Request body of the submit endpoint: the research request plus webhook fields."""

    callback_url: HttpUrl | None = None
    callback_api_key: str | None = None
    metadata: dict[str, Any] | None = None

    def to_request(self) -> ResearchRequest:
        return ResearchRequest(**self.model_dump(exclude={"callback_url", "callback_api_key", "metadata"}))

    def to_callback(self) -> CallbackSpec | None:
        if self.callback_url is None:
            return None
        return CallbackSpec(url=self.callback_url, metadata=self.metadata or {}, api_key=self.callback_api_key)
