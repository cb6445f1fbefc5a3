"""A single generation stage: prompt assembly, one provider call, output parsing."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from enum import Enum
from typing import Any
from typing import Protocol

from pydantic import TypeAdapter
from pydantic import ValidationError

from app.core.config import Settings
from app.core.exceptions import StageError
from app.generation_logic.context import ContextEntry
from app.generation_logic.context import PipelineContext
from app.generation_logic.context import to_jsonable
from app.generation_logic.context import truncate
from app.models.intelligence_models import IntelligencePackage
from app.models.research_models import ResearchRequest
from app.models.results import Err
from app.models.results import Ok
from app.models.results import Result
from app.services.llm import JSONParsingError
from app.services.llm import LLMError
from app.services.llm import env
from app.services.llm import extract_json
from app.services.llm import render_prompt

logger = logging.getLogger(__name__)

SECTION_MARKER = re.compile(r"<!--\s*SECTION:\s*(.+?)\s*-->")


class GenerationProvider(Protocol):
    async def generate(self, system: str, user: str) -> str: ...


class OutputKind(str, Enum):
    MARKDOWN = "markdown"
    SECTIONS = "sections"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class ShapeMismatch:
    message: str


@dataclass(frozen=True)
class PromptBudgets:
    """Character budget per category of upstream data projected into a prompt."""

    page: int = 2000
    prior_section: int = 800
    notes: int = 2000
    structured: int = 3000
    previous_document: int = 5000
    short_text: int = 500

    @classmethod
    def from_settings(cls, settings: Settings) -> PromptBudgets:
        return cls(
            page=settings.max_page_chars,
            prior_section=settings.max_prior_section_chars,
            notes=settings.max_notes_chars,
            structured=settings.max_structured_chars,
            previous_document=settings.max_previous_document_chars,
            short_text=settings.max_short_text_chars,
        )


@dataclass(frozen=True)
class StageInputs:
    """Read-only view handed to each stage."""

    request: ResearchRequest
    package: IntelligencePackage
    context: PipelineContext
    budgets: PromptBudgets = field(default_factory=PromptBudgets)


def split_sections(text: str) -> list[tuple[str, str]]:
    """Split *text* on ``<!-- SECTION: Title -->`` markers into (title, markdown) pairs.

    A blank preamble before the first marker is dropped; a non-blank one is kept
    at the top of the first section. Returns [] when there are no markers.
    """
    matches = list(SECTION_MARKER.finditer(text))
    if not matches:
        return []

    preamble = text[: matches[0].start()].strip()
    sections = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        sections.append((match.group(1).strip(), text[match.end() : end].strip()))

    if preamble:
        title, body = sections[0]
        sections[0] = (title, f"{preamble}\n\n{body}".strip())
    return sections


def parse_structured(text: str, shape: Any) -> Result[Any, ShapeMismatch]:
    """Extract JSON from *text* and validate it against *shape* (a type pydantic can validate)."""
    try:
        data = extract_json(text)
    except JSONParsingError as e:
        return Err(ShapeMismatch(f"No JSON found in output: {e}"))
    try:
        return Ok(TypeAdapter(shape).validate_python(data))
    except ValidationError as e:
        return Err(ShapeMismatch(f"Output does not match expected shape: {e.error_count()} validation error(s)"))


def continuation_text(previous_document: dict[str, Any] | None, budget: int) -> str:
    """Project a previous document version into prompt text."""
    if not previous_document:
        return ""
    text = previous_document.get("full_document_markdown")
    if not isinstance(text, str) or not text:
        text = json.dumps(previous_document, ensure_ascii=False, default=str)
    return truncate(text, budget)


@dataclass(frozen=True)
class GenerationStage:
    """One call to the generation provider.

    ``template`` renders the user prompt and ``system_template`` the system
    instructions. For ``STRUCTURED`` stages ``shape`` is the type the JSON must
    validate against and ``render`` turns the validated value into markdown.
    """

    key: str
    title: str
    template: str
    kind: OutputKind = OutputKind.MARKDOWN
    system_template: str = "research_system.jinja2"
    shape: Any = None
    render: Callable[[Any, StageInputs], str] | None = None
    skip_when: Callable[[StageInputs], bool] | None = None
    variables: dict[str, Any] = field(default_factory=dict)

    def should_skip(self, inputs: StageInputs) -> bool:
        return bool(self.skip_when and self.skip_when(inputs))

    def build_prompt(self, inputs: StageInputs) -> tuple[str, str]:
        budgets = inputs.budgets
        request = inputs.request
        variables = {
            "stage": self,
            "request": request,
            "package": inputs.package,
            "client": inputs.package.primary,
            "comparisons": inputs.package.comparisons,
            "budgets": budgets,
            "notes": truncate(request.rag_context, budgets.notes) if request.rag_context else "",
            "prior_context": inputs.context.render(budgets.prior_section, budgets.structured),
            "previous_document": continuation_text(request.previous_document, budgets.previous_document),
            **self.variables,
        }
        try:
            return render_prompt(self.system_template, **variables), render_prompt(self.template, **variables)
        except LLMError as e:
            raise StageError(self.key, str(e)) from e

    async def run(self, inputs: StageInputs, provider: GenerationProvider) -> ContextEntry:
        """Generate and parse this stage's output. Raises StageError; never touches ``inputs.context``."""
        system, user = self.build_prompt(inputs)
        logger.debug("Stage %s prompt: %d system / %d user chars", self.key, len(system), len(user))

        try:
            text = await provider.generate(system, user)
        except LLMError as e:
            raise StageError(self.key, str(e)) from e
        if not text or not text.strip():
            raise StageError(self.key, "No textual content in response")
        text = text.strip()

        if self.kind == OutputKind.SECTIONS:
            sections = split_sections(text)
            if not sections:
                raise StageError(self.key, "Expected section markers but found none")
            return ContextEntry(
                stage=self.key,
                title=self.title,
                text="\n\n".join(f"## {title}\n\n{body}" for title, body in sections),
                sections=tuple(sections),
            )

        if self.kind == OutputKind.STRUCTURED:
            parsed = parse_structured(text, self.shape)
            if isinstance(parsed, Err):
                raise StageError(self.key, parsed.error.message)
            value = parsed.value
            markdown = self.render(value, inputs) if self.render else json.dumps(to_jsonable(value), indent=2)
            return ContextEntry(
                stage=self.key,
                title=self.title,
                text=markdown,
                structured=value,
                sections=((self.title, markdown),),
            )

        return ContextEntry(stage=self.key, title=self.title, text=text, sections=((self.title, text),))


def clip(value: Any, budget: int) -> str:
    """Jinja filter: truncate with an explicit marker."""
    return truncate("" if value is None else str(value), budget)


env.filters["clip"] = clip
