"""Merges generated sections and boilerplate into the final GeneratedDocument.

Pure data transformation: no I/O and no provider calls.
"""

import logging
import re
from datetime import UTC
from datetime import datetime
from typing import Any

from app.generation_logic import static_content
from app.generation_logic.context import PipelineContext
from app.models.document_models import CompetitorScore
from app.models.document_models import DocumentMetadata
from app.models.document_models import DocumentSection
from app.models.document_models import GeneratedDocument
from app.models.document_models import IntelligenceSummary
from app.models.intelligence_models import IntelligencePackage
from app.models.research_models import ResearchRequest

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 500


def count_words(text: str) -> int:
    return len(text.split())


def anchor(title: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def document_title(request: ResearchRequest) -> str:
    return request.title or f"Marketing Research: {request.client.name}"


def next_version(previous_document: dict[str, Any] | None) -> int:
    if not previous_document:
        return 1
    metadata = previous_document.get("metadata") or {}
    version = metadata.get("version") if isinstance(metadata, dict) else None
    return version + 1 if isinstance(version, int) and version > 0 else 2


def build_sections(context: PipelineContext) -> list[DocumentSection]:
    sections = []
    for entry in context:
        for title, body in entry.sections:
            markdown = body if body.lstrip().startswith("#") else f"## {title}\n\n{body}"
            sections.append(
                DocumentSection(
                    section_number=len(sections) + 1,
                    section_title=title,
                    markdown=markdown,
                    word_count=count_words(markdown),
                )
            )
    return sections


def build_summary(sections: list[DocumentSection], request: ResearchRequest) -> str:
    """First prose paragraph of the first section, capped at MAX_SUMMARY_CHARS."""
    if sections:
        for paragraph in sections[0].markdown.split("\n\n"):
            paragraph = paragraph.strip()
            if paragraph and not paragraph.startswith("#"):
                return paragraph[:MAX_SUMMARY_CHARS]
    return (
        f"Comprehensive marketing research analysis for {request.client.name} "
        f"across {len(request.competitors)} competitors."
    )


def build_table_of_contents(sections: list[DocumentSection]) -> str:
    lines = ["## Table of Contents", ""]
    lines += [f"{s.section_number}. [{s.section_title}](#{anchor(s.section_title)})" for s in sections]
    return "\n".join(lines)


def summarize_intelligence(package: IntelligencePackage) -> IntelligenceSummary:
    errors = package.all_errors
    return IntelligenceSummary(
        companies_analyzed=len(package.subjects),
        data_sources_succeeded=sum(subject.populated_fields for subject in package.subjects),
        data_sources_failed=len(errors),
        errors=[f"{subject.name}: {error.describe()}" for subject in package.subjects for error in subject.errors],
    )


def build_methodology(summary: IntelligenceSummary) -> str:
    text = static_content.METHODOLOGY_HEADER.format(
        companies=summary.companies_analyzed,
        plural="y" if summary.companies_analyzed == 1 else "ies",
        succeeded=summary.data_sources_succeeded,
        succeeded_plural="" if summary.data_sources_succeeded == 1 else "s",
        failed=summary.data_sources_failed,
        failed_plural="" if summary.data_sources_failed == 1 else "s",
    )
    if not summary.errors:
        return f"{text}\n{static_content.NO_ERRORS_NOTE}\n"
    gaps = "\n".join(f"- {error}" for error in summary.errors)
    return f"{text}\n{static_content.ERRORS_HEADER}\n\n{gaps}\n"


def find_scores(context: PipelineContext) -> dict[str, CompetitorScore]:
    for entry in context:
        structured = entry.structured
        if isinstance(structured, dict) and structured and all(
            isinstance(value, CompetitorScore) for value in structured.values()
        ):
            return structured
    return {}


def assemble_document(
    request: ResearchRequest,
    package: IntelligencePackage,
    context: PipelineContext,
    model: str,
    generated_at: datetime | None = None,
) -> GeneratedDocument:
    generated_at = generated_at or datetime.now(UTC)
    title = document_title(request)
    sections = build_sections(context)
    total_words = sum(s.word_count for s in sections)
    intelligence_summary = summarize_intelligence(package)

    about = static_content.ABOUT_REPORT.format(
        client=request.client.name,
        comparison_phrase=static_content.comparison_phrase([c.name for c in request.competitors]),
    )
    parts = [
        f"# {title}",
        "",
        f"*Generated on {generated_at.date().isoformat()} | {len(sections)} sections | {total_words:,} words*",
        "",
        build_table_of_contents(sections),
        "",
        "---",
        "",
        about,
        "---",
        "",
    ]
    for section in sections:
        parts += [section.markdown, "", "---", ""]
    parts.append(build_methodology(intelligence_summary))

    logger.info("Assembled '%s': %d sections, %d words", title, len(sections), total_words)
    return GeneratedDocument(
        title=title,
        summary=build_summary(sections, request),
        sections=sections,
        competitive_scores=find_scores(context),
        full_document_markdown="\n".join(parts),
        metadata=DocumentMetadata(
            model=model,
            version=next_version(request.previous_document),
            generated_at=generated_at,
            total_word_count=total_words,
            intelligence_summary=intelligence_summary,
        ),
    )
