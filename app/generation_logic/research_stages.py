"""Fixed stage plan of the research document."""

from app.generation_logic.stage import GenerationStage
from app.generation_logic.stage import OutputKind
from app.generation_logic.stage import StageInputs
from app.models.document_models import CompetitorScore

SCORE_DIMENSIONS = (
    ("organic_seo", "Organic SEO"),
    ("social_media", "Social Media"),
    ("content_strategy", "Content Strategy"),
    ("paid_media", "Paid Media"),
    ("brand_positioning", "Brand Positioning"),
)


def render_scores(scores: dict[str, CompetitorScore], inputs: StageInputs) -> str:
    """Render competitive scores as a markdown matrix followed by per-company justifications."""
    header = "| Company | " + " | ".join(label for _, label in SCORE_DIMENSIONS) + " | **Overall** |"
    divider = "|" + "---|" * (len(SCORE_DIMENSIONS) + 2)
    rows = [
        f"| {name} | "
        + " | ".join(f"{getattr(score, key):g}" for key, _ in SCORE_DIMENSIONS)
        + f" | **{score.overall:g}** |"
        for name, score in scores.items()
    ]

    lines = [header, divider, *rows, "", "### Score Justifications"]
    for name, score in scores.items():
        lines.append(f"\n**{name}**\n")
        for key, label in SCORE_DIMENSIONS:
            lines.append(f"- **{label}:** {getattr(score.justification, key)}")
    return "\n".join(lines)


def has_no_comparisons(inputs: StageInputs) -> bool:
    return not inputs.package.comparisons


def research_stage_plan() -> list[GenerationStage]:
    return [
        GenerationStage(
            key="market_overview",
            title="Market Overview",
            template="market_overview.jinja2",
        ),
        GenerationStage(
            key="industry_technology",
            title="Industry & Technology",
            template="industry_technology.jinja2",
            kind=OutputKind.SECTIONS,
        ),
        GenerationStage(
            key="customer_insights",
            title="Customer & Audience Insights",
            template="customer_insights.jinja2",
        ),
        GenerationStage(
            key="competitive_landscape",
            title="Competitive Landscape",
            template="competitive_landscape.jinja2",
        ),
        GenerationStage(
            key="comparison_deep_dives",
            title="Competitor Deep-Dives",
            template="comparison_deep_dives.jinja2",
            kind=OutputKind.SECTIONS,
            skip_when=has_no_comparisons,
        ),
        GenerationStage(
            key="competitive_scoring",
            title="Competitive Scoring Matrix",
            template="competitive_scoring.jinja2",
            system_template="scoring_system.jinja2",
            kind=OutputKind.STRUCTURED,
            shape=dict[str, CompetitorScore],
            render=render_scores,
        ),
    ]
