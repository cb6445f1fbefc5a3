import json

import pytest

from app.core.exceptions import StageError
from app.generation_logic.context import PipelineContext
from app.generation_logic.research_stages import research_stage_plan
from app.generation_logic.stage import GenerationStage
from app.generation_logic.stage import OutputKind
from app.generation_logic.stage import StageInputs
from app.generation_logic.stage import parse_structured
from app.generation_logic.stage import split_sections
from app.models.document_models import CompetitorScore
from app.models.results import Err
from app.services.llm import LLMError


def score_payload(overall=6.5):
    return {
        "organic_seo": 7,
        "social_media": 5,
        "content_strategy": 6,
        "paid_media": 4,
        "brand_positioning": 8,
        "overall": overall,
        "justification": {
            "organic_seo": "Strong DA.",
            "social_media": "Modest following.",
            "content_strategy": "Regular blog.",
            "paid_media": "Little spend.",
            "brand_positioning": "Clear message.",
        },
    }


@pytest.fixture
def inputs(research_request, intelligence_package):
    return StageInputs(request=research_request, package=intelligence_package, context=PipelineContext())


def stage_by_key(key):
    return next(stage for stage in research_stage_plan() if stage.key == key)


def test_split_sections_with_preamble():
    text = "Intro line\n<!-- SECTION: One -->\nBody one\n<!--SECTION:Two-->\nBody two"

    assert split_sections(text) == [("One", "Intro line\n\nBody one"), ("Two", "Body two")]


def test_split_sections_without_markers_is_empty():
    assert split_sections("## Just a heading\ntext") == []


def test_parse_structured_ok_and_mismatch():
    ok = parse_structured("```json\n" + json.dumps({"Acme": score_payload()}) + "\n```", dict[str, CompetitorScore])
    assert ok.ok
    assert ok.value["Acme"].overall == 6.5

    bad = parse_structured(json.dumps({"Acme": {"overall": 3}}), dict[str, CompetitorScore])
    assert isinstance(bad, Err)
    assert "shape" in bad.error.message

    missing = parse_structured("no json here", dict[str, CompetitorScore])
    assert isinstance(missing, Err)


@pytest.mark.asyncio
async def test_markdown_stage_prompt_contains_intelligence(inputs, fake_provider):
    provider = fake_provider(["## Market\nThe market is growing."])

    entry = await stage_by_key("market_overview").run(inputs, provider)

    assert entry.stage == "market_overview"
    assert entry.sections == (("Market Overview", "## Market\nThe market is growing."),)
    system, user = provider.prompts[0]
    assert system
    assert "Acme Robotics" in user
    assert "12400" in user
    assert "spyfu_ppc_keywords" in user


@pytest.mark.asyncio
async def test_sections_stage_splits_on_markers(inputs, fake_provider):
    reply = "<!-- SECTION: Industry Dynamics & Trends -->\nTrends.\n<!-- SECTION: Technology & Innovation Landscape -->\nTech."
    entry = await stage_by_key("industry_technology").run(inputs, fake_provider([reply]))

    assert [title for title, _ in entry.sections] == ["Industry Dynamics & Trends", "Technology & Innovation Landscape"]
    assert "## Technology & Innovation Landscape\n\nTech." in entry.text


@pytest.mark.asyncio
async def test_sections_stage_without_markers_fails(inputs, fake_provider):
    with pytest.raises(StageError) as exc_info:
        await stage_by_key("industry_technology").run(inputs, fake_provider(["No markers at all."]))
    assert exc_info.value.stage == "industry_technology"


@pytest.mark.asyncio
async def test_structured_stage_renders_score_table(inputs, fake_provider):
    reply = json.dumps({"Acme Robotics": score_payload(6.5), "Globex": score_payload(5)})

    entry = await stage_by_key("competitive_scoring").run(inputs, fake_provider([reply]))

    assert set(entry.structured) == {"Acme Robotics", "Globex"}
    assert "| Acme Robotics | 7 | 5 | 6 | 4 | 8 | **6.5** |" in entry.text
    assert "**Organic SEO:** Strong DA." in entry.text


@pytest.mark.asyncio
async def test_structured_stage_with_wrong_shape_fails(inputs, fake_provider):
    with pytest.raises(StageError):
        await stage_by_key("competitive_scoring").run(inputs, fake_provider(['{"Acme Robotics": {"overall": 2}}']))


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["", "   \n"])
async def test_empty_output_is_a_stage_error(inputs, fake_provider, reply):
    with pytest.raises(StageError, match="No textual content"):
        await stage_by_key("market_overview").run(inputs, fake_provider([reply]))


@pytest.mark.asyncio
async def test_provider_failure_is_wrapped(inputs, fake_provider):
    with pytest.raises(StageError) as exc_info:
        await stage_by_key("customer_insights").run(inputs, fake_provider([LLMError("rate limited")]))
    assert "rate limited" in str(exc_info.value)


def test_missing_template_is_a_stage_error(inputs):
    stage = GenerationStage(key="ghost", title="Ghost", template="does_not_exist.jinja2", kind=OutputKind.MARKDOWN)
    with pytest.raises(StageError):
        stage.build_prompt(inputs)


def test_deep_dives_skip_without_comparisons(research_request, intelligence_package):
    solo = intelligence_package.model_copy(update={"comparisons": []})
    inputs = StageInputs(request=research_request, package=solo, context=PipelineContext())

    assert stage_by_key("comparison_deep_dives").should_skip(inputs)
    assert not stage_by_key("market_overview").should_skip(inputs)


def test_deep_dive_prompt_lists_one_marker_per_comparison(inputs):
    _, user = stage_by_key("comparison_deep_dives").build_prompt(inputs)

    assert "<!-- SECTION: Globex: Competitive Deep-Dive -->" in user
