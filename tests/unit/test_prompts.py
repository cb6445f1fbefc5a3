import pytest

from app.generation_logic.context import TRUNCATION_MARKER
from app.generation_logic.context import ContextEntry
from app.generation_logic.context import PipelineContext
from app.generation_logic.research_stages import research_stage_plan
from app.generation_logic.stage import PromptBudgets
from app.generation_logic.stage import StageInputs
from app.models.intelligence_models import AdCreativeAnalysis
from app.models.intelligence_models import LinkedInCompany
from app.models.intelligence_models import WebsitePage
from app.services.llm import PROMPT_DIR


@pytest.fixture
def inputs(research_request, intelligence_package):
    return StageInputs(request=research_request, package=intelligence_package, context=PipelineContext())


def test_every_stage_template_exists():
    for stage in research_stage_plan():
        assert (PROMPT_DIR / stage.template).is_file()
        assert (PROMPT_DIR / stage.system_template).is_file()


@pytest.mark.parametrize("stage", research_stage_plan(), ids=lambda stage: stage.key)
def test_every_stage_renders_with_intelligence(stage, inputs):
    system, user = stage.build_prompt(inputs)

    assert system.strip()
    assert "Acme Robotics" in user
    assert "Globex" in user
    assert "{{" not in user
    assert "{%" not in user


def test_missing_data_is_not_rendered(inputs):
    _, user = research_stage_plan()[0].build_prompt(inputs)

    assert "### LinkedIn Profile" in user
    assert "- Followers: 12400" in user
    assert "- Employees: N/A" in user
    # No YouTube, keyword or ad data was gathered
    assert "### YouTube Channel" not in user
    assert "### Keyword Rankings" not in user
    assert "### Google Ads" not in user
    assert "### Data Collection Errors" in user


def test_page_content_is_truncated_to_budget(research_request, intelligence_package):
    page = WebsitePage(url="https://acme.example", title="Home", markdown="z" * 5000)
    intelligence_package.primary.streams["organic"].data["website_pages"] = [page]
    inputs = StageInputs(
        request=research_request,
        package=intelligence_package,
        context=PipelineContext(),
        budgets=PromptBudgets(page=100),
    )

    _, user = research_stage_plan()[0].build_prompt(inputs)

    assert "z" * 100 + TRUNCATION_MARKER in user
    assert "z" * 101 not in user


def test_request_context_and_notes(research_request, intelligence_package):
    request = research_request.model_copy(
        update={
            "rag_context": "n" * 50,
            "instructions": "Focus on mid-market buyers.",
            "previous_document": {"full_document_markdown": "# Old version body"},
        }
    )
    inputs = StageInputs(
        request=request,
        package=intelligence_package,
        context=PipelineContext(),
        budgets=PromptBudgets(notes=30),
    )

    _, user = research_stage_plan()[0].build_prompt(inputs)

    assert "## Discovery Notes / Meeting Context\n" + "n" * 30 + TRUNCATION_MARKER in user
    assert "Focus on mid-market buyers." in user
    assert "# Old version body" in user


def test_prior_sections_are_truncated(research_request, intelligence_package):
    context = PipelineContext()
    context.append(ContextEntry(stage="market_overview", title="Market Overview", text="p" * 2000))
    inputs = StageInputs(
        request=research_request,
        package=intelligence_package,
        context=context,
        budgets=PromptBudgets(prior_section=50),
    )

    _, user = research_stage_plan()[1].build_prompt(inputs)

    assert "## Prior Sections" in user
    assert "### Market Overview\n" + "p" * 50 + TRUNCATION_MARKER in user


def test_scoring_prompt_lists_every_company(inputs):
    scoring = research_stage_plan()[-1]
    system, user = scoring.build_prompt(inputs)

    assert '"Acme Robotics": {' in user
    assert '"Globex": {' in user
    assert "JSON" in system


def test_ad_creative_analysis_is_rendered(inputs, intelligence_package):
    intelligence_package.primary.streams["paid"].data["ad_creative_analysis"] = AdCreativeAnalysis(
        summary="Heavy on ROI claims.",
        themes=["automation", "uptime"],
        cta_patterns=["Book a demo"],
    )

    _, user = research_stage_plan()[0].build_prompt(inputs)

    assert "### Ad Creative Analysis (AI-generated)" in user
    assert "Summary: Heavy on ROI claims." in user
    assert "Themes: automation, uptime" in user
    assert "CTA Patterns: Book a demo" in user
    assert "Messaging Patterns:" not in user


def test_free_text_fields_are_capped(research_request, intelligence_package):
    request = research_request.model_copy(
        update={
            "instructions": "i" * 500,
            "context": research_request.context.model_copy(update={"industry_description": "d" * 500}),
        }
    )
    intelligence_package.primary.streams["social"].data["linkedin"] = LinkedInCompany(specialties=["s" * 500])
    inputs = StageInputs(
        request=request,
        package=intelligence_package,
        context=PipelineContext(),
        budgets=PromptBudgets(notes=40, short_text=20),
    )

    _, user = research_stage_plan()[0].build_prompt(inputs)

    assert "Industry: " + "d" * 20 + TRUNCATION_MARKER in user
    assert "- Specialties: " + "s" * 20 + TRUNCATION_MARKER in user
    assert "## Strategist Instructions\n" + "i" * 40 + TRUNCATION_MARKER in user
    assert "d" * 21 not in user
    assert "i" * 41 not in user
