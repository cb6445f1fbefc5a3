from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from app.core.exceptions import StageError
from app.generation_logic.assembly import assemble_document
from app.generation_logic.context import PipelineContext
from app.generation_logic.research_stages import research_stage_plan
from app.generation_logic.stage import GenerationProvider
from app.generation_logic.stage import GenerationStage
from app.generation_logic.stage import PromptBudgets
from app.generation_logic.stage import StageInputs
from app.models.document_models import GeneratedDocument
from app.models.intelligence_models import IntelligencePackage
from app.models.research_models import ResearchRequest
from app.services.intelligence import IntelligenceOrchestrator

# Configure module logger
logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]


@dataclass
class PipelineOutcome:
    """Result of one run. Exactly one of ``document`` and ``error`` is set."""

    context: PipelineContext
    package: IntelligencePackage | None = None
    document: GeneratedDocument | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.document is not None


class PipelineRunner:
    """Runs gathering, then every generation stage in order, then assembly.

    gathering -> stage[1..n] -> assembling -> done, with failed reachable from
    any stage. A stage starts only once the previous one has committed its
    context entry.
    """

    def __init__(
        self,
        orchestrator: IntelligenceOrchestrator,
        provider: GenerationProvider,
        model: str,
        stages: list[GenerationStage] | None = None,
        budgets: PromptBudgets | None = None,
    ):
        self.orchestrator = orchestrator
        self.provider = provider
        self.model = model
        self.stages = stages if stages is not None else research_stage_plan()
        self.budgets = budgets or PromptBudgets()

    async def run(
        self,
        request: ResearchRequest,
        job_id: str = "-",
        on_progress: ProgressCallback | None = None,
    ) -> PipelineOutcome:
        def progress(label: str) -> None:
            logger.info("[%s] %s", job_id, label)
            if on_progress is not None:
                on_progress(label)

        context = PipelineContext()
        outcome = PipelineOutcome(context=context)

        progress("Gathering intelligence data...")
        package = await self.orchestrator.gather(request.client, request.competitors, job_id=job_id)
        outcome.package = package

        inputs = StageInputs(request=request, package=package, context=context, budgets=self.budgets)
        active = [stage for stage in self.stages if not stage.should_skip(inputs)]
        skipped = len(self.stages) - len(active)
        if skipped:
            logger.info("[%s] Skipping %d stage(s) not applicable to this request", job_id, skipped)

        for index, stage in enumerate(active, start=1):
            progress(f"Generating {stage.title} ({index}/{len(active)})...")
            try:
                entry = await stage.run(inputs, self.provider)
            except StageError as e:
                logger.error("[%s] %s", job_id, str(e))
                outcome.error = str(e)
                return outcome
            except Exception as e:
                logger.exception("[%s] Unexpected error in stage '%s'", job_id, stage.key)
                outcome.error = f"Stage '{stage.key}' failed: unexpected error: {e}"
                return outcome
            context.append(entry)
            logger.info("[%s] Stage '%s' committed (%d chars)", job_id, stage.key, len(entry.text))

        progress("Assembling final document...")
        try:
            outcome.document = assemble_document(request, package, context, model=self.model)
        except Exception as e:
            logger.exception("[%s] Document assembly failed", job_id)
            outcome.error = f"Assembly failed: {e}"
            return outcome

        logger.info("[%s] Pipeline completed successfully", job_id)
        return outcome
