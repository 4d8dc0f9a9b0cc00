"""
Callsheet Breakdown Pipeline

Orchestrates the production breakdown of one script:

    segment -> generate -> extract -> reconcile -> normalize

Collection-level stages advance segmented -> generated -> extracted ->
reconciled -> normalized -> complete. Only total provider unavailability and
an unrecoverable primary response stop a run; every other problem is carried
as a warning on the returned collection.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from callsheet.context.context_assembler import (
    BreakdownConstraints,
    ContextAssembler,
    SeriesContext,
)
from callsheet.core.config import BreakdownConfig, CallsheetConfig
from callsheet.core.logging_config import get_logger
from callsheet.llm.generation_client import GenerationClient, GenerationResult, build_generation_client
from callsheet.script.document import ScriptDocument
from callsheet.script.segmenter import SceneSegmenter, SegmentationResult

from .base_pipeline import BasePipeline, PipelineRun, PipelineStep, ProgressCallback
from .breakdown_extractor import ExtractionResult, ResilientExtractor
from .breakdown_models import BreakdownCollection, BreakdownRecord
from .normalizer import RecordNormalizer
from .reconciler import CompletenessReconciler, ReconciliationResult, build_request

logger = get_logger("pipelines.breakdown")


class BreakdownStage(Enum):
    """Collection-level progress of a breakdown run."""
    SEGMENTED = "segmented"
    GENERATED = "generated"
    EXTRACTED = "extracted"
    RECONCILED = "reconciled"
    NORMALIZED = "normalized"
    COMPLETE = "complete"


@dataclass
class BreakdownRequest:
    """Input for one breakdown run."""
    document: ScriptDocument
    series: SeriesContext = field(default_factory=SeriesContext)
    unit_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BreakdownRequest':
        """Build a request from {"script": {...}, "series": {...}, "unit_id": ...}."""
        return cls(
            document=ScriptDocument.from_dict(data.get("script") or data.get("document") or {}),
            series=SeriesContext.from_dict(data.get("series") or data.get("storyBible") or {}),
            unit_id=data.get("unit_id") or data.get("unitId"),
        )


@dataclass
class BreakdownWork:
    """Working set threaded through the steps of one run."""
    request: BreakdownRequest
    segmentation: Optional[SegmentationResult] = None
    constraints: Optional[BreakdownConstraints] = None
    generation: Optional[GenerationResult] = None
    extraction: Optional[ExtractionResult] = None
    reconciliation: Optional[ReconciliationResult] = None
    records: List[BreakdownRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def units(self):
        return self.segmentation.units if self.segmentation else []


_SLUG = re.compile(r"[^a-z0-9]+")


def default_unit_id(document: ScriptDocument) -> str:
    """Identifier for a collection when the caller supplies none."""
    if document.episode_number is not None:
        return f"episode-{document.episode_number}"
    slug = _SLUG.sub("-", document.title.lower()).strip("-")
    return slug or "script"


class BreakdownPipeline(BasePipeline[BreakdownRequest, BreakdownCollection]):
    """
    Production breakdown pipeline.

    Steps:
    1. Segment the script into scene units
    2. Generate the breakdown via the provider chain
    3. Extract candidate records from the raw response
    4. Reconcile candidates against the scene units (backfill/synthesize)
    5. Normalize records and build the collection
    """

    def __init__(
        self,
        client: GenerationClient,
        config: BreakdownConfig = None,
        segmenter: SceneSegmenter = None,
        assembler: ContextAssembler = None,
        extractor: ResilientExtractor = None,
        normalizer: RecordNormalizer = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.config = config or BreakdownConfig()
        self.client = client
        self.segmenter = segmenter or SceneSegmenter()
        self.assembler = assembler or ContextAssembler(self.config)
        self.extractor = extractor or ResilientExtractor()
        self.normalizer = normalizer or RecordNormalizer(self.config)
        self.reconciler = CompletenessReconciler(
            client=self.client,
            assembler=self.assembler,
            extractor=self.extractor,
            config=self.config,
        )
        super().__init__("breakdown", progress_callback=progress_callback)

    @classmethod
    def from_config(
        cls,
        config: CallsheetConfig,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> 'BreakdownPipeline':
        """Build a pipeline whose client follows the configured provider chain."""
        config.breakdown.validate()
        return cls(
            client=build_generation_client(config),
            config=config.breakdown,
            progress_callback=progress_callback,
        )

    def _define_steps(self) -> None:
        self._steps = [
            PipelineStep("segment", "Partition the script into scene units"),
            PipelineStep("generate", "Request the breakdown from the provider chain"),
            PipelineStep("extract", "Recover candidate records from the response"),
            PipelineStep("reconcile", "Fill scenes the response omitted"),
            PipelineStep("normalize", "Enforce record shape and budget ceilings"),
        ]

    async def _execute_step(self, step: PipelineStep, input_data: Any, run: PipelineRun) -> Any:
        handlers = {
            "segment": self._segment,
            "generate": self._generate,
            "extract": self._extract,
            "reconcile": self._reconcile,
            "normalize": self._normalize,
        }
        return await handlers[step.name](input_data, run)

    async def run(self, input_data: BreakdownRequest, run: Optional[PipelineRun] = None):
        run = run or PipelineRun(pipeline=self.name)
        result = await super().run(input_data, run)
        self._advance(run, BreakdownStage.COMPLETE)
        result.metadata["stage_history"] = [s.value for s in run.state["stage_history"]]
        return result

    @staticmethod
    def _advance(run: PipelineRun, stage: BreakdownStage) -> None:
        run.state["stage"] = stage
        run.state.setdefault("stage_history", []).append(stage)
        logger.debug(f"Breakdown stage: {stage.value}")

    # -- steps -------------------------------------------------------------

    async def _segment(self, request: BreakdownRequest, run: PipelineRun) -> BreakdownWork:
        work = BreakdownWork(request=request)
        work.segmentation = self.segmenter.segment(request.document)
        work.warnings.extend(work.segmentation.warnings)
        work.constraints = self.assembler.build_constraints(work.units)
        if not work.units:
            work.warnings.append("Script contains no numbered scenes; nothing to break down")
        self._advance(run, BreakdownStage.SEGMENTED)
        return work

    async def _generate(self, work: BreakdownWork, run: PipelineRun) -> BreakdownWork:
        if work.units:
            brief = self.assembler.assemble(
                work.units,
                work.request.series,
                work.constraints,
                script_title=work.request.document.title,
            )
            work.generation = await self.client.generate(build_request(brief, self.config))
            for failure in work.generation.failures:
                work.warnings.append(f"Provider {failure.provider} failed: {failure.reason}")
            if work.generation.used_fallback:
                work.warnings.append(f"Breakdown generated by fallback provider {work.generation.provider}")
        self._advance(run, BreakdownStage.GENERATED)
        return work

    async def _extract(self, work: BreakdownWork, run: PipelineRun) -> BreakdownWork:
        if work.generation is not None:
            work.extraction = self.extractor.extract(work.generation.text, source="primary")
            work.warnings.extend(work.extraction.warnings)
        self._advance(run, BreakdownStage.EXTRACTED)
        return work

    async def _reconcile(self, work: BreakdownWork, run: PipelineRun) -> BreakdownWork:
        if work.units:
            candidates = work.extraction.candidates if work.extraction else []
            work.reconciliation = await self.reconciler.reconcile(
                candidates, work.units, work.request.series, work.constraints
            )
            work.warnings.extend(work.reconciliation.warnings)
        self._advance(run, BreakdownStage.RECONCILED)
        return work

    async def _normalize(self, work: BreakdownWork, run: PipelineRun) -> BreakdownCollection:
        units_by_number = {u.scene_number: u for u in work.units}
        candidates = work.reconciliation.candidates if work.reconciliation else []
        work.records = [
            self.normalizer.normalize(candidate, units_by_number.get(candidate.scene_number))
            for candidate in candidates
        ]

        request = work.request
        collection = self.normalizer.build_collection(
            work.records,
            unit_id=request.unit_id or default_unit_id(request.document),
            title=request.series.episode_title or request.document.title,
            warnings=work.warnings,
        )
        self._advance(run, BreakdownStage.NORMALIZED)
        logger.info(
            f"Breakdown {collection.unit_id}: {collection.total_units} scene(s), "
            f"{collection.total_estimated_time} min, ${collection.total_budget_impact:,.2f}"
        )
        return collection


async def generate_breakdown(
    document: Union[ScriptDocument, Dict[str, Any]],
    series: Union[SeriesContext, Dict[str, Any], None] = None,
    client: Optional[GenerationClient] = None,
    config: Optional[CallsheetConfig] = None,
    unit_id: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> BreakdownCollection:
    """
    Produce the breakdown collection for one script.

    Args:
        document: Script document (or its dict form)
        series: Series context (or its dict form)
        client: Generation client; built from `config` when omitted
        config: Callsheet configuration; defaults when omitted
        unit_id: Collection identifier; derived from the script when omitted
        progress_callback: Optional progress callable

    Returns:
        BreakdownCollection with one record per scene

    Raises:
        ProviderUnavailableError: every provider failed on the primary request
        UnrecoverableOutputError: the primary response held no recoverable records
    """
    config = config or CallsheetConfig()
    if isinstance(document, dict):
        document = ScriptDocument.from_dict(document)
    if series is None:
        series = SeriesContext()
    elif isinstance(series, dict):
        series = SeriesContext.from_dict(series)

    if client is None:
        pipeline = BreakdownPipeline.from_config(config, progress_callback=progress_callback)
    else:
        pipeline = BreakdownPipeline(client, config=config.breakdown, progress_callback=progress_callback)

    result = await pipeline.run(BreakdownRequest(document=document, series=series, unit_id=unit_id))
    return result.output
