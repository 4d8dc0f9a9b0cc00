"""
Callsheet Completeness Reconciler

Guarantees one candidate per scene unit. Candidates are screened against the
authoritative scene numbers; scenes the provider omitted get exactly one
targeted backfill request, and anything still missing is synthesized
deterministically from the script.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from callsheet.context.context_assembler import (
    AssembledBrief,
    BreakdownConstraints,
    ContextAssembler,
    SeriesContext,
)
from callsheet.core.config import BreakdownConfig
from callsheet.core.constants import TimeOfDay
from callsheet.core.exceptions import ProviderUnavailableError, UnrecoverableOutputError
from callsheet.core.logging_config import get_logger
from callsheet.llm.generation_client import GenerationClient, GenerationRequest
from callsheet.script.headings import location_from_heading, time_of_day_from_heading
from callsheet.script.segmenter import SceneUnit

from .breakdown_extractor import RecoveredCandidate, ResilientExtractor
from .field_coercion import coerce_scene_number

logger = get_logger("pipelines.reconciler")

FALLBACK_WARNING_PREFIX = "Automatic fallback breakdown"
FALLBACK_NOTES = "Basic breakdown created automatically. Review and update with full details."


@dataclass
class SynthesizedCandidate:
    """Deterministic stand-in for a scene no provider response covered."""
    data: Dict[str, Any]
    scene_number: int
    reason: str

    recovered = False
    source = "synthesized"


Candidate = Union[RecoveredCandidate, SynthesizedCandidate]


@dataclass
class ReconciliationResult:
    """One candidate per expected scene, sorted, plus what it took to get there."""
    candidates: List[Candidate] = field(default_factory=list)
    missing_after_primary: List[int] = field(default_factory=list)
    backfilled: List[int] = field(default_factory=list)
    synthesized: List[int] = field(default_factory=list)
    backfill_attempted: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def scene_numbers(self) -> List[int]:
        return [c.scene_number for c in self.candidates]


def build_request(brief: AssembledBrief, config: BreakdownConfig) -> GenerationRequest:
    """Generation request for an assembled brief."""
    return GenerationRequest(
        user_prompt=brief.user_prompt,
        system_prompt=brief.system_prompt,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def synthesize_candidate(unit: SceneUnit, reason: str, config: BreakdownConfig = None) -> SynthesizedCandidate:
    """
    Build the minimal fallback record for a scene from its script text.

    Location and time of day come from the heading; cast comes from the
    scene's speakers. Materials are empty and the budget is the fixed
    fallback amount.
    """
    config = config or BreakdownConfig()
    time_of_day = time_of_day_from_heading(unit.heading)
    cast = [
        {"name": name, "lineCount": lines, "importance": "supporting"}
        for name, lines in unit.speakers[:config.fallback_cast_limit]
    ]
    data = {
        "sceneNumber": unit.scene_number,
        "title": unit.heading or f"Scene {unit.scene_number}",
        "location": location_from_heading(unit.heading),
        "timeOfDay": time_of_day.value,
        "estimatedDurationMinutes": config.fallback_duration_minutes,
        "cast": cast,
        "materials": [],
        "specialRequirements": [],
        "budgetImpact": config.fallback_scene_budget,
        "budgetBreakdown": {
            "savingsTips": ["Basic scene - minimal costs"],
            "assumptions": ["Location is free or actor-owned"],
        },
        "logistics": {"nightShoot": time_of_day == TimeOfDay.NIGHT},
        "coverage": {"suggestedSetupCount": 2, "complexity": "simple"},
        "continuity": {},
        "warnings": [f"{FALLBACK_WARNING_PREFIX}: {reason}"],
        "notes": FALLBACK_NOTES,
    }
    return SynthesizedCandidate(data=data, scene_number=unit.scene_number, reason=reason)


class CompletenessReconciler:
    """
    Reconciles extracted candidates against the segmented scene units.

    Makes at most one backfill request per run. Backfill failures are not
    fatal; they become warnings and the scenes are synthesized.
    """

    def __init__(
        self,
        client: GenerationClient,
        assembler: ContextAssembler = None,
        extractor: ResilientExtractor = None,
        config: BreakdownConfig = None,
    ):
        self.config = config or BreakdownConfig()
        self.client = client
        self.assembler = assembler or ContextAssembler(self.config)
        self.extractor = extractor or ResilientExtractor()

    async def reconcile(
        self,
        candidates: Sequence[RecoveredCandidate],
        units: Sequence[SceneUnit],
        series: SeriesContext,
        constraints: BreakdownConstraints = None,
    ) -> ReconciliationResult:
        """
        Produce exactly one candidate per scene unit.

        Args:
            candidates: Candidates extracted from the primary response
            units: Authoritative scene units
            series: Series context for the backfill brief
            constraints: Run constraints; derived from the units when omitted

        Returns:
            ReconciliationResult with candidates sorted by scene number
        """
        result = ReconciliationResult()
        units_by_number = {u.scene_number: u for u in units}
        constraints = constraints or BreakdownConstraints.for_units(units, self.config)

        accepted = self._screen(candidates, set(units_by_number), {}, result)
        missing = sorted(set(units_by_number) - set(accepted))
        result.missing_after_primary = list(missing)

        if missing:
            logger.warning(f"Provider output is missing {len(missing)} scene(s): {missing}")
            result.warnings.append(
                f"Provider output omitted {len(missing)} of {len(units_by_number)} scene(s): {missing}"
            )
            backfill = await self._backfill([units_by_number[n] for n in missing], series, constraints, result)
            before = set(accepted)
            accepted = self._screen(backfill, set(missing), accepted, result)
            result.backfilled = sorted(set(accepted) - before)

            still_missing = sorted(set(units_by_number) - set(accepted))
            reason = (
                "scene was missing from the provider response and the backfill request"
                if result.backfill_attempted else "scene was missing from the provider response"
            )
            for number in still_missing:
                accepted[number] = synthesize_candidate(units_by_number[number], reason, self.config)
                result.synthesized.append(number)
            if still_missing:
                result.warnings.append(f"Synthesized fallback breakdowns for scene(s): {still_missing}")
                logger.warning(f"Synthesized fallback breakdowns for scene(s): {still_missing}")

        result.candidates = [accepted[n] for n in sorted(accepted)]
        logger.info(
            f"Reconciled {len(result.candidates)} scene(s): "
            f"{len(result.backfilled)} backfilled, {len(result.synthesized)} synthesized"
        )
        return result

    async def _backfill(
        self,
        missing_units: List[SceneUnit],
        series: SeriesContext,
        constraints: BreakdownConstraints,
        result: ReconciliationResult,
    ) -> List[RecoveredCandidate]:
        numbers = [u.scene_number for u in missing_units]
        brief = self.assembler.assemble_backfill(missing_units, series, constraints)
        result.backfill_attempted = True
        logger.info(f"Requesting backfill for scene(s) {numbers}")

        try:
            generation = await self.client.generate(build_request(brief, self.config))
            extraction = self.extractor.extract(generation.text, source="backfill")
        except (ProviderUnavailableError, UnrecoverableOutputError) as e:
            message = f"Backfill request for scene(s) {numbers} failed: {e.message}"
            logger.warning(message)
            result.warnings.append(message)
            return []

        if generation.used_fallback:
            result.warnings.append(
                f"Backfill request was served by fallback provider {generation.provider}"
            )
        result.warnings.extend(extraction.warnings)
        return extraction.candidates

    def _screen(
        self,
        candidates: Sequence[RecoveredCandidate],
        expected: Set[int],
        accepted: Dict[int, Candidate],
        result: ReconciliationResult,
    ) -> Dict[int, Candidate]:
        """Accept the first valid candidate per expected scene; drop the rest with warnings."""
        accepted = dict(accepted)
        for candidate in candidates:
            value = candidate.scene_number_value
            number = coerce_scene_number(value)
            message: Optional[str] = None

            if number is None:
                message = f"Dropped a {candidate.source} record with a missing or invalid scene number ({value!r})"
            elif number in accepted:
                message = f"Dropped duplicate {candidate.source} record for scene {number}"
            elif number not in expected:
                message = f"Dropped {candidate.source} record for unexpected scene {number}"

            if message:
                logger.warning(message)
                result.warnings.append(message)
                continue

            accepted[number] = replace(candidate, scene_number=number)
        return accepted
