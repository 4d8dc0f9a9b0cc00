"""
Callsheet Record Normalizer & Invariant Enforcer

The single place where breakdown shape guarantees are enforced:
- enumerations coerced to their closed sets (unknown -> fallback + warning)
- missing numbers defaulted, numeric strings parsed, negatives floored at 0
- per-scene budget clamped to the cap (with a record warning)
- collection total summed from clamped values (warning over the episode cap)

Normalization is idempotent: normalizing a record's own `to_dict()` yields
an equal record.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from callsheet.core.config import BreakdownConfig
from callsheet.core.constants import (
    CastImportance,
    CoverageComplexity,
    MaterialImportance,
    MaterialSource,
    TimeOfDay,
    TimePressure,
)
from callsheet.core.exceptions import PipelineStageError
from callsheet.core.logging_config import get_logger
from callsheet.script.headings import UNKNOWN_LOCATION, location_from_heading, time_of_day_from_heading
from callsheet.script.segmenter import SceneUnit

from .breakdown_extractor import RecoveredCandidate
from .breakdown_models import (
    BreakdownCollection,
    BreakdownRecord,
    BudgetBreakdown,
    CastMember,
    Continuity,
    Coverage,
    Logistics,
    Material,
    Provenance,
)
from .field_coercion import (
    coerce_amount,
    coerce_bool,
    coerce_count,
    coerce_enum,
    coerce_int_list,
    coerce_optional_text,
    coerce_scene_number,
    coerce_str_list,
    coerce_text,
)
from .reconciler import SynthesizedCandidate

logger = get_logger("pipelines.normalizer")

NormalizerInput = Union[RecoveredCandidate, SynthesizedCandidate, BreakdownRecord, Dict[str, Any]]


def _first(data: Dict[str, Any], *keys: str) -> Any:
    """Value of the first key present (canonical key first, then aliases)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    unique = []
    for item in items:
        if item not in seen:
            seen.add(item)
            unique.append(item)
    return unique


def _money(amount: float) -> str:
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


class RecordNormalizer:
    """
    Converts candidates into canonical BreakdownRecords and builds the collection.

    Stateless apart from its configuration.
    """

    def __init__(self, config: BreakdownConfig = None):
        self.config = config or BreakdownConfig()

    # =========================================================================
    # RECORDS
    # =========================================================================

    def normalize(self, candidate: NormalizerInput, unit: Optional[SceneUnit] = None) -> BreakdownRecord:
        """
        Normalize one candidate into a BreakdownRecord.

        Args:
            candidate: Recovered or synthesized candidate, a record, or a plain mapping
            unit: The scene unit the record describes; supplies scene content
                  and heading-derived defaults

        Returns:
            BreakdownRecord satisfying every shape and budget invariant
        """
        data, provenance, scene_number, warnings = self._unpack(candidate)

        if scene_number is None and unit is not None:
            scene_number = unit.scene_number
        if scene_number is None:
            raise PipelineStageError("normalize", "record has no valid scene number")

        heading = unit.heading if unit is not None else ""

        title = coerce_text(_first(data, "title", "sceneTitle"), heading or f"Scene {scene_number}")
        location = coerce_text(_first(data, "location"))
        if not location:
            location = location_from_heading(heading) if heading else UNKNOWN_LOCATION

        raw_time = _first(data, "timeOfDay", "time_of_day")
        if raw_time is None:
            time_of_day = time_of_day_from_heading(heading)
        else:
            time_of_day = self._enum(TimeOfDay, raw_time, "timeOfDay", warnings)

        duration = coerce_count(
            _first(data, "estimatedDurationMinutes", "estimatedShootTime", "durationMinutes"),
            default=self.config.default_duration_minutes,
        )

        cast = self._cast(_first(data, "cast", "characters"), warnings)
        materials = self._materials(_first(data, "materials", "props"), warnings)
        budget_breakdown = self._budget_breakdown(_mapping(_first(data, "budgetBreakdown", "budgetDetails")))

        budget = coerce_amount(_first(data, "budgetImpact", "estimatedCost", "budget"))
        cap = self.config.per_scene_budget_cap
        if budget > cap:
            warnings.append(f"Scene budget {_money(budget)} exceeded the {_money(cap)} per-scene cap; capped")
            logger.debug(f"Scene {scene_number}: budget {budget} clamped to {cap}")
            budget = cap

        record = BreakdownRecord(
            scene_number=scene_number,
            title=title,
            location=location,
            time_of_day=time_of_day,
            estimated_duration_minutes=duration,
            cast=cast,
            materials=materials,
            special_requirements=coerce_str_list(_first(data, "specialRequirements", "special_requirements")),
            budget_impact=budget,
            budget_breakdown=budget_breakdown,
            logistics=self._logistics(_mapping(data.get("logistics")), warnings),
            coverage=self._coverage(_mapping(data.get("coverage")), warnings),
            continuity=self._continuity(_mapping(data.get("continuity"))),
            warnings=_dedupe(warnings),
            notes=coerce_text(data.get("notes")),
            scene_content=unit.content if unit is not None else coerce_text(_first(data, "sceneContent")),
            provenance=provenance,
        )
        return record

    def _unpack(self, candidate: NormalizerInput) -> Tuple[Dict[str, Any], Provenance, Optional[int], List[str]]:
        """Split an input into (data, provenance, scene number, starting warnings)."""
        if isinstance(candidate, BreakdownRecord):
            candidate = candidate.to_dict()

        if isinstance(candidate, SynthesizedCandidate):
            data = candidate.data
            provenance = Provenance.SYNTHESIZED
            scene_number = candidate.scene_number
        elif isinstance(candidate, RecoveredCandidate):
            data = candidate.data
            if candidate.source == "backfill":
                provenance = Provenance.BACKFILL
            elif candidate.recovered:
                provenance = Provenance.RECOVERED
            else:
                provenance = Provenance.PROVIDER
            scene_number = candidate.scene_number
        elif isinstance(candidate, dict):
            data = candidate
            provenance, _ = self._provenance(candidate.get("provenance"))
            scene_number = None
        else:
            raise TypeError(f"Cannot normalize {type(candidate).__name__}")

        if scene_number is None:
            scene_number = coerce_scene_number(_first(data, "sceneNumber", "scene_number"))

        warnings = coerce_str_list(data.get("warnings"))
        if isinstance(candidate, RecoveredCandidate) and candidate.recovered:
            warnings.append(f"Recovered from malformed provider output ({candidate.stage.value}); review details")
        return data, provenance, scene_number, warnings

    @staticmethod
    def _provenance(value: Any) -> Tuple[Provenance, bool]:
        try:
            return Provenance(value), True
        except ValueError:
            return Provenance.PROVIDER, False

    @staticmethod
    def _enum(enum_cls, value: Any, field_name: str, warnings: List[str]):
        member, recognized = coerce_enum(enum_cls, value)
        if not recognized and value not in (None, ""):
            warnings.append(f"Unknown {field_name} {value!r} replaced with {member.value!r}")
        return member

    def _cast(self, value: Any, warnings: List[str]) -> List[CastMember]:
        if not isinstance(value, list):
            return []
        cast = []
        for entry in value:
            if isinstance(entry, str):
                entry = {"name": entry}
            if not isinstance(entry, dict):
                continue
            cast.append(CastMember(
                name=coerce_text(entry.get("name"), "Unknown"),
                line_count=coerce_count(_first(entry, "lineCount", "line_count", "lines")),
                importance=self._enum(CastImportance, entry.get("importance"), "cast importance", warnings),
            ))
        return cast

    def _materials(self, value: Any, warnings: List[str]) -> List[Material]:
        if not isinstance(value, list):
            return []
        materials = []
        for entry in value:
            if isinstance(entry, str):
                entry = {"item": entry}
            if not isinstance(entry, dict):
                continue
            materials.append(Material(
                item=coerce_text(_first(entry, "item", "name"), "Unknown Item"),
                importance=self._enum(MaterialImportance, entry.get("importance"), "material importance", warnings),
                source=self._enum(MaterialSource, entry.get("source"), "material source", warnings),
                cost=coerce_amount(_first(entry, "cost", "estimatedCost")),
            ))
        return materials

    @staticmethod
    def _budget_breakdown(data: Dict[str, Any]) -> BudgetBreakdown:
        return BudgetBreakdown(
            location_cost=coerce_amount(data.get("locationCost")),
            prop_cost=coerce_amount(data.get("propCost")),
            extras_cost=coerce_amount(data.get("extrasCost")),
            special_eq_cost=coerce_amount(data.get("specialEqCost")),
            contingency=coerce_amount(data.get("contingency")),
            savings_tips=coerce_str_list(data.get("savingsTips")),
            assumptions=coerce_str_list(data.get("assumptions")),
        )

    def _logistics(self, data: Dict[str, Any], warnings: List[str]) -> Logistics:
        return Logistics(
            night_shoot=coerce_bool(data.get("nightShoot")),
            stunts=coerce_bool(data.get("stunts")),
            vfx=coerce_bool(data.get("vfx")),
            child_actor=coerce_bool(data.get("childActor")),
            animal=coerce_bool(data.get("animal")),
            fx_makeup=coerce_bool(data.get("fxMakeup")),
            company_move_required=coerce_bool(data.get("companyMoveRequired")),
            crowd_size=coerce_count(data.get("crowdSize"), default=None),
            vehicle=coerce_optional_text(data.get("vehicle")),
            weather_risk=coerce_optional_text(data.get("weatherRisk")),
            time_pressure=self._enum(TimePressure, data.get("timePressure"), "timePressure", warnings),
        )

    def _coverage(self, data: Dict[str, Any], warnings: List[str]) -> Coverage:
        return Coverage(
            suggested_setup_count=coerce_count(data.get("suggestedSetupCount")),
            complexity=self._enum(CoverageComplexity, data.get("complexity"), "coverage complexity", warnings),
            blocking_notes=coerce_text(data.get("blockingNotes")),
            continuity_risks=coerce_str_list(data.get("continuityRisks")),
            alt_location=coerce_text(data.get("altLocation")),
        )

    @staticmethod
    def _continuity(data: Dict[str, Any]) -> Continuity:
        return Continuity(
            key_props_carried=coerce_str_list(data.get("keyPropsCarried")),
            wardrobe_notes=coerce_text(data.get("wardrobeNotes")),
            reusability_across_scenes=coerce_int_list(data.get("reusabilityAcrossScenes")),
        )

    # =========================================================================
    # COLLECTION
    # =========================================================================

    def build_collection(
        self,
        records: Sequence[BreakdownRecord],
        unit_id: str,
        title: str,
        warnings: Sequence[str] = (),
        generated_at: Optional[str] = None,
    ) -> BreakdownCollection:
        """
        Assemble the collection and enforce the episode budget ceiling.

        The total is the sum of the (already clamped) record budgets. Going
        over the episode cap adds a warning; records are not scaled down.
        """
        numbers = [r.scene_number for r in records]
        if len(numbers) != len(set(numbers)):
            raise PipelineStageError("normalize", f"duplicate scene numbers in records: {numbers}")

        ordered = sorted(records, key=lambda r: r.scene_number)
        collection_warnings = list(warnings)

        total_budget = round(sum(r.budget_impact for r in ordered), 2)
        total_time = sum(r.estimated_duration_minutes for r in ordered)

        cap = self.config.episode_budget_cap
        if total_budget > cap:
            message = f"Episode budget target {_money(cap)} exceeded: {_money(total_budget)}"
            logger.warning(message)
            collection_warnings.append(message)

        return BreakdownCollection(
            unit_id=unit_id,
            title=title,
            records=ordered,
            total_estimated_time=total_time,
            total_budget_impact=total_budget,
            schema_version=self.config.schema_version,
            warnings=_dedupe(collection_warnings),
            generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
        )
