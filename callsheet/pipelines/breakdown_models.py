"""
Callsheet Breakdown Models

Canonical per-scene breakdown records and the episode-level collection.
Records are only built by the RecordNormalizer; `to_dict()` produces the
camelCase wire shape consumed by the surrounding application.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from callsheet.core.constants import (
    BREAKDOWN_SCHEMA_VERSION,
    UPDATED_BY_AI_GENERATOR,
    CastImportance,
    CoverageComplexity,
    MaterialImportance,
    MaterialSource,
    TimeOfDay,
    TimePressure,
)


class Provenance(Enum):
    """Where a record's content came from."""
    PROVIDER = "provider"          # parsed cleanly from the primary response
    RECOVERED = "recovered"        # needed repair to parse
    BACKFILL = "backfill"          # from the targeted missing-scene request
    SYNTHESIZED = "synthesized"    # deterministic fallback built from the script


@dataclass
class CastMember:
    name: str
    line_count: int = 0
    importance: CastImportance = CastImportance.SUPPORTING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "lineCount": self.line_count,
            "importance": self.importance.value,
        }


@dataclass
class Material:
    item: str
    importance: MaterialImportance = MaterialImportance.SECONDARY
    source: MaterialSource = MaterialSource.BUY
    cost: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item,
            "importance": self.importance.value,
            "source": self.source.value,
            "cost": self.cost,
        }


@dataclass
class BudgetBreakdown:
    """Sub-totals behind a scene's budget impact."""
    location_cost: float = 0.0
    prop_cost: float = 0.0
    extras_cost: float = 0.0
    special_eq_cost: float = 0.0
    contingency: float = 0.0
    savings_tips: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)

    @property
    def subtotal(self) -> float:
        return (
            self.location_cost + self.prop_cost + self.extras_cost
            + self.special_eq_cost + self.contingency
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "locationCost": self.location_cost,
            "propCost": self.prop_cost,
            "extrasCost": self.extras_cost,
            "specialEqCost": self.special_eq_cost,
            "contingency": self.contingency,
            "savingsTips": list(self.savings_tips),
            "assumptions": list(self.assumptions),
        }


@dataclass
class Logistics:
    night_shoot: bool = False
    stunts: bool = False
    vfx: bool = False
    child_actor: bool = False
    animal: bool = False
    fx_makeup: bool = False
    company_move_required: bool = False
    crowd_size: Optional[int] = None
    vehicle: Optional[str] = None
    weather_risk: Optional[str] = None
    time_pressure: TimePressure = TimePressure.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nightShoot": self.night_shoot,
            "stunts": self.stunts,
            "vfx": self.vfx,
            "childActor": self.child_actor,
            "animal": self.animal,
            "fxMakeup": self.fx_makeup,
            "companyMoveRequired": self.company_move_required,
            "crowdSize": self.crowd_size,
            "vehicle": self.vehicle,
            "weatherRisk": self.weather_risk,
            "timePressure": self.time_pressure.value,
        }


@dataclass
class Coverage:
    suggested_setup_count: int = 0
    complexity: CoverageComplexity = CoverageComplexity.SIMPLE
    blocking_notes: str = ""
    continuity_risks: List[str] = field(default_factory=list)
    alt_location: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suggestedSetupCount": self.suggested_setup_count,
            "complexity": self.complexity.value,
            "blockingNotes": self.blocking_notes,
            "continuityRisks": list(self.continuity_risks),
            "altLocation": self.alt_location,
        }


@dataclass
class Continuity:
    key_props_carried: List[str] = field(default_factory=list)
    wardrobe_notes: str = ""
    reusability_across_scenes: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyPropsCarried": list(self.key_props_carried),
            "wardrobeNotes": self.wardrobe_notes,
            "reusabilityAcrossScenes": list(self.reusability_across_scenes),
        }


@dataclass
class BreakdownRecord:
    """Normalized production breakdown for one scene."""
    scene_number: int
    title: str
    location: str
    time_of_day: TimeOfDay = TimeOfDay.DAY
    estimated_duration_minutes: int = 20
    cast: List[CastMember] = field(default_factory=list)
    materials: List[Material] = field(default_factory=list)
    special_requirements: List[str] = field(default_factory=list)
    budget_impact: float = 0.0
    budget_breakdown: BudgetBreakdown = field(default_factory=BudgetBreakdown)
    logistics: Logistics = field(default_factory=Logistics)
    coverage: Coverage = field(default_factory=Coverage)
    continuity: Continuity = field(default_factory=Continuity)
    warnings: List[str] = field(default_factory=list)
    notes: str = ""
    scene_content: str = ""
    provenance: Provenance = Provenance.PROVIDER

    @property
    def is_synthesized(self) -> bool:
        return self.provenance == Provenance.SYNTHESIZED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sceneNumber": self.scene_number,
            "title": self.title,
            "location": self.location,
            "timeOfDay": self.time_of_day.value,
            "estimatedDurationMinutes": self.estimated_duration_minutes,
            "cast": [c.to_dict() for c in self.cast],
            "materials": [m.to_dict() for m in self.materials],
            "specialRequirements": list(self.special_requirements),
            "budgetImpact": self.budget_impact,
            "budgetBreakdown": self.budget_breakdown.to_dict(),
            "logistics": self.logistics.to_dict(),
            "coverage": self.coverage.to_dict(),
            "continuity": self.continuity.to_dict(),
            "warnings": list(self.warnings),
            "notes": self.notes,
            "sceneContent": self.scene_content,
            "provenance": self.provenance.value,
        }


@dataclass
class BreakdownCollection:
    """All scene records for one episode, with aggregates."""
    unit_id: str
    title: str
    records: List[BreakdownRecord] = field(default_factory=list)
    total_estimated_time: int = 0
    total_budget_impact: float = 0.0
    schema_version: str = BREAKDOWN_SCHEMA_VERSION
    warnings: List[str] = field(default_factory=list)
    generated_at: str = ""
    updated_by: str = UPDATED_BY_AI_GENERATOR

    @property
    def total_units(self) -> int:
        return len(self.records)

    @property
    def scene_numbers(self) -> List[int]:
        return [r.scene_number for r in self.records]

    def get_record(self, scene_number: int) -> Optional[BreakdownRecord]:
        for record in self.records:
            if record.scene_number == scene_number:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unitId": self.unit_id,
            "title": self.title,
            "totalUnits": self.total_units,
            "totalEstimatedTime": self.total_estimated_time,
            "totalBudgetImpact": self.total_budget_impact,
            "records": [r.to_dict() for r in self.records],
            "schemaVersion": self.schema_version,
            "warnings": list(self.warnings),
            "generatedAt": self.generated_at,
            "updatedBy": self.updated_by,
        }
