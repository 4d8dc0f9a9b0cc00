"""
Callsheet Context Assembler

Composes the breakdown brief: series context, the ordered scene units and the
numeric constraints the provider must honor.

Features:
- States the exact expected scene count and the inclusive scene-number range
- Bounded output (scene content, world text, cast and location lists are capped)
- Reduced brief for backfilling scenes the provider omitted

Assembly is pure: the same inputs always produce the same brief.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from callsheet.core.config import BreakdownConfig
from callsheet.core.logging_config import get_logger
from callsheet.script.document import optional_int
from callsheet.script.segmenter import SceneUnit
from callsheet.utils.unicode_utils import count_tokens_estimate, truncate_text

from .prompts import (
    BACKFILL_PREAMBLE,
    BREAKDOWN_SYSTEM_PROMPT,
    BREAKDOWN_TASK,
    RECORD_SHAPE_EXAMPLE,
)

logger = get_logger("context.assembler")


@dataclass
class KeyLocation:
    """A named location from the series world."""
    name: str
    description: str = ""


@dataclass
class CastReference:
    """A principal character from the series bible."""
    name: str
    role: str = ""


@dataclass
class SeriesContext:
    """Series and episode metadata supplied alongside the script."""
    title: str = "Untitled Series"
    genre: str = "Drama"
    overview: str = ""
    world: str = ""
    key_locations: List[KeyLocation] = field(default_factory=list)
    principal_cast: List[CastReference] = field(default_factory=list)
    episode_title: str = ""
    episode_number: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SeriesContext':
        """
        Build a series context from a series bible mapping.

        Accepts snake_case keys and the upstream bible spellings
        (`seriesTitle`, `seriesOverview`, `worldBuilding`, `mainCharacters`).
        `worldBuilding` may be free text or a mapping with `setting`, `rules`
        and `locations`.
        """
        data = data or {}
        world_data = data.get("world", data.get("worldBuilding", ""))
        locations_data = data.get("key_locations", data.get("keyLocations"))

        if isinstance(world_data, dict):
            parts = []
            if world_data.get("setting"):
                parts.append(f"Setting: {world_data['setting']}")
            rules = world_data.get("rules")
            if rules:
                rules_text = rules if isinstance(rules, str) else json.dumps(rules)
                parts.append(f"World Rules: {rules_text}")
            world = "\n".join(parts)
            if locations_data is None:
                locations_data = world_data.get("locations")
        else:
            world = str(world_data or "")

        cast_data = (
            data.get("principal_cast")
            or data.get("principalCast")
            or data.get("mainCharacters")
            or data.get("characters")
            or []
        )

        return cls(
            title=data.get("title") or data.get("seriesTitle") or "Untitled Series",
            genre=data.get("genre") or "Drama",
            overview=data.get("overview") or data.get("seriesOverview") or data.get("logline") or "",
            world=world,
            key_locations=[_location_from(item) for item in (locations_data or [])],
            principal_cast=[_cast_from(item) for item in cast_data],
            episode_title=data.get("episode_title") or data.get("episodeTitle") or "",
            episode_number=optional_int(data.get("episode_number", data.get("episodeNumber"))),
        )


def _location_from(item: Any) -> KeyLocation:
    if isinstance(item, dict):
        return KeyLocation(
            name=str(item.get("name") or "Unnamed location"),
            description=str(item.get("description") or item.get("type") or ""),
        )
    return KeyLocation(name=str(item))


def _cast_from(item: Any) -> CastReference:
    if isinstance(item, dict):
        return CastReference(
            name=str(item.get("name") or "Unnamed"),
            role=str(item.get("role") or item.get("archetype") or item.get("premiseRole") or ""),
        )
    return CastReference(name=str(item))


@dataclass(frozen=True)
class BreakdownConstraints:
    """Hard numeric constraints stated in every brief."""
    scene_numbers: Tuple[int, ...]
    per_scene_budget_cap: float
    episode_budget_cap: float

    @property
    def expected_count(self) -> int:
        return len(self.scene_numbers)

    @property
    def first_scene(self) -> Optional[int]:
        return self.scene_numbers[0] if self.scene_numbers else None

    @property
    def last_scene(self) -> Optional[int]:
        return self.scene_numbers[-1] if self.scene_numbers else None

    @property
    def is_contiguous(self) -> bool:
        if not self.scene_numbers:
            return True
        return list(self.scene_numbers) == list(range(self.first_scene, self.last_scene + 1))

    def for_scenes(self, scene_numbers: Sequence[int]) -> 'BreakdownConstraints':
        """Same ceilings, restricted to a subset of scenes."""
        return replace(self, scene_numbers=tuple(sorted(set(scene_numbers))))

    @classmethod
    def for_units(cls, units: Sequence[SceneUnit], config: BreakdownConfig) -> 'BreakdownConstraints':
        return cls(
            scene_numbers=tuple(sorted(u.scene_number for u in units)),
            per_scene_budget_cap=config.per_scene_budget_cap,
            episode_budget_cap=config.episode_budget_cap,
        )


@dataclass
class AssembledBrief:
    """The prompts for one generation request."""
    system_prompt: str
    user_prompt: str
    constraints: BreakdownConstraints
    token_estimate: int = 0
    is_backfill: bool = False

    def __post_init__(self):
        if self.token_estimate == 0:
            self.token_estimate = count_tokens_estimate(self.system_prompt + self.user_prompt)


def _money(amount: float) -> str:
    if float(amount).is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


class ContextAssembler:
    """
    Assembles bounded breakdown briefs.

    Stateless apart from its configuration; safe to share across runs.
    """

    def __init__(self, config: BreakdownConfig = None):
        """
        Initialize the assembler.

        Args:
            config: Breakdown configuration holding the brief bounds
        """
        self.config = config or BreakdownConfig()

    def build_constraints(self, units: Sequence[SceneUnit]) -> BreakdownConstraints:
        return BreakdownConstraints.for_units(units, self.config)

    def assemble(
        self,
        units: Sequence[SceneUnit],
        series: SeriesContext,
        constraints: BreakdownConstraints = None,
        script_title: str = "",
    ) -> AssembledBrief:
        """
        Assemble the full brief for every scene unit.

        Args:
            units: Ordered scene units from the segmenter
            series: Series/episode context
            constraints: Numeric constraints; derived from the units when omitted
            script_title: Title of the screenplay

        Returns:
            AssembledBrief
        """
        if not units:
            raise ValueError("Cannot assemble a breakdown brief without scene units")
        constraints = constraints or self.build_constraints(units)

        sections = [
            "Analyze this screenplay and create a production breakdown for micro-budget filming.",
            self._series_section(series, script_title),
        ]
        for section in (self._world_section(series), self._locations_section(series), self._cast_section(series)):
            if section:
                sections.append(section)
        sections.append(self._constraints_section(constraints))
        sections.append(self._scenes_section(units, constraints))
        sections.append(f"YOUR TASK:\n{BREAKDOWN_TASK}")
        sections.append(f"OUTPUT FORMAT:\nProvide ONLY a valid JSON array with this structure:\n{RECORD_SHAPE_EXAMPLE}")
        sections.append(self._reminders_section(constraints))

        brief = AssembledBrief(
            system_prompt=BREAKDOWN_SYSTEM_PROMPT,
            user_prompt="\n\n".join(sections),
            constraints=constraints,
        )
        logger.debug(
            f"Assembled brief for {constraints.expected_count} scene(s), ~{brief.token_estimate} tokens"
        )
        return brief

    def assemble_backfill(
        self,
        missing_units: Sequence[SceneUnit],
        series: SeriesContext,
        constraints: BreakdownConstraints,
    ) -> AssembledBrief:
        """
        Assemble the reduced brief covering only the missing scenes.

        The ceilings are the run's; the expected count and range describe the
        missing subset.
        """
        if not missing_units:
            raise ValueError("Cannot assemble a backfill brief without missing scene units")
        subset = constraints.for_scenes(u.scene_number for u in missing_units)

        sections = [
            BACKFILL_PREAMBLE,
            self._series_section(series, ""),
            self._constraints_section(subset),
            self._scenes_section(missing_units, subset),
            f"OUTPUT FORMAT:\nProvide ONLY a valid JSON array with this structure:\n{RECORD_SHAPE_EXAMPLE}",
            self._reminders_section(subset),
        ]
        brief = AssembledBrief(
            system_prompt=BREAKDOWN_SYSTEM_PROMPT,
            user_prompt="\n\n".join(sections),
            constraints=subset,
            is_backfill=True,
        )
        logger.debug(f"Assembled backfill brief for scenes {list(subset.scene_numbers)}")
        return brief

    # -- sections ----------------------------------------------------------

    def _series_section(self, series: SeriesContext, script_title: str) -> str:
        lines = [
            "SERIES INFORMATION:",
            f"Title: {series.title}",
            f"Genre: {series.genre}",
        ]
        if script_title:
            lines.append(f"Screenplay: {script_title}")
        if series.episode_number is not None:
            episode = f"Episode: {series.episode_number}"
            if series.episode_title:
                episode += f" - {series.episode_title}"
            lines.append(episode)
        if series.overview:
            lines.append(f"Overview: {truncate_text(series.overview, self.config.world_text_limit)}")
        return "\n".join(lines)

    def _world_section(self, series: SeriesContext) -> str:
        if not series.world:
            return ""
        return f"WORLD/SETTING CONTEXT:\n{truncate_text(series.world, self.config.world_text_limit)}"

    def _locations_section(self, series: SeriesContext) -> str:
        locations = series.key_locations[:self.config.key_location_limit]
        if not locations:
            return ""
        lines = ["KEY LOCATIONS:"]
        for location in locations:
            line = f"  - {location.name}"
            if location.description:
                line += f": {location.description}"
            lines.append(line)
        return "\n".join(lines)

    def _cast_section(self, series: SeriesContext) -> str:
        cast = series.principal_cast[:self.config.principal_cast_limit]
        if not cast:
            return ""
        lines = ["PRINCIPAL CAST:"]
        for member in cast:
            line = f"  - {member.name}"
            if member.role:
                line += f" ({member.role})"
            lines.append(line)
        return "\n".join(lines)

    def _constraints_section(self, constraints: BreakdownConstraints) -> str:
        lines = [
            "CONSTRAINTS:",
            f"- Expected scene count: exactly {constraints.expected_count}",
            f"- Scene range: Scene {constraints.first_scene} to Scene {constraints.last_scene} inclusive",
        ]
        if not constraints.is_contiguous:
            numbers = ", ".join(str(n) for n in constraints.scene_numbers)
            lines.append(f"- Scene numbers present: {numbers}")
        lines.append(f"- Per-scene budget ceiling: {_money(constraints.per_scene_budget_cap)}")
        lines.append(f"- Episode budget ceiling: {_money(constraints.episode_budget_cap)}")
        return "\n".join(lines)

    def _scenes_section(self, units: Sequence[SceneUnit], constraints: BreakdownConstraints) -> str:
        lines = [
            "SCENES TO ANALYZE:",
            f"You MUST analyze ALL {constraints.expected_count} scenes listed below, "
            f"Scene {constraints.first_scene} through Scene {constraints.last_scene}.",
            "",
        ]
        for unit in sorted(units, key=lambda u: u.scene_number):
            lines.append(f"Scene {unit.scene_number}:")
            lines.append(f"Heading: {unit.heading}")
            lines.append(f"Content:\n{truncate_text(unit.content, self.config.scene_content_limit)}")
            lines.append("---")
        return "\n".join(lines)

    def _reminders_section(self, constraints: BreakdownConstraints) -> str:
        return "\n".join([
            "CRITICAL REMINDERS:",
            f"- Your JSON array must contain exactly {constraints.expected_count} scene objects, "
            f"one for every scene from Scene {constraints.first_scene} to Scene {constraints.last_scene}.",
            f"- No scene's budgetImpact may exceed {_money(constraints.per_scene_budget_cap)}.",
            f"- The episode total should stay under {_money(constraints.episode_budget_cap)}.",
            "- Output ONLY valid JSON (no markdown, no explanation).",
        ])


def assemble_brief(
    units: Sequence[SceneUnit],
    series: SeriesContext,
    config: BreakdownConfig = None,
) -> AssembledBrief:
    """Convenience wrapper around ContextAssembler.assemble."""
    return ContextAssembler(config).assemble(units, series)
