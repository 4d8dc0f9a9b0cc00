"""
Callsheet Scene Segmenter

Deterministically partitions a paginated script document into ordered scene
units. A numbered heading opens a unit; every following non-heading element
belongs to it until the next numbered heading.

Tagging drift from the upstream generator is reported, never fatal:
- headings without a scene number attach to the previous unit
- elements before the first numbered heading are counted as unnumbered
- repeated or backwards scene numbers merge into the existing unit
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from callsheet.core.logging_config import get_logger
from callsheet.script.document import ElementType, ScriptDocument, ScriptElement

logger = get_logger("script.segmenter")

# "JASON (V.O.)" / "JASON (CONT'D)" -> "JASON"
_CHARACTER_EXTENSION = re.compile(r"\s*\([^)]*\)\s*$")


@dataclass(frozen=True)
class SceneUnit:
    """A contiguous, scene-numbered span of a script document."""
    scene_number: int
    heading: str
    content: str
    page_start: int
    page_end: int
    speakers: Tuple[Tuple[str, int], ...] = ()   # (character, dialogue lines) in order of appearance

    def to_dict(self) -> Dict[str, object]:
        return {
            "sceneNumber": self.scene_number,
            "heading": self.heading,
            "content": self.content,
            "pageStart": self.page_start,
            "pageEnd": self.page_end,
            "speakers": [{"name": n, "lineCount": c} for n, c in self.speakers],
        }


@dataclass
class SegmentationResult:
    """Output of the segmenter: ordered units plus drift diagnostics."""
    units: List[SceneUnit] = field(default_factory=list)
    untagged_headings: int = 0
    orphan_elements: int = 0
    merged_scene_numbers: List[int] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def unnumbered_elements(self) -> int:
        """Elements that could not be attributed through a scene-number tag."""
        return self.untagged_headings + self.orphan_elements

    @property
    def scene_numbers(self) -> List[int]:
        return [unit.scene_number for unit in self.units]

    def get_unit(self, scene_number: int) -> Optional[SceneUnit]:
        for unit in self.units:
            if unit.scene_number == scene_number:
                return unit
        return None


class _UnitBuilder:
    """Mutable accumulator for one scene while the document is walked."""

    def __init__(self, scene_number: int, heading: str, page_number: int):
        self.scene_number = scene_number
        self.heading = heading.strip()
        self.lines: List[str] = []
        self.page_start = page_number
        self.page_end = page_number
        self.speaker_lines: Dict[str, int] = {}
        self._current_speaker: Optional[str] = None

    def resume(self, page_number: int) -> None:
        """Continue this unit after a repeated heading; the heading text is not content."""
        self.page_end = max(self.page_end, page_number)
        self._current_speaker = None

    def add(self, element: ScriptElement, page_number: int) -> None:
        self.page_end = max(self.page_end, page_number)
        text = element.content.strip()
        if text:
            self.lines.append(text)

        if element.type == ElementType.CHARACTER:
            name = _speaker_name(element.character_name or text)
            self._current_speaker = name or None
            if name:
                self.speaker_lines.setdefault(name, 0)
        elif element.type == ElementType.DIALOGUE:
            name = _speaker_name(element.character_name or "") or self._current_speaker
            if name:
                self.speaker_lines[name] = self.speaker_lines.get(name, 0) + 1
        elif element.type in (ElementType.ACTION, ElementType.TRANSITION, ElementType.HEADING):
            self._current_speaker = None

    def build(self) -> SceneUnit:
        return SceneUnit(
            scene_number=self.scene_number,
            heading=self.heading,
            content="\n".join(self.lines),
            page_start=self.page_start,
            page_end=self.page_end,
            speakers=tuple(self.speaker_lines.items()),
        )


def _speaker_name(raw: str) -> str:
    return _CHARACTER_EXTENSION.sub("", raw.strip()).strip().upper()


class SceneSegmenter:
    """
    Partitions a script document into scene units.

    Stateless: one instance can segment any number of documents.
    """

    def segment(self, document: ScriptDocument) -> SegmentationResult:
        """
        Segment a script document.

        Args:
            document: The paginated script

        Returns:
            SegmentationResult with units sorted by scene number
        """
        result = SegmentationResult()
        builders: Dict[int, _UnitBuilder] = {}
        order: List[int] = []
        current: Optional[_UnitBuilder] = None
        merged = set()

        for page_number, element in document.iter_elements():
            if element.type == ElementType.PAGE_BREAK:
                continue

            if element.is_heading and element.scene_number is not None:
                number = element.scene_number

                if current is not None and number == current.scene_number:
                    # Contiguous repeat of the same number continues the unit
                    current.resume(page_number)
                    continue

                if number in builders:
                    self._warn(
                        result,
                        f"Scene {number} heading on page {page_number} repeats an earlier scene; "
                        f"merged into the existing unit"
                    )
                    merged.add(number)
                    current = builders[number]
                    current.resume(page_number)
                    continue

                if current is not None and number < current.scene_number:
                    self._warn(
                        result,
                        f"Scene number {number} on page {page_number} follows scene "
                        f"{current.scene_number}; scene numbers should not decrease"
                    )

                current = _UnitBuilder(number, element.content, page_number)
                builders[number] = current
                order.append(number)
                logger.debug(f"Starting scene {number} on page {page_number}: {element.content[:50]}")
                continue

            if element.is_heading:
                result.untagged_headings += 1
                if current is not None:
                    self._warn(
                        result,
                        f"Heading without scene number on page {page_number} attached to scene "
                        f"{current.scene_number}: {element.content[:50]}"
                    )
                    current.add(element, page_number)
                else:
                    self._warn(
                        result,
                        f"Heading without scene number on page {page_number} before any scene: "
                        f"{element.content[:50]}"
                    )
                continue

            if current is None:
                result.orphan_elements += 1
                continue

            current.add(element, page_number)

        if result.orphan_elements:
            self._warn(
                result,
                f"{result.orphan_elements} element(s) appear before the first numbered scene heading"
            )

        result.units = sorted((builders[n].build() for n in order), key=lambda u: u.scene_number)
        result.merged_scene_numbers = sorted(merged)

        declared = document.declared_scene_count
        if declared is not None and declared != len(result.units):
            self._warn(
                result,
                f"Script metadata declares {declared} scene(s) but {len(result.units)} were segmented"
            )

        logger.info(
            f"Segmented {len(result.units)} scene(s) from {len(document.pages)} page(s); "
            f"{result.unnumbered_elements} unnumbered element(s)"
        )
        return result

    @staticmethod
    def _warn(result: SegmentationResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)


def segment_script(document: ScriptDocument) -> SegmentationResult:
    """Convenience wrapper around SceneSegmenter.segment."""
    return SceneSegmenter().segment(document)
