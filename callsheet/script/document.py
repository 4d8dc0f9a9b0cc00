"""
Callsheet Script Document

Paginated screenplay model produced by the upstream script generator:
pages of typed elements, with scene numbers tagged on heading elements.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from callsheet.core.exceptions import ScriptFormatError


class ElementType(Enum):
    """Types of screenplay elements."""
    HEADING = "heading"
    ACTION = "action"
    CHARACTER = "character"
    DIALOGUE = "dialogue"
    PARENTHETICAL = "parenthetical"
    TRANSITION = "transition"
    PAGE_BREAK = "page_break"


# Upstream spellings for element types
ELEMENT_TYPE_ALIASES = {
    "slug": ElementType.HEADING,
    "slugline": ElementType.HEADING,
    "scene_heading": ElementType.HEADING,
    "scene-heading": ElementType.HEADING,
    "page-break": ElementType.PAGE_BREAK,
    "pagebreak": ElementType.PAGE_BREAK,
}


def parse_element_type(value: Any) -> ElementType:
    """Resolve an element type from its wire spelling."""
    if isinstance(value, ElementType):
        return value
    key = str(value or "").strip().lower()
    if key in ELEMENT_TYPE_ALIASES:
        return ELEMENT_TYPE_ALIASES[key]
    try:
        return ElementType(key)
    except ValueError as e:
        raise ScriptFormatError(f"Unknown script element type: {value!r}") from e


def optional_int(value: Any) -> Optional[int]:
    """Positive int from a number or numeric string; None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


@dataclass
class ScriptElement:
    """A single typed element on a script page."""
    type: ElementType
    content: str = ""
    scene_number: Optional[int] = None     # Only meaningful on headings
    character_name: Optional[str] = None

    @property
    def is_heading(self) -> bool:
        return self.type == ElementType.HEADING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptElement':
        metadata = data.get("metadata") or {}
        scene_number = data.get("scene_number", data.get("sceneNumber"))
        if scene_number is None:
            scene_number = metadata.get("sceneNumber", metadata.get("scene_number"))
        return cls(
            type=parse_element_type(data.get("type")),
            content=str(data.get("content") or ""),
            scene_number=optional_int(scene_number),
            character_name=(
                data.get("character_name")
                or metadata.get("characterName")
                or metadata.get("character_name")
            ),
        )


@dataclass
class ScriptPage:
    """An ordered page of script elements."""
    page_number: int
    elements: List[ScriptElement] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_number: int = 1) -> 'ScriptPage':
        page_number = data.get("page_number", data.get("pageNumber", default_number))
        return cls(
            page_number=optional_int(page_number) or default_number,
            elements=[ScriptElement.from_dict(e) for e in data.get("elements", [])],
        )


@dataclass
class ScriptDocument:
    """A generated screenplay: ordered pages plus declared metadata."""
    title: str = ""
    episode_number: Optional[int] = None
    pages: List[ScriptPage] = field(default_factory=list)
    declared_scene_count: Optional[int] = None
    declared_page_count: Optional[int] = None

    def iter_elements(self):
        """Yield (page_number, element) pairs in document order."""
        for page in self.pages:
            for element in page.elements:
                yield page.page_number, element

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScriptDocument':
        """
        Build a document from the upstream JSON shape.

        Accepts both snake_case and the upstream camelCase keys
        (`episodeNumber`, `pageNumber`, `metadata.sceneNumber`).
        """
        if not isinstance(data, dict):
            raise ScriptFormatError("Script document must be a mapping")
        pages_data = data.get("pages", [])
        if not isinstance(pages_data, list):
            raise ScriptFormatError("Script document 'pages' must be a list")

        metadata = data.get("metadata") or {}
        return cls(
            title=str(data.get("title") or ""),
            episode_number=optional_int(data.get("episode_number", data.get("episodeNumber"))),
            pages=[ScriptPage.from_dict(p, default_number=i) for i, p in enumerate(pages_data, 1)],
            declared_scene_count=optional_int(metadata.get("sceneCount", metadata.get("scene_count"))),
            declared_page_count=optional_int(metadata.get("pageCount", metadata.get("page_count"))),
        )
