"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from callsheet.context.context_assembler import SeriesContext
from callsheet.core.config import BreakdownConfig
from callsheet.script.document import ScriptDocument


class FakeProvider:
    """Scripted provider: returns (or raises) queued responses in order."""

    def __init__(self, name: str, responses: Optional[List[Any]] = None):
        self.name = name
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, system_prompt="", temperature=None, max_tokens=None):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise RuntimeError(f"{self.name} has no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def _scene_elements(number: int, heading: str, speakers: List[str]) -> List[Dict[str, Any]]:
    elements = [
        {"type": "heading", "content": heading, "metadata": {"sceneNumber": number}},
        {"type": "action", "content": f"Action for scene {number}."},
    ]
    for name in speakers:
        elements.append({"type": "character", "content": name, "metadata": {"characterName": name}})
        elements.append({"type": "dialogue", "content": f"Line from {name} in scene {number}."})
    return elements


SCENE_HEADINGS = [
    "INT. JASON'S PENTHOUSE - DAY",
    "EXT. ROOFTOP - NIGHT",
    "INT. DINER - SUNSET",
    "EXT. PARKING LOT - DAWN",
    "INT. OFFICE - DAY",
    "EXT. BEACH - MAGIC HOUR",
]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def make_script_dict():
    """Factory for upstream-shaped script documents with N scenes, one page each."""
    def _make(scene_count: int = 3, title: str = "Pilot", episode_number: int = 1) -> Dict[str, Any]:
        pages = []
        for number in range(1, scene_count + 1):
            heading = SCENE_HEADINGS[(number - 1) % len(SCENE_HEADINGS)]
            pages.append({
                "pageNumber": number,
                "elements": _scene_elements(number, heading, ["JASON", "MAYA"]),
            })
        return {
            "title": title,
            "episodeNumber": episode_number,
            "pages": pages,
            "metadata": {"sceneCount": scene_count, "pageCount": scene_count},
        }
    return _make


@pytest.fixture
def make_document(make_script_dict):
    """Factory for ScriptDocuments with N scenes."""
    def _make(scene_count: int = 3, **kwargs) -> ScriptDocument:
        return ScriptDocument.from_dict(make_script_dict(scene_count, **kwargs))
    return _make


@pytest.fixture
def sample_document(make_document) -> ScriptDocument:
    """Three-scene script document."""
    return make_document(3)


@pytest.fixture
def sample_series_dict() -> Dict[str, Any]:
    """Sample series bible in the upstream shape."""
    return {
        "seriesTitle": "Glass Towers",
        "genre": "Thriller",
        "seriesOverview": "A disgraced financier tries to buy back his reputation.",
        "worldBuilding": {
            "setting": "Present-day Chicago",
            "rules": "No one can be trusted with money",
            "locations": [
                {"name": "Penthouse", "description": "Jason's glass apartment"},
                {"name": "Diner", "type": "Late-night hangout"},
            ],
        },
        "mainCharacters": [
            {"name": "JASON", "archetype": "Fallen king"},
            {"name": "MAYA", "premiseRole": "Investigator"},
        ],
        "episodeTitle": "Pilot",
        "episodeNumber": 1,
    }


@pytest.fixture
def sample_series(sample_series_dict) -> SeriesContext:
    return SeriesContext.from_dict(sample_series_dict)


@pytest.fixture
def breakdown_config() -> BreakdownConfig:
    """Breakdown configuration with default caps (250 per scene, 625 per episode)."""
    return BreakdownConfig()


@pytest.fixture
def make_record():
    """Factory for provider-style breakdown record dicts."""
    def _make(scene_number: int, **overrides) -> Dict[str, Any]:
        record = {
            "sceneNumber": scene_number,
            "title": f"Scene {scene_number}",
            "location": "INT. DINER",
            "timeOfDay": "DAY",
            "estimatedDurationMinutes": 25,
            "cast": [{"name": "JASON", "lineCount": 3, "importance": "lead"}],
            "materials": [{"item": "Coffee mug", "importance": "hero", "source": "buy", "cost": 6}],
            "specialRequirements": [],
            "budgetImpact": 40,
            "budgetBreakdown": {"propCost": 6, "locationCost": 34},
            "warnings": [],
            "notes": "Simple dialogue scene.",
        }
        record.update(overrides)
        return record
    return _make


@pytest.fixture
def records_json(make_record):
    """Factory for a JSON array of records for the given scene numbers."""
    def _make(scene_numbers: List[int], **overrides) -> str:
        return json.dumps([make_record(n, **overrides) for n in scene_numbers], indent=2)
    return _make


@pytest.fixture
def make_provider():
    """Factory for scripted fake providers."""
    def _make(name: str, *responses: Any) -> FakeProvider:
        return FakeProvider(name, list(responses))
    return _make
