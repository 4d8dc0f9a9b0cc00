"""
Callsheet Breakdown Extractor

Turns a provider's raw text into candidate breakdown objects, tolerating
markdown fences, literal line breaks inside strings, truncation and stray
prose around the payload.

Stages run in order and the first that yields objects wins:
1. DIRECT: strip code fences and parse
2. ARRAY_SLICE: parse from the first '[' to the last ']'
3. ESCAPED_NEWLINES: escape raw line breaks inside string literals
4. BALANCE_REPAIR: close open strings/containers, drop dangling commas and keys;
   an array element cut off mid-value is dropped, not closed
5. FRAGMENTS: pull out complete individual objects keyed by a scene number

When the response holds several fenced blocks, each is extracted and the
results are merged.

Objects from stages 3-5 are marked recovered. UnrecoverableOutputError is
raised only when stage 5 finds nothing.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from callsheet.core.exceptions import UnrecoverableOutputError
from callsheet.core.logging_config import get_logger
from callsheet.utils.unicode_utils import clean_unicode

logger = get_logger("pipelines.extractor")


class ExtractionStage(Enum):
    """Extraction stages, in the order they are tried."""
    DIRECT = "direct"
    ARRAY_SLICE = "array_slice"
    ESCAPED_NEWLINES = "escaped_newlines"
    BALANCE_REPAIR = "balance_repair"
    FRAGMENTS = "fragments"

    @property
    def is_recovery(self) -> bool:
        """True for stages that rewrite the provider text before parsing."""
        return self in (
            ExtractionStage.ESCAPED_NEWLINES,
            ExtractionStage.BALANCE_REPAIR,
            ExtractionStage.FRAGMENTS,
        )


# Keys a provider may wrap the record array in
WRAPPER_KEYS = ("scenes", "breakdowns", "sceneBreakdowns", "records", "data", "results")

SCENE_NUMBER_KEYS = ("sceneNumber", "scene_number")

_FENCED_BLOCK = re.compile(r"```[\w-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
_OPENING_FENCE = re.compile(r"^```[\w-]*[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\s*```\s*$")
_SCENE_KEY = re.compile(r'"(?:sceneNumber|scene_number)"\s*:\s*"?\d+')
_TRAILING_STRING = re.compile(r'"(?:[^"\\]|\\.)*"\s*$', re.DOTALL)

# Cut-back attempts tried when closing in place does not parse
MAX_CUT_BACK_ATTEMPTS = 25


@dataclass
class RecoveredCandidate:
    """An object recovered from provider text, with its provenance."""
    data: Dict[str, Any]
    recovered: bool
    stage: ExtractionStage
    source: str = "primary"     # "primary" or "backfill" request
    scene_number: Optional[int] = None  # Set once validated against the scene units

    @property
    def scene_number_value(self) -> Any:
        for key in SCENE_NUMBER_KEYS:
            if key in self.data:
                return self.data[key]
        return None


@dataclass
class ExtractionResult:
    """Candidates from one provider response plus extraction warnings."""
    candidates: List[RecoveredCandidate] = field(default_factory=list)
    stage: ExtractionStage = ExtractionStage.DIRECT
    warnings: List[str] = field(default_factory=list)

    @property
    def recovered(self) -> bool:
        return self.stage.is_recovery


# =============================================================================
# TEXT HELPERS
# =============================================================================

def fenced_blocks(text: str) -> List[str]:
    """Contents of every terminated markdown code fence, in order."""
    return [block.strip() for block in _FENCED_BLOCK.findall(clean_unicode(text))]


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences (and prose around a fenced block)."""
    text = clean_unicode(text).strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    # Unterminated fence from a truncated response
    text = _OPENING_FENCE.sub("", text)
    return _CLOSING_FENCE.sub("", text).strip()


def escape_string_newlines(text: str) -> str:
    """Escape literal line breaks and tabs that occur inside string literals."""
    out = []
    in_string = False
    escape = False
    for ch in text:
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
            elif ch == "\t":
                out.append("\\t")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


@dataclass
class _ScanState:
    """Result of a string-aware structural scan."""
    body: str
    stack: List[str]                        # pending closers, innermost last
    in_string: bool
    escape: bool
    safe_points: List[Tuple[int, Tuple[str, ...]]]
    complete: bool
    end: int                                # offset in the input where scanning stopped


def _scan(text: str) -> _ScanState:
    out: List[str] = []
    stack: List[str] = []
    safe_points: List[Tuple[int, Tuple[str, ...]]] = []
    in_string = False
    escape = False

    for index, ch in enumerate(text):
        if in_string:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
            out.append(ch)
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                # Stray closer
                continue
            _drop_trailing_comma(out)
            stack.pop()
            out.append(ch)
            if not stack:
                return _ScanState("".join(out), stack, False, False, safe_points, True, index + 1)
            safe_points.append((len(out), tuple(stack)))
        else:
            out.append(ch)

    return _ScanState("".join(out), stack, in_string, escape, safe_points, False, len(text))


def _drop_trailing_comma(out: List[str]) -> None:
    j = len(out) - 1
    while j >= 0 and out[j] in " \t\r\n":
        j -= 1
    if j >= 0 and out[j] == ",":
        del out[j]


def _trim_tail(body: str, stack: List[str]) -> str:
    """Remove dangling commas, incomplete keys and key/colon pairs."""
    in_object = bool(stack) and stack[-1] == "}"
    while True:
        body = body.rstrip()
        if body.endswith(","):
            body = body[:-1]
            continue
        if body.endswith(":"):
            body = body[:-1].rstrip()
            match = _TRAILING_STRING.search(body)
            if match:
                body = body[:match.start()]
            continue
        if in_object and body.endswith('"'):
            match = _TRAILING_STRING.search(body)
            if match:
                prefix = body[:match.start()].rstrip()
                if prefix.endswith(("{", ",")):
                    body = prefix
                    continue
        return body


def _element_depth(stack: List[str]) -> Optional[int]:
    """Stack depth of values sitting directly in the outermost open array."""
    if "]" not in stack:
        return None
    return stack.index("]") + 1


def repair_json(text: str) -> List[str]:
    """
    Produce repaired variants of truncated JSON text, best first.

    The first variant closes everything in place; the rest cut back to the
    most recent complete elements before closing. When the text stops inside
    an element of an open array, that element is dropped rather than closed.
    """
    state = _scan(text)
    if state.complete:
        return [state.body]

    depth = _element_depth(state.stack)
    partial_element = depth is not None and len(state.stack) > depth

    variants = []
    if not partial_element:
        body = state.body
        if state.in_string:
            if state.escape:
                body = body[:-1]
            body += '"'
        variants.append(_trim_tail(body, state.stack) + "".join(reversed(state.stack)))

    cut_points = [
        (position, stack) for position, stack in state.safe_points
        if not partial_element or len(stack) <= depth
    ]
    for position, stack in reversed(cut_points[-MAX_CUT_BACK_ATTEMPTS:]):
        prefix = _trim_tail(state.body[:position], list(stack))
        variants.append(prefix + "".join(reversed(stack)))
    return variants


def _try_parse(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return False, None


def _has_scene_number(data: Dict[str, Any]) -> bool:
    return any(key in data for key in SCENE_NUMBER_KEYS)


# =============================================================================
# EXTRACTOR
# =============================================================================

class ResilientExtractor:
    """
    Extracts candidate breakdown objects from raw provider text.

    Stateless; one instance can serve concurrent runs.
    """

    def extract(self, raw_text: str, source: str = "primary") -> ExtractionResult:
        """
        Extract candidate objects from provider output.

        Several fenced blocks are extracted one by one and merged.

        Args:
            raw_text: Raw provider response
            source: Which request produced the text ("primary" or "backfill")

        Returns:
            ExtractionResult with tagged candidates and warnings

        Raises:
            UnrecoverableOutputError: no stage produced any object
        """
        blocks = fenced_blocks(raw_text or "")
        if len(blocks) > 1:
            return self._extract_blocks(blocks, source)
        return self._extract_text(strip_code_fences(raw_text or ""), source)

    def _extract_blocks(self, blocks: List[str], source: str) -> ExtractionResult:
        merged = ExtractionResult()
        stage_order = list(ExtractionStage)
        extracted = 0
        for index, block in enumerate(blocks, start=1):
            try:
                result = self._extract_text(block, source)
            except UnrecoverableOutputError as e:
                merged.warnings.append(
                    f"Skipped fenced block {index} of {len(blocks)} in {source} provider output: "
                    f"{e.details['reason']}"
                )
                logger.warning(merged.warnings[-1])
                continue
            extracted += 1
            merged.candidates.extend(result.candidates)
            merged.warnings.extend(result.warnings)
            if stage_order.index(result.stage) > stage_order.index(merged.stage):
                merged.stage = result.stage

        if not extracted:
            raise UnrecoverableOutputError(
                f"none of {len(blocks)} fenced blocks held parseable record objects",
                preview=blocks[0][:200],
            )
        logger.info(f"Merged {len(merged.candidates)} candidate(s) from {extracted} fenced block(s)")
        return merged

    def _extract_text(self, text: str, source: str) -> ExtractionResult:
        # Stage 1
        result = self._parse_stage(text, ExtractionStage.DIRECT, source)
        if result:
            return result

        # Stage 2
        sliced = self._array_slice(text)
        if sliced is not None:
            result = self._parse_stage(sliced, ExtractionStage.ARRAY_SLICE, source)
            if result:
                return result

        # Stage 3
        escaped = escape_string_newlines(sliced if sliced is not None else text)
        result = self._parse_stage(escaped, ExtractionStage.ESCAPED_NEWLINES, source)
        if result:
            return result

        # Stage 4
        start = self._payload_start(text)
        payload = escape_string_newlines(text[start:]) if start is not None else ""
        if payload and not self._has_trailing_records(payload):
            for variant in repair_json(payload):
                result = self._parse_stage(variant, ExtractionStage.BALANCE_REPAIR, source)
                if result:
                    return result

        # Stage 5
        result = self._extract_fragments(text, source)
        if result:
            return result

        logger.error(f"No breakdown objects recoverable from {len(text)} chars of provider output")
        raise UnrecoverableOutputError(
            "no parseable record objects found in provider output",
            preview=text[:200],
        )

    # -- stages ------------------------------------------------------------

    def _parse_stage(self, text: str, stage: ExtractionStage, source: str) -> Optional[ExtractionResult]:
        ok, parsed = _try_parse(text)
        if not ok:
            return None
        objects = self._to_objects(parsed)
        if objects is None:
            return None
        items, discarded = objects

        if stage.is_recovery:
            # Repair can leave empty shells behind; they carry nothing
            items = [item for item in items if item]
            if not items:
                return None

        return self._build_result(items, discarded, stage, source)

    def _extract_fragments(self, text: str, source: str) -> Optional[ExtractionResult]:
        starts = self._fragment_starts(text)
        items = []
        for index, start in enumerate(starts):
            end = starts[index + 1] if index + 1 < len(starts) else len(text)
            fragment = escape_string_newlines(text[start:end])
            parsed = self._parse_fragment(fragment)
            if parsed is not None:
                items.append(parsed)
            else:
                logger.debug(f"Discarded unparseable fragment at offset {start}")

        if not items:
            return None
        return self._build_result(items, 0, ExtractionStage.FRAGMENTS, source)

    def _parse_fragment(self, fragment: str) -> Optional[Dict[str, Any]]:
        # An object cut off before its closing brace is left for backfill
        state = _scan(fragment)
        if not state.complete:
            return None
        ok, parsed = _try_parse(state.body)
        if ok and isinstance(parsed, dict) and _has_scene_number(parsed):
            return parsed
        return None

    def _build_result(
        self,
        items: List[Dict[str, Any]],
        discarded: int,
        stage: ExtractionStage,
        source: str,
    ) -> ExtractionResult:
        result = ExtractionResult(stage=stage)
        result.candidates = [
            RecoveredCandidate(data=item, recovered=stage.is_recovery, stage=stage, source=source)
            for item in items
        ]
        if discarded:
            result.warnings.append(
                f"Discarded {discarded} non-object item(s) from {source} provider output"
            )
        if stage.is_recovery:
            result.warnings.append(
                f"Recovered {len(items)} record(s) from malformed {source} provider output ({stage.value})"
            )
        if not items:
            result.warnings.append(f"The {source} provider output contained no records")

        for warning in result.warnings:
            logger.warning(warning)
        logger.info(f"Extracted {len(items)} candidate(s) at stage {stage.value}")
        return result

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _to_objects(parsed: Any) -> Optional[Tuple[List[Dict[str, Any]], int]]:
        """Normalize a parsed payload to (objects, discarded count), or None if unusable."""
        if isinstance(parsed, dict):
            for key in WRAPPER_KEYS:
                if isinstance(parsed.get(key), list):
                    parsed = parsed[key]
                    break
            else:
                if _has_scene_number(parsed):
                    return [parsed], 0
                lists = [v for v in parsed.values() if isinstance(v, list)]
                if len(lists) != 1:
                    return None
                parsed = lists[0]

        if not isinstance(parsed, list):
            return None

        objects = [item for item in parsed if isinstance(item, dict)]
        return objects, len(parsed) - len(objects)

    @staticmethod
    def _array_slice(text: str) -> Optional[str]:
        start = text.find("[")
        end = text.rfind("]")
        if start == -1 or end <= start:
            return None
        return text[start:end + 1]

    @staticmethod
    def _has_trailing_records(payload: str) -> bool:
        """True when a balanced value is followed by more scene-keyed objects."""
        state = _scan(payload)
        return state.complete and bool(_SCENE_KEY.search(payload, state.end))

    @staticmethod
    def _payload_start(text: str) -> Optional[int]:
        positions = [p for p in (text.find("["), text.find("{")) if p != -1]
        return min(positions) if positions else None

    @staticmethod
    def _fragment_starts(text: str) -> List[int]:
        """Offsets of the '{' enclosing each scene-number key."""
        key_offsets = {m.start() for m in _SCENE_KEY.finditer(text)}
        if not key_offsets:
            return []

        starts = set()
        open_braces: List[int] = []
        in_string = False
        escape = False
        for i, ch in enumerate(text):
            if in_string:
                if escape:
                    escape = False
                elif ch == "\\":
                    escape = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                if i in key_offsets and open_braces:
                    starts.add(open_braces[-1])
                in_string = True
            elif ch == "{":
                open_braces.append(i)
            elif ch == "}" and open_braces:
                open_braces.pop()
        return sorted(starts)


def extract_candidates(raw_text: str, source: str = "primary") -> ExtractionResult:
    """Convenience wrapper around ResilientExtractor.extract."""
    return ResilientExtractor().extract(raw_text, source=source)
