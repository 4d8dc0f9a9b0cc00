"""
Tests for Breakdown Extractor

Tests for callsheet/pipelines/breakdown_extractor.py
"""

import json

import pytest

from callsheet.core.exceptions import UnrecoverableOutputError
from callsheet.pipelines.breakdown_extractor import (
    ExtractionStage,
    ResilientExtractor,
    escape_string_newlines,
    extract_candidates,
    repair_json,
    strip_code_fences,
)


def _numbers(result):
    return [c.data["sceneNumber"] for c in result.candidates]


class TestTextHelpers:
    """Tests for the text preparation helpers."""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n[1, 2]\n```') == "[1, 2]"

    def test_strip_fences_with_prose(self):
        text = "Here is the breakdown:\n```json\n[]\n```\nLet me know!"

        assert strip_code_fences(text) == "[]"

    def test_strip_unterminated_fence(self):
        assert strip_code_fences('```json\n[{"a": 1') == '[{"a": 1'

    def test_escape_string_newlines(self):
        text = '{"notes": "one\ntwo"}\n'

        assert escape_string_newlines(text) == '{"notes": "one\\ntwo"}\n'

    def test_repair_drops_dangling_key(self):
        assert repair_json('{"scenes": [{"a": 1}], "note": ')[0] == '{"scenes": [{"a": 1}]}'

    def test_repair_closes_open_string(self):
        repaired = json.loads(repair_json('{"scenes": [], "note": "unfinis')[0])

        assert repaired == {"scenes": [], "note": "unfinis"}

    def test_repair_drops_partial_array_element(self):
        assert repair_json('[{"a": 1}, {"b": "unfinis') == ['[{"a": 1}]']

    def test_repair_drops_element_with_nested_values(self):
        text = '[{"sceneNumber": 1}, {"sceneNumber": 2, "cast": [{"name": "A"}, {"na'

        assert repair_json(text) == ['[{"sceneNumber": 1}]']

    def test_repair_drops_trailing_comma(self):
        assert json.loads(repair_json('[{"a": 1},')[0]) == [{"a": 1}]


class TestResilientExtractor:
    """Tests for the staged extraction."""

    def test_clean_array(self, records_json):
        result = ResilientExtractor().extract(records_json([1, 2, 3]))

        assert result.stage == ExtractionStage.DIRECT
        assert _numbers(result) == [1, 2, 3]
        assert not result.recovered
        assert not any(c.recovered for c in result.candidates)
        assert result.warnings == []

    def test_fenced_array(self, records_json):
        raw = f"```json\n{records_json([1, 2])}\n```"

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.DIRECT
        assert _numbers(result) == [1, 2]

    def test_array_inside_prose(self, records_json):
        raw = f"Sure! Here are the scenes:\n{records_json([1, 2])}\nHope this helps."

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.ARRAY_SLICE
        assert not result.recovered

    def test_fenced_literal_newline_in_string(self, make_record):
        record = make_record(1, notes="PLACEHOLDER")
        payload = json.dumps([record]).replace("PLACEHOLDER", "Line one\nLine two")
        raw = f"```json\n{payload}\n```"

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.ESCAPED_NEWLINES
        assert result.candidates[0].data["notes"] == "Line one\nLine two"
        assert result.candidates[0].recovered

    def test_truncated_after_last_complete_record(self, records_json, make_record):
        full = records_json([1, 2, 3])
        third = full.index('"sceneNumber": 3')
        cut = full.index('"location"', third) + len('"location": "INT')

        result = ResilientExtractor().extract(full[:cut])

        assert result.stage == ExtractionStage.BALANCE_REPAIR
        assert _numbers(result) == [1, 2]
        assert result.candidates[1].data == make_record(2)
        assert all(c.recovered for c in result.candidates)
        assert any("malformed" in w for w in result.warnings)

    def test_record_cut_mid_key_dropped(self, records_json):
        full = records_json([1, 2, 3])
        third = full.index('"sceneNumber": 3')
        cut = full.index('"location"', third) + len('"loca')

        result = ResilientExtractor().extract(full[:cut])

        assert result.stage == ExtractionStage.BALANCE_REPAIR
        assert _numbers(result) == [1, 2]

    def test_record_cut_mid_number_dropped(self, records_json, make_record):
        full = records_json([1, 2, 3])
        third = full.index('"sceneNumber": 3')
        cut = full.index('"budgetImpact": 40', third) + len('"budgetImpact": 4')

        result = ResilientExtractor().extract(full[:cut])

        assert result.stage == ExtractionStage.BALANCE_REPAIR
        assert [c.data for c in result.candidates] == [make_record(1), make_record(2)]

    def test_empty_shell_dropped(self):
        result = ResilientExtractor().extract('[{"sceneNumber": 1}, {"sceneNumber"')

        assert result.stage == ExtractionStage.BALANCE_REPAIR
        assert _numbers(result) == [1]

    def test_objects_separated_by_prose(self):
        raw = (
            '{"sceneNumber": 1, "title": "A"} and then {"sceneNumber": 2, "title": "B"} '
            'and finally {"sceneNumber": 3, "title": "C'
        )

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.FRAGMENTS
        assert _numbers(result) == [1, 2]
        assert all(c.recovered for c in result.candidates)

    def test_corrupt_middle_object_skipped(self):
        raw = (
            '[{"sceneNumber": 1, "title": "A"}, '
            '{"sceneNumber": 2, "title": "B" "oops": }, '
            '{"sceneNumber": 3, "title": "C"}]'
        )

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.FRAGMENTS
        assert _numbers(result) == [1, 3]

    def test_cut_off_fragment_dropped(self):
        raw = '{"sceneNumber": 1, "budgetImpact": 40} then {"sceneNumber": 2, "budgetImpact": 4'

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.FRAGMENTS
        assert [c.data for c in result.candidates] == [{"sceneNumber": 1, "budgetImpact": 40}]

    def test_multiple_fenced_blocks_merged(self, records_json):
        raw = (
            f"Scenes one and two:\n```json\n{records_json([1, 2])}\n```\n"
            f"And scene three:\n```json\n{records_json([3])}\n```"
        )

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.DIRECT
        assert _numbers(result) == [1, 2, 3]
        assert not result.recovered

    def test_unparseable_fenced_block_skipped(self, records_json):
        raw = f"```json\n{records_json([1])}\n```\nFor example:\n```\nnot a record\n```"

        result = ResilientExtractor().extract(raw)

        assert _numbers(result) == [1]
        assert any("Skipped fenced block 2 of 2" in w for w in result.warnings)

    def test_all_fenced_blocks_unparseable(self):
        with pytest.raises(UnrecoverableOutputError):
            ResilientExtractor().extract("```\nfirst\n```\n```\nsecond\n```")

    def test_wrapped_array(self, make_record):
        raw = json.dumps({"scenes": [make_record(1), make_record(2)]})

        result = ResilientExtractor().extract(raw)

        assert result.stage == ExtractionStage.DIRECT
        assert _numbers(result) == [1, 2]

    def test_single_object(self, make_record):
        result = ResilientExtractor().extract(json.dumps(make_record(4)))

        assert _numbers(result) == [4]

    def test_empty_array_accepted(self):
        result = ResilientExtractor().extract("[]")

        assert result.candidates == []
        assert any("contained no records" in w for w in result.warnings)

    def test_non_objects_discarded(self):
        result = ResilientExtractor().extract('[{"sceneNumber": 1}, "junk", 3]')

        assert _numbers(result) == [1]
        assert any("Discarded 2 non-object item(s)" in w for w in result.warnings)

    def test_source_tagged(self, records_json):
        result = extract_candidates(records_json([2]), source="backfill")

        assert result.candidates[0].source == "backfill"
        assert result.candidates[0].scene_number_value == 2

    @pytest.mark.parametrize("raw", [
        "I'm sorry, I can't help with that.",
        "",
        "{broken",
    ])
    def test_unrecoverable(self, raw):
        with pytest.raises(UnrecoverableOutputError):
            ResilientExtractor().extract(raw)
