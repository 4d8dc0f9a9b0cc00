"""
Tests for Breakdown Pipeline

Tests for callsheet/pipelines/breakdown_pipeline.py
"""

import pytest

from callsheet.core.config import CallsheetConfig
from callsheet.core.exceptions import ProviderUnavailableError, UnrecoverableOutputError
from callsheet.llm.generation_client import GenerationClient
from callsheet.pipelines.base_pipeline import PipelineRun, PipelineStatus
from callsheet.pipelines.breakdown_models import Provenance
from callsheet.pipelines.breakdown_pipeline import (
    BreakdownPipeline,
    BreakdownRequest,
    default_unit_id,
    generate_breakdown,
)
from callsheet.script.document import ScriptDocument


def _fenced(payload):
    return f"Here is your breakdown:\n```json\n{payload}\n```"


@pytest.fixture
def pipeline_for(make_provider):
    """Pipeline over scripted providers; returns (pipeline, providers)."""
    def _make(*responses, fallback_responses=None):
        providers = [make_provider("gpt", *responses)]
        if fallback_responses is not None:
            providers.append(make_provider("gemini", *fallback_responses))
        return BreakdownPipeline(GenerationClient(providers)), providers
    return _make


class TestBreakdownPipeline:
    """Tests for BreakdownPipeline end to end."""

    @pytest.mark.asyncio
    async def test_complete_response(self, pipeline_for, records_json, sample_document, sample_series):
        pipeline, (provider,) = pipeline_for(records_json([1, 2, 3]))

        result = await pipeline.run(BreakdownRequest(sample_document, sample_series))

        collection = result.output
        assert result.status == PipelineStatus.COMPLETED
        assert collection.scene_numbers == [1, 2, 3]
        assert collection.unit_id == "episode-1"
        assert collection.title == "Pilot"
        assert collection.total_budget_impact == 120.0
        assert collection.total_estimated_time == 75
        assert all(r.provenance == Provenance.PROVIDER for r in collection.records)
        assert collection.warnings == []
        assert len(provider.calls) == 1
        assert result.metadata["stage_history"] == [
            "segmented", "generated", "extracted", "reconciled", "normalized", "complete",
        ]

    @pytest.mark.asyncio
    async def test_fenced_output_missing_middle_scene(
        self, pipeline_for, records_json, sample_document, sample_series
    ):
        """Scenes 1 and 3 returned; backfill returns nothing; scene 2 is synthesized."""
        pipeline, (provider,) = pipeline_for(_fenced(records_json([1, 3])), "[]")

        result = await pipeline.run(BreakdownRequest(sample_document, sample_series))

        collection = result.output
        assert collection.scene_numbers == [1, 2, 3]
        scene_two = collection.get_record(2)
        assert scene_two.provenance == Provenance.SYNTHESIZED
        assert scene_two.location == "ROOFTOP"
        assert scene_two.budget_impact == 10.0
        assert scene_two.warnings[0].startswith("Automatic fallback breakdown")
        assert len(provider.calls) == 2
        assert collection.total_budget_impact == 90.0
        assert any("omitted 1 of 3" in w for w in collection.warnings)

    @pytest.mark.asyncio
    async def test_missing_scene_backfilled(self, pipeline_for, records_json, sample_document, sample_series):
        pipeline, _ = pipeline_for(records_json([1, 3]), records_json([2]))

        collection = (await pipeline.run(BreakdownRequest(sample_document, sample_series))).output

        assert collection.get_record(2).provenance == Provenance.BACKFILL
        assert not any(r.is_synthesized for r in collection.records)

    @pytest.mark.asyncio
    async def test_truncated_primary_response(
        self, pipeline_for, records_json, sample_document, sample_series
    ):
        full = records_json([1, 2, 3])
        truncated = full[:full.index('"sceneNumber": 3') - 10]
        pipeline, _ = pipeline_for(truncated, "[]")

        collection = (await pipeline.run(BreakdownRequest(sample_document, sample_series))).output

        assert collection.scene_numbers == [1, 2, 3]
        assert collection.get_record(1).provenance == Provenance.RECOVERED
        assert collection.get_record(3).provenance == Provenance.SYNTHESIZED

    @pytest.mark.asyncio
    async def test_record_cut_mid_value_is_backfilled(
        self, pipeline_for, records_json, sample_document, sample_series
    ):
        full = records_json([1, 2, 3])
        third = full.index('"sceneNumber": 3')
        truncated = full[:full.index('"budgetImpact": 40', third) + len('"budgetImpact": 4')]
        pipeline, (provider,) = pipeline_for(truncated, records_json([3]))

        collection = (await pipeline.run(BreakdownRequest(sample_document, sample_series))).output

        assert len(provider.calls) == 2
        scene_three = collection.get_record(3)
        assert scene_three.provenance == Provenance.BACKFILL
        assert scene_three.budget_impact == 40.0
        assert collection.get_record(2).provenance == Provenance.RECOVERED

    @pytest.mark.asyncio
    async def test_fallback_provider_warning(self, pipeline_for, records_json, sample_document, sample_series):
        pipeline, _ = pipeline_for(
            RuntimeError("rate limited"),
            fallback_responses=[records_json([1, 2, 3])],
        )

        collection = (await pipeline.run(BreakdownRequest(sample_document, sample_series))).output

        assert collection.total_units == 3
        assert any("Provider gpt failed" in w for w in collection.warnings)
        assert any("fallback provider gemini" in w for w in collection.warnings)

    @pytest.mark.asyncio
    async def test_budget_caps_enforced(self, pipeline_for, records_json, sample_document, sample_series):
        pipeline, _ = pipeline_for(records_json([1, 2, 3], budgetImpact=300))

        collection = (await pipeline.run(BreakdownRequest(sample_document, sample_series))).output

        assert all(r.budget_impact == 250.0 for r in collection.records)
        assert collection.total_budget_impact == 750.0
        assert "Episode budget target $625 exceeded: $750" in collection.warnings

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, pipeline_for, sample_document, sample_series):
        pipeline, _ = pipeline_for(RuntimeError("down"), fallback_responses=[""])
        run = PipelineRun(pipeline=pipeline.name)

        with pytest.raises(ProviderUnavailableError):
            await pipeline.run(BreakdownRequest(sample_document, sample_series), run=run)

        assert run.status == PipelineStatus.FAILED
        assert run.current_step == "generate"

    @pytest.mark.asyncio
    async def test_unrecoverable_primary_response(self, pipeline_for, sample_document, sample_series):
        pipeline, _ = pipeline_for("I cannot produce a breakdown for this script.")

        with pytest.raises(UnrecoverableOutputError):
            await pipeline.run(BreakdownRequest(sample_document, sample_series))

    @pytest.mark.asyncio
    async def test_empty_script_skips_provider(self, pipeline_for, sample_series):
        pipeline, (provider,) = pipeline_for()

        result = await pipeline.run(BreakdownRequest(ScriptDocument(title="Blank"), sample_series))

        assert result.output.total_units == 0
        assert result.output.warnings == ["Script contains no numbered scenes; nothing to break down"]
        assert provider.calls == []
        assert result.metadata["stage_history"][-1] == "complete"

    @pytest.mark.asyncio
    async def test_segmentation_warnings_carried(self, pipeline_for, make_script_dict, records_json, sample_series):
        script = make_script_dict(2)
        script["metadata"]["sceneCount"] = 4
        pipeline, _ = pipeline_for(records_json([1, 2]))

        collection = (await pipeline.run(BreakdownRequest.from_dict({"script": script}))).output

        assert any("declares 4 scene(s)" in w for w in collection.warnings)

    @pytest.mark.asyncio
    async def test_progress_reported(self, make_provider, records_json, sample_document):
        updates = []
        pipeline = BreakdownPipeline(
            GenerationClient([make_provider("gpt", records_json([1, 2, 3]))]),
            progress_callback=updates.append,
        )

        await pipeline.run(BreakdownRequest(sample_document))

        assert [u["step"] for u in updates] == ["segment", "generate", "extract", "reconcile", "normalize"]


class TestHelpers:
    """Tests for request parsing and convenience entry points."""

    def test_request_from_dict(self, make_script_dict, sample_series_dict):
        request = BreakdownRequest.from_dict({
            "script": make_script_dict(2),
            "series": sample_series_dict,
            "unitId": "ep-1",
        })

        assert len(request.document.pages) == 2
        assert request.series.title == "Glass Towers"
        assert request.unit_id == "ep-1"

    def test_default_unit_id(self):
        assert default_unit_id(ScriptDocument(title="Pilot", episode_number=3)) == "episode-3"
        assert default_unit_id(ScriptDocument(title="The Long Night!")) == "the-long-night"
        assert default_unit_id(ScriptDocument()) == "script"

    def test_from_config(self):
        pipeline = BreakdownPipeline.from_config(CallsheetConfig())

        assert [p.name for p in pipeline.client.providers] == ["gpt", "gemini"]
        assert [s.name for s in pipeline.steps] == ["segment", "generate", "extract", "reconcile", "normalize"]

    @pytest.mark.asyncio
    async def test_generate_breakdown(self, make_provider, make_script_dict, sample_series_dict, records_json):
        client = GenerationClient([make_provider("gpt", records_json([1, 2]))])

        collection = await generate_breakdown(
            make_script_dict(2), sample_series_dict, client=client, unit_id="custom"
        )

        assert collection.unit_id == "custom"
        assert collection.scene_numbers == [1, 2]
        assert collection.title == "Pilot"

    @pytest.mark.asyncio
    async def test_series_defaults(self, make_provider, make_document, records_json):
        client = GenerationClient([make_provider("gpt", records_json([1]))])

        collection = await generate_breakdown(make_document(1), client=client)

        assert collection.total_units == 1
        assert collection.title == "Pilot"
