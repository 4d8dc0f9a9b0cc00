"""
Tests for Base Pipeline Module

Tests for callsheet/pipelines/base_pipeline.py
"""

import asyncio

import pytest

from callsheet.pipelines.base_pipeline import (
    BasePipeline,
    PipelineResult,
    PipelineRun,
    PipelineStatus,
    PipelineStep,
)


class MockPipeline(BasePipeline):
    """Mock pipeline for testing: appends each step name to the input."""

    def __init__(self, fail_at=None, optional_fail_at=None, cancel_at=None, progress_callback=None):
        self.fail_at = fail_at
        self.optional_fail_at = optional_fail_at
        self.cancel_at = cancel_at
        super().__init__("mock_pipeline", progress_callback)

    def _define_steps(self):
        self._steps = [
            PipelineStep("step1", "First step"),
            PipelineStep("step2", "Second step", required=self.optional_fail_at != "step2"),
            PipelineStep("step3", "Third step"),
        ]

    async def _execute_step(self, step, input_data, run):
        if step.name in (self.fail_at, self.optional_fail_at):
            raise RuntimeError(f"{step.name} broke")
        if step.name == self.cancel_at:
            raise asyncio.CancelledError()
        run.state[step.name] = True
        return f"{input_data}_{step.name}"


class TestPipelineResult:
    """Tests for PipelineResult class."""

    def test_success_result(self):
        result = PipelineResult(status=PipelineStatus.COMPLETED, output="x")

        assert result.success
        assert result.metadata == {}

    def test_failed_result(self):
        assert not PipelineResult(status=PipelineStatus.FAILED).success


class TestBasePipeline:
    """Tests for BasePipeline class."""

    @pytest.mark.asyncio
    async def test_runs_steps_in_order(self):
        pipeline = MockPipeline()

        result = await pipeline.run("input")

        assert result.status == PipelineStatus.COMPLETED
        assert result.output == "input_step1_step2_step3"
        assert result.metadata["steps_completed"] == ["step1", "step2", "step3"]

    @pytest.mark.asyncio
    async def test_run_state_is_per_run(self):
        pipeline = MockPipeline()
        run = PipelineRun(pipeline=pipeline.name)

        await pipeline.run("a", run=run)
        second = PipelineRun(pipeline=pipeline.name)
        await pipeline.run("b", run=second)

        assert run.status == PipelineStatus.COMPLETED
        assert run.state == {"step1": True, "step2": True, "step3": True}
        assert second.completed_steps == ["step1", "step2", "step3"]
        assert run.started_at is not None

    @pytest.mark.asyncio
    async def test_required_failure_propagates(self):
        pipeline = MockPipeline(fail_at="step2")
        run = PipelineRun(pipeline=pipeline.name)

        with pytest.raises(RuntimeError, match="step2 broke"):
            await pipeline.run("input", run=run)

        assert run.status == PipelineStatus.FAILED
        assert run.current_step == "step2"
        assert run.completed_steps == ["step1"]
        assert "step2 broke" in run.error

    @pytest.mark.asyncio
    async def test_optional_failure_continues(self):
        pipeline = MockPipeline(optional_fail_at="step2")

        result = await pipeline.run("input")

        assert result.success
        assert result.output == "input_step1_step3"

    @pytest.mark.asyncio
    async def test_cancellation_marks_run(self):
        pipeline = MockPipeline(cancel_at="step3")
        run = PipelineRun(pipeline=pipeline.name)

        with pytest.raises(asyncio.CancelledError):
            await pipeline.run("input", run=run)

        assert run.status == PipelineStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_progress_callback(self):
        updates = []
        pipeline = MockPipeline(progress_callback=updates.append)

        await pipeline.run("input")

        assert [u["step"] for u in updates] == ["step1", "step2", "step3"]
        assert updates[-1]["percent"] == 100

    def test_steps_copy(self):
        pipeline = MockPipeline()

        steps = pipeline.steps
        steps.clear()

        assert len(pipeline.steps) == 3
