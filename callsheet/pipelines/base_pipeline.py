"""
Callsheet Base Pipeline

Abstract base class for step-based processing pipelines.

Per-run state (current step, status, timings) lives in a PipelineRun created
for each call to `run()`, so one pipeline instance can serve concurrent runs.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from callsheet.core.logging_config import get_logger

logger = get_logger("pipelines.base")

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')


class PipelineStatus(Enum):
    """Status of a pipeline execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PipelineStep:
    """A step in a pipeline."""
    name: str
    description: str
    required: bool = True


@dataclass
class PipelineRun:
    """Mutable state of one pipeline execution."""
    pipeline: str
    status: PipelineStatus = PipelineStatus.PENDING
    current_step: Optional[str] = None
    completed_steps: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    error: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict)

    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return (datetime.now() - self.started_at).total_seconds()


@dataclass
class PipelineResult(Generic[OutputT]):
    """Result from a completed pipeline execution."""
    status: PipelineStatus
    output: Optional[OutputT] = None
    duration_seconds: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED


ProgressCallback = Callable[[Dict[str, Any]], None]


class BasePipeline(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for processing pipelines.

    Features:
    - Step-based execution
    - Progress reporting
    - Failures and cancellation propagate to the caller after the run is
      marked FAILED / CANCELLED
    """

    def __init__(self, name: str, progress_callback: Optional[ProgressCallback] = None):
        """
        Initialize the pipeline.

        Args:
            name: Pipeline name
            progress_callback: Optional callable receiving progress dicts
        """
        self.name = name
        self._steps: List[PipelineStep] = []
        self._progress_callback = progress_callback

        self._define_steps()

    @abstractmethod
    def _define_steps(self) -> None:
        """Define the pipeline steps. Override in subclasses."""
        pass

    @abstractmethod
    async def _execute_step(
        self,
        step: PipelineStep,
        input_data: Any,
        run: PipelineRun
    ) -> Any:
        """Execute a single step. Override in subclasses."""
        pass

    async def _execute(self, input_data: InputT, run: PipelineRun) -> OutputT:
        """Run every step in order, feeding each step's output to the next."""
        current_data = input_data
        total = len(self._steps)

        for i, step in enumerate(self._steps):
            run.current_step = step.name
            self._report_progress(step, i, total)
            logger.debug(f"Executing step: {step.name}")

            try:
                current_data = await self._execute_step(step, current_data, run)
            except Exception as e:
                if step.required:
                    raise
                logger.warning(f"Optional step failed: {step.name} - {e}")

            run.completed_steps.append(step.name)

        return current_data

    async def run(
        self,
        input_data: InputT,
        run: Optional[PipelineRun] = None
    ) -> PipelineResult[OutputT]:
        """
        Run the pipeline.

        Args:
            input_data: Input data
            run: Optional run state object; a fresh one is created when omitted

        Returns:
            PipelineResult with output

        Raises:
            Whatever a required step raised; the run is marked FAILED first
        """
        run = run or PipelineRun(pipeline=self.name)
        run.status = PipelineStatus.RUNNING
        run.started_at = datetime.now()

        logger.info(f"Starting pipeline: {self.name}")

        try:
            output = await self._execute(input_data, run)
        except asyncio.CancelledError:
            run.status = PipelineStatus.CANCELLED
            logger.info(f"Pipeline cancelled: {self.name} (at {run.current_step})")
            raise
        except Exception as e:
            run.status = PipelineStatus.FAILED
            run.error = str(e)
            logger.error(f"Pipeline failed: {self.name} at step {run.current_step} - {e}")
            raise

        run.status = PipelineStatus.COMPLETED
        duration = run.duration_seconds()
        logger.info(f"Pipeline completed: {self.name} in {duration:.2f}s")

        return PipelineResult(
            status=PipelineStatus.COMPLETED,
            output=output,
            duration_seconds=duration,
            metadata={'steps_completed': list(run.completed_steps)}
        )

    def _report_progress(
        self,
        step: PipelineStep,
        current: int,
        total: int
    ) -> None:
        """Report progress to callback."""
        if self._progress_callback:
            self._progress_callback({
                'pipeline': self.name,
                'step': step.name,
                'current': current + 1,
                'total': total,
                'percent': (current + 1) / total * 100
            })

    @property
    def steps(self) -> List[PipelineStep]:
        return self._steps.copy()
