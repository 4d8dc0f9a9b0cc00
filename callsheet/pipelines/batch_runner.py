"""
Callsheet Batch Runner

Runs independent breakdowns (one per episode) concurrently, bounded by a
semaphore. Runs share no mutable state; a fatal error in one run is recorded
on its item and the others continue.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from callsheet.core.exceptions import CallsheetError
from callsheet.core.logging_config import get_logger

from .breakdown_models import BreakdownCollection
from .breakdown_pipeline import BreakdownPipeline, BreakdownRequest

logger = get_logger("pipelines.batch")


@dataclass
class BatchItemResult:
    """Outcome of one run in a batch."""
    index: int
    unit_id: Optional[str]
    collection: Optional[BreakdownCollection] = None
    error: Optional[CallsheetError] = None

    @property
    def success(self) -> bool:
        return self.collection is not None


@dataclass
class BatchResult:
    """Result from batch processing."""
    items: List[BatchItemResult]

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def success_count(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def error_count(self) -> int:
        return self.total_items - self.success_count

    @property
    def collections(self) -> List[BreakdownCollection]:
        return [item.collection for item in self.items if item.collection is not None]


async def run_breakdown_batch(
    requests: Sequence[BreakdownRequest],
    pipeline: BreakdownPipeline,
    max_concurrent: int = 3,
) -> BatchResult:
    """
    Run several breakdowns in parallel.

    Args:
        requests: One request per episode
        pipeline: Pipeline shared by every run (it holds no per-run state)
        max_concurrent: Max runs in flight at once

    Returns:
        BatchResult with items in request order

    Raises:
        asyncio.CancelledError: the batch was cancelled
        Any non-Callsheet exception raised by a run
    """
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrent)

    async def _run_one(request: BreakdownRequest) -> BreakdownCollection:
        async with semaphore:
            result = await pipeline.run(request)
            return result.output

    logger.info(f"Running {len(requests)} breakdown(s), max {max_concurrent} concurrent")
    results = await asyncio.gather(*[_run_one(r) for r in requests], return_exceptions=True)

    items = []
    for index, (request, result) in enumerate(zip(requests, results)):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, CallsheetError):
            logger.error(f"Breakdown {index} ({request.unit_id or request.document.title}) failed: {result}")
            items.append(BatchItemResult(index=index, unit_id=request.unit_id, error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            items.append(BatchItemResult(index=index, unit_id=result.unit_id, collection=result))

    batch = BatchResult(items=items)
    logger.info(f"Batch complete: {batch.success_count} succeeded, {batch.error_count} failed")
    return batch
