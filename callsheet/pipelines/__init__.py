"""
Callsheet Pipelines Module

The production breakdown pipeline and its stages.

Main Pipeline:
- BreakdownPipeline: Script -> BreakdownCollection
  - Segment: scene units from the paginated script
  - Generate: provider chain with ordered fallback
  - Extract: resilient recovery of record objects from raw text
  - Reconcile: backfill or synthesize scenes the provider omitted
  - Normalize: closed enumerations, defaults and budget ceilings

Batch:
- run_breakdown_batch: several episodes in parallel, bounded concurrency
"""

from .base_pipeline import (
    BasePipeline,
    PipelineResult,
    PipelineRun,
    PipelineStatus,
    PipelineStep,
)
from .batch_runner import BatchItemResult, BatchResult, run_breakdown_batch
from .breakdown_extractor import (
    ExtractionResult,
    ExtractionStage,
    RecoveredCandidate,
    ResilientExtractor,
    extract_candidates,
)
from .breakdown_models import (
    BreakdownCollection,
    BreakdownRecord,
    BudgetBreakdown,
    CastMember,
    Continuity,
    Coverage,
    Logistics,
    Material,
    Provenance,
)
from .breakdown_pipeline import (
    BreakdownPipeline,
    BreakdownRequest,
    BreakdownStage,
    generate_breakdown,
)
from .normalizer import RecordNormalizer
from .reconciler import (
    CompletenessReconciler,
    ReconciliationResult,
    SynthesizedCandidate,
    synthesize_candidate,
)

__all__ = [
    'BasePipeline',
    'PipelineResult',
    'PipelineRun',
    'PipelineStatus',
    'PipelineStep',
    'BatchItemResult',
    'BatchResult',
    'run_breakdown_batch',
    'ExtractionResult',
    'ExtractionStage',
    'RecoveredCandidate',
    'ResilientExtractor',
    'extract_candidates',
    'BreakdownCollection',
    'BreakdownRecord',
    'BudgetBreakdown',
    'CastMember',
    'Continuity',
    'Coverage',
    'Logistics',
    'Material',
    'Provenance',
    'BreakdownPipeline',
    'BreakdownRequest',
    'BreakdownStage',
    'generate_breakdown',
    'RecordNormalizer',
    'CompletenessReconciler',
    'ReconciliationResult',
    'SynthesizedCandidate',
    'synthesize_candidate',
]
