"""
Callsheet - Production Breakdown Reconciliation Pipeline

Turns a machine-authored screenplay into a complete, schema-valid and
budget-bounded set of per-scene production breakdown records, using external
text generation providers that may return malformed or incomplete output.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Callsheet Team"
__project__ = "Callsheet"

from pathlib import Path

# Load environment variables early - provider API keys come from .env
from callsheet.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

from .context import SeriesContext
from .core import CallsheetConfig, load_config, setup_logging
from .pipelines import (
    BreakdownCollection,
    BreakdownPipeline,
    BreakdownRecord,
    BreakdownRequest,
    generate_breakdown,
    run_breakdown_batch,
)
from .script import ScriptDocument, SceneSegmenter

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__project__",
    # Paths
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    # Entry points
    "BreakdownCollection",
    "BreakdownPipeline",
    "BreakdownRecord",
    "BreakdownRequest",
    "CallsheetConfig",
    "SceneSegmenter",
    "ScriptDocument",
    "SeriesContext",
    "generate_breakdown",
    "load_config",
    "run_breakdown_batch",
    "setup_logging",
]
