"""
Callsheet Context Module

Assembles the bounded breakdown brief sent to the generation providers.
"""

from .context_assembler import (
    AssembledBrief,
    BreakdownConstraints,
    CastReference,
    ContextAssembler,
    KeyLocation,
    SeriesContext,
    assemble_brief,
)

__all__ = [
    'AssembledBrief',
    'BreakdownConstraints',
    'CastReference',
    'ContextAssembler',
    'KeyLocation',
    'SeriesContext',
    'assemble_brief',
]
