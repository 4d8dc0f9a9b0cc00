"""
Callsheet Script Module

Script document model and scene segmentation.
"""

from .document import ElementType, ScriptDocument, ScriptElement, ScriptPage
from .segmenter import SceneSegmenter, SceneUnit, SegmentationResult, segment_script

__all__ = [
    'ElementType',
    'ScriptDocument',
    'ScriptElement',
    'ScriptPage',
    'SceneSegmenter',
    'SceneUnit',
    'SegmentationResult',
    'segment_script',
]
