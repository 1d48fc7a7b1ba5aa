"""
Visualization Package

Contains framework-agnostic viewing state for slices and volumes.
"""

from .slice_viewer import SliceViewer, suggest_region, suggest_slice_range
from .volume_viewer import VolumeViewer, RenderBuffers
from .preview import SlicePreviewScheduler

__all__ = [
    'SliceViewer',
    'suggest_region',
    'suggest_slice_range',
    'VolumeViewer',
    'RenderBuffers',
    'SlicePreviewScheduler',
]
