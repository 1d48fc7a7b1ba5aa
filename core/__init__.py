"""
Core Package

Contains the data records, error taxonomy and cancellation primitive
shared by the processing and display layers.

The display facade lives in `core.data_manager` and is imported from
there directly, since it depends on the processing package.
"""

from .base import RawSliceSample, Raster, Rect
from .errors import (
    ViewerError,
    InvalidArgumentError,
    ResourceUnavailableError,
    ExtractionCancelled,
)
from .cancellation import CancellationToken

__all__ = [
    'RawSliceSample',
    'Raster',
    'Rect',
    'ViewerError',
    'InvalidArgumentError',
    'ResourceUnavailableError',
    'ExtractionCancelled',
    'CancellationToken',
]
