"""
Loaders Package

Contains data loading for DICOM series.
"""

from .dicom_loader import (
    DicomSeriesLoader,
    SeriesInfo,
    sample_from_dataset,
)

__all__ = [
    'DicomSeriesLoader',
    'SeriesInfo',
    'sample_from_dataset',
]
