"""
Processing package for slice rendering and volume reconstruction.

Contains the core algorithms: windowing, filters, window optimization,
point cloud assembly, oblique re-slicing and the raster cache.
"""

from .windowing import window_transform, to_hounsfield, apply_window
from .filters import FilterType, apply_filter
from .histogram import optimize_window
from .cache import BoundedRasterCache
from .point_cloud import VolumeGeometry, PointCloud, VolumePointCloudBuilder
from .slice_extractor import (
    ObliqueSliceExtractor,
    MPROrientation,
    mpr_parameters,
    plane_basis,
    visible_indices,
)

__all__ = [
    "window_transform",
    "to_hounsfield",
    "apply_window",
    "FilterType",
    "apply_filter",
    "optimize_window",
    "BoundedRasterCache",
    "VolumeGeometry",
    "PointCloud",
    "VolumePointCloudBuilder",
    "ObliqueSliceExtractor",
    "MPROrientation",
    "mpr_parameters",
    "plane_basis",
    "visible_indices",
]
