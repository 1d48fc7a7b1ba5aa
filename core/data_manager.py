"""
Data Manager

Centralized display state for one series: slice rendering with the
current window, the raster cache and the reconstructed volume.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from PySide6.QtCore import QObject, Signal

from config import DEFAULT_DISPLAY
from core.base import RawSliceSample, Raster, Rect
from core.cancellation import CancellationToken
from core.errors import InvalidArgumentError
from processing.cache import BoundedRasterCache
from processing.filters import FilterType, apply_filter
from processing.histogram import optimize_window
from processing.point_cloud import PointCloud, VolumePointCloudBuilder
from processing.slice_extractor import (
    MPROrientation,
    ObliqueSliceExtractor,
    visible_indices,
)
from processing.windowing import window_transform


class DataManager(QObject):
    """
    Manages the display state of a loaded series.

    Provides a centralized location for:
    - Slice rendering with the current window settings (cached)
    - Window optimization from the slice histogram
    - Point cloud reconstruction and oblique re-slicing
    - Clip-plane filtering of the rendered index list
    - State change notifications via signals
    """

    # Signals
    window_changed = Signal(int, int)  # Emits (width, center)
    volume_changed = Signal(object)  # Emits PointCloud or None
    clip_changed = Signal(int)  # Emits number of visible indices

    def __init__(
        self,
        slices: Sequence[RawSliceSample],
        global_view: Optional[RawSliceSample] = None,
        max_workers: Optional[int] = None,
        parent=None
    ):
        """
        Args:
            slices: Slices of one series, sorted by slice location
            global_view: Optional overview image of the study
            max_workers: Thread pool size for volume builds
            parent: Qt parent object
        """
        super().__init__(parent)

        self._slices: List[RawSliceSample] = list(slices)
        self._global_view = global_view
        self._current_index = 0
        self._cache = BoundedRasterCache()
        self._max_workers = max_workers

        self._point_cloud: Optional[PointCloud] = None
        self._extractor: Optional[ObliqueSliceExtractor] = None
        self._visible_indices: Optional[np.ndarray] = None
        self._front_clip = 0
        self._back_clip = 0

        if self._slices:
            self._window_width = self._slices[0].window_width
            self._window_center = self._slices[0].window_center
        else:
            self._window_width, self._window_center = DEFAULT_DISPLAY.fallback_window
        logging.info(
            f"Initial window settings: Width={self._window_width}, Center={self._window_center}"
        )

    @property
    def total_slices(self) -> int:
        return len(self._slices)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def window_width(self) -> int:
        return self._window_width

    @property
    def window_center(self) -> int:
        return self._window_center

    @property
    def cache(self) -> BoundedRasterCache:
        return self._cache

    @property
    def global_view(self) -> Optional[RawSliceSample]:
        return self._global_view

    @property
    def point_cloud(self) -> Optional[PointCloud]:
        """Most recently built point cloud."""
        return self._point_cloud

    @property
    def visible_indices(self) -> Optional[np.ndarray]:
        """Index list after the current clip planes."""
        return self._visible_indices

    @property
    def has_volume(self) -> bool:
        return self._point_cloud is not None

    def get_slice(self, index: int) -> RawSliceSample:
        self._check_index(index)
        return self._slices[index]

    def set_slice_index(self, index: int) -> None:
        """Set the current slice; out-of-range indices are ignored."""
        if 0 <= index < len(self._slices):
            self._current_index = index

    def render_slice(
        self,
        index: int,
        width_override: Optional[int] = None,
        center_override: Optional[int] = None
    ) -> Raster:
        """
        Render a slice.

        Rasters rendered with the current window settings are cached;
        renders with an override bypass the cache.

        Args:
            index: Slice index
            width_override: Window width to use instead of the current one
            center_override: Window center to use instead of the current one

        Returns:
            Raster owned by the caller
        """
        self._check_index(index)

        if width_override is None and center_override is None:
            cached = self._cache.get(index)
            if cached is not None:
                return cached

            raster = window_transform(self._slices[index], self._window_width, self._window_center)
            self._cache.put(index, raster)
            return raster

        width = width_override if width_override is not None else self._window_width
        center = center_override if center_override is not None else self._window_center
        return window_transform(self._slices[index], width, center)

    def render_current_slice(self) -> Raster:
        return self.render_slice(self._current_index)

    def render_filtered_slice(self, index: int, filter_type: FilterType) -> Raster:
        """Render a slice and pass it through a display filter."""
        return apply_filter(self.render_slice(index), filter_type)

    def apply_filter(self, raster: Raster, filter_type: FilterType) -> Raster:
        return apply_filter(raster, filter_type)

    def render_global_view(self) -> Raster:
        """Render the overview image with its own window settings."""
        if self._global_view is None:
            raise InvalidArgumentError("No global view available")
        return window_transform(self._global_view)

    def update_window_settings(self, width: int, center: int) -> None:
        """
        Set the window used for rendering.

        Every cached raster was rendered with the previous settings, so
        the whole cache is dropped.
        """
        if width < 1:
            raise InvalidArgumentError(f"Window width must be >= 1, got {width}")

        self._window_width = int(width)
        self._window_center = int(center)
        self._cache.invalidate_all()

        logging.info(f"Window settings updated: Width={width}, Center={center}")
        self.window_changed.emit(self._window_width, self._window_center)

    def optimize_window_settings(self) -> Tuple[int, int]:
        """
        Estimate and apply window settings from the current slice.

        Returns:
            Tuple of (width, center) now in effect
        """
        if not self._slices:
            raise InvalidArgumentError("No slices loaded")

        wide_width, wide_center = DEFAULT_DISPLAY.optimize_window
        raster = window_transform(self._slices[self._current_index], wide_width, wide_center)
        width, center = optimize_window(raster)
        self.update_window_settings(width, center)
        return width, center

    def preload(self, start_index: int, count: int) -> int:
        """
        Render a range of slices into the cache.

        Returns:
            Number of slices rendered
        """
        end_index = min(start_index + count, len(self._slices))
        logging.info(f"Preloading {max(end_index - start_index, 0)} images starting at index {start_index}")

        rendered = 0
        for i in range(max(start_index, 0), end_index):
            if i not in self._cache:
                self._cache.put(i, window_transform(
                    self._slices[i], self._window_width, self._window_center
                ))
                rendered += 1
        return rendered

    def build_volume(
        self,
        min_slice: int,
        max_slice: int,
        bounding_rect: Optional[Rect] = None,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> PointCloud:
        """
        Reconstruct the point cloud for an inclusive slice range.

        Args:
            min_slice: First slice index
            max_slice: Last slice index (inclusive)
            bounding_rect: Optional pixel region to keep in every slice
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            PointCloud (vertices, colors, indices and the intensity map)
        """
        if not self._slices:
            raise InvalidArgumentError("No slices loaded")

        builder = VolumePointCloudBuilder(
            render_slice=self.render_slice,
            slice_locations=[s.slice_location for s in self._slices],
            pixel_spacing=self._slices[0].pixel_spacing,
            max_workers=self._max_workers,
        )
        point_cloud = builder.build(min_slice, max_slice, bounding_rect, progress_callback)

        self._point_cloud = point_cloud
        self._extractor = ObliqueSliceExtractor(point_cloud)
        self._front_clip = 0
        self._back_clip = 0
        self._visible_indices = point_cloud.indices

        self.volume_changed.emit(point_cloud)
        return point_cloud

    def extract_oblique_plane(
        self,
        x_position: float,
        z_position: float,
        angle_a: float = 0.0,
        angle_b: float = 0.0,
        cancel_token: Optional[CancellationToken] = None
    ) -> Raster:
        """Re-slice the current volume along an oblique plane."""
        return self._require_extractor().extract(
            x_position, z_position, angle_a, angle_b, cancel_token
        )

    def create_mpr(self, orientation: MPROrientation, position: float = 0.0) -> Raster:
        """Re-slice the current volume along a canonical view."""
        return self._require_extractor().create_mpr(orientation, position)

    def set_clip_range(self, front: int, back: int) -> np.ndarray:
        """
        Update the clip planes of the rendered volume.

        Returns:
            Index list of the vertices left visible
        """
        if self._point_cloud is None:
            raise InvalidArgumentError("No volume has been built")

        indices = visible_indices(self._point_cloud, front, back)
        self._front_clip = front
        self._back_clip = back
        self._visible_indices = indices

        logging.info(f"Updated visible vertices: {len(indices)} of {self._point_cloud.index_count}")
        self.clip_changed.emit(len(indices))
        return indices

    @property
    def clip_range(self) -> Tuple[int, int]:
        return self._front_clip, self._back_clip

    def clear(self) -> None:
        """Drop the cache and the reconstructed volume."""
        self._cache.invalidate_all()
        self._point_cloud = None
        self._extractor = None
        self._visible_indices = None
        self.volume_changed.emit(None)
        logging.info("Data cleared")

    def _check_index(self, index: int) -> None:
        if not (0 <= index < len(self._slices)):
            raise InvalidArgumentError(
                f"Slice index {index} out of range [0, {len(self._slices) - 1}]"
            )

    def _require_extractor(self) -> ObliqueSliceExtractor:
        if self._extractor is None:
            raise InvalidArgumentError("No volume has been built")
        return self._extractor
