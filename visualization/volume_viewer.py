"""
Volume Viewer

Framework-agnostic 3D point cloud visualization logic: render buffer
lifecycle, clip planes, the live slicing plane and its debounced preview.
"""

from concurrent.futures import Future
from typing import Any, Callable, Dict, Optional
import logging

import numpy as np

from config import DEFAULT_VOLUME
from core.base import Raster
from core.data_manager import DataManager
from core.errors import InvalidArgumentError
from processing.point_cloud import PointCloud
from .preview import SlicePreviewScheduler


class RenderBuffers:
    """
    Contiguous vertex/color/index arrays handed to a renderer.

    Buffers exist only between initialize() and release(); the index
    buffer is replaced whenever the clip planes change.
    """

    def __init__(self, point_cloud: PointCloud):
        self._point_cloud = point_cloud
        self._vertices: Optional[np.ndarray] = None
        self._colors: Optional[np.ndarray] = None
        self._elements: Optional[np.ndarray] = None
        self._initialized = False

    def initialize(self) -> None:
        """
        Copy the point cloud into contiguous render arrays.

        Calling it again while initialized does nothing.
        """
        if self._initialized:
            return

        self._vertices = np.ascontiguousarray(self._point_cloud.vertices, dtype=np.float32)
        self._colors = np.ascontiguousarray(self._point_cloud.colors, dtype=np.float32)
        self._elements = np.ascontiguousarray(self._point_cloud.indices, dtype=np.uint32)
        self._initialized = True

        logging.info(
            f"Render buffers initialized: {len(self._vertices)} vertices, "
            f"{len(self._elements)} indices"
        )

    def release(self) -> None:
        """Drop the render arrays; initialize() may be called again."""
        self._vertices = None
        self._colors = None
        self._elements = None
        self._initialized = False

    def update_indices(self, indices: np.ndarray) -> None:
        """
        Replace the index buffer (no-op before initialize()).

        Args:
            indices: Visible vertex indices, e.g. from clip planes
        """
        if not self._initialized:
            return
        self._elements = np.ascontiguousarray(indices, dtype=np.uint32)

    def to_polydata(self) -> Any:
        """
        Build a pyvista PolyData of the visible points.

        Returns:
            pyvista.PolyData with an "intensity" point array
        """
        if not self._initialized:
            raise InvalidArgumentError("Render buffers are not initialized")

        import pyvista as pv

        points = self._vertices[self._elements]
        polydata = pv.PolyData(points)
        polydata.point_data["intensity"] = self._colors[self._elements, 0]
        return polydata

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def vertices(self) -> Optional[np.ndarray]:
        return self._vertices

    @property
    def colors(self) -> Optional[np.ndarray]:
        return self._colors

    @property
    def elements(self) -> Optional[np.ndarray]:
        return self._elements

    @property
    def visible_count(self) -> int:
        return 0 if self._elements is None else len(self._elements)


class VolumeViewer:
    """
    Framework-agnostic 3D volume viewer.

    This class handles the data logic for 3D visualization,
    independent of any specific rendering framework (PyVista, VTK, etc.).
    """

    # View presets mapping names to camera positions
    VIEW_PRESETS = {
        "Isometric": {"azimuth": 45, "elevation": 30},
        "Front": {"azimuth": 0, "elevation": 0},
        "Left": {"azimuth": -90, "elevation": 0},
        "Top": {"azimuth": 0, "elevation": 90},
    }

    def __init__(
        self,
        manager: DataManager,
        on_preview: Optional[Callable[[Raster], None]] = None,
        debounce_ms: int = DEFAULT_VOLUME.preview_debounce_ms
    ):
        """
        Args:
            manager: Data manager owning the point cloud
            on_preview: Callback for live slice previews
            debounce_ms: Delay before a plane change is re-sliced
        """
        self._manager = manager
        self._buffers: Optional[RenderBuffers] = None
        self._current_view = "Isometric"

        self._x_position = 0.0
        self._z_position = 0.0
        self._angle_a = 0.0
        self._angle_b = 0.0
        self._live_slice = False

        self._scheduler = SlicePreviewScheduler(
            manager.extract_oblique_plane, on_preview, debounce_ms
        )

        manager.volume_changed.connect(self._on_volume_changed)
        if manager.point_cloud is not None:
            self._on_volume_changed(manager.point_cloud)

    def _on_volume_changed(self, point_cloud: Optional[PointCloud]) -> None:
        self._scheduler.cancel()
        if self._buffers is not None:
            self._buffers.release()
        self._buffers = RenderBuffers(point_cloud) if point_cloud is not None else None

        self._z_position = 0.0
        self._angle_a = 0.0
        self._angle_b = 0.0
        self._x_position = 0.0
        if point_cloud is not None and point_cloud.vertex_count:
            # Start on the middle reconstructed slice
            slices = point_cloud.vertex_slices
            middle = (int(slices.min()) + int(slices.max())) // 2
            self._x_position = float(point_cloud.geometry.depth_coordinates()[middle])

    def set_view(self, view_name: str) -> Dict[str, float]:
        """
        Set the camera view to a preset.

        Args:
            view_name: Name of the view preset

        Returns:
            Dictionary with azimuth and elevation values
        """
        if view_name in self.VIEW_PRESETS:
            self._current_view = view_name
            return self.VIEW_PRESETS[view_name]
        return self.VIEW_PRESETS["Isometric"]

    def set_clip(self, front: int, back: int) -> int:
        """
        Apply clip planes to the rendered points.

        Args:
            front: Slices hidden from the front of the stack
            back: Slices hidden from the back of the stack

        Returns:
            Number of visible indices
        """
        indices = self._manager.set_clip_range(front, back)
        if self._buffers is not None:
            self._buffers.update_indices(indices)
        return len(indices)

    def set_slice_position(self, x_position: float, z_position: float) -> Optional[Future]:
        """
        Move the slicing plane origin.

        Args:
            x_position: Origin along the stack axis (clamped to -0.5 to 0.5)
            z_position: Origin along the column axis (clamped to -0.5 to 0.5)

        Returns:
            Future of the live preview, or None when live slicing is off
        """
        self._x_position = float(np.clip(x_position, -0.5, 0.5))
        self._z_position = float(np.clip(z_position, -0.5, 0.5))
        return self._schedule_preview()

    def set_slice_angles(self, angle_a: float, angle_b: float) -> Optional[Future]:
        """
        Set the plane rotation.

        Args:
            angle_a: Rotation about Y in radians
            angle_b: Rotation about Z in radians

        Returns:
            Future of the live preview, or None when live slicing is off
        """
        self._angle_a = float(angle_a)
        self._angle_b = float(angle_b)
        return self._schedule_preview()

    def set_live_slice(self, enabled: bool) -> None:
        """
        Toggle debounced previews of the current plane.

        Enabling schedules a preview right away; disabling cancels any
        pending one.
        """
        self._live_slice = enabled
        if enabled:
            self._schedule_preview()
        else:
            self._scheduler.cancel()

    def extract_slice(self) -> Raster:
        """Synchronously extract the current plane."""
        return self._manager.extract_oblique_plane(
            self._x_position, self._z_position, self._angle_a, self._angle_b
        )

    def _schedule_preview(self) -> Optional[Future]:
        if not self._live_slice or not self._manager.has_volume:
            return None
        return self._scheduler.request(
            self._x_position, self._z_position, self._angle_a, self._angle_b
        )

    def close(self) -> None:
        """Stop the preview worker and release render buffers."""
        self._scheduler.shutdown()
        if self._buffers is not None:
            self._buffers.release()

    @property
    def buffers(self) -> Optional[RenderBuffers]:
        return self._buffers

    @property
    def has_data(self) -> bool:
        return self._buffers is not None

    @property
    def slice_position(self):
        """Plane origin as (x, z)."""
        return self._x_position, self._z_position

    @property
    def slice_angles(self):
        """Plane rotation as (angle_a, angle_b) in radians."""
        return self._angle_a, self._angle_b

    @property
    def live_slice(self) -> bool:
        return self._live_slice

    @property
    def current_view(self) -> str:
        return self._current_view
