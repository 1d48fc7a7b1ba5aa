"""
Volume Point Cloud Builder

Assembles an ordered slice stack into a sparse point cloud in a
normalized unit cube. Slices are processed in parallel into private
buffers and merged under a single lock.

Axes of the normalized cube:
    x: stack (depth) axis, from slice location
    y: image rows
    z: image columns
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import concurrent.futures
import logging
import os
import threading
import time
import numpy as np

from config import DEFAULT_VOLUME
from core.base import Raster, Rect
from core.errors import InvalidArgumentError


# Quantized point key: (slice_index, row, column)
PointKey = Tuple[int, int, int]


@dataclass(frozen=True)
class VolumeGeometry:
    """
    Physical extent of a slice stack and its normalization factors.

    The largest physical dimension is scaled to 1.0; the others keep
    their aspect ratio relative to it.
    """
    slice_width: int  # pixels
    slice_height: int  # pixels
    pixel_spacing: float  # mm
    slice_locations: Tuple[float, ...]  # mm, one per slice in stack order
    physical_width: float
    physical_height: float
    physical_depth: float
    scale_width: float
    scale_height: float
    scale_depth: float

    @classmethod
    def from_stack(
        cls,
        slice_width: int,
        slice_height: int,
        pixel_spacing: float,
        slice_locations: Sequence[float]
    ) -> "VolumeGeometry":
        """
        Derive the geometry of a stack.

        Args:
            slice_width: Raster width in pixels
            slice_height: Raster height in pixels
            pixel_spacing: mm per pixel
            slice_locations: Slice locations in stack order (mm)
        """
        if slice_width <= 0 or slice_height <= 0:
            raise InvalidArgumentError("Slice dimensions must be positive")
        if pixel_spacing <= 0:
            raise InvalidArgumentError(f"Pixel spacing must be positive, got {pixel_spacing}")
        if len(slice_locations) == 0:
            raise InvalidArgumentError("Slice stack is empty")

        locations = tuple(float(loc) for loc in slice_locations)
        physical_width = slice_width * pixel_spacing
        physical_height = slice_height * pixel_spacing
        physical_depth = abs(locations[-1] - locations[0])

        max_dimension = max(physical_width, physical_height, physical_depth)

        return cls(
            slice_width=slice_width,
            slice_height=slice_height,
            pixel_spacing=float(pixel_spacing),
            slice_locations=locations,
            physical_width=physical_width,
            physical_height=physical_height,
            physical_depth=physical_depth,
            scale_width=physical_width / max_dimension,
            scale_height=physical_height / max_dimension,
            scale_depth=physical_depth / max_dimension,
        )

    @property
    def first_location(self) -> float:
        return self.slice_locations[0]

    @property
    def last_location(self) -> float:
        return self.slice_locations[-1]

    @property
    def total_slices(self) -> int:
        return len(self.slice_locations)

    def depth_coordinates(self) -> np.ndarray:
        """Normalized depth of every slice, centred on zero."""
        locations = np.asarray(self.slice_locations, dtype=np.float64)
        span = self.last_location - self.first_location
        if span == 0:
            return np.zeros_like(locations)
        return ((locations - self.first_location) / span - 0.5) * self.scale_depth

    @property
    def scales(self) -> np.ndarray:
        """Per-axis scales in (depth, row, column) order."""
        return np.array([self.scale_depth, self.scale_height, self.scale_width])

    def extent_along(self, direction: np.ndarray) -> float:
        """
        Length of the volume's shadow on a unit direction.

        Args:
            direction: Unit vector in (depth, row, column) coordinates

        Returns:
            Projected extent, or 1.0 when the volume is flat along it
        """
        extent = float(np.abs(np.asarray(direction, dtype=np.float64)) @ self.scales)
        return extent if extent > 1e-9 else 1.0

    def positions(self, keys: np.ndarray) -> np.ndarray:
        """
        Map quantized keys to unit-cube positions.

        Args:
            keys: int array (N, 3) of (slice_index, row, column)

        Returns:
            float64 array (N, 3) of (depth, row, column) coordinates
        """
        keys = np.asarray(keys)
        if keys.size == 0:
            return np.zeros((0, 3), dtype=np.float64)

        row_span = max(self.slice_height - 1, 1)
        col_span = max(self.slice_width - 1, 1)

        positions = np.empty(keys.shape, dtype=np.float64)
        positions[:, 0] = self.depth_coordinates()[keys[:, 0]]
        positions[:, 1] = (keys[:, 1] / row_span - 0.5) * self.scale_height
        positions[:, 2] = (keys[:, 2] / col_span - 0.5) * self.scale_width
        return positions


@dataclass(eq=False)
class PointCloud:
    """
    Result of a volume build.

    Attributes:
        vertices: float32 (N, 3) positions for GPU upload
        colors: float32 (N, 3) grayscale colors, parallel to vertices
        indices: uint32 (N,) index list into vertices
        vertex_slices: int32 (N,) slice index of each vertex
        point_map: Quantized key -> intensity in [0, 1]
        geometry: Geometry of the source stack
    """
    vertices: np.ndarray
    colors: np.ndarray
    indices: np.ndarray
    vertex_slices: np.ndarray
    point_map: Dict[PointKey, float]
    geometry: VolumeGeometry
    _arrays: Optional[Tuple[np.ndarray, np.ndarray]] = field(
        default=None, init=False, repr=False
    )

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def index_count(self) -> int:
        return len(self.indices)

    @property
    def width(self) -> int:
        return self.geometry.slice_width

    @property
    def height(self) -> int:
        return self.geometry.slice_height

    @property
    def total_slices(self) -> int:
        return self.geometry.total_slices

    def point_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Positions and intensities of the quantized map as arrays.

        Returns:
            Tuple of (positions (N, 3) float64, intensities (N,) float64)
        """
        if self._arrays is None:
            if self.point_map:
                keys = np.array(list(self.point_map.keys()), dtype=np.int64)
                values = np.fromiter(self.point_map.values(), dtype=np.float64,
                                     count=len(self.point_map))
            else:
                keys = np.zeros((0, 3), dtype=np.int64)
                values = np.zeros(0, dtype=np.float64)
            self._arrays = (self.geometry.positions(keys), values)
        return self._arrays


class _PointAccumulator:
    """Global buffers of one build; only touched through `merge`."""

    def __init__(self):
        self._lock = threading.Lock()
        self._vertex_count = 0
        self._vertices: List[np.ndarray] = []
        self._colors: List[np.ndarray] = []
        self._indices: List[np.ndarray] = []
        self._slices: List[np.ndarray] = []
        self.point_map: Dict[PointKey, float] = {}

    def merge(self, keys: np.ndarray, positions: np.ndarray, intensities: np.ndarray) -> None:
        count = len(keys)
        key_tuples = [tuple(k) for k in keys.tolist()]
        values = intensities.tolist()

        with self._lock:
            base_index = self._vertex_count
            self._vertices.append(positions.astype(np.float32))
            self._colors.append(np.repeat(intensities[:, np.newaxis], 3, axis=1).astype(np.float32))
            self._indices.append(np.arange(base_index, base_index + count, dtype=np.uint32))
            self._slices.append(keys[:, 0].astype(np.int32))
            self.point_map.update(zip(key_tuples, values))
            self._vertex_count += count

    def to_point_cloud(self, geometry: VolumeGeometry) -> PointCloud:
        def concat(chunks, shape, dtype):
            return np.concatenate(chunks) if chunks else np.zeros(shape, dtype=dtype)

        return PointCloud(
            vertices=concat(self._vertices, (0, 3), np.float32),
            colors=concat(self._colors, (0, 3), np.float32),
            indices=concat(self._indices, (0,), np.uint32),
            vertex_slices=concat(self._slices, (0,), np.int32),
            point_map=self.point_map,
            geometry=geometry,
        )


class VolumePointCloudBuilder:
    """
    Builds a point cloud from a stack of rendered slices.

    Each slice index is one task on a thread pool; tasks only read their
    own raster and fill private buffers, which are merged into the
    global arrays under a single lock.
    """

    def __init__(
        self,
        render_slice: Callable[[int], Raster],
        slice_locations: Sequence[float],
        pixel_spacing: float,
        max_workers: Optional[int] = None
    ):
        """
        Initialize builder.

        Args:
            render_slice: Returns the display raster of a slice index
            slice_locations: Slice locations of the whole series (mm)
            pixel_spacing: In-plane mm per pixel
            max_workers: Thread pool size (default: CPU count)
        """
        self._render_slice = render_slice
        self._slice_locations = list(slice_locations)
        self._pixel_spacing = pixel_spacing
        self._max_workers = max_workers or os.cpu_count() or 1
        self._geometry: Optional[VolumeGeometry] = None

    @property
    def geometry(self) -> VolumeGeometry:
        """Stack geometry, derived once from the first slice."""
        if self._geometry is None:
            first = self._render_slice(0)
            self._geometry = VolumeGeometry.from_stack(
                first.width,
                first.height,
                self._pixel_spacing,
                self._slice_locations
            )
        return self._geometry

    def build(
        self,
        min_slice: int,
        max_slice: int,
        bounding_rect: Optional[Rect] = None,
        progress_callback: Optional[Callable[[float], None]] = None
    ) -> PointCloud:
        """
        Build the point cloud for an inclusive slice range.

        Args:
            min_slice: First slice index
            max_slice: Last slice index (inclusive)
            bounding_rect: Optional pixel region to keep in every slice
            progress_callback: Optional callback(progress: 0.0-1.0)

        Returns:
            PointCloud with GPU arrays and the quantized intensity map
        """
        total = len(self._slice_locations)
        if total == 0:
            raise InvalidArgumentError("Slice stack is empty")
        if not (0 <= min_slice <= max_slice < total):
            raise InvalidArgumentError(
                f"Invalid slice range [{min_slice}, {max_slice}] for {total} slices"
            )

        geometry = self.geometry
        accumulator = _PointAccumulator()
        num_slices = max_slice - min_slice + 1
        completed_slices = 0

        logging.info(f"Building point cloud from slices {min_slice} to {max_slice}")
        start = time.perf_counter()

        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            future_to_slice = {
                executor.submit(self._process_slice, z, geometry, bounding_rect, accumulator): z
                for z in range(min_slice, max_slice + 1)
            }

            for future in concurrent.futures.as_completed(future_to_slice):
                future.result()
                completed_slices += 1
                if progress_callback is not None:
                    progress_callback(completed_slices / num_slices)

        point_cloud = accumulator.to_point_cloud(geometry)
        logging.info(
            f"Created point cloud with {point_cloud.vertex_count} vertices "
            f"in {time.perf_counter() - start:.2f}s"
        )
        return point_cloud

    def _process_slice(
        self,
        z: int,
        geometry: VolumeGeometry,
        bounding_rect: Optional[Rect],
        accumulator: _PointAccumulator
    ) -> None:
        raster = self._render_slice(z)
        if raster.size != (geometry.slice_width, geometry.slice_height):
            raise InvalidArgumentError(
                f"Slice {z} is {raster.width}x{raster.height}, expected "
                f"{geometry.slice_width}x{geometry.slice_height}"
            )

        intensity = raster.pixels[..., :3].astype(np.float64).mean(axis=2) / 255.0
        keep = intensity > DEFAULT_VOLUME.intensity_threshold

        if bounding_rect is not None:
            region = np.zeros_like(keep)
            region[
                max(bounding_rect.y, 0):max(bounding_rect.bottom + 1, 0),
                max(bounding_rect.x, 0):max(bounding_rect.right + 1, 0)
            ] = True
            keep &= region

        rows, cols = np.nonzero(keep)
        keys = np.column_stack([np.full(len(rows), z), rows, cols]).astype(np.int64)
        positions = geometry.positions(keys)

        accumulator.merge(keys, positions, intensity[rows, cols])
