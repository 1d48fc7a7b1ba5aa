"""
Oblique Slice Extractor

Re-samples the sparse point cloud onto an arbitrary plane. Points within
the plane thickness are projected onto the plane, binned onto the output
pixel grid and averaged per pixel.
"""

from enum import Enum
from typing import Optional, Sequence, Tuple
import logging
import math
import numpy as np
from scipy.spatial.transform import Rotation

from config import DEFAULT_VOLUME
from core.base import Raster
from core.cancellation import CancellationToken
from core.errors import InvalidArgumentError
from .point_cloud import PointCloud


class MPROrientation(Enum):
    """Canonical multiplanar reconstruction views."""
    AXIAL = "axial"
    SAGITTAL = "sagittal"
    CORONAL = "coronal"


def plane_basis(angle_a: float, angle_b: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Orthonormal frame of a slicing plane.

    The canonical axes are rotated about Z by `angle_b`, then about Y
    by `angle_a`.

    Returns:
        Tuple of (normal, up, right) unit vectors
    """
    rotation = (
        Rotation.from_rotvec([0.0, angle_a, 0.0])
        * Rotation.from_rotvec([0.0, 0.0, angle_b])
    )
    normal, up, right = rotation.apply(np.eye(3))
    return normal / np.linalg.norm(normal), up, right


def mpr_parameters(
    orientation: MPROrientation,
    position: float
) -> Tuple[Tuple[float, float, float], float, float]:
    """
    Plane parameters of a canonical view.

    Args:
        orientation: View to build
        position: Offset along the view normal (-0.5 to 0.5)

    Returns:
        Tuple of (origin, angle_a, angle_b)
    """
    if orientation == MPROrientation.AXIAL:
        return (position, 0.0, 0.0), 0.0, 0.0
    if orientation == MPROrientation.SAGITTAL:
        return (0.0, 0.0, position), math.pi / 2, 0.0
    if orientation == MPROrientation.CORONAL:
        return (0.0, position, 0.0), 0.0, math.pi / 2
    raise InvalidArgumentError(f"Invalid MPR orientation: {orientation}")


class ObliqueSliceExtractor:
    """
    Extracts 2D rasters from a point cloud along arbitrary planes.

    The output raster has the pixel dimensions of the source slices.
    """

    def __init__(self, point_cloud: PointCloud):
        if point_cloud is None:
            raise InvalidArgumentError("Point cloud cannot be None")
        if point_cloud.width <= 0 or point_cloud.height <= 0:
            raise InvalidArgumentError("Slice dimensions must be positive")
        self._point_cloud = point_cloud

    @property
    def width(self) -> int:
        return self._point_cloud.width

    @property
    def height(self) -> int:
        return self._point_cloud.height

    def extract(
        self,
        x_position: float,
        z_position: float,
        angle_a: float = 0.0,
        angle_b: float = 0.0,
        cancel_token: Optional[CancellationToken] = None
    ) -> Raster:
        """
        Extract the plane through (x, 0, z) with the given orientation.

        Args:
            x_position: Plane origin along the stack axis (-0.5 to 0.5)
            z_position: Plane origin along the column axis (-0.5 to 0.5)
            angle_a: Rotation about Y in radians
            angle_b: Rotation about Z in radians
            cancel_token: Optional token checked once per point batch
        """
        return self.extract_plane(
            (x_position, 0.0, z_position), angle_a, angle_b, cancel_token
        )

    def create_mpr(
        self,
        orientation: MPROrientation,
        position: float = 0.0,
        cancel_token: Optional[CancellationToken] = None
    ) -> Raster:
        """Extract one of the canonical views."""
        origin, angle_a, angle_b = mpr_parameters(orientation, position)
        return self.extract_plane(origin, angle_a, angle_b, cancel_token)

    def extract_plane(
        self,
        origin: Sequence[float],
        angle_a: float,
        angle_b: float,
        cancel_token: Optional[CancellationToken] = None
    ) -> Raster:
        """
        Project the points near a plane onto the output raster.

        Args:
            origin: Point on the plane (unit-cube coordinates)
            angle_a: Rotation about Y in radians
            angle_b: Rotation about Z in radians
            cancel_token: Optional token checked once per point batch

        Returns:
            Raster of the source slice size; a blank raster when no
            point lies within the plane thickness

        Raises:
            ExtractionCancelled: If the token is cancelled mid-extraction
        """
        origin = np.asarray(origin, dtype=np.float64)
        normal, up, right = plane_basis(angle_a, angle_b)
        width, height = self.width, self.height
        thickness = DEFAULT_VOLUME.plane_thickness
        batch_size = DEFAULT_VOLUME.extraction_batch_size

        positions, intensities = self._point_cloud.point_arrays()

        # The volume's extent along each in-plane axis spans the full raster
        geometry = self._point_cloud.geometry
        up_extent = geometry.extent_along(up)
        right_extent = geometry.extent_along(right)

        sums = np.zeros(width * height, dtype=np.float64)
        counts = np.zeros(width * height, dtype=np.int64)

        for start in range(0, len(positions), batch_size):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            offsets = positions[start:start + batch_size] - origin
            values = intensities[start:start + batch_size]

            distance = offsets @ normal
            near = np.abs(distance) <= thickness
            if not near.any():
                continue

            # Projection onto the plane, expressed in the (up, right) basis
            projected = offsets[near] - np.outer(distance[near], normal)
            v = (projected @ up) / up_extent
            u = (projected @ right) / right_extent

            image_y = np.rint((v + 0.5) * (height - 1)).astype(np.int64)
            image_x = np.rint((u + 0.5) * (width - 1)).astype(np.int64)

            inside = (
                (image_y >= 0) & (image_y < height)
                & (image_x >= 0) & (image_x < width)
            )
            flat = image_y[inside] * width + image_x[inside]
            sums += np.bincount(flat, weights=values[near][inside], minlength=width * height)
            counts += np.bincount(flat, minlength=width * height)

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        if not counts.any():
            logging.warning(
                f"No points within {thickness} of plane at {origin.tolist()}; "
                f"returning blank slice"
            )
            return Raster.blank(width, height)

        average = np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
        gray = np.clip(np.floor(average * 255.0 + 0.5), 0, 255).astype(np.uint8)
        return Raster.from_gray(gray.reshape(height, width))


def visible_indices(point_cloud: PointCloud, front: int, back: int) -> np.ndarray:
    """
    Filter the index list by slice clip planes.

    Keeps vertices whose slice index lies in
    [front, total_slices - back - 1]. The point map is not affected.

    Args:
        point_cloud: Built point cloud
        front: Slices clipped from the front of the stack
        back: Slices clipped from the back of the stack

    Returns:
        uint32 array, a subset of `point_cloud.indices` in the same order
    """
    if front < 0 or back < 0:
        raise InvalidArgumentError(f"Clip planes must be non-negative, got ({front}, {back})")

    last_visible = point_cloud.total_slices - back - 1
    slices = point_cloud.vertex_slices[point_cloud.indices]
    keep = (slices >= front) & (slices <= last_visible)
    return point_cloud.indices[keep]
