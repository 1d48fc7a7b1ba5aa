"""
Convolution Filter Engine

Fixed 3x3 kernels (edge, sharpen, smooth) applied to display rasters.
"""

from enum import Enum
import logging
import numpy as np
from scipy import ndimage

from core.base import Raster
from core.errors import InvalidArgumentError


class FilterType(Enum):
    """Image filters available for slice display."""
    NONE = "none"
    EDGE = "edge"
    SHARPEN = "sharpen"
    SMOOTH = "smooth"


# Sobel gradient kernels (applied as correlations)
SOBEL_X = np.array([
    [-1, 0, 1],
    [-2, 0, 2],
    [-1, 0, 1],
], dtype=np.float64)

SOBEL_Y = np.array([
    [-1, -2, -1],
    [0, 0, 0],
    [1, 2, 1],
], dtype=np.float64)

SHARPEN_KERNEL = np.array([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0],
], dtype=np.float64)

SMOOTH_KERNEL = np.array([
    [0.0625, 0.125, 0.0625],
    [0.125, 0.25, 0.125],
    [0.0625, 0.125, 0.0625],
], dtype=np.float64)


def apply_filter(raster: Raster, filter_type: FilterType) -> Raster:
    """
    Apply a filter to a raster.

    Args:
        raster: Source raster (left untouched)
        filter_type: Filter to apply

    Returns:
        New raster with the same dimensions. On an internal failure
        an unmodified copy of the source is returned.
    """
    if raster is None:
        raise InvalidArgumentError("Raster cannot be None")
    if raster.width == 0 or raster.height == 0:
        raise InvalidArgumentError("Raster cannot be zero-sized")

    try:
        if filter_type == FilterType.EDGE:
            pixels = _edge(raster.pixels)
        elif filter_type == FilterType.SHARPEN:
            pixels = _convolve_interior(raster.pixels, SHARPEN_KERNEL)
        elif filter_type == FilterType.SMOOTH:
            pixels = _convolve_interior(raster.pixels, SMOOTH_KERNEL)
        else:
            pixels = raster.pixels.copy()
        return Raster(pixels)
    except Exception as e:
        logging.error(f"Failed to apply {filter_type} filter: {e}")
        return raster.copy()


def _edge(src: np.ndarray) -> np.ndarray:
    """Sobel gradient magnitude on the RGB mean; border forced to black."""
    height, width = src.shape[:2]
    out = np.zeros_like(src)
    out[..., 3] = 255

    if height < 3 or width < 3:
        return out

    intensity = (src[..., :3].astype(np.int32).sum(axis=2) // 3).astype(np.float64)
    gx = ndimage.correlate(intensity, SOBEL_X, mode="nearest")
    gy = ndimage.correlate(intensity, SOBEL_Y, mode="nearest")
    magnitude = np.clip(np.sqrt(gx * gx + gy * gy), 0, 255).astype(np.uint8)

    out[1:-1, 1:-1, :3] = magnitude[1:-1, 1:-1, np.newaxis]
    return out


def _convolve_interior(src: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Per-channel correlation of interior pixels; border copied from source."""
    height, width = src.shape[:2]
    out = src.copy()
    out[..., 3] = 255

    if height < 3 or width < 3:
        return out

    rgb = src[..., :3].astype(np.float64)
    filtered = ndimage.correlate(rgb, kernel[..., np.newaxis], mode="nearest")
    filtered = np.floor(np.clip(filtered, 0, 255)).astype(np.uint8)

    out[1:-1, 1:-1, :3] = filtered[1:-1, 1:-1]
    return out
