"""
Histogram Window Optimizer

Derives window width/center from the intensity histogram of a raster.
"""

from typing import Tuple
import logging
import numpy as np

from config import DEFAULT_DISPLAY
from core.base import Raster
from core.errors import InvalidArgumentError, ResourceUnavailableError


def optimize_window(
    raster: Raster,
    low_percentile: float = DEFAULT_DISPLAY.low_percentile,
    high_percentile: float = DEFAULT_DISPLAY.high_percentile
) -> Tuple[int, int]:
    """
    Estimate display window settings from a raster.

    Black pixels are ignored. The window spans the low/high percentile
    bins of the remaining pixels, clamped to the configured ranges.

    Args:
        raster: Raster to analyse
        low_percentile: Low cutoff (0-1)
        high_percentile: High cutoff (0-1)

    Returns:
        Tuple of (width, center); the configured fallback if the raster
        has no non-zero pixel or the estimate fails
    """
    if raster is None:
        raise InvalidArgumentError("Raster cannot be None")

    fallback = DEFAULT_DISPLAY.fallback_window

    try:
        intensity = raster.gray()
        histogram = np.bincount(intensity.ravel(), minlength=256)
        histogram[0] = 0
        total_pixels = int(histogram.sum())

        if total_pixels == 0:
            raise ResourceUnavailableError("Histogram has no non-zero pixels")

        low_count = int(total_pixels * low_percentile)
        high_count = int(total_pixels * high_percentile)

        # First bin whose cumulative count reaches the low threshold
        cumulative = np.cumsum(histogram)
        min_intensity = int(np.argmax(cumulative >= low_count))

        # Same walk from the top end
        reverse_cumulative = np.cumsum(histogram[::-1])
        hits = reverse_cumulative >= (total_pixels - high_count)
        max_intensity = 255 - int(np.argmax(hits)) if hits.any() else 255

        width = max_intensity - min_intensity
        center = min_intensity + width // 2

        min_w, max_w = DEFAULT_DISPLAY.width_range
        min_c, max_c = DEFAULT_DISPLAY.center_range
        width = max(min_w, min(max_w, width))
        center = max(min_c, min(max_c, center))

        logging.info(f"Optimized window settings: Width={width}, Center={center}")
        return width, center

    except ResourceUnavailableError as e:
        logging.warning(f"{e}; using default window {fallback}")
        return fallback
    except Exception as e:
        logging.error(f"Failed to optimize window settings: {e}")
        return fallback
