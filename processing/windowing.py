"""
Intensity Window Transform

Converts raw stored samples into Hounsfield Units and maps them to
a displayable 0-255 grayscale raster with the window/level function.
"""

from typing import Optional
import logging
import numpy as np

from core.base import RawSliceSample, Raster
from core.errors import InvalidArgumentError


def to_hounsfield(sample: RawSliceSample) -> np.ndarray:
    """
    Decode the sample buffer into HU values.

    Args:
        sample: Raw slice record (validated here)

    Returns:
        float64 array of shape (rows, columns)
    """
    sample.validate()

    raw = np.frombuffer(sample.pixel_data, dtype="<u2")

    # Keep only the stored bits
    mask = 0xFFFF >> (sample.bits_allocated - sample.bits_stored)
    values = (raw & mask).astype(np.float64)

    if sample.pixel_representation == 1:
        max_value = float(2 ** sample.bits_stored)
        values = np.where(values > max_value / 2, values - max_value, values)

    hu = sample.rescale_slope * values + sample.rescale_intercept
    return hu.reshape(sample.rows, sample.columns)


def apply_window(hu: np.ndarray, window_width: float, window_center: float) -> np.ndarray:
    """
    Map HU values to 0-255 display intensities.

    Values at or below `center - half` are black, values at or above
    `center + half` are white; the linear region is rounded half-up.

    Args:
        hu: HU array of any shape
        window_width: Contrast range, must be >= 1
        window_center: Midpoint of the window in HU

    Returns:
        uint8 array with the same shape as `hu`
    """
    if window_width < 1:
        raise InvalidArgumentError(f"Window width must be >= 1, got {window_width}")

    half = (window_width - 1) / 2.0 - 0.5
    lower = window_center - half
    upper = window_center + half

    # Width 1 has no linear region; keep the division finite anyway
    denom = max(window_width - 1, 1)
    linear = ((hu - (window_center - 0.5)) / denom + 0.5) * 255.0
    linear = np.clip(np.floor(linear + 0.5), 0, 255)

    out = np.where(hu <= lower, 0.0, np.where(hu >= upper, 255.0, linear))
    return out.astype(np.uint8)


def window_transform(
    sample: RawSliceSample,
    window_width: Optional[int] = None,
    window_center: Optional[int] = None
) -> Raster:
    """
    Render one slice as a grayscale raster.

    Args:
        sample: Raw slice record
        window_width: Override for the sample's default width
        window_center: Override for the sample's default center

    Returns:
        Raster of size columns x rows
    """
    if sample is None:
        raise InvalidArgumentError("Slice sample cannot be None")

    if window_width is None:
        window_width = sample.window_width
    if window_center is None:
        window_center = sample.window_center

    logging.debug(
        f"Converting slice to raster: {sample.columns}x{sample.rows}, "
        f"Window: {window_width}/{window_center}"
    )

    hu = to_hounsfield(sample)
    return Raster.from_gray(apply_window(hu, window_width, window_center))
