"""
Pytest configuration for the DICOM viewer tests
"""
import sys
import os

import numpy as np
import pytest

# Add the project root to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from core.base import RawSliceSample  # noqa: E402

ROWS = 16
COLUMNS = 16
NUM_SLICES = 5

# Stored value 1200 with intercept -1024 is 176 HU, rendered as 215 under 400/40
FOREGROUND_RAW = 1200
FOREGROUND_GRAY = 215


def make_sample(values, location=0.0, **kwargs) -> RawSliceSample:
    """Build a RawSliceSample from a (rows, columns) array of stored values."""
    values = np.asarray(values, dtype="<u2")
    params = dict(
        rows=values.shape[0],
        columns=values.shape[1],
        pixel_data=values.tobytes(),
        rescale_intercept=-1024.0,
        slice_location=location,
    )
    params.update(kwargs)
    return RawSliceSample(**params)


def foreground_mask(z: int, rows: int = ROWS, columns: int = COLUMNS) -> np.ndarray:
    """Square that shifts one column per slice."""
    mask = np.zeros((rows, columns), dtype=bool)
    mask[4:12, 3 + z:9 + z] = True
    return mask


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Single QCoreApplication for signal-bearing objects."""
    from PySide6.QtCore import QCoreApplication
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def slice_stack():
    """Five 16x16 slices, 1 mm apart, each with a bright square on black."""
    stack = []
    for z in range(NUM_SLICES):
        values = np.where(foreground_mask(z), FOREGROUND_RAW, 0)
        stack.append(make_sample(values, location=float(z), window_width=400, window_center=40))
    return stack
