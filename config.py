"""
DICOM Viewer Configuration

Contains constants and default settings for the display and volume engine.
"""

from dataclasses import dataclass, field
from typing import Tuple


# Window presets for CT viewing (HU)
# Reference: https://radiopaedia.org/articles/windowing-ct
WINDOW_PRESETS: dict[str, dict[str, int]] = {
    "Soft Tissue": {"center": 40, "width": 400},
    "Bone": {"center": 500, "width": 2000},
    "Lung": {"center": -600, "width": 1500},
    "Brain": {"center": 40, "width": 80},
    "Liver": {"center": 60, "width": 160},
}


@dataclass
class DisplayConfig:
    """Configuration for 2D slice rendering."""
    cache_capacity: int = 30  # Rendered rasters kept per series
    fallback_window: Tuple[int, int] = (400, 40)  # (width, center)
    width_range: Tuple[int, int] = (50, 4000)
    center_range: Tuple[int, int] = (0, 800)
    low_percentile: float = 0.05
    high_percentile: float = 0.95
    # Wide window used to render the slice analysed by the optimizer
    optimize_window: Tuple[int, int] = (4000, 400)


@dataclass
class VolumeConfig:
    """Configuration for point cloud assembly and oblique re-slicing."""
    intensity_threshold: float = 0.15  # Pixels at or below are background
    plane_thickness: float = 0.005  # Normalized units
    extraction_batch_size: int = 65536
    preview_debounce_ms: int = 150
    # Fixed-fraction heuristics for the initial selection
    region_fraction: Tuple[float, float] = (0.4, 0.3)  # (width, height)
    range_fraction: float = 0.4


@dataclass
class ExportConfig:
    """Configuration for raster export."""
    default_format: str = "png"
    layers_dir: str = "layers"
    layer_prefix: str = "layer#"
    supported_formats: dict = field(default_factory=lambda: {
        "png": "PNG",
        "jpg": "JPG",
        "jpeg": "JPG",
        "bmp": "BMP",
        "tiff": "TIFF",
    })


# Default configurations
DEFAULT_DISPLAY = DisplayConfig()
DEFAULT_VOLUME = VolumeConfig()
DEFAULT_EXPORT = ExportConfig()
