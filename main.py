"""
DICOM Slice Viewer

Headless entry point: loads a series, tunes the window, reconstructs
the point cloud and exports the three canonical views.

Usage:
    python main.py <dicom_dir> [output_dir]
"""

import sys
import time
import logging
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from core.data_manager import DataManager
from exporters.image import SliceExporter
from loaders import DicomSeriesLoader
from processing.slice_extractor import MPROrientation
from visualization.slice_viewer import SliceViewer


def setup_logging():
    """Configure logging to stdout."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def run(dicom_dir: str, output_dir: str) -> int:
    """
    Process one series directory.

    Returns:
        Number of exported views
    """
    loader = DicomSeriesLoader(dicom_dir)
    slices = loader.load()
    logging.info(str(loader.get_series_info()))

    manager = DataManager(slices, loader.global_view)
    viewer = SliceViewer(manager)

    top, center, bottom = viewer.suggest_slice_range()
    width, window_center = viewer.optimize_window()
    logging.info(f"Slice range {top}-{bottom} (center {center}), window {width}/{window_center}")

    start_time = time.perf_counter()
    point_cloud = manager.build_volume(
        top, bottom, progress_callback=lambda p: logging.debug(f"Build progress: {p:.0%}")
    )
    logging.info(
        f"Reconstructed {point_cloud.vertex_count} points in {time.perf_counter() - start_time:.2f}s"
    )

    exporter = SliceExporter()
    exported = 0
    for orientation in MPROrientation:
        raster = manager.create_mpr(orientation)
        path = exporter.export_to_patient_directory(raster, output_dir, orientation.name.lower())
        if path is not None:
            exported += 1
    return exported


def main():
    """Application entry point."""
    setup_logging()

    if len(sys.argv) < 2:
        print(__doc__.strip().splitlines()[-1].strip())
        sys.exit(2)

    dicom_dir = sys.argv[1]
    output_dir = sys.argv[2] if len(sys.argv) > 2 else str(Path(dicom_dir))

    app = QCoreApplication(sys.argv)
    app.setApplicationName("DICOM Slice Viewer")
    app.setApplicationVersion("1.0")

    try:
        exported = run(dicom_dir, output_dir)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Processing failed: {e}")
        sys.exit(1)

    logging.info(f"Exported {exported} views to {output_dir}")
    sys.exit(0)


if __name__ == "__main__":
    main()
