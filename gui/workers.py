"""
Background Workers

QThread workers for long-running operations (loading, volume build, export).
"""

import logging
import time
from typing import Optional, Sequence

from PySide6.QtCore import QThread, Signal

from core.base import Raster, Rect
from core.data_manager import DataManager
from exporters.image import SliceExporter
from loaders import DicomSeriesLoader
from processing.slice_extractor import MPROrientation
from .progress import TaskProgressTracker, get_volume_phases


class LoaderWorker(QThread):
    """Background worker for loading a DICOM series directory."""

    progress = Signal(float)
    finished = Signal(object)  # Emits DicomSeriesLoader
    error = Signal(str)

    def __init__(self, directory: str):
        super().__init__()
        self.directory = directory

    def run(self):
        try:
            self.progress.emit(0.0)

            loader = DicomSeriesLoader(self.directory)
            loader.load()

            self.progress.emit(1.0)
            self.finished.emit(loader)

        except Exception as e:
            import traceback
            logging.error(f"Loading error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))


class VolumeWorker(QThread):
    """Background worker for point cloud reconstruction."""

    progress = Signal(float)
    finished = Signal(object, object)  # Emits (PointCloud, {orientation name: Raster})
    error = Signal(str)

    def __init__(
        self,
        manager: DataManager,
        min_slice: int,
        max_slice: int,
        bounding_rect: Optional[Rect] = None,
        create_previews: bool = True
    ):
        super().__init__()
        self.manager = manager
        self.min_slice = min_slice
        self.max_slice = max_slice
        self.bounding_rect = bounding_rect
        self.create_previews = create_previews

    def run(self):
        try:
            start_time = time.perf_counter()
            tracker = TaskProgressTracker(emit_fn=self.progress.emit)
            tracker.set_phases(get_volume_phases())

            # Phase 0: warm the raster cache with the head of the range
            with tracker.phase(0):
                count = min(self.max_slice - self.min_slice + 1, self.manager.cache.capacity)
                self.manager.preload(self.min_slice, count)

            # Phase 1: reconstruction
            with tracker.phase(1) as report:
                point_cloud = self.manager.build_volume(
                    self.min_slice,
                    self.max_slice,
                    self.bounding_rect,
                    progress_callback=report
                )

            # Phase 2: canonical views through the volume center
            previews = {}
            with tracker.phase(2) as report:
                if self.create_previews and point_cloud.vertex_count:
                    orientations = list(MPROrientation)
                    for i, orientation in enumerate(orientations):
                        previews[orientation.name] = self.manager.create_mpr(orientation)
                        report((i + 1) / len(orientations))

            logging.info(
                f"Volume build finished in {time.perf_counter() - start_time:.2f}s "
                f"({point_cloud.vertex_count} vertices)"
            )
            self.finished.emit(point_cloud, previews)

        except Exception as e:
            import traceback
            logging.error(f"Volume error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))


class ExportWorker(QThread):
    """Background worker for slice image export."""

    progress = Signal(float)
    finished = Signal(int)  # Emits number of files written
    error = Signal(str)

    def __init__(
        self,
        rasters: Sequence[Optional[Raster]],
        output_dir: str,
        base_name: str = "slice",
        fmt: Optional[str] = None
    ):
        super().__init__()
        self.rasters = list(rasters)
        self.output_dir = output_dir
        self.base_name = base_name
        self.fmt = fmt

    def run(self):
        try:
            exporter = SliceExporter()
            count = exporter.export_slices(
                self.rasters,
                self.output_dir,
                self.base_name,
                self.fmt,
                progress_callback=self.progress.emit
            )
            self.finished.emit(count)

        except Exception as e:
            import traceback
            logging.error(f"Export error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))
