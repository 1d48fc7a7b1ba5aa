"""GUI package: background workers and progress tracking."""

from .progress import TaskProgressTracker, ProgressPhase, get_volume_phases
from .workers import LoaderWorker, VolumeWorker, ExportWorker

__all__ = [
    "TaskProgressTracker",
    "ProgressPhase",
    "get_volume_phases",
    "LoaderWorker",
    "VolumeWorker",
    "ExportWorker",
]
