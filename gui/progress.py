"""
Progress Tracking Utilities

Phase-weighted progress reporting for the volume build workflow.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from itertools import accumulate
from typing import Callable, Iterator, List, Optional, Tuple


@dataclass
class ProgressPhase:
    """A named workflow step and its relative weight."""
    name: str
    weight: float


class TaskProgressTracker:
    """
    Maps per-phase progress (0.0-1.0) onto one overall progress value.

    Example:
        tracker = TaskProgressTracker(emit_fn=self.progress.emit)
        tracker.set_phases(get_volume_phases())

        with tracker.phase(1) as report:
            manager.build_volume(lo, hi, progress_callback=report)
    """

    def __init__(self, emit_fn: Callable[[float], None]):
        """
        Args:
            emit_fn: Receives overall progress values (0.0-1.0)
        """
        self._emit = emit_fn
        self._phases: List[ProgressPhase] = []
        self._milestones: List[float] = [0.0, 1.0]
        self._current_phase = -1

    def set_phases(self, phases: List[ProgressPhase]) -> None:
        """
        Define the workflow phases.

        Each phase receives a share of overall progress proportional to
        its weight.

        Args:
            phases: Phases in execution order
        """
        self._phases = list(phases)
        total = sum(p.weight for p in self._phases) or 1.0
        self._milestones = [0.0] + [
            min(m / total, 1.0) for m in accumulate(p.weight for p in self._phases)
        ]
        self._milestones[-1] = 1.0

    def get_range(self, phase_index: int) -> Tuple[float, float]:
        """
        Overall progress range covered by a phase.

        Args:
            phase_index: Index into the phase list

        Returns:
            Tuple of (start, end); (0.0, 1.0) for unknown phases
        """
        if not 0 <= phase_index < len(self._phases):
            return 0.0, 1.0
        return self._milestones[phase_index], self._milestones[phase_index + 1]

    def start_phase(self, phase_index: int) -> None:
        """
        Mark a phase as current and emit its start value.

        Args:
            phase_index: Index into the phase list
        """
        self._current_phase = phase_index
        self._emit(self.get_range(phase_index)[0])

    def end_phase(self) -> None:
        """Emit the end value of the current phase."""
        if self._current_phase >= 0:
            self._emit(self.get_range(self._current_phase)[1])

    def sub_progress(self, phase_index: Optional[int] = None) -> Callable[[float], None]:
        """
        Callback mapping 0.0-1.0 onto a phase's share of overall progress.

        Args:
            phase_index: Phase index (defaults to current phase)

        Returns:
            Callable taking phase progress; values are clamped to 0.0-1.0
        """
        if phase_index is None:
            phase_index = self._current_phase
        start, end = self.get_range(phase_index)

        def callback(p: float) -> None:
            self._emit(start + max(0.0, min(1.0, p)) * (end - start))

        return callback

    @contextmanager
    def phase(self, phase_index: int) -> Iterator[Callable[[float], None]]:
        """
        Run a block as one phase.

        Args:
            phase_index: Index into the phase list

        Yields:
            The phase's sub-progress callback
        """
        self.start_phase(phase_index)
        yield self.sub_progress(phase_index)
        self.end_phase()

    @property
    def current_phase_name(self) -> str:
        """Name of the current phase, or an empty string before the first."""
        if 0 <= self._current_phase < len(self._phases):
            return self._phases[self._current_phase].name
        return ""


def get_volume_phases() -> List[ProgressPhase]:
    """Preload, point cloud reconstruction and MPR previews."""
    return [
        ProgressPhase("Preload", 1),
        ProgressPhase("Reconstruction", 8),
        ProgressPhase("Previews", 1),
    ]
