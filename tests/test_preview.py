"""Tests for the debounced slice preview scheduler."""

import threading

import numpy as np
import pytest

from core.base import Raster
from core.cancellation import CancellationToken
from visualization import preview
from visualization.preview import SlicePreviewScheduler


class RecordingExtract:
    """Fake extractor that records the plane parameters it was asked for."""

    def __init__(self):
        self.calls = []
        self.lock = threading.Lock()

    def __call__(self, x, z, a, b, cancel_token=None):
        with self.lock:
            self.calls.append((x, z, a, b))
        cancel_token.raise_if_cancelled()
        return Raster.from_gray(np.full((2, 2), 7, dtype=np.uint8))


def test_single_request_produces_a_raster():
    results = []
    extract = RecordingExtract()
    scheduler = SlicePreviewScheduler(extract, on_result=results.append, debounce_ms=0)
    try:
        raster = scheduler.request(0.1, -0.2, 0.3, 0.4).result(timeout=5)
    finally:
        scheduler.shutdown()

    assert raster is not None
    assert len(results) == 1 and results[0] is raster
    assert extract.calls == [(0.1, -0.2, 0.3, 0.4)]


def test_burst_of_requests_extracts_only_the_newest():
    results = []
    extract = RecordingExtract()
    scheduler = SlicePreviewScheduler(extract, on_result=results.append, debounce_ms=300)
    try:
        futures = [scheduler.request(x, 0.0) for x in (0.1, 0.2, 0.3)]
        outcomes = [f.result(timeout=5) for f in futures]
    finally:
        scheduler.shutdown()

    assert outcomes[0] is None and outcomes[1] is None
    assert outcomes[2] is not None
    assert extract.calls == [(0.3, 0.0, 0.0, 0.0)]
    assert len(results) == 1


def test_superseded_extraction_is_discarded():
    started = threading.Event()
    release = threading.Event()
    results = []

    def slow_extract(x, z, a, b, cancel_token=None):
        if x == 0.1:
            started.set()
            release.wait(5)
        cancel_token.raise_if_cancelled()
        return Raster.from_gray(np.full((2, 2), int(x * 100), dtype=np.uint8))

    scheduler = SlicePreviewScheduler(slow_extract, on_result=results.append, debounce_ms=0)
    try:
        first = scheduler.request(0.1, 0.0)
        assert started.wait(5)
        second = scheduler.request(0.2, 0.0)
        release.set()

        assert first.result(timeout=5) is None
        newest = second.result(timeout=5)
    finally:
        scheduler.shutdown()

    assert newest.pixels[0, 0, 0] == 20
    assert len(results) == 1 and results[0] is newest


def test_cancel_drops_pending_request():
    extract = RecordingExtract()
    scheduler = SlicePreviewScheduler(extract, debounce_ms=500)
    try:
        future = scheduler.request(0.0, 0.0)
        scheduler.cancel()
        assert future.result(timeout=5) is None
    finally:
        scheduler.shutdown()
    assert extract.calls == []


def test_extraction_errors_propagate():
    def broken(x, z, a, b, cancel_token=None):
        raise RuntimeError("boom")

    scheduler = SlicePreviewScheduler(broken, debounce_ms=0)
    try:
        future = scheduler.request(0.0, 0.0)
        with pytest.raises(RuntimeError):
            future.result(timeout=5)
    finally:
        scheduler.shutdown()


class LaggingToken(CancellationToken):
    """Token whose cancelled flag reads as clear, like a read that lost a race."""

    @property
    def cancelled(self) -> bool:
        return False


def test_request_after_extraction_suppresses_the_older_result(monkeypatch):
    monkeypatch.setattr(preview, "CancellationToken", LaggingToken)
    results = []
    newer = []

    def extract(x, z, a, b, cancel_token=None):
        if x == 0.1:
            # A newer request lands after extraction, before delivery
            newer.append(scheduler.request(0.2, 0.0))
        return Raster.from_gray(np.full((2, 2), int(x * 100), dtype=np.uint8))

    scheduler = SlicePreviewScheduler(extract, on_result=results.append, debounce_ms=0)
    try:
        first = scheduler.request(0.1, 0.0)
        assert first.result(timeout=5) is None
        latest = newer[0].result(timeout=5)
    finally:
        scheduler.shutdown()

    assert latest.pixels[0, 0, 0] == 20
    assert len(results) == 1 and results[0] is latest
