import json

import numpy as np
import pytest

from piece_scanner import overlap, pipeline
from piece_scanner.config import ScanConfig
from piece_scanner.errors import PixelAccessError
from piece_scanner.pipeline import CaptureScanner, LiveScanner, ScanSession, run_scan
from piece_scanner.scan_model import PieceClass


class TestRunScan:
    """Full pipeline on one frame."""

    def test_mixed_shapes(self, mixed_frame):
        result = run_scan(mixed_frame, "medium")
        counts = result.counts
        assert counts.total == 3
        assert counts.total == counts.corners + counts.edges + counts.non_edge + counts.unknown
        assert counts.corners == 1
        assert counts.edges == 1
        classes = {p.piece_class for p in result.pieces}
        assert PieceClass.CORNER in classes and PieceClass.EDGE in classes

    def test_overlay_geometry_is_source_space(self, mixed_frame):
        result = run_scan(mixed_frame)
        assert result.segmentation.scale_to_source == pytest.approx(2.0)
        corner = next(p for p in result.detected_pieces() if p.piece_class == PieceClass.CORNER)
        assert corner.bbox_source.x == pytest.approx(160, abs=6)
        assert corner.bbox_source.width == pytest.approx(200, abs=8)

    def test_guidance_and_status(self, squares_frame):
        result = run_scan(squares_frame)
        assert result.guidance
        assert result.status in ('good', 'warn', 'bad')
        assert not result.overlap_heavy

    def test_empty_frame_is_not_a_failure(self):
        result = run_scan(None)
        assert result.pieces == []
        assert result.counts.total == 0
        assert result.status == 'warn'
        assert [g.key for g in result.guidance] == ['quality-none', 'pieces-none']

    def test_max_pieces_guidance(self, squares_frame):
        result = run_scan(squares_frame, config=ScanConfig(max_pieces=2))
        assert result.counts.total == 2
        assert 'pieces-max' in [g.key for g in result.guidance]

    def test_overlap_estimated_once(self, squares_frame, monkeypatch):
        """The heaviness check reuses the overlap estimate of the scan."""
        calls = []
        real = pipeline.estimate_overlap

        def counting(boxes, *args, **kwargs):
            calls.append(len(boxes))
            return real(boxes, *args, **kwargs)

        monkeypatch.setattr(pipeline, 'estimate_overlap', counting)
        monkeypatch.setattr(overlap, 'estimate_overlap', counting)
        result = run_scan(squares_frame)
        assert calls == [3]
        assert result.overlap.comparisons == 3

    def test_sensitivity_is_recorded(self, squares_frame):
        assert run_scan(squares_frame, "low").sensitivity.value == "low"

    def test_invalid_sensitivity(self, squares_frame):
        with pytest.raises(ValueError):
            run_scan(squares_frame, "max")

    def test_as_dict_is_json_serializable(self, squares_frame):
        data = json.loads(json.dumps(run_scan(squares_frame).as_dict()))
        assert data['counts']['total'] == 3
        assert len(data['pieces']) == 3
        assert data['pieces'][0]['class'] in ('corner', 'edge', 'nonEdge', 'unknown')


class TestScanSession:
    def test_motion_measured_between_scans(self, squares_frame):
        session = ScanSession()
        assert session.scan(squares_frame).quality.motion is None
        assert session.scan(squares_frame).quality.motion == pytest.approx(0.0)

    def test_sessions_do_not_share_motion(self, squares_frame):
        ScanSession().scan(squares_frame)
        assert ScanSession().scan(squares_frame).quality.motion is None

    def test_close_resets_motion(self, squares_frame):
        session = ScanSession()
        session.scan(squares_frame)
        session.close()
        assert not session.motion.has_previous


class TestLiveScanner:
    """Rate limiting and in-flight guard."""

    def test_interval_from_fps(self):
        assert ScanConfig(live_fps=2.0).live_interval_s == pytest.approx(0.5)
        assert ScanConfig(live_fps=30.0).live_interval_s == pytest.approx(0.2)
        assert ScanConfig(live_fps=0.1).live_interval_s == pytest.approx(2.0)

    def test_too_early_ticks_are_skipped(self, squares_frame, fake_clock):
        live = LiveScanner(ScanSession(), min_interval_s=0.5, clock=fake_clock)
        assert live.tick(squares_frame) is not None
        fake_clock.now = 0.2
        assert live.tick(squares_frame) is None
        fake_clock.now = 0.6
        assert live.tick(squares_frame) is not None
        assert live.tick_count == 2
        assert live.skipped == 1

    def test_busy_ticks_are_skipped(self, squares_frame, fake_clock):
        """A tick while a scan is running is dropped, not queued."""
        live = LiveScanner(ScanSession(), min_interval_s=0.0, clock=fake_clock)
        live._in_flight.acquire()
        try:
            assert live.busy
            assert live.tick(squares_frame) is None
        finally:
            live._in_flight.release()
        assert live.skipped == 1
        assert live.tick_count == 0
        assert live.tick(squares_frame) is not None

    def test_failure_is_recorded(self, squares_frame, fake_clock, monkeypatch):
        session = ScanSession()

        def broken_scan(frame, sensitivity):
            raise PixelAccessError("no pixels")

        monkeypatch.setattr(session, 'scan', broken_scan)
        live = LiveScanner(session, min_interval_s=0.0, clock=fake_clock)
        assert live.tick(squares_frame) is None
        assert live.last_error.error_type == 'PixelAccessError'
        assert live.last_error.sequence == 1
        assert not live.busy

    def test_last_result(self, squares_frame, fake_clock):
        live = LiveScanner(ScanSession(), min_interval_s=0.0, clock=fake_clock)
        result = live.tick(squares_frame)
        assert live.last_result is result
        assert live.last_error is None


class TestCaptureScanner:
    """Newest request wins."""

    def test_sequence_numbers_increase(self):
        scanner = CaptureScanner(ScanSession())
        assert [scanner.begin() for _ in range(3)] == [1, 2, 3]

    def test_stale_results_are_discarded(self, squares_frame):
        scanner = CaptureScanner(ScanSession())
        first = scanner.begin()
        second = scanner.begin()

        late = scanner.run(first, squares_frame)
        assert not scanner.apply(late)
        assert scanner.current is None
        assert scanner.state.discarded == [first]

        fresh = scanner.run(second, squares_frame)
        assert scanner.apply(fresh)
        assert scanner.current is fresh
        assert not scanner.is_current(first)

    def test_capture_uses_capture_resolution(self, frame_builder):
        frame = frame_builder(width=1280, height=960).square(400, 300, 160).rgba()
        config = ScanConfig(target_width=320, capture_target_width=1280)
        outcome = CaptureScanner(ScanSession(config)).capture(frame)
        assert outcome.ok
        assert outcome.result.segmentation.processed_width == 1280

    def test_failure_outcome(self, squares_frame, monkeypatch):
        def broken_scan(*args, **kwargs):
            raise PixelAccessError("no pixels")

        monkeypatch.setattr(pipeline, 'run_scan', broken_scan)
        scanner = CaptureScanner(ScanSession())
        outcome = scanner.capture(squares_frame)
        assert not outcome.ok
        assert outcome.failure.error_type == 'PixelAccessError'
        assert scanner.current is outcome
