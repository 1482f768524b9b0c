"""
Scanning pipeline.

Segmentation -> extraction -> classification -> aggregated result, with the
sensitivity level parameterizing every stage. Two execution modes wrap the
same pipeline:

- live: repeated scans at a bounded rate; a tick that arrives while a scan
  is running (or too early) is skipped, never queued
- capture: one higher-resolution scan per request; a newer request makes
  older results stale, and stale results are discarded when they arrive
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .config import ScanConfig
from .edge_analysis import classify_pieces
from .errors import ScanError
from .extraction import ExtractionDiagnostics, filter_and_extract_pieces
from .models import ClassifiedPiece, DetectedPiece, SegmentationDebug
from .overlap import OverlapEstimate, estimate_overlap, overlap_looks_heavy
from .quality import (FrameQuality, GuidanceItem, MotionTracker, guidance_from_frame_quality,
                      overall_status)
from .scan_model import ScanCounts, compute_counts
from .segmentation import segment_pieces
from .sensitivity import Sensitivity, to_params

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ScanResult:
    sensitivity: Sensitivity
    pieces: List[ClassifiedPiece]
    counts: ScanCounts
    quality: Optional[FrameQuality]
    guidance: List[GuidanceItem]
    status: str
    overlap: OverlapEstimate
    overlap_heavy: bool
    segmentation: SegmentationDebug
    extraction: ExtractionDiagnostics
    classify_summary: str = ''
    elapsed_s: float = 0.0

    def detected_pieces(self) -> List[DetectedPiece]:
        """Per-piece records with SOURCE-space geometry, for overlays."""
        return [p.to_detected() for p in self.pieces]

    def as_dict(self) -> Dict[str, Any]:
        quality = None
        if self.quality is not None:
            q = self.quality
            quality = {
                'width': q.width, 'height': q.height, 'mean': q.mean, 'std': q.std,
                'lapVar': q.lap_var, 'motion': q.motion, 'fgRatio': q.fg_ratio,
            }
        return {
            'sensitivity': self.sensitivity.value,
            'status': self.status,
            'counts': self.counts.as_dict(),
            'pieces': [p.as_dict() for p in self.detected_pieces()],
            'quality': quality,
            'guidance': [{'key': g.key, 'level': g.level, 'message': g.message}
                         for g in self.guidance],
            'overlap': {
                'overlappingPairs': self.overlap.overlapping_pairs,
                'maxOverlapFraction': self.overlap.max_overlap_fraction,
                'comparisons': self.overlap.comparisons,
                'heavy': self.overlap_heavy,
            },
            'debug': {
                'segmentation': self.segmentation.summary(),
                'extraction': self.extraction.summary(),
                'classification': self.classify_summary,
            },
            'elapsedS': self.elapsed_s,
        }


@dataclass(frozen=True)
class ScanFailure:
    """Machine-readable 'analysis failed' signal, distinct from an empty scan."""
    sequence: int
    error_type: str
    message: str


def run_scan(frame: np.ndarray,
             sensitivity: Union[Sensitivity, str] = Sensitivity.MEDIUM,
             config: Optional[ScanConfig] = None,
             motion: Optional[MotionTracker] = None) -> ScanResult:
    """
    Run the full pipeline on one RGBA frame.

    Args:
        frame: RGBA source frame (H, W, 4) uint8
        sensitivity: User sensitivity level
        config: Pipeline configuration (defaults to ScanConfig())
        motion: Session motion tracker, if motion should be measured

    Returns:
        ScanResult; geometry in the result is in SOURCE coordinates

    Raises:
        PixelAccessError: If pixel data is unavailable for extraction
    """
    config = config or ScanConfig()
    level = Sensitivity(sensitivity)
    params = to_params(level)
    start = time.perf_counter()

    segmentation = segment_pieces(
        frame,
        min_area_ratio=params.min_area_ratio,
        blur_kernel_size=params.blur_kernel_size,
        morph_kernel_size=params.morph_kernel_size,
        target_width=config.target_width,
        motion=motion,
    )

    extraction = filter_and_extract_pieces(
        segmentation,
        border_margin_px=config.border_margin_px,
        padding_px=config.padding_px,
        min_solidity=params.min_solidity,
        max_aspect_ratio=params.max_aspect_ratio,
        max_pieces=config.max_pieces,
    )

    classified = classify_pieces(
        extraction.pieces,
        segmentation.processed_frame,
        canny_low=params.canny_low,
        canny_high=params.canny_high,
        angle_tolerance_deg=config.angle_tolerance_deg,
        min_line_length_ratio=config.min_line_length_ratio,
        hough_threshold=config.hough_threshold,
        uncertain_margin_ratio=config.uncertain_margin_ratio,
        non_edge_confidence=config.non_edge_confidence,
    )

    boxes = [c.bbox for c in segmentation.pieces]
    overlap = estimate_overlap(boxes)
    heavy = overlap_looks_heavy(boxes, estimate=overlap)

    guidance = guidance_from_frame_quality(
        segmentation.quality,
        pieces_found=len(extraction.pieces),
        max_pieces=config.max_pieces,
        overlap_heavy=heavy,
    )

    elapsed = time.perf_counter() - start
    result = ScanResult(
        sensitivity=level,
        pieces=classified.pieces,
        counts=compute_counts(p.piece_class for p in classified.pieces),
        quality=segmentation.quality,
        guidance=guidance,
        status=overall_status(guidance),
        overlap=overlap,
        overlap_heavy=heavy,
        segmentation=segmentation.debug,
        extraction=extraction.diagnostics,
        classify_summary=classified.summary,
        elapsed_s=elapsed,
    )
    logger.debug("Scan (%s): %d piece(s) in %.0f ms", level.value, result.counts.total,
                 elapsed * 1000)
    return result


class ScanSession:
    """
    One camera session: configuration plus the motion slot.

    Each independent session needs its own instance so motion estimates
    never compare frames from different cameras.
    """

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()
        self.motion = MotionTracker(self.config.motion_target_width)

    def scan(self, frame: np.ndarray,
             sensitivity: Union[Sensitivity, str] = Sensitivity.MEDIUM,
             config: Optional[ScanConfig] = None) -> ScanResult:
        return run_scan(frame, sensitivity, config or self.config, self.motion)

    def close(self) -> None:
        self.motion.reset()


class LiveScanner:
    """
    Rate-limited scanning for a live preview.

    At most one scan runs at a time; overlapping or too-early ticks are
    dropped and return None.
    """

    def __init__(self, session: ScanSession, min_interval_s: Optional[float] = None,
                 clock=time.monotonic):
        self.session = session
        self.min_interval_s = (session.config.live_interval_s
                               if min_interval_s is None else min_interval_s)
        self._clock = clock
        self._in_flight = threading.Lock()
        self._last_start: Optional[float] = None
        self.tick_count = 0
        self.skipped = 0
        self.last_result: Optional[ScanResult] = None
        self.last_error: Optional[ScanFailure] = None

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def tick(self, frame: np.ndarray,
             sensitivity: Union[Sensitivity, str] = Sensitivity.MEDIUM) -> Optional[ScanResult]:
        """
        Run one live scan unless one is running or the interval has not elapsed.

        Returns:
            The ScanResult, or None when the tick was skipped or failed
            (failures are recorded in last_error)
        """
        now = self._clock()
        if self._last_start is not None and now - self._last_start < self.min_interval_s:
            self.skipped += 1
            return None

        if not self._in_flight.acquire(blocking=False):
            self.skipped += 1
            return None

        try:
            self._last_start = now
            self.tick_count += 1
            result = self.session.scan(frame, sensitivity)
        except ScanError as exc:
            logger.error("Live scan #%d failed: %s", self.tick_count, exc)
            self.last_error = ScanFailure(self.tick_count, type(exc).__name__, str(exc))
            return None
        finally:
            self._in_flight.release()

        self.last_result = result
        self.last_error = None
        return result


@dataclass
class CaptureOutcome:
    sequence: int
    result: Optional[ScanResult] = None
    failure: Optional[ScanFailure] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class CaptureState:
    latest_sequence: int = 0
    applied: Optional[CaptureOutcome] = None
    discarded: List[int] = field(default_factory=list)


class CaptureScanner:
    """
    Higher-quality single scans with newest-request-wins semantics.

    Every request takes a sequence number from a monotonically increasing
    counter; an outcome is applied only if its number is still the latest.
    """

    def __init__(self, session: ScanSession):
        self.session = session
        self.state = CaptureState()
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            self.state.latest_sequence += 1
            return self.state.latest_sequence

    def is_current(self, sequence: int) -> bool:
        with self._lock:
            return sequence == self.state.latest_sequence

    def run(self, sequence: int, frame: np.ndarray,
            sensitivity: Union[Sensitivity, str] = Sensitivity.MEDIUM) -> CaptureOutcome:
        """Scan a frozen frame at capture resolution; never raises ScanError."""
        config = self.session.config.for_capture()
        try:
            result = run_scan(frame, sensitivity, config)
        except ScanError as exc:
            logger.error("Capture #%d failed: %s", sequence, exc)
            return CaptureOutcome(sequence, failure=ScanFailure(sequence, type(exc).__name__, str(exc)))
        return CaptureOutcome(sequence, result=result)

    def apply(self, outcome: CaptureOutcome) -> bool:
        """
        Keep the outcome if it belongs to the newest request.

        Returns:
            True if applied, False if it was stale and discarded
        """
        with self._lock:
            if outcome.sequence != self.state.latest_sequence:
                self.state.discarded.append(outcome.sequence)
                logger.debug("Discarding stale capture #%d (latest #%d)",
                             outcome.sequence, self.state.latest_sequence)
                return False
            self.state.applied = outcome
            return True

    @property
    def current(self) -> Optional[CaptureOutcome]:
        return self.state.applied

    def capture(self, frame: np.ndarray,
                sensitivity: Union[Sensitivity, str] = Sensitivity.MEDIUM) -> CaptureOutcome:
        sequence = self.begin()
        outcome = self.run(sequence, frame, sensitivity)
        self.apply(outcome)
        return outcome
