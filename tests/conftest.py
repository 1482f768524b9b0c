"""Shared fixtures: synthetic RGBA frames of bright pieces on a dark background."""
import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from piece_scanner.models import ExtractedPiece, ProcessedBox, ProcessedContour, SourceBox, SourceContour

BACKGROUND = 30
FOREGROUND = 220


class FrameBuilder:
    """Draws filled shapes on a grayscale canvas and hands it out as RGBA."""

    def __init__(self, width=640, height=480, background=BACKGROUND, foreground=FOREGROUND):
        self.canvas = np.full((height, width), background, dtype=np.uint8)
        self.foreground = foreground

    def square(self, x, y, size):
        return self.rect(x, y, size, size)

    def rect(self, x, y, w, h):
        cv2.rectangle(self.canvas, (x, y), (x + w - 1, y + h - 1), self.foreground, -1)
        return self

    def rotated_square(self, cx, cy, size, angle):
        points = cv2.boxPoints(((cx, cy), (size, size), angle))
        cv2.fillPoly(self.canvas, [np.round(points).astype(np.int32)], self.foreground)
        return self

    def disc(self, cx, cy, radius):
        cv2.circle(self.canvas, (cx, cy), radius, self.foreground, -1)
        return self

    def half_disc(self, cx, cy, radius):
        """Flat side on top, round side below."""
        cv2.ellipse(self.canvas, (cx, cy), (radius, radius), 0, 0, 180, self.foreground, -1)
        return self

    def l_shape(self, x, y, size, thickness):
        self.rect(x, y, thickness, size)
        self.rect(x, y + size - thickness, size, thickness)
        return self

    def rgba(self):
        return cv2.cvtColor(self.canvas, cv2.COLOR_GRAY2RGBA)


@pytest.fixture
def frame_builder():
    """Factory for FrameBuilder instances."""
    return FrameBuilder


@pytest.fixture
def squares_frame():
    """640x480 frame with three well separated 80 px squares."""
    return (FrameBuilder()
            .square(60, 60, 80)
            .square(280, 80, 80)
            .square(460, 300, 80)
            .rgba())


@pytest.fixture
def mixed_frame():
    """1280x960 frame with a square, a half-disc and a disc (downscaled 2x by default)."""
    return (FrameBuilder(width=1280, height=960)
            .square(160, 160, 200)
            .half_disc(800, 240, 150)
            .disc(640, 680, 140)
            .rgba())


@pytest.fixture
def make_extracted():
    """Build an ExtractedPiece directly from processed-space geometry."""

    def _make(piece_id=1, rect=(10, 10, 40, 40), contour=None):
        x, y, w, h = rect
        if contour is None:
            contour = [[x, y], [x + w, y], [x + w, y + h], [x, y + h]]
        points = np.asarray(contour, dtype=np.float64)
        return ExtractedPiece(
            id=piece_id,
            area_px=int(w * h),
            bbox=SourceBox(x, y, w, h),
            contour=SourceContour(points),
            bbox_processed=ProcessedBox(x, y, w, h),
            area_px_processed=int(w * h),
            solidity=1.0,
            aspect_ratio=max(w / h, h / w),
            cutout=np.zeros((max(1, h), max(1, w), 4), dtype=np.uint8),
            contour_processed=ProcessedContour(points),
        )

    return _make


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def fake_clock():
    return FakeClock()
