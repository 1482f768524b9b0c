"""
Frame quality metrics and user guidance.

Metrics come from the grayscale frame and binary mask the segmenter already
produced. Guidance maps them to graded messages with fixed thresholds.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .utils import clamp01


GUIDANCE_LEVELS = ('good', 'info', 'warn', 'bad')

_LEVEL_RANK = {'info': 0, 'good': 1, 'warn': 2, 'bad': 3}


@dataclass(frozen=True)
class FrameQuality:
    """Metrics for one processed frame (after any downscaling)."""
    width: int
    height: int
    mean: float  # luma mean 0..255
    std: float  # luma standard deviation
    lap_var: Optional[float] = None  # variance of Laplacian, higher is sharper
    motion: Optional[float] = None  # mean abs diff vs previous frame, 0..255
    fg_ratio: Optional[float] = None  # foreground share of the binary mask, 0..1

    @property
    def foreground_ratio(self) -> Optional[float]:
        return self.fg_ratio


@dataclass(frozen=True)
class GuidanceItem:
    key: str
    level: str
    message: str


class MotionTracker:
    """
    Single-slot cache of the previous small grayscale frame.

    One tracker belongs to one scanning session; sharing it between
    independent sessions mixes their frames.
    """

    def __init__(self, target_width: int = 160):
        self.target_width = target_width
        self._previous: Optional[np.ndarray] = None

    @property
    def has_previous(self) -> bool:
        return self._previous is not None

    def measure(self, gray: np.ndarray) -> Tuple[Optional[float], np.ndarray]:
        """
        Compare a frame with the stored one without updating the slot.

        Returns:
            motion: Mean absolute difference, or None with no comparable frame
            small: The downsized frame to commit once the pass succeeds
        """
        height, width = gray.shape[:2]
        scale = self.target_width / width if width > self.target_width else 1.0
        w = max(1, int(round(width * scale)))
        h = max(1, int(round(height * scale)))
        small = cv2.resize(gray, (w, h), interpolation=cv2.INTER_AREA)

        motion = None
        if self._previous is not None and self._previous.shape == small.shape:
            motion = float(cv2.absdiff(small, self._previous).mean())

        return motion, small

    def commit(self, small: np.ndarray) -> None:
        self._previous = small

    def reset(self) -> None:
        self._previous = None


def compute_frame_quality(gray: np.ndarray, binary: Optional[np.ndarray] = None,
                          motion: Optional[float] = None) -> FrameQuality:
    """
    Compute quality metrics for a processed grayscale frame.

    Args:
        gray: Grayscale processed frame
        binary: Foreground mask from segmentation (optional)
        motion: Motion score measured against the previous frame (optional)

    Returns:
        FrameQuality for the frame
    """
    height, width = gray.shape[:2]
    mean, std = cv2.meanStdDev(gray)

    lap = cv2.Laplacian(gray, cv2.CV_64F)
    lap_var = float(lap.var())

    fg_ratio = None
    if binary is not None and binary.size > 0:
        fg_ratio = clamp01(cv2.countNonZero(binary) / float(binary.size))

    return FrameQuality(
        width=width,
        height=height,
        mean=float(mean[0][0]),
        std=float(std[0][0]),
        lap_var=lap_var,
        motion=motion,
        fg_ratio=fg_ratio,
    )


def quality_to_guidance(q: Optional[FrameQuality]) -> List[Tuple[str, str]]:
    """
    Map metrics to (level, message) pairs.

    Args:
        q: Frame quality, or None when no frame has been processed

    Returns:
        Ordered guidance pairs; never empty
    """
    if q is None:
        return [('info', 'No quality metrics yet. Capture a frame or enable live processing.')]

    out = []

    # Lighting
    if q.mean < 60:
        out.append(('bad', 'Too dark. Add more light or increase exposure.'))
    elif q.mean < 90:
        out.append(('warn', 'A bit dark. More light will improve edges.'))
    elif q.mean > 210:
        out.append(('bad', 'Too bright / overexposed. Reduce glare and exposure.'))
    elif q.mean > 190:
        out.append(('warn', 'A bit bright. Reduce reflections for cleaner segmentation.'))

    # Contrast
    if q.std < 18:
        out.append(('bad', 'Low contrast. Use a plain, contrasting background '
                           '(e.g., dark cloth for light pieces).'))
    elif q.std < 28:
        out.append(('warn', 'Moderate contrast. A more contrasting background may help.'))

    # Sharpness
    if q.lap_var is not None:
        if q.lap_var < 35:
            out.append(('bad', 'Very blurry. Stabilize the camera and ensure focus.'))
        elif q.lap_var < 80:
            out.append(('warn', 'Some blur detected. Try to hold still or increase light.'))

    # Motion (both messages apply to heavy motion)
    if q.motion is not None:
        if q.motion > 18:
            out.append(('warn', 'Motion detected. Lower fps or keep the camera steady.'))
        if q.motion > 35:
            out.append(('bad', 'Heavy motion. Live processing may fail, pause movement.'))

    # Foreground coverage
    if q.fg_ratio is not None:
        if q.fg_ratio < 0.01:
            out.append(('bad', 'Almost no foreground detected. Ensure pieces are visible '
                               'and background contrasts.'))
        elif q.fg_ratio < 0.03:
            out.append(('warn', 'Very little foreground. Move camera closer or improve contrast.'))
        elif q.fg_ratio > 0.75:
            out.append(('bad', 'Too much foreground detected. Remove clutter and ensure '
                               'background is visible.'))
        elif q.fg_ratio > 0.55:
            out.append(('warn', 'Large foreground area. Pieces may overlap or background is noisy.'))

    if not out:
        out.append(('good', 'Image quality looks good for segmentation.'))
    return out


def worst_level(levels) -> str:
    """Highest-severity level among the given ones ('info' for none)."""
    worst = 'info'
    for level in levels:
        if _LEVEL_RANK[level] > _LEVEL_RANK[worst]:
            worst = level
    return worst


def frame_quality_to_status(q: Optional[FrameQuality]) -> str:
    """Overall status: 'good', 'warn', 'bad', or 'unknown' without metrics."""
    if q is None:
        return 'unknown'
    levels = [level for level, _ in quality_to_guidance(q)]
    if 'bad' in levels:
        return 'bad'
    if 'warn' in levels:
        return 'warn'
    return 'good'


def overall_status(items: List[GuidanceItem]) -> str:
    """Worst level among guidance items; 'unknown' when only info items exist."""
    worst = worst_level(item.level for item in items)
    return 'unknown' if worst == 'info' else worst


def quality_badge(q: Optional[FrameQuality]) -> Tuple[str, str]:
    """Short (label, level) summary for a status chip."""
    if q is None:
        return 'n/a', 'info'
    worst = worst_level(level for level, _ in quality_to_guidance(q))
    labels = {'bad': 'poor', 'warn': 'ok', 'good': 'good'}
    return labels.get(worst, 'n/a'), worst


def guidance_from_frame_quality(q: Optional[FrameQuality],
                                pieces_found: Optional[int] = None,
                                max_pieces: Optional[int] = None,
                                overlap_heavy: Optional[bool] = None) -> List[GuidanceItem]:
    """
    Build the keyed guidance list shown to the user.

    Args:
        q: Frame quality (None before the first processed frame)
        pieces_found: Pieces that survived filtering
        max_pieces: Extraction cap in effect
        overlap_heavy: Result of the overlap heuristic

    Returns:
        Guidance items, de-duplicated by key, in order
    """
    out = []

    if q is None:
        out.append(GuidanceItem(
            'quality-none', 'info',
            'No frame quality metrics yet. Start the camera and run segmentation to get feedback.'
        ))
    else:
        for i, (level, message) in enumerate(quality_to_guidance(q)):
            out.append(GuidanceItem(f"quality-{i}-{level}", level, message))

    if pieces_found is not None:
        if pieces_found == 0:
            out.append(GuidanceItem(
                'pieces-none', 'warn',
                'No pieces detected. Improve lighting/contrast and ensure pieces do not overlap.'
            ))
        elif max_pieces is not None and pieces_found >= max_pieces:
            out.append(GuidanceItem(
                'pieces-max', 'warn',
                'Many pieces detected (hit the max). Spread pieces out or lower the max pieces limit.'
            ))

    if overlap_heavy:
        out.append(GuidanceItem(
            'pieces-overlap', 'warn',
            'Pieces appear to overlap. Spread them out so each piece is separated by background.'
        ))

    seen = set()
    unique = []
    for item in out:
        if item.key in seen:
            continue
        seen.add(item.key)
        unique.append(item)
    return unique
