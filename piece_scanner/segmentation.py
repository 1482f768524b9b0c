"""
Piece segmentation.
Separates pieces from a mostly uniform background and returns candidate
contours in SOURCE frame coordinates.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .models import PieceCandidate, SegmentationDebug, SourceBox, SourceContour
from .preprocessing import binarize, downscale_frame, is_valid_frame, to_gray
from .quality import FrameQuality, MotionTracker, compute_frame_quality

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SegmentationResult:
    pieces: List[PieceCandidate]
    debug: SegmentationDebug
    quality: Optional[FrameQuality] = None
    # Downscaled RGBA frame that processed-space geometry refers to
    processed_frame: Optional[np.ndarray] = None


def empty_result(source_width: int = 0, source_height: int = 0) -> SegmentationResult:
    return SegmentationResult(
        pieces=[],
        debug=SegmentationDebug(source_width=source_width, source_height=source_height),
    )


def simplify_contour(contour: np.ndarray, epsilon_ratio: float) -> np.ndarray:
    """
    Approximate a closed contour with a polygon.

    Args:
        contour: OpenCV contour (N, 1, 2)
        epsilon_ratio: Tolerance as a fraction of the perimeter

    Returns:
        Simplified contour, or the input when simplification leaves fewer than 3 points
    """
    perimeter = cv2.arcLength(contour, True)
    approx = cv2.approxPolyDP(contour, epsilon_ratio * perimeter, True)
    if approx is None or len(approx) < 3:
        return contour
    return approx


def find_candidates(binary: np.ndarray, min_area_ratio: float,
                    scale_to_source: float) -> Tuple[List[PieceCandidate], int]:
    """
    Extract area-filtered, simplified candidates from a binary mask.

    Args:
        binary: Processed-space mask (pieces white)
        min_area_ratio: Minimum contour area relative to the mask area
        scale_to_source: Processed -> source scale factor

    Returns:
        candidates: Candidates in discovery order, ids from 1
        contours_found: Number of external contours before filtering
    """
    contours, _ = cv2.findContours(binary, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)

    min_area = min_area_ratio * binary.shape[0] * binary.shape[1]
    s = scale_to_source

    candidates = []
    for contour in contours:
        area = cv2.contourArea(contour)
        if area < min_area:
            continue

        approx = simplify_contour(contour, 0.01)
        x, y, w, h = cv2.boundingRect(approx)

        candidates.append(PieceCandidate(
            id=len(candidates) + 1,
            area_px=int(round(area * s * s)),
            bbox=SourceBox(x * s, y * s, w * s, h * s),
            contour=SourceContour(approx.reshape(-1, 2) * s),
        ))

    return candidates, len(contours)


def segment_pieces(frame: np.ndarray,
                   min_area_ratio: float = 0.0015,
                   blur_kernel_size: int = 5,
                   morph_kernel_size: int = 5,
                   target_width: int = 640,
                   motion: Optional[MotionTracker] = None,
                   with_quality: bool = True) -> SegmentationResult:
    """
    Segment puzzle pieces from an RGBA frame.

    Steps: downscale, grayscale, blur, Otsu (auto-inverted so pieces are
    white), close/open, external contours, area filter, simplification,
    mapping back to source coordinates.

    Args:
        frame: RGBA source frame (H, W, 4) uint8
        min_area_ratio: Minimum piece area relative to the processed frame
        blur_kernel_size: Gaussian blur kernel size
        morph_kernel_size: Morphology kernel size
        target_width: Processing width
        motion: Session motion tracker; its slot is replaced on success
        with_quality: Compute frame quality metrics

    Returns:
        SegmentationResult; empty (never raising) for unusable frames
    """
    if not is_valid_frame(frame):
        shape = getattr(frame, 'shape', ())
        height = shape[0] if len(shape) > 0 else 0
        width = shape[1] if len(shape) > 1 else 0
        logger.debug("Unusable frame (shape=%s); returning empty segmentation", shape)
        return empty_result(width, height)

    source_height, source_width = frame.shape[:2]
    processed, scale_to_source = downscale_frame(frame, target_width)
    processed_height, processed_width = processed.shape[:2]

    gray = to_gray(processed)
    binary, inverted = binarize(gray, blur_kernel_size, morph_kernel_size)

    quality = None
    small = None
    if with_quality:
        motion_score = None
        if motion is not None:
            motion_score, small = motion.measure(gray)
        quality = compute_frame_quality(gray, binary, motion_score)

    candidates, contours_found = find_candidates(binary, min_area_ratio, scale_to_source)

    if small is not None:
        motion.commit(small)

    debug = SegmentationDebug(
        source_width=source_width,
        source_height=source_height,
        processed_width=processed_width,
        processed_height=processed_height,
        scale_to_source=scale_to_source,
        inverted=inverted,
        contours_found=contours_found,
        pieces_kept=len(candidates),
    )
    logger.debug("Segmented %d/%d contours at %dx%d%s", len(candidates), contours_found,
                 processed_width, processed_height, " (inverted)" if inverted else "")

    return SegmentationResult(
        pieces=candidates,
        debug=debug,
        quality=quality,
        processed_frame=processed,
    )
