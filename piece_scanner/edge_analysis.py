"""
Edge analysis module for puzzle pieces.
Detects long straight sides on a piece's outer boundary and classifies the
piece as corner, edge, non-edge, or unknown.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .errors import PixelAccessError
from .models import Classification, ClassifiedPiece, ExtractedPiece
from .preprocessing import is_valid_frame, to_gray
from .scan_model import PieceClass, compute_counts
from .utils import clamp01

logger = logging.getLogger(__name__)

MIN_ROI_SIZE = 10
MIN_LINE_LENGTH_PX = 10
HOUGH_MAX_LINE_GAP = 10


@dataclass(frozen=True, eq=False)
class ClassificationResult:
    pieces: List[ClassifiedPiece]
    summary: str


def segment_angle(segment: np.ndarray) -> float:
    """Undirected angle of a segment (x1, y1, x2, y2) in degrees, 0..180."""
    x1, y1, x2, y2 = segment
    angle = np.degrees(np.arctan2(y2 - y1, x2 - x1))
    if angle < 0:
        angle += 180.0
    return float(angle)


def angle_difference(a: float, b: float) -> float:
    """Smallest difference between two undirected angles, 0..90."""
    diff = abs(a - b) % 180.0
    return 180.0 - diff if diff > 90.0 else diff


def find_primary_and_secondary(segments: np.ndarray, min_line_length: float,
                               angle_tolerance_deg: float) -> Tuple[float, Optional[float], float]:
    """
    Pick the strongest straight side and the strongest side perpendicular to it.

    Angles are judged relative to the primary segment, not the image axes,
    so rotated pieces are handled the same as axis-aligned ones.

    Args:
        segments: Line segments as rows (x1, y1, x2, y2)
        min_line_length: Segments shorter than this are ignored
        angle_tolerance_deg: Allowed deviation from 90 degrees for the secondary

    Returns:
        Tuple of (primary_length, primary_angle, secondary_length)
        primary_angle is None when no segment qualifies
    """
    segments = np.asarray(segments, dtype=np.float64).reshape(-1, 4)
    if len(segments) == 0:
        return 0.0, None, 0.0

    lengths = np.hypot(segments[:, 2] - segments[:, 0], segments[:, 3] - segments[:, 1])

    best_len1 = 0.0
    best_ang1 = None
    for segment, length in zip(segments, lengths):
        if length < min_line_length:
            continue
        if length > best_len1:
            best_len1 = float(length)
            best_ang1 = segment_angle(segment)

    best_len2 = 0.0
    if best_ang1 is not None:
        for segment, length in zip(segments, lengths):
            if length < min_line_length:
                continue
            diff = angle_difference(segment_angle(segment), best_ang1)
            if abs(diff - 90.0) <= angle_tolerance_deg and length > best_len2:
                best_len2 = float(length)

    return best_len1, best_ang1, best_len2


def side_confidence(ratio: float, min_ratio: float) -> float:
    """
    Length-based confidence of a straight side.

    0 below the minimum ratio, rising linearly to 1 when the side spans the
    whole ROI.
    """
    if ratio <= 0 or ratio < min_ratio:
        return 0.0
    denom = max(1e-6, 1.0 - min_ratio)
    return clamp01((ratio - min_ratio) / denom)


def decide_classification(primary_length: float, secondary_length: float, max_dim: float,
                          min_line_length: float, min_ratio: float,
                          uncertain_margin_ratio: float = 0.10,
                          non_edge_confidence: float = 0.7) -> Tuple[PieceClass, float]:
    """
    Turn straight-side evidence into a class and confidence.

    Two perpendicular sides make a corner, one makes an edge, none a non-edge.
    Evidence only just over the bar is reported as unknown with low
    confidence instead of a corner or edge.

    Args:
        primary_length: Longest straight segment (px)
        secondary_length: Longest segment perpendicular to the primary (px)
        max_dim: Larger ROI dimension (px)
        min_line_length: Minimum accepted segment length (px)
        min_ratio: Minimum accepted segment length relative to max_dim
        uncertain_margin_ratio: Relative margin above min_ratio treated as borderline
        non_edge_confidence: Confidence reported for non-edge pieces

    Returns:
        Tuple of (piece_class, confidence)
    """
    ratio1 = primary_length / max_dim if max_dim > 0 else 0.0
    ratio2 = secondary_length / max_dim if max_dim > 0 else 0.0

    has1 = primary_length > 0 and primary_length >= min_line_length
    has2 = secondary_length > 0 and secondary_length >= min_line_length

    conf1 = side_confidence(ratio1, min_ratio) if has1 else 0.0
    conf2 = side_confidence(ratio2, min_ratio) if has2 else 0.0

    if has1 and has2:
        piece_class, confidence = PieceClass.CORNER, min(conf1, conf2)
    elif has1:
        piece_class, confidence = PieceClass.EDGE, conf1
    else:
        return PieceClass.NON_EDGE, non_edge_confidence

    best_ratio = max(ratio1, ratio2)
    if 0 < best_ratio < min_ratio * (1.0 + uncertain_margin_ratio):
        return PieceClass.UNKNOWN, max(0.05, min(0.25, confidence))

    return piece_class, confidence


def boundary_segments(gray_roi: np.ndarray, mask: np.ndarray, canny_low: int, canny_high: int,
                      hough_threshold: int, min_line_length: int) -> np.ndarray:
    """
    Detect straight segments on the outer boundary of a masked piece.

    Edge detection is limited to the mask's boundary ring so printed
    artwork inside the piece cannot produce straight lines.

    Args:
        gray_roi: Grayscale ROI around the piece
        mask: Filled piece mask for the ROI
        canny_low: Canny lower threshold
        canny_high: Canny upper threshold
        hough_threshold: HoughLinesP accumulator threshold
        min_line_length: HoughLinesP minimum segment length

    Returns:
        Array of segments (K, 4); empty when none are found
    """
    kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (3, 3))
    boundary = cv2.morphologyEx(mask, cv2.MORPH_GRADIENT, kernel)

    masked = cv2.bitwise_and(gray_roi, gray_roi, mask=mask)
    edges = cv2.Canny(masked, canny_low, canny_high)
    boundary_edges = cv2.bitwise_and(edges, edges, mask=boundary)

    lines = cv2.HoughLinesP(boundary_edges, 1, np.pi / 180, hough_threshold,
                            minLineLength=min_line_length, maxLineGap=HOUGH_MAX_LINE_GAP)
    if lines is None:
        return np.zeros((0, 4), dtype=np.int32)
    return lines.reshape(-1, 4)


def unknown_piece(piece: ExtractedPiece, reason: str) -> ClassifiedPiece:
    return ClassifiedPiece.from_extracted(piece, Classification(PieceClass.UNKNOWN, 0.0, reason))


def classify_piece(piece: ExtractedPiece, gray: np.ndarray,
                   canny_low: int = 60,
                   canny_high: int = 120,
                   angle_tolerance_deg: float = 20.0,
                   min_line_length_ratio: float = 0.35,
                   hough_threshold: int = 30,
                   uncertain_margin_ratio: float = 0.10,
                   non_edge_confidence: float = 0.7) -> ClassifiedPiece:
    """
    Classify a single extracted piece.

    Args:
        piece: Extracted piece (processed-space ROI and contour are used)
        gray: Grayscale processed frame
        canny_low: Canny lower threshold
        canny_high: Canny upper threshold
        angle_tolerance_deg: Tolerance for the perpendicular side
        min_line_length_ratio: Minimum side length relative to the ROI's larger dimension
        hough_threshold: HoughLinesP accumulator threshold
        uncertain_margin_ratio: Borderline margin that downgrades to unknown
        non_edge_confidence: Confidence for pieces without straight sides

    Returns:
        A new ClassifiedPiece; never raises for per-piece problems
    """
    frame_height, frame_width = gray.shape[:2]
    roi = piece.bbox_processed

    rx = max(0, int(np.floor(roi.x)))
    ry = max(0, int(np.floor(roi.y)))
    rw = min(frame_width - rx, int(np.floor(roi.width)))
    rh = min(frame_height - ry, int(np.floor(roi.height)))

    if rw <= MIN_ROI_SIZE or rh <= MIN_ROI_SIZE or len(piece.contour_processed) < 3:
        return unknown_piece(piece, 'Missing contour/ROI too small.')

    try:
        gray_roi = gray[ry:ry + rh, rx:rx + rw]

        mask = np.zeros((rh, rw), dtype=np.uint8)
        local = piece.contour_processed.as_int32() - np.array([rx, ry], dtype=np.int32)
        cv2.drawContours(mask, [local], 0, 255, cv2.FILLED)

        max_dim = max(rw, rh)
        min_line_length = max(MIN_LINE_LENGTH_PX, int(round(max_dim * min_line_length_ratio)))

        segments = boundary_segments(gray_roi, mask, canny_low, canny_high,
                                     hough_threshold, min_line_length)
    except cv2.error as exc:
        logger.debug("Piece %d: line detection failed: %s", piece.id, exc)
        return unknown_piece(piece, 'Line detection failed.')

    len1, _, len2 = find_primary_and_secondary(segments, min_line_length, angle_tolerance_deg)

    piece_class, confidence = decide_classification(
        len1, len2, max_dim, min_line_length, min_line_length_ratio,
        uncertain_margin_ratio, non_edge_confidence,
    )

    debug = f"minLine:{min_line_length} L1:{len1:.0f} L2:{len2:.0f}"
    return ClassifiedPiece.from_extracted(piece, Classification(piece_class, confidence, debug))


def classify_pieces(pieces: List[ExtractedPiece], processed_frame: np.ndarray,
                    canny_low: int = 60,
                    canny_high: int = 120,
                    **options) -> ClassificationResult:
    """
    Classify all extracted pieces of one frame.

    Args:
        pieces: Extracted pieces
        processed_frame: Processed RGBA frame the pieces were extracted from
        canny_low: Canny lower threshold
        canny_high: Canny upper threshold
        **options: Further classify_piece keyword arguments

    Returns:
        ClassificationResult with pieces in input order and a one-line summary

    Raises:
        PixelAccessError: If pieces are given without a usable processed frame
    """
    if not pieces:
        return ClassificationResult([], 'Corners: 0, Edges: 0, Non-edge: 0, Unknown: 0')

    if not is_valid_frame(processed_frame):
        raise PixelAccessError("Processed RGBA frame is not available for classification.")

    gray = to_gray(processed_frame)
    classified = [
        classify_piece(piece, gray, canny_low, canny_high, **options)
        for piece in pieces
    ]

    counts = compute_counts(p.piece_class for p in classified)
    summary = (f"Corners: {counts.corners}, Edges: {counts.edges}, "
               f"Non-edge: {counts.non_edge}, Unknown: {counts.unknown}")
    logger.debug("Classification: %s", summary)

    return ClassificationResult(classified, summary)
