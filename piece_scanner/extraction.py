"""
Candidate filtering and per-piece extraction.
Rejects candidates that cannot be classified reliably and cuts the rest out
of the processed frame with a transparent background.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from .errors import PixelAccessError
from .models import ExtractedPiece, PieceCandidate, ProcessedBox, ProcessedContour
from .preprocessing import is_valid_frame
from .segmentation import SegmentationResult, simplify_contour
from .utils import clamp

logger = logging.getLogger(__name__)


@dataclass
class ExtractionDiagnostics:
    """Why candidates disappeared between segmentation and extraction."""
    candidates: int = 0
    kept: int = 0
    rejected_degenerate: int = 0
    rejected_border: int = 0
    rejected_aspect: int = 0
    rejected_solidity: int = 0
    max_pieces: int = 0
    hit_cap: bool = False

    def summary(self) -> str:
        return '\n'.join([
            f"Candidates: {self.candidates}",
            f"Rejected(degenerate): {self.rejected_degenerate}",
            f"Rejected(border): {self.rejected_border}",
            f"Rejected(aspect): {self.rejected_aspect}",
            f"Rejected(solidity): {self.rejected_solidity}",
            f"Kept: {self.kept}",
            f"Max pieces: {self.max_pieces}",
        ])


@dataclass(frozen=True, eq=False)
class ExtractionResult:
    pieces: List[ExtractedPiece]
    diagnostics: ExtractionDiagnostics


def touches_border(rect, frame_width: int, frame_height: int, margin: int) -> bool:
    """True if an (x, y, w, h) rectangle lies within margin px of any frame edge."""
    x, y, w, h = rect
    return (
        x < margin or
        y < margin or
        x + w > frame_width - margin or
        y + h > frame_height - margin
    )


def aspect_ratio(w: float, h: float) -> float:
    """max(w/h, h/w); infinite for a zero-size side."""
    if w <= 0 or h <= 0:
        return float('inf')
    return max(w / h, h / w)


def compute_solidity(contour: np.ndarray) -> float:
    """Contour area divided by convex hull area (0 for a degenerate hull)."""
    hull = cv2.convexHull(contour)
    hull_area = cv2.contourArea(hull)
    if hull_area <= 0:
        return 0.0
    return cv2.contourArea(contour) / hull_area


def padded_roi(rect, padding: int, frame_width: int, frame_height: int) -> ProcessedBox:
    """Expand a rectangle by padding on all sides, clamped to the frame."""
    x, y, w, h = rect
    x1 = int(clamp(x - padding, 0, frame_width - 1))
    y1 = int(clamp(y - padding, 0, frame_height - 1))
    x2 = int(clamp(x + w + padding, 0, frame_width))
    y2 = int(clamp(y + h + padding, 0, frame_height))
    return ProcessedBox(x1, y1, max(1, x2 - x1), max(1, y2 - y1))


def cut_out_piece(frame: np.ndarray, contour: np.ndarray, roi: ProcessedBox) -> np.ndarray:
    """
    Crop a piece with a transparent background.

    Args:
        frame: Processed RGBA frame
        contour: Piece contour in processed coordinates (N, 1, 2) int32
        roi: Crop rectangle in processed coordinates

    Returns:
        RGBA crop whose alpha channel is the filled contour mask
    """
    x, y, w, h = int(roi.x), int(roi.y), int(roi.width), int(roi.height)

    mask = np.zeros((h, w), dtype=np.uint8)
    cv2.drawContours(mask, [contour - np.array([x, y], dtype=np.int32)], -1, 255, cv2.FILLED)

    cutout = frame[y:y + h, x:x + w].copy()
    cutout[:, :, 3] = mask
    return cutout


def extract_candidate(candidate: PieceCandidate, frame: np.ndarray, scale_to_source: float,
                      border_margin_px: int, padding_px: int, min_solidity: float,
                      max_aspect_ratio: float, diagnostics: ExtractionDiagnostics
                      ) -> Optional[ExtractedPiece]:
    """
    Filter one candidate and extract it.

    Rejections are recorded in diagnostics; None is returned for them.
    """
    frame_height, frame_width = frame.shape[:2]

    # SOURCE -> PROCESSED, the space the frame pixels live in
    contour_proc = candidate.contour.to_processed(scale_to_source)
    if len(contour_proc) < 3:
        diagnostics.rejected_degenerate += 1
        return None

    contour = simplify_contour(contour_proc.as_int32(), 0.005)

    rect = cv2.boundingRect(contour)
    _, _, w, h = rect
    if w <= 0 or h <= 0:
        diagnostics.rejected_degenerate += 1
        return None
    aspect = aspect_ratio(w, h)

    if touches_border(rect, frame_width, frame_height, border_margin_px):
        diagnostics.rejected_border += 1
        return None

    if aspect > max_aspect_ratio:
        diagnostics.rejected_aspect += 1
        return None

    solidity = compute_solidity(contour)
    if solidity < min_solidity:
        diagnostics.rejected_solidity += 1
        return None

    roi = padded_roi(rect, padding_px, frame_width, frame_height)
    cutout = cut_out_piece(frame, contour, roi)

    return ExtractedPiece(
        id=candidate.id,
        area_px=candidate.area_px,
        bbox=candidate.bbox,
        contour=candidate.contour,
        bbox_processed=roi,
        area_px_processed=int(round(cv2.contourArea(contour))),
        solidity=float(solidity),
        aspect_ratio=float(aspect),
        cutout=cutout,
        contour_processed=ProcessedContour(contour.reshape(-1, 2)),
    )


def filter_and_extract_pieces(segmentation: SegmentationResult,
                              border_margin_px: int = 6,
                              padding_px: int = 6,
                              min_solidity: float = 0.80,
                              max_aspect_ratio: float = 4.0,
                              max_pieces: int = 80,
                              processed_frame: Optional[np.ndarray] = None) -> ExtractionResult:
    """
    Filter segmentation candidates and extract per-piece cutouts.

    Candidates are visited in discovery order until max_pieces have been kept.

    Args:
        segmentation: Result of segment_pieces
        border_margin_px: Reject boxes within this many processed px of the frame edge
        padding_px: Padding around the cutout (processed px)
        min_solidity: Minimum contour area / hull area
        max_aspect_ratio: Maximum max(w/h, h/w)
        max_pieces: Cap on extracted pieces
        processed_frame: Processed RGBA frame; defaults to segmentation.processed_frame

    Returns:
        ExtractionResult with pieces (ids preserved) and per-stage diagnostics

    Raises:
        PixelAccessError: If no processed frame matching the segmentation is available
    """
    debug = segmentation.debug
    diagnostics = ExtractionDiagnostics(max_pieces=max_pieces)

    if not segmentation.pieces:
        return ExtractionResult([], diagnostics)

    frame = processed_frame if processed_frame is not None else segmentation.processed_frame
    if not is_valid_frame(frame) or frame.shape[:2] != (debug.processed_height, debug.processed_width):
        raise PixelAccessError("Processed RGBA frame is not available for extraction.")

    extracted = []
    for candidate in segmentation.pieces:
        if len(extracted) >= max_pieces:
            diagnostics.hit_cap = True
            break
        diagnostics.candidates += 1

        try:
            piece = extract_candidate(
                candidate, frame, debug.scale_to_source,
                border_margin_px, padding_px, min_solidity, max_aspect_ratio,
                diagnostics,
            )
        except cv2.error as exc:
            logger.debug("Skipping candidate %d: %s", candidate.id, exc)
            diagnostics.rejected_degenerate += 1
            continue

        if piece is not None:
            extracted.append(piece)

    diagnostics.kept = len(extracted)
    if len(extracted) >= max_pieces:
        diagnostics.hit_cap = True

    logger.debug("Extraction: %s", diagnostics.summary().replace('\n', ', '))
    return ExtractionResult(extracted, diagnostics)
