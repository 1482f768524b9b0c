"""
Data records shared by the pipeline stages.

Geometry lives in two coordinate systems: the SOURCE frame supplied by the
camera, and the PROCESSED (downscaled) frame the vision stages work on.
Each system has its own box and contour type; the only way across is the
explicit to_source / to_processed conversion with the segmentation scale.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

import numpy as np

from .scan_model import PieceClass


@dataclass(frozen=True)
class Box:
    """Axis-aligned rectangle (x, y, width, height)."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


@dataclass(frozen=True)
class SourceBox(Box):
    def to_processed(self, scale_to_source: float) -> "ProcessedBox":
        s = scale_to_source
        return ProcessedBox(self.x / s, self.y / s, self.width / s, self.height / s)


@dataclass(frozen=True)
class ProcessedBox(Box):
    def to_source(self, scale_to_source: float) -> SourceBox:
        s = scale_to_source
        return SourceBox(self.x * s, self.y * s, self.width * s, self.height * s)


@dataclass(frozen=True, eq=False)
class Contour:
    """Closed polygon stored as an (N, 2) float array."""
    points: np.ndarray

    def __post_init__(self):
        pts = np.asarray(self.points, dtype=np.float64).reshape(-1, 2)
        object.__setattr__(self, 'points', pts)

    def __len__(self) -> int:
        return len(self.points)

    def as_int32(self) -> np.ndarray:
        """OpenCV contour layout: (N, 1, 2) int32, coordinates rounded."""
        return np.round(self.points).astype(np.int32).reshape(-1, 1, 2)

    def as_list(self) -> List[Dict[str, float]]:
        return [{'x': float(x), 'y': float(y)} for x, y in self.points]


class SourceContour(Contour):
    def to_processed(self, scale_to_source: float) -> "ProcessedContour":
        return ProcessedContour(self.points / scale_to_source)


class ProcessedContour(Contour):
    def to_source(self, scale_to_source: float) -> SourceContour:
        return SourceContour(self.points * scale_to_source)


@dataclass(frozen=True)
class SegmentationDebug:
    source_width: int = 0
    source_height: int = 0
    processed_width: int = 0
    processed_height: int = 0
    scale_to_source: float = 1.0
    inverted: bool = False
    threshold: str = 'otsu'
    contours_found: int = 0
    pieces_kept: int = 0

    def summary(self) -> str:
        inverted = ' (inverted)' if self.inverted else ''
        return '\n'.join([
            f"Segmentation: {self.pieces_kept} piece(s)",
            f"Contours: {self.contours_found}",
            f"Proc: {self.processed_width}x{self.processed_height}{inverted}",
        ])


@dataclass(frozen=True, eq=False)
class PieceCandidate:
    """A segmented blob, geometry in SOURCE coordinates."""
    id: int
    area_px: int
    bbox: SourceBox
    contour: SourceContour


@dataclass(frozen=True, eq=False)
class ExtractedPiece(PieceCandidate):
    """A candidate that passed the geometric filters, with its cutout."""
    bbox_processed: ProcessedBox
    area_px_processed: int
    solidity: float
    aspect_ratio: float
    cutout: np.ndarray  # RGBA crop of bbox_processed, alpha = piece mask
    contour_processed: ProcessedContour


@dataclass(frozen=True)
class Classification:
    piece_class: PieceClass
    confidence: float
    debug: str = ''


@dataclass(frozen=True, eq=False)
class ClassifiedPiece(ExtractedPiece):
    classification: Classification

    @classmethod
    def from_extracted(cls, piece: ExtractedPiece,
                       classification: Classification) -> "ClassifiedPiece":
        """New record carrying the piece geometry plus a classification."""
        values = {f.name: getattr(piece, f.name) for f in fields(ExtractedPiece)}
        return cls(classification=classification, **values)

    @property
    def piece_class(self) -> PieceClass:
        return self.classification.piece_class

    @property
    def confidence(self) -> float:
        return self.classification.confidence

    def to_detected(self) -> "DetectedPiece":
        return DetectedPiece(
            id=self.id,
            bbox_source=self.bbox,
            contour_source=self.contour,
            piece_class=self.classification.piece_class,
            confidence=self.classification.confidence,
            debug=self.classification.debug,
        )


@dataclass(frozen=True, eq=False)
class DetectedPiece:
    """What an overlay needs: SOURCE-space geometry plus the verdict."""
    id: int
    bbox_source: SourceBox
    contour_source: SourceContour
    piece_class: PieceClass
    confidence: Optional[float] = None
    debug: str = ''

    def as_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'bbox_source': self.bbox_source.as_dict(),
            'contour_source': self.contour_source.as_list(),
            'class': self.piece_class.value,
            'confidence': self.confidence,
            'debug': self.debug,
        }
