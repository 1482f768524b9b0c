"""
Result vocabulary shared by the pipeline and its consumers.

The class set is small and user-facing. Counting and display filtering live
here so callers never depend on which stage produced a label.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional


class PieceClass(str, Enum):
    CORNER = 'corner'
    EDGE = 'edge'
    NON_EDGE = 'nonEdge'
    UNKNOWN = 'unknown'


@dataclass(frozen=True)
class ScanCounts:
    corners: int = 0
    edges: int = 0
    non_edge: int = 0
    unknown: int = 0
    total: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            'corners': self.corners,
            'edges': self.edges,
            'nonEdge': self.non_edge,
            'unknown': self.unknown,
            'total': self.total,
        }


def normalize_legacy_class(value: Optional[str]) -> Optional[PieceClass]:
    """
    Map a stored/legacy label to a PieceClass.

    The earlier classifier used 'interior' for what is now 'nonEdge'.
    Unrecognized or empty values map to None.
    """
    if not value:
        return None
    if value == 'interior':
        return PieceClass.NON_EDGE
    try:
        return PieceClass(value)
    except ValueError:
        return None


def compute_counts(classes: Iterable[PieceClass]) -> ScanCounts:
    corners = edges = non_edge = unknown = total = 0

    for c in classes:
        total += 1
        if c == PieceClass.CORNER:
            corners += 1
        elif c == PieceClass.EDGE:
            edges += 1
        elif c == PieceClass.NON_EDGE:
            non_edge += 1
        else:
            unknown += 1

    return ScanCounts(corners, edges, non_edge, unknown, total)


@dataclass(frozen=True)
class DisplayFilter:
    """
    Which classes the UI currently shows.

    The pipeline always classifies everything; this predicate only decides
    what a caller renders or counts as visible.
    """
    show_corners: bool = True
    show_edges: bool = True
    show_non_edge: bool = True
    show_unknown: bool = True

    def is_visible(self, piece_class: PieceClass) -> bool:
        if piece_class == PieceClass.CORNER:
            return self.show_corners
        if piece_class == PieceClass.EDGE:
            return self.show_edges
        if piece_class == PieceClass.NON_EDGE:
            return self.show_non_edge
        return self.show_unknown

    def visible_counts(self, classes: Iterable[PieceClass]) -> ScanCounts:
        return compute_counts(c for c in classes if self.is_visible(c))
