"""
Bounding-box overlap heuristic.

Used by the guidance layer to warn when pieces pile up. Overlap of a pair is
the intersection relative to the smaller box.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Box


@dataclass(frozen=True)
class OverlapEstimate:
    overlapping_pairs: int  # pairs at or above the threshold
    max_overlap_fraction: float
    comparisons: int  # pairs checked (may be capped)


def intersection_area(a: Box, b: Box) -> float:
    w = min(a.x + a.width, b.x + b.width) - max(a.x, b.x)
    h = min(a.y + a.height, b.y + b.height) - max(a.y, b.y)
    if w <= 0 or h <= 0:
        return 0.0
    return w * h


def estimate_overlap(boxes: Sequence[Box],
                     max_comparisons: int = 15000,
                     overlap_fraction_threshold: float = 0.18) -> OverlapEstimate:
    """
    Compare every pair of boxes, up to a comparison cap.

    Args:
        boxes: Boxes in any single coordinate space
        max_comparisons: Stop after this many pair comparisons
        overlap_fraction_threshold: Pair counts as overlapping at this fraction

    Returns:
        OverlapEstimate
    """
    overlapping_pairs = 0
    max_fraction = 0.0
    comparisons = 0

    for i in range(len(boxes)):
        a = boxes[i]
        a_area = a.area
        if a_area <= 0:
            continue

        for j in range(i + 1, len(boxes)):
            if comparisons >= max_comparisons:
                return OverlapEstimate(overlapping_pairs, max_fraction, comparisons)
            comparisons += 1

            b = boxes[j]
            b_area = b.area
            if b_area <= 0:
                continue

            inter = intersection_area(a, b)
            if inter <= 0:
                continue

            fraction = inter / min(a_area, b_area)
            max_fraction = max(max_fraction, fraction)
            if fraction >= overlap_fraction_threshold:
                overlapping_pairs += 1

    return OverlapEstimate(overlapping_pairs, max_fraction, comparisons)


def overlap_looks_heavy(boxes: Sequence[Box], min_pairs: Optional[int] = None,
                        estimate: Optional[OverlapEstimate] = None) -> bool:
    """
    True when enough pairs overlap, or a single pair overlaps a lot.

    Args:
        boxes: Piece bounding boxes
        min_pairs: Overlapping pairs needed; defaults to 6% of the boxes (at least 2)
        estimate: Estimate already computed for these boxes, reused instead of
            comparing the pairs again
    """
    if len(boxes) < 2:
        return False

    if estimate is None:
        estimate = estimate_overlap(boxes)
    if min_pairs is None:
        min_pairs = max(2, int(len(boxes) * 0.06))

    return estimate.overlapping_pairs >= min_pairs or estimate.max_overlap_fraction >= 0.42
