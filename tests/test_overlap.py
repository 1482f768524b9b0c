import pytest

from piece_scanner.models import SourceBox
from piece_scanner.overlap import OverlapEstimate, estimate_overlap, intersection_area, overlap_looks_heavy


class TestIntersectionArea:
    def test_disjoint(self):
        assert intersection_area(SourceBox(0, 0, 10, 10), SourceBox(20, 20, 10, 10)) == 0.0

    def test_touching_edges_do_not_intersect(self):
        assert intersection_area(SourceBox(0, 0, 10, 10), SourceBox(10, 0, 10, 10)) == 0.0

    def test_partial(self):
        assert intersection_area(SourceBox(0, 0, 10, 10), SourceBox(5, 5, 10, 10)) == 25


class TestEstimateOverlap:
    """Pairwise overlap relative to the smaller box."""

    def test_no_boxes(self):
        estimate = estimate_overlap([])
        assert (estimate.overlapping_pairs, estimate.max_overlap_fraction, estimate.comparisons) == (0, 0.0, 0)

    def test_contained_box_counts_fully(self):
        """A small box inside a large one overlaps by 100% of the small box."""
        estimate = estimate_overlap([SourceBox(0, 0, 100, 100), SourceBox(10, 10, 20, 20)])
        assert estimate.overlapping_pairs == 1
        assert estimate.max_overlap_fraction == pytest.approx(1.0)

    def test_below_threshold_not_counted(self):
        """10% overlap is recorded as max fraction but not as an overlapping pair."""
        estimate = estimate_overlap([SourceBox(0, 0, 10, 10), SourceBox(9, 0, 10, 10)])
        assert estimate.overlapping_pairs == 0
        assert estimate.max_overlap_fraction == pytest.approx(0.1)

    def test_zero_area_boxes_skipped(self):
        estimate = estimate_overlap([SourceBox(0, 0, 0, 10), SourceBox(0, 0, 10, 10)])
        assert estimate.overlapping_pairs == 0

    def test_comparison_cap(self):
        """Comparisons stop at the cap."""
        boxes = [SourceBox(i * 20, 0, 10, 10) for i in range(10)]
        estimate = estimate_overlap(boxes, max_comparisons=5)
        assert estimate.comparisons == 5


class TestOverlapLooksHeavy:
    def test_fewer_than_two_boxes(self):
        assert not overlap_looks_heavy([])
        assert not overlap_looks_heavy([SourceBox(0, 0, 10, 10)])

    def test_single_large_overlap(self):
        """One pair above 42% is enough."""
        assert overlap_looks_heavy([SourceBox(0, 0, 10, 10), SourceBox(5, 0, 10, 10)])

    def test_separated_boxes(self):
        boxes = [SourceBox(i * 30, 0, 20, 20) for i in range(5)]
        assert not overlap_looks_heavy(boxes)

    def test_min_pairs(self):
        """Two moderate overlaps reach the default minimum of two pairs."""
        boxes = [SourceBox(0, 0, 10, 10), SourceBox(8, 0, 10, 10),
                 SourceBox(100, 0, 10, 10), SourceBox(108, 0, 10, 10)]
        assert overlap_looks_heavy(boxes)
        assert not overlap_looks_heavy(boxes, min_pairs=3)


class TestOverlapScenarios:
    """Order independence and small worked examples."""

    def test_order_does_not_matter(self):
        a = SourceBox(0, 0, 20, 20)
        b = SourceBox(5, 5, 20, 20)
        assert estimate_overlap([a, b]) == estimate_overlap([b, a])

    def test_order_does_not_matter_for_many_boxes(self):
        boxes = [SourceBox(0, 0, 20, 20), SourceBox(5, 5, 20, 20),
                 SourceBox(40, 0, 10, 10), SourceBox(12, 12, 20, 20)]
        assert estimate_overlap(boxes) == estimate_overlap(list(reversed(boxes)))
        assert overlap_looks_heavy(boxes) == overlap_looks_heavy(list(reversed(boxes)))

    def test_staggered_pile(self):
        """Four boxes stepping diagonally overlap heavily."""
        boxes = [SourceBox(0, 0, 20, 20), SourceBox(5, 5, 20, 20),
                 SourceBox(8, 8, 20, 20), SourceBox(12, 12, 20, 20)]
        estimate = estimate_overlap(boxes)
        assert estimate.overlapping_pairs > 0
        assert estimate.max_overlap_fraction > 0.2
        assert estimate.comparisons == 6
        assert overlap_looks_heavy(boxes, min_pairs=1)

    def test_disjoint_pair(self):
        boxes = [SourceBox(0, 0, 10, 10), SourceBox(20, 20, 10, 10)]
        assert estimate_overlap(boxes).max_overlap_fraction == 0
        assert not overlap_looks_heavy(boxes)


class TestReusedEstimate:
    def test_given_estimate_is_used(self, monkeypatch):
        """A precomputed estimate skips the pairwise comparison."""
        from piece_scanner import overlap

        def fail(*args, **kwargs):
            raise AssertionError("pairs compared again")

        boxes = [SourceBox(0, 0, 10, 10), SourceBox(5, 0, 10, 10)]
        estimate = estimate_overlap(boxes)
        monkeypatch.setattr(overlap, 'estimate_overlap', fail)
        assert overlap_looks_heavy(boxes, estimate=estimate)

    def test_given_estimate_decides(self):
        boxes = [SourceBox(0, 0, 10, 10), SourceBox(100, 0, 10, 10)]
        crowded = OverlapEstimate(overlapping_pairs=5, max_overlap_fraction=0.9, comparisons=1)
        assert overlap_looks_heavy(boxes, estimate=crowded)
        assert not overlap_looks_heavy(boxes)
