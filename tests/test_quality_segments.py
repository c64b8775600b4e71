"""Tests for callsim.quality.segments - chopped analysis planning."""

import pytest

from callsim.quality.segments import Segment, plan_segments


class TestPlanSegments:
    """Segments break at every offset and respect the length cap."""

    def test_one_segment_per_window_without_length(self):
        segments = plan_segments(240, [0, 60, 120, 180])
        assert segments == [
            Segment(0, 60), Segment(60, 60), Segment(120, 60), Segment(180, 60),
        ]

    def test_length_cap_splits_windows(self):
        segments = plan_segments(240, [0, 60, 120, 180], segment_length=12)
        assert len(segments) == 20
        assert [s.start for s in segments[:6]] == [0, 12, 24, 36, 48, 60]
        assert all(s.length == 12 for s in segments)

    def test_segments_never_cross_an_offset(self):
        offsets = [0, 7, 10, 17, 20, 27]
        for segment in plan_segments(30, offsets, segment_length=5):
            crossing = [o for o in offsets if segment.start < o < segment.end]
            assert crossing == []

    def test_no_offsets_means_whole_call(self):
        assert plan_segments(30, []) == [Segment(0, 30)]

    def test_short_remainder_dropped(self):
        segments = plan_segments(10.5, [0], segment_length=5)
        assert segments == [Segment(0, 5), Segment(5, 5)]

    def test_offsets_outside_call_ignored(self):
        assert plan_segments(30, [0, 30, 45, -5]) == [Segment(0, 30)]

    def test_empty_call(self):
        assert plan_segments(0, [0]) == []

    def test_invalid_length(self):
        with pytest.raises(ValueError):
            plan_segments(30, [0], segment_length=0)

    def test_segment_end(self):
        assert Segment(start=60, length=12).end == 72
