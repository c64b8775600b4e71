"""Segment planning for chopped audio analysis.

A call is split at every profile offset, so each segment sees a single
network setting. Within a window between offsets, segments are at most
segment_length long; a None length keeps one segment per window.
"""

from __future__ import annotations

from dataclasses import dataclass

# Remainders shorter than this are not worth scoring.
MIN_SEGMENT_SECONDS = 1.0


@dataclass(frozen=True)
class Segment:
    """A slice of the recorded call, relative to call start."""

    start: float
    length: float

    @property
    def end(self) -> float:
        return self.start + self.length


def plan_segments(
    call_duration: float,
    offsets: list[float],
    segment_length: float | None = None,
) -> list[Segment]:
    """Partition [0, call_duration) into segments aligned to profile offsets."""
    if call_duration <= 0:
        return []
    if segment_length is not None and segment_length <= 0:
        raise ValueError(f"segment_length must be positive, got {segment_length}")

    boundaries = sorted({0.0, *(o for o in offsets if 0 <= o < call_duration)})
    window_ends = boundaries[1:] + [float(call_duration)]

    segments: list[Segment] = []
    for window_start, window_end in zip(boundaries, window_ends):
        step = segment_length or (window_end - window_start)
        start = window_start
        while window_end - start >= MIN_SEGMENT_SECONDS:
            length = min(step, window_end - start)
            segments.append(Segment(start=start, length=length))
            start += length
    return segments
