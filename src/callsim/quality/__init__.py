"""Audio quality scoring: preprocessing, segmentation and the scoring tool."""

from callsim.quality.pipeline import QualityPipeline, QualityScores
from callsim.quality.segments import MIN_SEGMENT_SECONDS, Segment, plan_segments
from callsim.quality.tools import SoxTools, ToolRunner, VisqolScorer, parse_mos

__all__ = [
    "MIN_SEGMENT_SECONDS",
    "QualityPipeline",
    "QualityScores",
    "Segment",
    "SoxTools",
    "ToolRunner",
    "VisqolScorer",
    "parse_mos",
    "plan_segments",
]
