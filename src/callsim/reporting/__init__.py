"""Report aggregation and terminal rendering."""

from callsim.reporting.aggregator import ReportAggregator, order_labels

__all__ = ["ReportAggregator", "order_labels"]
