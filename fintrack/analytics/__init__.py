"""Aggregation, projection and summary engines."""

from fintrack.analytics.aggregation import AggregationEngine, sum_amounts
from fintrack.analytics.projection import ProjectionEngine
from fintrack.analytics.summary import SummaryComposer, UnauthorizedError

__all__ = [
    "AggregationEngine",
    "ProjectionEngine",
    "SummaryComposer",
    "UnauthorizedError",
    "sum_amounts",
]
