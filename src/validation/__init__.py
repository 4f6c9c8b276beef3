"""Parity aggregation, regression gating and readiness evaluation."""

from .aggregator import ParityAggregator
from .baseline import Baseline, BaselineStore
from .pattern_history import IssuePattern, IssueSeverity, PatternHistory, detect_patterns
from .readiness import (
    GoNoGoDecision,
    ReadinessCriteria,
    ReadinessReport,
    ReadinessValidator,
)
from .recommendations import (
    Effort,
    Priority,
    Recommendation,
    RecommendationCategory,
    RecommendationEngine,
)

__all__ = [
    "Baseline",
    "BaselineStore",
    "Effort",
    "GoNoGoDecision",
    "IssuePattern",
    "IssueSeverity",
    "ParityAggregator",
    "PatternHistory",
    "Priority",
    "ReadinessCriteria",
    "ReadinessReport",
    "ReadinessValidator",
    "Recommendation",
    "RecommendationCategory",
    "RecommendationEngine",
    "detect_patterns",
]
