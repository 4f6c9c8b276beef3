"""Prioritized follow-up recommendations for a parity run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.domain.results import Classification, ParityResult, RegressionVerdict
from src.validation.pattern_history import (
    IssuePattern,
    IssueSeverity,
    PatternHistory,
    detect_patterns,
)

logger = logging.getLogger(__name__)


class Priority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_ORDER = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class RecommendationCategory(Enum):
    INVESTIGATION = "investigation"
    TESTING = "testing"
    DEVELOPMENT = "development"
    MONITORING = "monitoring"


class Effort(Enum):
    QUICK = "quick"
    MODERATE = "moderate"
    EXTENSIVE = "extensive"


class RegressionSeverity(Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SEVERE = "severe"
    CRITICAL = "critical"


def classify_regression_severity(parity_change: float) -> RegressionSeverity:
    """Severity of a logic parity change, by magnitude in percentage points."""
    magnitude = abs(parity_change)
    if magnitude >= 10.0:
        return RegressionSeverity.CRITICAL
    if magnitude >= 5.0:
        return RegressionSeverity.SEVERE
    if magnitude >= 1.0:
        return RegressionSeverity.MODERATE
    return RegressionSeverity.MINOR


@dataclass
class Recommendation:
    priority: Priority
    category: RecommendationCategory
    action: str
    reasoning: str
    effort: Effort

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority.value,
            "category": self.category.value,
            "action": self.action,
            "reasoning": self.reasoning,
            "effort": self.effort.value,
        }

    def __str__(self) -> str:
        return f"[{self.priority.value}] {self.action}: {self.reasoning}"


class RecommendationEngine:
    """
    Turn a parity result into an ordered list of next steps.

    Args:
        min_differences_for_deep_analysis: Difference count that warrants a
            deeper investigation
        min_logic_parity: Logic parity (percent) below which the run is a concern
        critical_issue_threshold: Critical patterns that warrant deep analysis
    """

    def __init__(
        self,
        min_differences_for_deep_analysis: int = 3,
        min_logic_parity: float = 85.0,
        critical_issue_threshold: int = 1,
    ):
        self.min_differences_for_deep_analysis = min_differences_for_deep_analysis
        self.min_logic_parity = min_logic_parity
        self.critical_issue_threshold = critical_issue_threshold

    def should_recommend_deep_analysis(
        self,
        result: ParityResult,
        patterns: List[IssuePattern],
        history: Optional[PatternHistory] = None,
    ) -> Tuple[bool, List[str]]:
        """
        Decide whether the run needs a deeper investigation.

        Returns:
            Tuple of (recommend, reasons)
        """
        reasons: List[str] = []
        difference_count = len(result.differences)

        if difference_count >= self.min_differences_for_deep_analysis:
            reasons.append(
                f"{difference_count} differences exceed threshold of "
                f"{self.min_differences_for_deep_analysis}"
            )

        critical = [p for p in patterns if p.severity is IssueSeverity.CRITICAL]
        if critical and len(critical) >= self.critical_issue_threshold:
            reasons.append(f"{len(critical)} critical issue patterns detected")

        high = [p for p in patterns if p.severity in (IssueSeverity.HIGH, IssueSeverity.CRITICAL)]
        if len(high) >= 2:
            reasons.append(
                f"Multiple high-severity patterns ({len(high)}) indicate systemic issues"
            )

        if any(p.classification is Classification.STATE_DIVERGENCE for p in patterns):
            reasons.append("State divergence patterns detected")

        if history is not None:
            consistent = history.consistent_patterns(patterns)
            if consistent:
                reasons.append(f"{len(consistent)} patterns show consistency across multiple runs")

        return bool(reasons), reasons

    def generate(
        self,
        result: ParityResult,
        verdict: Optional[RegressionVerdict] = None,
        history: Optional[PatternHistory] = None,
    ) -> List[Recommendation]:
        """
        Build recommendations for a run, most urgent first.

        Args:
            result: Aggregated parity result
            verdict: Regression verdict, when the run was gated
            history: Cross-run pattern history, already updated for this run

        Returns:
            Recommendations sorted critical -> low (stable within a priority)
        """
        patterns = detect_patterns(result)
        recommendations: List[Recommendation] = []

        recommendations.extend(self._regression_recommendations(verdict))
        recommendations.extend(self._immediate_recommendations(result, patterns))
        recommendations.extend(self._testing_recommendations(result))
        recommendations.extend(self._development_recommendations(patterns))
        recommendations.extend(self._monitoring_recommendations(result, patterns, history))

        recommendations.sort(key=lambda r: PRIORITY_ORDER[r.priority])
        logger.debug(f"Generated {len(recommendations)} recommendations")
        return recommendations

    def _regression_recommendations(
        self, verdict: Optional[RegressionVerdict]
    ) -> List[Recommendation]:
        if verdict is None:
            return []
        if not verdict.baseline_present:
            return [
                Recommendation(
                    priority=Priority.MEDIUM,
                    category=RecommendationCategory.MONITORING,
                    action="Record a baseline from a passing run",
                    reasoning="Without a baseline new differences cannot be detected as regressions",
                    effort=Effort.QUICK,
                )
            ]
        if verdict.passed:
            return []

        severity = classify_regression_severity(verdict.logic_parity_delta)
        commands = ", ".join(sorted({s.command for s in verdict.new_signatures})) or "n/a"
        return [
            Recommendation(
                priority=Priority.CRITICAL,
                category=RecommendationCategory.DEVELOPMENT,
                action="Fix regressions against the baseline before merging",
                reasoning=(
                    f"{severity.value} regression ({verdict.logic_parity_delta:+.2f} points); "
                    f"{'; '.join(verdict.reasons)}; commands: {commands}"
                ),
                effort=Effort.EXTENSIVE
                if severity in (RegressionSeverity.SEVERE, RegressionSeverity.CRITICAL)
                else Effort.MODERATE,
            )
        ]

    def _immediate_recommendations(
        self, result: ParityResult, patterns: List[IssuePattern]
    ) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        critical = [p for p in patterns if p.severity is IssueSeverity.CRITICAL]
        if critical:
            recommendations.append(
                Recommendation(
                    priority=Priority.CRITICAL,
                    category=RecommendationCategory.INVESTIGATION,
                    action="Investigate critical parity issues immediately",
                    reasoning=(
                        f"{len(critical)} logic difference patterns repeat across commands: "
                        + ", ".join(p.reason for p in critical)
                    ),
                    effort=Effort.EXTENSIVE,
                )
            )

        if any(p.classification is Classification.STATE_DIVERGENCE for p in patterns):
            recommendations.append(
                Recommendation(
                    priority=Priority.HIGH,
                    category=RecommendationCategory.INVESTIGATION,
                    action="Review game state management after RNG forks",
                    reasoning="State divergence shows the sessions drifted apart after a random outcome",
                    effort=Effort.MODERATE,
                )
            )

        if result.incomplete:
            not_completed = [
                str(r.seed) for r in result.seed_results if r.error is not None
            ]
            recommendations.append(
                Recommendation(
                    priority=Priority.HIGH,
                    category=RecommendationCategory.TESTING,
                    action="Re-run seeds that did not complete",
                    reasoning=f"Seeds without a full comparison: {', '.join(not_completed)}",
                    effort=Effort.QUICK,
                )
            )
        return recommendations

    def _testing_recommendations(self, result: ParityResult) -> List[Recommendation]:
        recommendations: List[Recommendation] = []
        logic_parity = result.logic_parity_percentage

        if result.seed_results and logic_parity < self.min_logic_parity:
            recommendations.append(
                Recommendation(
                    priority=Priority.HIGH,
                    category=RecommendationCategory.TESTING,
                    action="Run the full parity suite across all sequences",
                    reasoning=(
                        f"Logic parity of {logic_parity:.2f}% is below the acceptable "
                        f"threshold of {self.min_logic_parity:.0f}%"
                    ),
                    effort=Effort.EXTENSIVE,
                )
            )

        difference_count = len(result.differences)
        if difference_count >= self.min_differences_for_deep_analysis:
            recommendations.append(
                Recommendation(
                    priority=Priority.MEDIUM,
                    category=RecommendationCategory.TESTING,
                    action="Increase the command count for better coverage",
                    reasoning=f"{difference_count} differences suggest more commands may reveal more",
                    effort=Effort.QUICK,
                )
            )
        return recommendations

    def _development_recommendations(self, patterns: List[IssuePattern]) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        if len(patterns) >= 3:
            recommendations.append(
                Recommendation(
                    priority=Priority.MEDIUM,
                    category=RecommendationCategory.DEVELOPMENT,
                    action="Review the affected game systems together",
                    reasoning=f"{len(patterns)} distinct difference patterns suggest a broader cause",
                    effort=Effort.EXTENSIVE,
                )
            )

        if any(p.severity is IssueSeverity.HIGH for p in patterns):
            recommendations.append(
                Recommendation(
                    priority=Priority.MEDIUM,
                    category=RecommendationCategory.DEVELOPMENT,
                    action="Add targeted unit tests for the commands with logic differences",
                    reasoning="High-severity patterns mark areas that need better test coverage",
                    effort=Effort.MODERATE,
                )
            )
        return recommendations

    def _monitoring_recommendations(
        self,
        result: ParityResult,
        patterns: List[IssuePattern],
        history: Optional[PatternHistory],
    ) -> List[Recommendation]:
        recommendations: List[Recommendation] = []

        if history is not None:
            consistent = history.consistent_patterns(patterns)
            if consistent:
                recommendations.append(
                    Recommendation(
                        priority=Priority.HIGH,
                        category=RecommendationCategory.INVESTIGATION,
                        action="Prioritize patterns that recur across runs",
                        reasoning="Recurring: " + ", ".join(p.key for p in consistent),
                        effort=Effort.MODERATE,
                    )
                )

        deep, _ = self.should_recommend_deep_analysis(result, patterns, history)
        if deep:
            recommendations.append(
                Recommendation(
                    priority=Priority.LOW,
                    category=RecommendationCategory.MONITORING,
                    action="Run parity validation in CI on every change",
                    reasoning="Regular runs catch regressions early",
                    effort=Effort.MODERATE,
                )
            )

        if patterns:
            recommendations.append(
                Recommendation(
                    priority=Priority.LOW,
                    category=RecommendationCategory.MONITORING,
                    action="Track pattern trends over time",
                    reasoning="Pattern consistency separates systemic issues from transient ones",
                    effort=Effort.QUICK,
                )
            )
        return recommendations
