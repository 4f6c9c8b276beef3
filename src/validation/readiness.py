"""Automated readiness gate for parity validation runs."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from src.domain.results import Classification, ParityResult, RegressionVerdict
from src.validation.recommendations import Recommendation

logger = logging.getLogger(__name__)


class GoNoGoDecision(Enum):
    """Readiness decision for accepting a change."""

    GO = "GO"
    NO_GO = "NO_GO"
    GO_WITH_CAUTION = "GO_WITH_CAUTION"


@dataclass
class ReadinessCriteria:
    """Individual readiness criterion evaluation."""

    name: str
    description: str
    required: bool
    status: bool
    evidence: str
    impact: str


@dataclass
class ReadinessReport:
    """Automated readiness report."""

    generated_at: str
    decision: GoNoGoDecision
    confidence_level: float
    criteria_results: List[ReadinessCriteria]
    summary: str
    recommendations: List[Recommendation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.decision is not GoNoGoDecision.NO_GO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "decision": self.decision.value,
            "confidence_level": self.confidence_level,
            "criteria": [
                {
                    "name": c.name,
                    "description": c.description,
                    "required": c.required,
                    "status": c.status,
                    "evidence": c.evidence,
                    "impact": c.impact,
                }
                for c in self.criteria_results
            ],
            "summary": self.summary,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


class ReadinessValidator:
    """Evaluate a parity run against the exit bar."""

    def __init__(self) -> None:
        self.logger = logging.getLogger(__name__)

    def evaluate(
        self,
        result: ParityResult,
        verdict: RegressionVerdict,
        require_zero_logic: bool = False,
        recommendations: Optional[List[Recommendation]] = None,
    ) -> ReadinessReport:
        """
        Decide GO / NO_GO for a run.

        Args:
            result: Aggregated parity result
            verdict: Regression verdict against the baseline
            require_zero_logic: Make "zero LOGIC_DIFFERENCE" a required criterion
            recommendations: Recommendations to attach to the report

        Returns:
            ReadinessReport
        """
        criteria_results = [
            self._validate_all_seeds_completed(result),
            self._validate_no_execution_errors(result),
            self._validate_no_missing_entries(result),
            self._validate_no_regression(verdict),
            self._validate_zero_logic_differences(result, require_zero_logic),
            self._validate_baseline_present(verdict),
            self._validate_full_logic_parity(result),
        ]

        decision = self._calculate_decision(criteria_results)
        confidence = self._calculate_confidence(criteria_results)
        summary = self._generate_summary(criteria_results, decision)

        self.logger.info(f"Readiness decision: {decision.value} (confidence {confidence:.2f})")

        return ReadinessReport(
            generated_at=datetime.now(timezone.utc).isoformat(),
            decision=decision,
            confidence_level=confidence,
            criteria_results=criteria_results,
            summary=summary,
            recommendations=list(recommendations or []),
        )

    def _validate_all_seeds_completed(self, result: ParityResult) -> ReadinessCriteria:
        total = len(result.seed_results)
        completed = total - sum(1 for r in result.seed_results if r.error is not None)
        return ReadinessCriteria(
            name="All Seeds Completed",
            description="Every seed in the matrix produced and compared both transcripts",
            required=True,
            status=bool(result.seed_results) and not result.incomplete,
            evidence=f"{completed}/{total} seeds completed",
            impact="If failed: parity cannot be claimed for the skipped seeds",
        )

    def _validate_no_execution_errors(self, result: ParityResult) -> ReadinessCriteria:
        return ReadinessCriteria(
            name="No Execution Errors",
            description="No command went uncompared because of timeouts or runner failures",
            required=True,
            status=result.execution_errors == 0,
            evidence=f"{result.execution_errors} execution errors",
            impact="If failed: uncompared commands hide possible differences",
        )

    def _validate_no_missing_entries(self, result: ParityResult) -> ReadinessCriteria:
        return ReadinessCriteria(
            name="No Missing Transcript Entries",
            description="Both engines produced output for every command in the sequence",
            required=True,
            status=result.missing_entries == 0,
            evidence=f"{result.missing_entries} missing transcript entries",
            impact="If failed: one engine stopped early and the run cannot be trusted",
        )

    def _validate_no_regression(self, verdict: RegressionVerdict) -> ReadinessCriteria:
        return ReadinessCriteria(
            name="No Regression Against Baseline",
            description="No new difference signatures and no increase in LOGIC_DIFFERENCE count",
            required=True,
            status=verdict.passed,
            evidence=(
                f"{len(verdict.new_signatures)} new signatures, "
                f"LOGIC delta {verdict.logic_difference_delta:+d}"
            ),
            impact="If failed: the change introduced behavior the reference engine does not have",
        )

    def _validate_zero_logic_differences(
        self, result: ParityResult, required: bool
    ) -> ReadinessCriteria:
        logic_count = result.count(Classification.LOGIC_DIFFERENCE)
        return ReadinessCriteria(
            name="Zero Logic Differences",
            description="No difference remains that RNG or state divergence cannot explain",
            required=required,
            status=logic_count == 0,
            evidence=f"{logic_count} LOGIC_DIFFERENCE entries",
            impact="If failed: known logic differences remain open",
        )

    def _validate_baseline_present(self, verdict: RegressionVerdict) -> ReadinessCriteria:
        return ReadinessCriteria(
            name="Baseline Present",
            description="A baseline existed to gate this run against",
            required=False,
            status=verdict.baseline_present,
            evidence="baseline loaded" if verdict.baseline_present else "no baseline",
            impact="If failed: regressions could not be detected for this run",
        )

    def _validate_full_logic_parity(self, result: ParityResult) -> ReadinessCriteria:
        return ReadinessCriteria(
            name="100% Logic Parity",
            description="Every command matched or differed only by RNG or state divergence",
            required=False,
            status=result.total_commands > 0 and result.logic_parity_percentage == 100.0,
            evidence=f"logic parity {result.logic_parity_percentage:.2f}%",
            impact="If failed: logic differences remain to be fixed",
        )

    def _calculate_decision(self, criteria_results: List[ReadinessCriteria]) -> GoNoGoDecision:
        required_criteria = [criterion for criterion in criteria_results if criterion.required]
        if not all(criterion.status for criterion in required_criteria):
            return GoNoGoDecision.NO_GO
        if all(criterion.status for criterion in criteria_results):
            return GoNoGoDecision.GO
        return GoNoGoDecision.GO_WITH_CAUTION

    def _calculate_confidence(self, criteria_results: List[ReadinessCriteria]) -> float:
        total = len(criteria_results)
        passed = sum(1 for criterion in criteria_results if criterion.status)
        if total == 0:
            return 0.0
        return passed / total

    def _generate_summary(
        self, criteria_results: List[ReadinessCriteria], decision: GoNoGoDecision
    ) -> str:
        required_criteria = [criterion for criterion in criteria_results if criterion.required]
        required_passed = sum(1 for criterion in required_criteria if criterion.status)

        if decision is GoNoGoDecision.GO:
            return f"✅ READY: all {len(criteria_results)} criteria met."

        if decision is GoNoGoDecision.GO_WITH_CAUTION:
            open_items = [c.name for c in criteria_results if not c.status]
            return (
                f"⚠️ READY WITH CAUTION: all {len(required_criteria)} required criteria met. "
                f"Open: {', '.join(open_items)}."
            )

        failed_criteria = [
            criterion.name
            for criterion in criteria_results
            if not criterion.status and criterion.required
        ]
        return (
            "❌ NOT READY\n"
            f"{required_passed}/{len(required_criteria)} required criteria passed. "
            f"Failed criteria: {', '.join(failed_criteria)}."
        )
