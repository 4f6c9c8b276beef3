"""Result value objects produced by the comparison core and the aggregator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Set, Tuple


MISSING_ENTRY_REASON = "missing transcript entry"


def _get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class Classification(Enum):
    """Outcome of comparing one pair of extracted responses."""

    MATCH = "MATCH"
    RNG_DIFFERENCE = "RNG_DIFFERENCE"
    STATE_DIVERGENCE = "STATE_DIVERGENCE"
    LOGIC_DIFFERENCE = "LOGIC_DIFFERENCE"


DIFFERENCE_TYPES: Tuple[Classification, ...] = (
    Classification.RNG_DIFFERENCE,
    Classification.STATE_DIVERGENCE,
    Classification.LOGIC_DIFFERENCE,
)


class SeedStatus(Enum):
    """Execution status of one seed in a validation run."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"


class DifferenceSignature(NamedTuple):
    """Identity of a difference for regression gating: command + classification + reason."""

    command: str
    classification: str
    reason: str

    def to_list(self) -> List[str]:
        return [self.command, self.classification, self.reason]


@dataclass(frozen=True)
class ClassifiedDifference:
    """A non-matching command whose extracted responses were classified."""

    command_index: int
    command: str
    left_output: str
    right_output: str
    classification: Classification
    reason: str

    def __post_init__(self) -> None:
        if not isinstance(self.classification, Classification):
            raise TypeError(f"classification must be a Classification, got {self.classification!r}")
        if self.classification is Classification.MATCH:
            raise ValueError("A ClassifiedDifference cannot carry the MATCH classification")

    @property
    def signature(self) -> DifferenceSignature:
        return DifferenceSignature(self.command, self.classification.value, self.reason)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "command_index": self.command_index,
            "command": self.command,
            "left_output": self.left_output,
            "right_output": self.right_output,
            "classification": self.classification.value,
            "reason": self.reason,
        }


@dataclass
class ComparisonReport:
    """Structured difference report for one pair of transcripts."""

    total_commands: int
    matching: int = 0
    status_bar_only_differences: int = 0
    differences: List[ClassifiedDifference] = field(default_factory=list)
    execution_errors: int = 0
    timed_out: bool = False

    def count(self, classification: Classification) -> int:
        return sum(1 for d in self.differences if d.classification is classification)


@dataclass
class SeedResult:
    """Comparison outcome for one seed."""

    seed: int
    total_commands: int
    matching: int = 0
    status_bar_only_differences: int = 0
    differences: List[ClassifiedDifference] = field(default_factory=list)
    execution_errors: int = 0
    status: SeedStatus = SeedStatus.COMPLETED
    error: Optional[str] = None
    duration_ms: float = 0.0

    @classmethod
    def from_report(
        cls, seed: int, report: ComparisonReport, duration_ms: float = 0.0
    ) -> "SeedResult":
        return cls(
            seed=seed,
            total_commands=report.total_commands,
            matching=report.matching,
            status_bar_only_differences=report.status_bar_only_differences,
            differences=list(report.differences),
            execution_errors=report.execution_errors,
            status=SeedStatus.TIMED_OUT if report.timed_out else SeedStatus.COMPLETED,
            error="seed timeout exceeded" if report.timed_out else None,
            duration_ms=duration_ms,
        )

    @classmethod
    def not_executed(
        cls, seed: int, total_commands: int, status: SeedStatus, error: str
    ) -> "SeedResult":
        """Result for a seed whose commands were never compared."""
        return cls(
            seed=seed,
            total_commands=total_commands,
            execution_errors=total_commands,
            status=status,
            error=error,
        )

    def count(self, classification: Classification) -> int:
        return sum(1 for d in self.differences if d.classification is classification)

    @property
    def parity_percentage(self) -> float:
        if self.total_commands == 0:
            return 100.0 if self.status is SeedStatus.COMPLETED else 0.0
        return self.matching / self.total_commands * 100

    @property
    def logic_parity_percentage(self) -> float:
        if self.total_commands == 0:
            return 100.0 if self.status is SeedStatus.COMPLETED else 0.0
        rng_count = self.count(Classification.RNG_DIFFERENCE)
        state_divergence_count = self.count(Classification.STATE_DIVERGENCE)
        return (self.matching + rng_count + state_divergence_count) / self.total_commands * 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "seed": self.seed,
            "status": self.status.value,
            "error": self.error,
            "total_commands": self.total_commands,
            "matching": self.matching,
            "status_bar_only_differences": self.status_bar_only_differences,
            "execution_errors": self.execution_errors,
            "counts": {c.value: self.count(c) for c in DIFFERENCE_TYPES},
            "parity_percentage": round(self.parity_percentage, 4),
            "logic_parity_percentage": round(self.logic_parity_percentage, 4),
            "duration_ms": round(self.duration_ms, 2),
            "differences": [d.to_dict() for d in self.differences],
        }


@dataclass
class ParityResult:
    """
    Aggregate over all seeds of a validation run.

    Counts are summed across seeds before percentages are computed, so a
    short seed cannot skew the overall figure.
    """

    seed_results: List[SeedResult] = field(default_factory=list)
    generated_at: str = field(default_factory=_get_iso_timestamp)

    @property
    def total_commands(self) -> int:
        return sum(r.total_commands for r in self.seed_results)

    @property
    def matching(self) -> int:
        return sum(r.matching for r in self.seed_results)

    @property
    def status_bar_only_differences(self) -> int:
        return sum(r.status_bar_only_differences for r in self.seed_results)

    @property
    def execution_errors(self) -> int:
        return sum(r.execution_errors for r in self.seed_results)

    @property
    def differences(self) -> List[ClassifiedDifference]:
        return [d for r in self.seed_results for d in r.differences]

    def count(self, classification: Classification) -> int:
        return sum(r.count(classification) for r in self.seed_results)

    def counts_by_classification(self) -> Dict[Classification, int]:
        return {c: self.count(c) for c in DIFFERENCE_TYPES}

    @property
    def missing_entries(self) -> int:
        return sum(1 for d in self.differences if d.reason == MISSING_ENTRY_REASON)

    @property
    def unavailable_seeds(self) -> List[int]:
        return [r.seed for r in self.seed_results if r.status is SeedStatus.UNAVAILABLE]

    @property
    def incomplete(self) -> bool:
        return any(r.status is not SeedStatus.COMPLETED for r in self.seed_results)

    @property
    def parity_percentage(self) -> float:
        total = self.total_commands
        if total == 0:
            return 0.0 if self.incomplete or not self.seed_results else 100.0
        return self.matching / total * 100

    @property
    def logic_parity_percentage(self) -> float:
        total = self.total_commands
        if total == 0:
            return 0.0 if self.incomplete or not self.seed_results else 100.0
        rng_count = self.count(Classification.RNG_DIFFERENCE)
        state_divergence_count = self.count(Classification.STATE_DIVERGENCE)
        return (self.matching + rng_count + state_divergence_count) / total * 100

    @property
    def passed(self) -> bool:
        return (
            bool(self.seed_results)
            and not self.incomplete
            and self.execution_errors == 0
            and self.missing_entries == 0
            and self.count(Classification.LOGIC_DIFFERENCE) == 0
        )

    def signatures(self) -> Set[DifferenceSignature]:
        return {d.signature for d in self.differences}

    def to_dict(self, include_differences: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: Dict[str, Any] = {
            "generated_at": self.generated_at,
            "passed": self.passed,
            "incomplete": self.incomplete,
            "unavailable_seeds": self.unavailable_seeds,
            "total_commands": self.total_commands,
            "matching": self.matching,
            "status_bar_only_differences": self.status_bar_only_differences,
            "execution_errors": self.execution_errors,
            "missing_entries": self.missing_entries,
            "counts": {c.value: n for c, n in self.counts_by_classification().items()},
            "parity_percentage": round(self.parity_percentage, 4),
            "logic_parity_percentage": round(self.logic_parity_percentage, 4),
            "seeds": [
                r.to_dict() if include_differences else {
                    k: v for k, v in r.to_dict().items() if k != "differences"
                }
                for r in self.seed_results
            ],
        }
        return data


@dataclass
class RegressionVerdict:
    """Result of gating a ParityResult against the persisted baseline."""

    passed: bool
    baseline_present: bool
    new_signatures: List[DifferenceSignature] = field(default_factory=list)
    resolved_signatures: List[DifferenceSignature] = field(default_factory=list)
    logic_difference_delta: int = 0
    logic_parity_delta: float = 0.0
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "passed": self.passed,
            "baseline_present": self.baseline_present,
            "new_signatures": [s.to_list() for s in self.new_signatures],
            "resolved_signatures": [s.to_list() for s in self.resolved_signatures],
            "logic_difference_delta": self.logic_difference_delta,
            "logic_parity_delta": round(self.logic_parity_delta, 4),
            "reasons": list(self.reasons),
        }
