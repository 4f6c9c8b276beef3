"""
Cross-run difference pattern history.

Differences of a run are grouped into patterns (classification + reason).
The history remembers how often each pattern has been seen across runs and
how consistently it reappears, so recurring problems can be told apart from
one-off noise. The caller owns the lifecycle: ``load`` at the start of a
run, ``record`` once, ``save`` at the end.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from src.domain.results import Classification, ParityResult

logger = logging.getLogger(__name__)

NEW_PATTERN_CONSISTENCY = 0.3
CONSISTENCY_INCREMENT = 0.1
CONSISTENT_THRESHOLD = 0.7

# LOGIC patterns seen this many times in one run are critical
CRITICAL_FREQUENCY = 3


def _get_iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class IssueSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class IssuePattern:
    """A group of differences sharing classification and reason within one run."""

    classification: Classification
    reason: str
    frequency: int
    severity: IssueSeverity
    commands: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.classification.value}_{self.reason}"


def _severity_for(classification: Classification, frequency: int) -> IssueSeverity:
    if classification is Classification.LOGIC_DIFFERENCE:
        return IssueSeverity.CRITICAL if frequency >= CRITICAL_FREQUENCY else IssueSeverity.HIGH
    if classification is Classification.STATE_DIVERGENCE:
        return IssueSeverity.MEDIUM
    return IssueSeverity.LOW


def detect_patterns(result: ParityResult) -> List[IssuePattern]:
    """
    Group a run's differences into patterns.

    Returns:
        Patterns ordered by first appearance
    """
    grouped: "OrderedDict[tuple, List[str]]" = OrderedDict()
    for difference in result.differences:
        grouped.setdefault((difference.classification, difference.reason), []).append(
            difference.command
        )

    patterns = []
    for (classification, reason), commands in grouped.items():
        patterns.append(
            IssuePattern(
                classification=classification,
                reason=reason,
                frequency=len(commands),
                severity=_severity_for(classification, len(commands)),
                commands=sorted(set(commands)),
            )
        )
    return patterns


@dataclass
class PatternRecord:
    """History of one pattern across runs."""

    key: str
    classification: str
    reason: str
    occurrences: int = 1
    consistency: float = NEW_PATTERN_CONSISTENCY
    last_seen: str = field(default_factory=_get_iso_timestamp)

    @property
    def is_consistent(self) -> bool:
        return self.consistency >= CONSISTENT_THRESHOLD


class PatternHistory:
    """
    Repository of PatternRecords keyed by pattern key.

    A new pattern starts at consistency 0.3; each later run that sees it
    again adds 0.1 (capped at 1.0). A pattern at 0.7 or above is consistent.
    """

    def __init__(self, records: Optional[Dict[str, PatternRecord]] = None):
        self._records: Dict[str, PatternRecord] = dict(records or {})

    @classmethod
    def load(cls, path: str) -> "PatternHistory":
        """
        Load history from a JSON file.

        A missing file yields an empty history; an unreadable one is logged
        and also yields an empty history.
        """
        history_path = Path(path)
        if not history_path.exists():
            return cls()
        try:
            with open(history_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise TypeError(f"expected a JSON object, got {type(data).__name__}")
            records = {
                entry["key"]: PatternRecord(**entry) for entry in data.get("patterns", [])
            }
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Could not read pattern history {history_path}, starting fresh: {e}")
            return cls()
        return cls(records)

    def save(self, path: str) -> None:
        history_path = Path(path)
        history_path.parent.mkdir(parents=True, exist_ok=True)
        document = {"patterns": [asdict(r) for r in sorted(self._records.values(), key=lambda r: r.key)]}
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=str(history_path.parent), suffix=".tmp", delete=False
        ) as tmp:
            json.dump(document, tmp, indent=2)
        os.replace(tmp.name, history_path)
        logger.debug(f"Saved {len(self._records)} patterns to {history_path}")

    def reset(self) -> None:
        self._records.clear()

    def record(self, patterns: Iterable[IssuePattern]) -> List[PatternRecord]:
        """
        Record the patterns of one run.

        Args:
            patterns: Patterns detected in the run

        Returns:
            Records of the patterns that are consistent after this run
        """
        consistent: List[PatternRecord] = []
        for pattern in patterns:
            existing = self._records.get(pattern.key)
            if existing is None:
                self._records[pattern.key] = PatternRecord(
                    key=pattern.key,
                    classification=pattern.classification.value,
                    reason=pattern.reason,
                )
                continue

            existing.occurrences += 1
            existing.last_seen = _get_iso_timestamp()
            existing.consistency = round(
                min(1.0, existing.consistency + CONSISTENCY_INCREMENT), 2
            )
            if existing.is_consistent:
                consistent.append(existing)
        return consistent

    def get(self, key: str) -> Optional[PatternRecord]:
        return self._records.get(key)

    def is_consistent(self, pattern: IssuePattern) -> bool:
        record = self._records.get(pattern.key)
        return record is not None and record.is_consistent

    def consistent_patterns(self, patterns: Iterable[IssuePattern]) -> List[IssuePattern]:
        return [p for p in patterns if self.is_consistent(p)]

    def __len__(self) -> int:
        return len(self._records)
