"""
Transcript Comparator - the single entry point for comparing two transcripts

Walks two transcripts command by command: extracts both sides, counts
status-bar-only differences, and classifies every non-matching pair.
"""

import logging
import time
from typing import Optional, Sequence

from src.comparison.classifier import DifferenceClassifier, ForkTracker, display_text
from src.comparison.message_extractor import MessageExtractor, status_line_of
from src.comparison.rng_pools import RngPoolRegistry, normalize_text
from src.domain.results import (
    MISSING_ENTRY_REASON,
    Classification,
    ClassifiedDifference,
    ComparisonReport,
)
from src.domain.transcript import Transcript

logger = logging.getLogger(__name__)


class TranscriptComparator:
    """
    Compare a left (reimplemented) and right (reference) transcript.

    Stateless between calls: fork state lives in a ForkTracker created per
    comparison, so one comparator may serve several threads.
    """

    def __init__(
        self,
        extractor: Optional[MessageExtractor] = None,
        classifier: Optional[DifferenceClassifier] = None,
        registry: Optional[RngPoolRegistry] = None,
    ):
        self.extractor = extractor or MessageExtractor()
        self.classifier = classifier or DifferenceClassifier(registry)

    def compare(
        self,
        left: Transcript,
        right: Transcript,
        commands: Sequence[str],
        deadline: Optional[float] = None,
    ) -> ComparisonReport:
        """
        Compare two transcripts recorded for the same command sequence.

        Args:
            left: Transcript from the reimplemented engine
            right: Transcript from the reference engine
            commands: Commands that produced the transcripts
            deadline: Optional ``time.monotonic()`` value after which the walk
                stops; remaining commands are counted as execution errors

        Returns:
            ComparisonReport covering max(len(commands), len(left), len(right))
            commands
        """
        total = max(len(commands), len(left), len(right))
        report = ComparisonReport(total_commands=total)
        tracker = ForkTracker(tuple(left.fork_points) + tuple(right.fork_points))

        if len(left) != len(right):
            logger.warning(
                "Transcript length mismatch: left=%d right=%d commands=%d",
                len(left),
                len(right),
                len(commands),
            )

        for index in range(total):
            if deadline is not None and time.monotonic() >= deadline:
                report.execution_errors = total - index
                report.timed_out = True
                logger.warning(
                    "Comparison deadline reached at command %d of %d", index, total
                )
                break

            command = commands[index] if index < len(commands) else ""

            if index >= len(left) or index >= len(right):
                report.differences.append(
                    ClassifiedDifference(
                        command_index=index,
                        command=command,
                        left_output=left[index].text if index < len(left) else "",
                        right_output=right[index].text if index < len(right) else "",
                        classification=Classification.LOGIC_DIFFERENCE,
                        reason=MISSING_ENTRY_REASON,
                    )
                )
                continue

            left_message = self.extractor.extract(left[index], command)
            right_message = self.extractor.extract(right[index], command)
            outcome = self.classifier.classify(
                left_message, right_message, tracker.context_for(command, index)
            )
            tracker.record(index, outcome.classification)

            if outcome.classification is Classification.MATCH:
                report.matching += 1
                left_status = normalize_text(status_line_of(left[index]) or "")
                right_status = normalize_text(status_line_of(right[index]) or "")
                if left_status != right_status:
                    report.status_bar_only_differences += 1
                continue

            report.differences.append(
                ClassifiedDifference(
                    command_index=index,
                    command=command,
                    left_output=display_text(left_message),
                    right_output=display_text(right_message),
                    classification=outcome.classification,
                    reason=outcome.reason,
                )
            )

        logger.debug(
            "Compared %d commands: %d matching, %d differences, %d status-bar only",
            total,
            report.matching,
            len(report.differences),
            report.status_bar_only_differences,
        )
        return report
