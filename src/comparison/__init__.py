"""
Transcript comparison.

``TranscriptComparator`` is the only public way to compare transcripts;
extraction and classification are internal to it.
"""

from src.comparison.transcript_comparator import MISSING_ENTRY_REASON, TranscriptComparator
from src.domain.results import Classification, ClassifiedDifference, ComparisonReport

__all__ = [
    "MISSING_ENTRY_REASON",
    "Classification",
    "ClassifiedDifference",
    "ComparisonReport",
    "TranscriptComparator",
]
