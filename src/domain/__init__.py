"""Domain models - transcripts and parity results."""

from .results import (
    Classification,
    ClassifiedDifference,
    ComparisonReport,
    DifferenceSignature,
    ParityResult,
    RegressionVerdict,
    SeedResult,
    SeedStatus,
)
from .transcript import CommandSequence, RawOutputBlock, Transcript

__all__ = [
    "Classification",
    "ClassifiedDifference",
    "ComparisonReport",
    "CommandSequence",
    "DifferenceSignature",
    "ParityResult",
    "RawOutputBlock",
    "RegressionVerdict",
    "SeedResult",
    "SeedStatus",
    "Transcript",
]
