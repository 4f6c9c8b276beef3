"""
Difference Classifier - label each non-matching pair of extracted messages

Decision order (first match wins):
    1. equal normalized responses (and agreeing arrival rooms) -> MATCH
    2. both responses from one RNG pool, or an interjection-only difference
       -> RNG_DIFFERENCE
    3. sessions forked at an earlier command and the difference is one a fork
       explains -> STATE_DIVERGENCE
    4. anything else -> LOGIC_DIFFERENCE

Status-bar text is removed during extraction and never reaches this module.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Set, Tuple

from src.comparison.message_extractor import ExtractedMessage
from src.comparison.rng_pools import RngPoolRegistry, load_default_registry, normalize_text
from src.domain.results import Classification

logger = logging.getLogger(__name__)


BLOCKED_EXIT_PATTERNS = [
    re.compile(r"You can't go that way", re.IGNORECASE),
    re.compile(r"There is no way to go", re.IGNORECASE),
    re.compile(r"The door is closed", re.IGNORECASE),
    re.compile(r"The door is locked", re.IGNORECASE),
    re.compile(r"You can't fit through", re.IGNORECASE),
    re.compile(r"blocked", re.IGNORECASE),
]

DARKNESS_PATTERNS = [
    re.compile(r"It is pitch black", re.IGNORECASE),
    re.compile(r"It's too dark to see", re.IGNORECASE),
    re.compile(r"You can't see anything", re.IGNORECASE),
    re.compile(r"You have moved into a dark place", re.IGNORECASE),
]

REASON_MATCH = "identical response"
REASON_INTERJECTION = "interjection-only difference"
REASON_ROOMS_DIFFER = "arrival rooms differ"
REASON_RESPONSE_MISMATCH = "response mismatch"


def is_blocked_exit(text: str) -> bool:
    return any(pattern.search(text) for pattern in BLOCKED_EXIT_PATTERNS)


def is_darkness(text: str) -> bool:
    return any(pattern.search(text) for pattern in DARKNESS_PATTERNS)


@dataclass(frozen=True)
class ClassificationContext:
    """
    Per-command context supplied by the comparator.

    Attributes:
        command: The command being compared
        command_index: Position of the command in the sequence
        forked: True when the sessions are known to have diverged at an
            earlier command
        fork_index: Earliest known fork point before this command
    """

    command: str
    command_index: int
    forked: bool = False
    fork_index: Optional[int] = None


@dataclass(frozen=True)
class ClassificationOutcome:
    classification: Classification
    reason: str


class ForkTracker:
    """
    Records where two sessions of one transcript pair took different branches.

    A command is "forked" when a fork point exists strictly before it. Fork
    points come from the session runner (known RNG branch points) and from
    commands classified RNG_DIFFERENCE or STATE_DIVERGENCE. One tracker
    belongs to one transcript pair and is not shared between threads.
    """

    FORKING_CLASSIFICATIONS = (
        Classification.RNG_DIFFERENCE,
        Classification.STATE_DIVERGENCE,
    )

    def __init__(self, fork_points: Iterable[int] = ()):
        self._points: Set[int] = set(int(i) for i in fork_points)

    def record(self, command_index: int, classification: Classification) -> None:
        if classification in self.FORKING_CLASSIFICATIONS:
            self._points.add(command_index)

    def first_fork_before(self, command_index: int) -> Optional[int]:
        earlier = [i for i in self._points if i < command_index]
        return min(earlier) if earlier else None

    def is_forked(self, command_index: int) -> bool:
        return self.first_fork_before(command_index) is not None

    def context_for(self, command: str, command_index: int) -> ClassificationContext:
        fork_index = self.first_fork_before(command_index)
        return ClassificationContext(
            command=command,
            command_index=command_index,
            forked=fork_index is not None,
            fork_index=fork_index,
        )

    @property
    def fork_points(self) -> Tuple[int, ...]:
        return tuple(sorted(self._points))


def display_text(message: ExtractedMessage) -> str:
    """Room description and response joined, as shown in difference reports."""
    parts = [p for p in (message.room_description, message.response) if p]
    return "\n\n".join(parts)


class DifferenceClassifier:
    """
    Classify pairs of extracted messages.

    Total and deterministic: every pair receives exactly one Classification
    and the same inputs always yield the same outcome.
    """

    def __init__(self, registry: Optional[RngPoolRegistry] = None):
        self.registry = registry if registry is not None else load_default_registry()

    def classify(
        self,
        left: ExtractedMessage,
        right: ExtractedMessage,
        context: ClassificationContext,
    ) -> ClassificationOutcome:
        """
        Classify one pair of extracted messages.

        Args:
            left: Extracted message from the reimplemented engine
            right: Extracted message from the reference engine
            context: Command position and fork state

        Returns:
            ClassificationOutcome with the label and a stable reason string

        Raises:
            TypeError: If either side is not an ExtractedMessage
        """
        for side in (left, right):
            if not isinstance(side, ExtractedMessage):
                raise TypeError(
                    f"classify() requires ExtractedMessage inputs, got {type(side).__name__}"
                )

        left_text = normalize_text(left.response)
        right_text = normalize_text(right.response)
        rooms_agree = left.room_name == right.room_name

        if left_text == right_text and rooms_agree:
            return ClassificationOutcome(Classification.MATCH, REASON_MATCH)

        if left_text != right_text:
            pool = self.registry.shared_pool(left_text, right_text)
            if pool is not None:
                return ClassificationOutcome(
                    Classification.RNG_DIFFERENCE, f"both responses from {pool} pool"
                )
            if self.registry.is_interjection_only_difference(left.response, right.response):
                return ClassificationOutcome(Classification.RNG_DIFFERENCE, REASON_INTERJECTION)

        if context.forked:
            signal = self._fork_signal(left, right)
            if signal is not None:
                logger.debug(
                    "Command %d (%r) diverged after fork at %s: %s",
                    context.command_index,
                    context.command,
                    context.fork_index,
                    signal,
                )
                return ClassificationOutcome(
                    Classification.STATE_DIVERGENCE, f"state divergence: {signal}"
                )

        reason = REASON_RESPONSE_MISMATCH if left_text != right_text else REASON_ROOMS_DIFFER
        return ClassificationOutcome(Classification.LOGIC_DIFFERENCE, reason)

    def _fork_signal(self, left: ExtractedMessage, right: ExtractedMessage) -> Optional[str]:
        """Describe why a fork explains this difference, or None if it does not."""
        left_text = display_text(left)
        right_text = display_text(right)

        if is_blocked_exit(left.response) != is_blocked_exit(right.response):
            return "blocked exit on one side"
        if is_darkness(left_text) != is_darkness(right_text):
            return "darkness on one side"
        if left.room_name != right.room_name:
            return "different arrival rooms"

        left_pool = self.registry.pool_of(left.response)
        right_pool = self.registry.pool_of(right.response)
        if (left_pool is None) != (right_pool is None):
            return f"{left_pool or right_pool} pool response on one side"
        return None
