"""
Unit tests for the difference classifier and fork tracking
(src/comparison/classifier.py)
"""

import pytest

from src.comparison.classifier import (
    REASON_INTERJECTION,
    REASON_MATCH,
    REASON_RESPONSE_MISMATCH,
    REASON_ROOMS_DIFFER,
    ClassificationContext,
    DifferenceClassifier,
    ForkTracker,
    display_text,
)
from src.comparison.message_extractor import ExtractedMessage
from src.domain.results import Classification
from src.domain.transcript import RawOutputBlock


def message(response, room_name=None, room_description=None):
    return ExtractedMessage(
        response=response,
        room_description=room_description,
        is_movement=room_name is not None,
        source=RawOutputBlock(response),
        room_name=room_name,
    )


UNFORKED = ClassificationContext(command="look", command_index=3)
FORKED = ClassificationContext(command="north", command_index=3, forked=True, fork_index=1)

KITCHEN = message("", room_name="Kitchen", room_description="Kitchen\nYou are in the kitchen.")


class TestDifferenceClassifier:
    """Tests for DifferenceClassifier.classify."""

    @pytest.fixture
    def classifier(self, registry):
        return DifferenceClassifier(registry)

    def test_rejects_raw_strings(self, classifier):
        with pytest.raises(TypeError, match="ExtractedMessage"):
            classifier.classify("Taken.", message("Taken."), UNFORKED)

    def test_identical_responses_match(self, classifier):
        outcome = classifier.classify(message("Taken."), message("Taken."), UNFORKED)
        assert outcome.classification is Classification.MATCH
        assert outcome.reason == REASON_MATCH

    def test_whitespace_only_difference_matches(self, classifier):
        outcome = classifier.classify(
            message("The  mailbox\nis open."), message("The mailbox is open. "), UNFORKED
        )
        assert outcome.classification is Classification.MATCH

    def test_same_pool_is_rng_difference(self, classifier):
        outcome = classifier.classify(
            message("A valiant attempt."), message("You can't be serious."), UNFORKED
        )
        assert outcome.classification is Classification.RNG_DIFFERENCE
        assert outcome.reason == "both responses from YUKS pool"

    def test_hollow_voice_is_rng_difference(self, classifier):
        outcome = classifier.classify(
            message("A hollow voice says 'Fool.'"),
            message("A hollow voice says 'Plugh.'"),
            UNFORKED,
        )
        assert outcome.classification is Classification.RNG_DIFFERENCE
        assert outcome.reason == "both responses from HOLLOW_VOICE pool"

    def test_interjection_only_is_rng_difference(self, classifier):
        outcome = classifier.classify(
            message("Taken.\nA grue sound echoes in the distance."), message("Taken."), UNFORKED
        )
        assert outcome.classification is Classification.RNG_DIFFERENCE
        assert outcome.reason == REASON_INTERJECTION

    def test_cross_pool_members_are_logic_difference(self, classifier):
        outcome = classifier.classify(message("A valiant attempt."), message("Hello."), UNFORKED)
        assert outcome.classification is Classification.LOGIC_DIFFERENCE
        assert outcome.reason == REASON_RESPONSE_MISMATCH

    def test_blocked_exit_after_fork_is_state_divergence(self, classifier):
        outcome = classifier.classify(message("You can't go that way."), KITCHEN, FORKED)
        assert outcome.classification is Classification.STATE_DIVERGENCE
        assert outcome.reason == "state divergence: blocked exit on one side"

    def test_blocked_exit_without_fork_is_logic_difference(self, classifier):
        outcome = classifier.classify(message("You can't go that way."), KITCHEN, UNFORKED)
        assert outcome.classification is Classification.LOGIC_DIFFERENCE

    def test_darkness_after_fork_is_state_divergence(self, classifier):
        outcome = classifier.classify(
            message("It is pitch black. You are likely to be eaten by a grue."),
            message("Taken."),
            FORKED,
        )
        assert outcome.classification is Classification.STATE_DIVERGENCE
        assert outcome.reason == "state divergence: darkness on one side"

    def test_pool_response_on_one_side_after_fork(self, classifier):
        outcome = classifier.classify(
            message("A valiant attempt."), message("The door opens."), FORKED
        )
        assert outcome.classification is Classification.STATE_DIVERGENCE
        assert outcome.reason == "state divergence: YUKS pool response on one side"

    def test_unexplained_difference_after_fork_is_logic(self, classifier):
        outcome = classifier.classify(
            message("Taken."), message("You can't see any lamp here."), FORKED
        )
        assert outcome.classification is Classification.LOGIC_DIFFERENCE

    def test_different_arrival_rooms(self, classifier):
        cellar = message("", room_name="Cellar", room_description="Cellar\nYou are in a cellar.")

        unforked = classifier.classify(KITCHEN, cellar, UNFORKED)
        forked = classifier.classify(KITCHEN, cellar, FORKED)

        assert unforked.classification is Classification.LOGIC_DIFFERENCE
        assert unforked.reason == REASON_ROOMS_DIFFER
        assert forked.classification is Classification.STATE_DIVERGENCE
        assert forked.reason == "state divergence: different arrival rooms"

    def test_classification_is_deterministic(self, classifier):
        left = message("Taken.")
        right = message("Dropped.")
        assert classifier.classify(left, right, FORKED) == classifier.classify(left, right, FORKED)


class TestForkTracker:
    def test_fork_must_precede_command(self):
        tracker = ForkTracker([2])
        assert not tracker.is_forked(2)
        assert tracker.is_forked(3)

    def test_records_only_forking_classifications(self):
        tracker = ForkTracker()
        tracker.record(0, Classification.LOGIC_DIFFERENCE)
        tracker.record(1, Classification.MATCH)
        assert tracker.fork_points == ()

        tracker.record(4, Classification.RNG_DIFFERENCE)
        tracker.record(6, Classification.STATE_DIVERGENCE)
        assert tracker.fork_points == (4, 6)

    def test_context_reports_earliest_fork(self):
        tracker = ForkTracker([5, 1])
        context = tracker.context_for("north", 7)

        assert context.forked is True
        assert context.fork_index == 1
        assert tracker.context_for("look", 1).forked is False


def test_display_text_joins_room_and_response():
    msg = message("There is a leaflet here.", "North of House", "North of House\nYou are north.")
    assert display_text(msg) == "North of House\nYou are north.\n\nThere is a leaflet here."
    assert display_text(message("Taken.")) == "Taken."
