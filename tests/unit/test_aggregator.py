"""
Unit tests for the parity aggregator (src/validation/aggregator.py)

Tests covering:
- Parity and logic parity over a seed matrix
- Unavailable, failing and timed-out seeds
- Input validation
- Regression gating against a baseline
"""

import time
from unittest.mock import Mock

import pytest

from src.comparison.exceptions import SessionUnavailableError
from src.domain.results import (
    Classification,
    ClassifiedDifference,
    DifferenceSignature,
    ParityResult,
    SeedResult,
    SeedStatus,
)
from src.domain.transcript import Transcript
from src.validation.aggregator import SEED_TIMEOUT_ERROR, ParityAggregator
from src.validation.baseline import Baseline

COMMANDS = ["open mailbox", "xyzzy", "take lamp", "wait"]
LEFT = [
    "Opening the mailbox reveals a leaflet.",
    "A hollow voice says 'Fool.'",
    "Taken.",
    "Time passes...",
]
RIGHT = [
    "Opening the mailbox reveals a leaflet.",
    "A hollow voice says 'Plugh.'",
    "You can't see any lamp here.",
    "Time passes...",
]


class FakeRunner:
    """Session runner serving in-memory transcripts."""

    def __init__(self, pairs=None, unavailable=(), failing=(), delay=0.0):
        self.pairs = pairs or {}
        self.unavailable = set(unavailable)
        self.failing = set(failing)
        self.delay = delay

    def transcripts_for(self, seed, commands):
        if self.delay:
            time.sleep(self.delay)
        if seed in self.unavailable:
            raise SessionUnavailableError(f"no session for seed {seed}")
        if seed in self.failing:
            raise RuntimeError("engine crashed")
        left, right = self.pairs.get(seed, (LEFT, LEFT))
        return (
            Transcript.from_outputs(left, source="left", seed=seed),
            Transcript.from_outputs(right, source="right", seed=seed),
        )


def logic_difference(command="take lamp", reason="response mismatch", index=2):
    return ClassifiedDifference(
        command_index=index,
        command=command,
        left_output="Taken.",
        right_output="You can't see any lamp here.",
        classification=Classification.LOGIC_DIFFERENCE,
        reason=reason,
    )


class TestParityAggregatorRun:
    def test_matching_seeds_pass(self):
        result = ParityAggregator().run([42, 123], COMMANDS, FakeRunner())

        assert [r.seed for r in result.seed_results] == [42, 123]
        assert result.passed
        assert result.parity_percentage == 100.0
        assert result.logic_parity_percentage == 100.0

    def test_parity_percentages(self):
        result = ParityAggregator().run([7], COMMANDS, FakeRunner({7: (LEFT, RIGHT)}))

        assert result.matching == 2
        assert result.count(Classification.RNG_DIFFERENCE) == 1
        assert result.count(Classification.LOGIC_DIFFERENCE) == 1
        assert result.parity_percentage == 50.0
        assert result.logic_parity_percentage == 75.0
        assert not result.passed

    def test_counts_summed_before_percentages(self):
        pairs = {1: (LEFT, RIGHT), 2: (LEFT, LEFT)}
        result = ParityAggregator().run([1, 2], COMMANDS, FakeRunner(pairs))

        assert result.total_commands == 8
        assert result.logic_parity_percentage == pytest.approx(7 / 8 * 100)

    def test_unavailable_seed_marks_run_incomplete(self):
        result = ParityAggregator().run([1, 2], COMMANDS, FakeRunner(unavailable=[2]))

        seed_result = result.seed_results[1]
        assert seed_result.status is SeedStatus.UNAVAILABLE
        assert seed_result.execution_errors == len(COMMANDS)
        assert result.incomplete
        assert result.unavailable_seeds == [2]
        assert not result.passed
        assert result.logic_parity_percentage == 50.0

    def test_failing_runner(self):
        result = ParityAggregator().run([1], COMMANDS, FakeRunner(failing=[1]))

        assert result.seed_results[0].status is SeedStatus.FAILED
        assert result.seed_results[0].error == "engine crashed"

    def test_seed_timeout(self):
        aggregator = ParityAggregator(seed_timeout_seconds=0.05)
        result = aggregator.run([1], COMMANDS, FakeRunner(delay=0.3))

        seed_result = result.seed_results[0]
        assert seed_result.status is SeedStatus.TIMED_OUT
        assert seed_result.error == SEED_TIMEOUT_ERROR
        assert seed_result.execution_errors == len(COMMANDS)

    def test_per_seed_command_sequences(self):
        result = ParityAggregator().run(
            [1, 2], {1: COMMANDS, 2: COMMANDS[:2]}, FakeRunner({2: (LEFT[:2], LEFT[:2])})
        )

        assert [r.total_commands for r in result.seed_results] == [4, 2]

    def test_parity_logger_receives_seeds_and_differences(self):
        parity_logger = Mock()
        ParityAggregator(parity_logger=parity_logger).run(
            [7], COMMANDS, FakeRunner({7: (LEFT, RIGHT)})
        )

        assert parity_logger.log_difference.call_count == 2
        parity_logger.log_seed.assert_called_once()

    @pytest.mark.parametrize(
        "seeds, sequences, error",
        [
            ([], COMMANDS, ValueError),
            ([1, 1], COMMANDS, ValueError),
            ([1], [], ValueError),
            ([1, 2], {1: COMMANDS}, ValueError),
            ([1], "look", TypeError),
        ],
    )
    def test_invalid_input(self, seeds, sequences, error):
        with pytest.raises(error):
            ParityAggregator().run(seeds, sequences, FakeRunner())

    def test_max_workers_must_be_positive(self):
        with pytest.raises(ValueError):
            ParityAggregator(max_workers=0)


class TestCheckRegression:
    def setup_method(self):
        self.aggregator = ParityAggregator()

    def result_with(self, *differences, total=10):
        matching = total - len(differences)
        return ParityResult(
            seed_results=[
                SeedResult(
                    seed=42,
                    total_commands=total,
                    matching=matching,
                    differences=list(differences),
                )
            ]
        )

    def test_no_baseline_passes(self):
        verdict = self.aggregator.check_regression(self.result_with(logic_difference()), None)

        assert verdict.passed
        assert not verdict.baseline_present
        assert verdict.reasons == ["no baseline present"]

    def test_new_logic_signature_fails(self):
        baseline = Baseline(logic_parity_percentage=100.0, counts={"LOGIC_DIFFERENCE": 0})
        verdict = self.aggregator.check_regression(
            self.result_with(logic_difference()), baseline
        )

        assert not verdict.passed
        assert verdict.new_signatures == [
            DifferenceSignature("take lamp", "LOGIC_DIFFERENCE", "response mismatch")
        ]
        assert "1 new difference signature(s)" in verdict.reasons
        assert verdict.logic_difference_delta == 1
        assert verdict.logic_parity_delta == pytest.approx(-10.0)

    def test_known_signature_passes(self):
        current = self.result_with(logic_difference())
        verdict = self.aggregator.check_regression(current, Baseline.from_result(current))

        assert verdict.passed
        assert verdict.new_signatures == []

    def test_logic_count_increase_fails(self):
        once = self.result_with(logic_difference())
        twice = self.result_with(logic_difference(index=2), logic_difference(index=5))

        verdict = self.aggregator.check_regression(twice, Baseline.from_result(once))

        assert not verdict.passed
        assert verdict.new_signatures == []
        assert verdict.reasons == ["LOGIC_DIFFERENCE count increased by 1"]

    def test_resolved_signatures_reported(self):
        previous = self.result_with(logic_difference())
        verdict = self.aggregator.check_regression(
            self.result_with(), Baseline.from_result(previous)
        )

        assert verdict.passed
        assert len(verdict.resolved_signatures) == 1
        assert verdict.logic_difference_delta == -1
