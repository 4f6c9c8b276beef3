"""
Parity Aggregator

Runs the transcript comparison for every seed of a validation matrix,
merges the per-seed results, and gates the merged result against the
persisted baseline.
"""

from __future__ import annotations

import logging
import math
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, List, Mapping, Optional, Sequence, Union

from src.comparison import TranscriptComparator
from src.comparison.exceptions import SessionUnavailableError
from src.domain.results import (
    Classification,
    ParityResult,
    RegressionVerdict,
    SeedResult,
    SeedStatus,
)
from src.monitoring.comparison import ParityLogger
from src.runner.session_runner import SessionRunner
from src.utils.logger import log_operation
from src.validation.baseline import Baseline

logger = logging.getLogger(__name__)

CommandSequences = Union[Sequence[str], Mapping[int, Sequence[str]]]

SEED_TIMEOUT_ERROR = "seed timeout exceeded"


class ParityAggregator:
    """
    Fan seeds out over a thread pool and fan the results back in.

    Every seed gets its own comparison (and so its own fork state); the
    only shared objects are the stateless comparator and the read-only pool
    registry behind it.
    """

    def __init__(
        self,
        comparator: Optional[TranscriptComparator] = None,
        max_workers: int = 4,
        seed_timeout_seconds: Optional[float] = None,
        parity_logger: Optional[ParityLogger] = None,
    ):
        """
        Initialize the aggregator.

        Args:
            comparator: Transcript comparator (default instance when None)
            max_workers: Seeds compared concurrently
            seed_timeout_seconds: Wall-clock limit per seed (None = no limit)
            parity_logger: Structured telemetry logger for seeds and differences
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.comparator = comparator or TranscriptComparator()
        self.max_workers = max_workers
        self.seed_timeout_seconds = seed_timeout_seconds
        self.parity_logger = parity_logger

    @staticmethod
    def _commands_by_seed(
        seeds: Sequence[int], command_sequences: CommandSequences
    ) -> Dict[int, List[str]]:
        if isinstance(command_sequences, Mapping):
            missing = [seed for seed in seeds if seed not in command_sequences]
            if missing:
                raise ValueError(f"No command sequence for seeds: {missing}")
            by_seed = {seed: list(command_sequences[seed]) for seed in seeds}
        else:
            if isinstance(command_sequences, str):
                raise TypeError("command_sequences must be a list of commands, not a string")
            shared = list(command_sequences)
            by_seed = {seed: shared for seed in seeds}

        empty = [seed for seed, commands in by_seed.items() if not commands]
        if empty:
            raise ValueError(f"Empty command sequence for seeds: {empty}")
        return by_seed

    def _run_seed(self, seed: int, commands: List[str], runner: SessionRunner) -> SeedResult:
        started = time.monotonic()
        deadline = (
            started + self.seed_timeout_seconds if self.seed_timeout_seconds is not None else None
        )

        try:
            left, right = runner.transcripts_for(seed, commands)
        except SessionUnavailableError as e:
            logger.warning(f"Seed {seed} unavailable: {e}")
            return SeedResult.not_executed(seed, len(commands), SeedStatus.UNAVAILABLE, str(e))
        except Exception as e:
            logger.error(f"Session runner failed for seed {seed}: {e}")
            return SeedResult.not_executed(seed, len(commands), SeedStatus.FAILED, str(e))

        if deadline is not None and time.monotonic() >= deadline:
            logger.warning(f"Seed {seed} exceeded its timeout before comparison started")
            return SeedResult.not_executed(
                seed, len(commands), SeedStatus.TIMED_OUT, SEED_TIMEOUT_ERROR
            )

        report = self.comparator.compare(left, right, commands, deadline=deadline)
        duration_ms = (time.monotonic() - started) * 1000
        return SeedResult.from_report(seed, report, duration_ms)

    def _collect(
        self, seed: int, future: "Future[SeedResult]", total: int, run_deadline: Optional[float]
    ) -> SeedResult:
        timeout = None if run_deadline is None else max(0.0, run_deadline - time.monotonic())
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(f"Seed {seed} did not finish within its timeout")
            return SeedResult.not_executed(seed, total, SeedStatus.TIMED_OUT, SEED_TIMEOUT_ERROR)
        except Exception as e:
            logger.error(f"Comparison failed for seed {seed}: {e}")
            return SeedResult.not_executed(seed, total, SeedStatus.FAILED, str(e))

    @log_operation("parity_run")
    def run(
        self,
        seeds: Sequence[int],
        command_sequences: CommandSequences,
        session_runner: SessionRunner,
    ) -> ParityResult:
        """
        Compare every seed of the matrix and merge the results.

        Args:
            seeds: Seeds to run (unique)
            command_sequences: One command list for every seed, or a mapping
                seed -> command list
            session_runner: Producer of (left, right) transcripts

        Returns:
            ParityResult with one SeedResult per seed, in seed order

        Raises:
            ValueError: If seeds are empty or duplicated, or a command list is empty
        """
        seeds = list(seeds)
        if not seeds:
            raise ValueError("At least one seed is required")
        if len(set(seeds)) != len(seeds):
            raise ValueError("Seeds must be unique")
        commands_by_seed = self._commands_by_seed(seeds, command_sequences)

        workers = min(self.max_workers, len(seeds))
        run_deadline: Optional[float] = None
        if self.seed_timeout_seconds is not None:
            waves = math.ceil(len(seeds) / workers)
            run_deadline = time.monotonic() + self.seed_timeout_seconds * waves

        logger.info(f"Running parity comparison for {len(seeds)} seeds with {workers} workers")

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="parity-seed")
        try:
            futures = {
                seed: executor.submit(self._run_seed, seed, commands_by_seed[seed], session_runner)
                for seed in seeds
            }
            seed_results = [
                self._collect(seed, futures[seed], len(commands_by_seed[seed]), run_deadline)
                for seed in seeds
            ]
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        result = ParityResult(seed_results=seed_results)

        if self.parity_logger is not None:
            for seed_result in seed_results:
                for difference in seed_result.differences:
                    self.parity_logger.log_difference(seed_result.seed, difference)
                self.parity_logger.log_seed(seed_result)

        if result.incomplete:
            logger.warning(
                "Parity run incomplete: "
                + ", ".join(
                    f"seed {r.seed} {r.status.value}"
                    for r in seed_results
                    if r.status is not SeedStatus.COMPLETED
                )
            )
        logger.info(
            f"Parity run finished: logic_parity={result.logic_parity_percentage:.2f}%, "
            f"parity={result.parity_percentage:.2f}%, "
            f"logic_differences={result.count(Classification.LOGIC_DIFFERENCE)}"
        )
        return result

    def check_regression(
        self, current: ParityResult, baseline: Optional[Baseline]
    ) -> RegressionVerdict:
        """
        Gate a result against the persisted baseline.

        Fails on any difference signature (command, classification, reason)
        the baseline has not seen, or on more LOGIC_DIFFERENCEs than the
        baseline recorded. Without a baseline the check passes and the
        verdict says so.

        Args:
            current: Result of this run
            baseline: Baseline read at the start of the run, or None

        Returns:
            RegressionVerdict
        """
        if baseline is None:
            logger.warning("No baseline present; regression check passes by default")
            return RegressionVerdict(
                passed=True,
                baseline_present=False,
                reasons=["no baseline present"],
            )

        current_signatures = current.signatures()
        new_signatures = sorted(current_signatures - baseline.signatures)
        resolved_signatures = sorted(baseline.signatures - current_signatures)
        logic_delta = current.count(Classification.LOGIC_DIFFERENCE) - baseline.logic_difference_count
        parity_delta = current.logic_parity_percentage - baseline.logic_parity_percentage

        reasons: List[str] = []
        if new_signatures:
            reasons.append(f"{len(new_signatures)} new difference signature(s)")
            for signature in new_signatures:
                logger.warning(
                    f"New difference: {signature.classification} on {signature.command!r} "
                    f"({signature.reason})"
                )
        if logic_delta > 0:
            reasons.append(f"LOGIC_DIFFERENCE count increased by {logic_delta}")

        if resolved_signatures:
            logger.info(f"{len(resolved_signatures)} baseline difference(s) resolved")

        return RegressionVerdict(
            passed=not reasons,
            baseline_present=True,
            new_signatures=new_signatures,
            resolved_signatures=resolved_signatures,
            logic_difference_delta=logic_delta,
            logic_parity_delta=parity_delta,
            reasons=reasons,
        )
