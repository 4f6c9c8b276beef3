"""
zork-parity command line entry point.

Runs the parity validation matrix over recorded transcripts, gates the
result against the baseline and exits non-zero when the run is not ready.

Usage:
  zork-parity --sequence sequences/walkthrough.txt --transcripts-dir recordings \
      [--seeds 42,123] [--commands 100] [--update-baseline] [--report-dir reports]

Exit codes:
  0  run passed the readiness gate
  1  parity, regression or incomplete-run failure
  2  configuration error
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from src.comparison.diff_reporter import DiffReporter
from src.comparison.exceptions import BaselineError, SequenceParseError
from src.config.settings import ConfigurationError, ParitySettings
from src.domain.results import Classification
from src.monitoring.comparison import ParityLogger, ParityMetricsPublisher
from src.runner.session_runner import RecordedTranscriptRunner
from src.sequences.loader import CommandSequenceLoader
from src.validation.aggregator import ParityAggregator
from src.validation.baseline import BaselineStore
from src.validation.pattern_history import PatternHistory, detect_patterns
from src.validation.readiness import ReadinessValidator
from src.validation.recommendations import RecommendationEngine

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _parse_seeds(value: str) -> List[int]:
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"seeds must be comma-separated integers: {value}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zork-parity",
        description="Compare recorded transcripts of two engines and gate parity regressions",
    )
    parser.add_argument("--config", help="Parity matrix YAML file")
    parser.add_argument("--seeds", type=_parse_seeds, help="Comma-separated seeds (e.g. 42,123)")
    parser.add_argument("--sequence", help="Command sequence file")
    parser.add_argument(
        "--commands", dest="command_count", type=int, help="Run only the first N commands"
    )
    parser.add_argument("--transcripts-dir", help="Root of recorded left/right transcripts")
    parser.add_argument("--baseline", dest="baseline_path", help="Baseline JSON document")
    parser.add_argument("--report-dir", help="Write JSON and Markdown reports here")
    parser.add_argument(
        "--timeout", dest="seed_timeout_seconds", type=float, help="Per-seed timeout in seconds"
    )
    parser.add_argument("--workers", dest="max_workers", type=int, help="Seeds compared in parallel")
    parser.add_argument(
        "--require-zero-logic",
        action="store_true",
        default=None,
        help="Fail while any LOGIC_DIFFERENCE remains",
    )
    parser.add_argument(
        "--metrics",
        dest="metrics_enabled",
        action="store_true",
        default=None,
        help="Publish CloudWatch metrics",
    )
    parser.add_argument(
        "--update-baseline",
        action="store_true",
        help="Persist this run as the baseline if it passed and did not regress",
    )
    parser.add_argument("--history", help="Pattern history JSON file for cross-run tracking")
    parser.add_argument("--json", action="store_true", help="Print the full result as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    return parser


def load_settings(args: argparse.Namespace) -> ParitySettings:
    """
    Resolve settings from environment, matrix file and flags.

    Raises:
        ConfigurationError: If the resulting settings are invalid
    """
    settings = ParitySettings.from_env()
    if args.config:
        settings.load_matrix(args.config)
    settings.apply(
        {
            "seeds": args.seeds,
            "sequence": args.sequence,
            "command_count": args.command_count,
            "transcripts_dir": args.transcripts_dir,
            "baseline_path": args.baseline_path,
            "report_dir": args.report_dir,
            "seed_timeout_seconds": args.seed_timeout_seconds,
            "max_workers": args.max_workers,
            "require_zero_logic": args.require_zero_logic,
            "metrics_enabled": args.metrics_enabled,
        }
    )
    settings.validate()
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        settings = load_settings(args)
        sequence = CommandSequenceLoader().load(settings.sequence)
    except (ConfigurationError, SequenceParseError) as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    commands = sequence.head(settings.command_count)
    if not commands:
        logger.error(f"Command sequence {sequence.id} has no commands")
        return EXIT_CONFIG_ERROR

    run_id = f"{sequence.id}-{datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')}"
    parity_logger = ParityLogger(run_id)
    store = BaselineStore(settings.baseline_path)
    baseline = store.load()

    aggregator = ParityAggregator(
        max_workers=settings.max_workers,
        seed_timeout_seconds=settings.seed_timeout_seconds,
        parity_logger=parity_logger,
    )
    result = aggregator.run(
        settings.seeds, commands, RecordedTranscriptRunner(settings.transcripts_dir)
    )
    verdict = aggregator.check_regression(result, baseline)
    parity_logger.log_summary(result, verdict)

    history = None
    if args.history:
        history = PatternHistory.load(args.history)
        history.record(detect_patterns(result))
        history.save(args.history)

    recommendations = RecommendationEngine().generate(result, verdict, history)
    readiness = ReadinessValidator().evaluate(
        result, verdict, settings.require_zero_logic, recommendations
    )

    if settings.report_dir:
        reporter = DiffReporter(output_dir=settings.report_dir)
        for seed_result in result.seed_results:
            reporter.write_reports(seed_result, sequence.name)
        reporter.write_aggregate_summary(result, verdict)

    if settings.metrics_enabled:
        ParityMetricsPublisher(region_name=settings.aws_region).publish_run(run_id, result)

    exit_code = EXIT_OK if readiness.passed else EXIT_FAILED

    if args.update_baseline:
        try:
            store.save_if_improved(result, verdict, baseline)
        except BaselineError as e:
            logger.error(f"Baseline update failed: {e}")
            exit_code = EXIT_FAILED

    if args.json:
        print(
            json.dumps(
                {
                    "result": result.to_dict(),
                    "regression": verdict.to_dict(),
                    "readiness": readiness.to_dict(),
                },
                indent=2,
            )
        )
    else:
        print_summary(result, verdict, readiness)

    return exit_code


def print_summary(result, verdict, readiness) -> None:
    counts = result.counts_by_classification()
    print("=" * 60)
    print(f"Seeds: {', '.join(str(r.seed) for r in result.seed_results)}")
    print(f"Commands compared: {result.total_commands}")
    print(f"Parity: {result.parity_percentage:.2f}%")
    print(f"Logic parity: {result.logic_parity_percentage:.2f}%")
    for classification in (
        Classification.LOGIC_DIFFERENCE,
        Classification.STATE_DIVERGENCE,
        Classification.RNG_DIFFERENCE,
    ):
        print(f"  {classification.value}: {counts[classification]}")
    print(f"  status-bar only: {result.status_bar_only_differences}")
    print(f"  execution errors: {result.execution_errors}")
    print(f"  missing transcript entries: {result.missing_entries}")
    if not verdict.baseline_present:
        print("Regression: no baseline present")
    else:
        print(f"Regression: {'PASS' if verdict.passed else 'FAIL'}")
        for signature in verdict.new_signatures:
            print(f"  NEW {signature.classification} {signature.command!r}: {signature.reason}")
    print(readiness.summary)
    for recommendation in readiness.recommendations:
        print(f"  - {recommendation}")
    print("=" * 60)


if __name__ == "__main__":
    sys.exit(main())
