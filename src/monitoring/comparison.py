"""
Parity Telemetry Module

Structured logging and CloudWatch metrics publishing for parity runs.

- One JSON log entry per classified difference, per seed and per run, so
  runs can be queried through CloudWatch Logs Insights
- Run and per-seed metrics published to the zork-parity/comparison namespace
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import boto3

from src.domain.results import (
    Classification,
    ClassifiedDifference,
    ParityResult,
    RegressionVerdict,
    SeedResult,
)
from src.utils.logger import truncate_text

# CloudWatch limit: 20 metrics per put_metric_data request
METRICS_BATCH_SIZE = 20


def _get_iso_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def describe_text_difference(left: str, right: str, max_samples: int = 3) -> Tuple[int, str]:
    """
    Locate where two outputs start to differ.

    Args:
        left: Output from the reimplemented engine
        right: Output from the reference engine
        max_samples: Differing positions to include in the details

    Returns:
        Tuple of (first differing position or -1, details)
    """
    if left == right:
        return -1, ""

    first = -1
    samples: List[str] = []
    for i, (left_char, right_char) in enumerate(zip(left, right)):
        if left_char != right_char:
            if first < 0:
                first = i
            if len(samples) < max_samples:
                samples.append(f"pos{i}: {left_char!r} → {right_char!r}")

    if len(left) != len(right):
        if first < 0:
            first = min(len(left), len(right))
        samples.append(f"length: {len(left)} → {len(right)}")

    return first, f"First difference at {first}. Details: {', '.join(samples)}"


def _seed_metric_values(seed_result: SeedResult) -> Dict[str, float]:
    return {
        "logic_parity_percentage": seed_result.logic_parity_percentage,
        "parity_percentage": seed_result.parity_percentage,
        "logic_differences": seed_result.count(Classification.LOGIC_DIFFERENCE),
        "rng_differences": seed_result.count(Classification.RNG_DIFFERENCE),
        "state_divergences": seed_result.count(Classification.STATE_DIVERGENCE),
        "status_bar_only_differences": seed_result.status_bar_only_differences,
        "execution_errors": seed_result.execution_errors,
    }


def _metric_unit(name: str) -> str:
    return "Percent" if name.endswith("percentage") else "Count"


class ParityMetricsPublisher:
    """
    Publishes parity metrics to CloudWatch.

    Publishing failures are logged and never raised: telemetry must not
    change a run's verdict.
    """

    NAMESPACE = "zork-parity/comparison"

    def __init__(self, region_name: str = "us-east-1", cloudwatch_client=None):
        """
        Initialize metrics publisher.

        Args:
            region_name: AWS region for CloudWatch
            cloudwatch_client: Pre-built client (tests); created from region_name otherwise
        """
        self.region_name = region_name
        self.cloudwatch_client = cloudwatch_client or boto3.client(
            "cloudwatch", region_name=region_name
        )
        self.logger = logging.getLogger(__name__)

    def build_metric_data(self, run_id: str, result: ParityResult) -> List[Dict[str, Any]]:
        """
        Build the CloudWatch datapoints for one run.

        Run-level metrics carry only the ParityRun dimension; per-seed metrics
        add a Seed dimension.
        """
        timestamp = datetime.now(timezone.utc)
        run_values: Dict[str, float] = {
            "logic_parity_percentage": result.logic_parity_percentage,
            "parity_percentage": result.parity_percentage,
            "logic_differences": result.count(Classification.LOGIC_DIFFERENCE),
            "rng_differences": result.count(Classification.RNG_DIFFERENCE),
            "state_divergences": result.count(Classification.STATE_DIVERGENCE),
            "status_bar_only_differences": result.status_bar_only_differences,
            "execution_errors": result.execution_errors,
        }

        metric_data: List[Dict[str, Any]] = [
            {
                "MetricName": name,
                "Value": float(value),
                "Unit": _metric_unit(name),
                "Timestamp": timestamp,
                "Dimensions": [{"Name": "ParityRun", "Value": run_id}],
            }
            for name, value in run_values.items()
        ]

        for seed_result in result.seed_results:
            for name, value in _seed_metric_values(seed_result).items():
                metric_data.append(
                    {
                        "MetricName": name,
                        "Value": float(value),
                        "Unit": _metric_unit(name),
                        "Timestamp": timestamp,
                        "Dimensions": [
                            {"Name": "ParityRun", "Value": run_id},
                            {"Name": "Seed", "Value": str(seed_result.seed)},
                        ],
                    }
                )
        return metric_data

    def publish_run(self, run_id: str, result: ParityResult) -> None:
        """
        Publish run and per-seed metrics to CloudWatch.

        Args:
            run_id: Identifier of the validation run
            result: Aggregated parity result
        """
        try:
            metric_data = self.build_metric_data(run_id, result)

            for i in range(0, len(metric_data), METRICS_BATCH_SIZE):
                batch = metric_data[i : i + METRICS_BATCH_SIZE]
                self.cloudwatch_client.put_metric_data(Namespace=self.NAMESPACE, MetricData=batch)
                self.logger.debug(f"Published {len(batch)} metrics to CloudWatch")

            self.logger.info(
                f"Parity metrics published: logic_parity={result.logic_parity_percentage:.2f}%, "
                f"logic_differences={result.count(Classification.LOGIC_DIFFERENCE)}"
            )

        except Exception as e:
            self.logger.error(f"Failed to publish parity metrics: {e}")


class ParityLogger:
    """
    Structured logger for parity telemetry.

    Every entry is a JSON object carrying run_id and event_type so entries
    can be filtered per run in CloudWatch Logs Insights.
    """

    def __init__(self, run_id: str):
        """
        Initialize parity logger.

        Args:
            run_id: Unique identifier for this validation run
        """
        self.run_id = run_id
        self.logger = logging.getLogger(__name__)

    def _emit(self, level: int, event_type: str, fields: Dict[str, Any]) -> None:
        log_entry = {
            "timestamp": _get_iso_timestamp(),
            "level": logging.getLevelName(level),
            "run_id": self.run_id,
            "event_type": event_type,
        }
        log_entry.update(fields)
        self.logger.log(level, json.dumps(log_entry, ensure_ascii=False, default=str))

    def log_difference(self, seed: int, difference: ClassifiedDifference) -> None:
        """
        Log one classified difference.

        LOGIC_DIFFERENCE entries are warnings; RNG and state differences are info.
        """
        first_position, details = describe_text_difference(
            difference.left_output, difference.right_output
        )
        level = (
            logging.WARNING
            if difference.classification is Classification.LOGIC_DIFFERENCE
            else logging.INFO
        )
        self._emit(
            level,
            "parity_difference",
            {
                "seed": seed,
                "command_index": difference.command_index,
                "command": difference.command,
                "classification": difference.classification.value,
                "reason": difference.reason,
                "first_difference_at": first_position,
                "difference_details": details,
                "left_output": truncate_text(difference.left_output),
                "right_output": truncate_text(difference.right_output),
            },
        )

    def log_seed(self, seed_result: SeedResult) -> None:
        fields: Dict[str, Any] = {
            "seed": seed_result.seed,
            "status": seed_result.status.value,
            "total_commands": seed_result.total_commands,
            "matching": seed_result.matching,
            "duration_ms": round(seed_result.duration_ms, 2),
        }
        fields.update(
            {name: round(value, 2) for name, value in _seed_metric_values(seed_result).items()}
        )
        if seed_result.error:
            fields["error"] = seed_result.error
        self._emit(logging.INFO, "seed_summary", fields)

    def log_summary(
        self, result: ParityResult, verdict: Optional[RegressionVerdict] = None
    ) -> None:
        """
        Log the run summary.

        Args:
            result: Aggregated parity result
            verdict: Regression verdict, when the run was gated
        """
        fields: Dict[str, Any] = {
            "seeds": [r.seed for r in result.seed_results],
            "total_commands": result.total_commands,
            "matching": result.matching,
            "counts": {c.value: n for c, n in result.counts_by_classification().items()},
            "status_bar_only_differences": result.status_bar_only_differences,
            "execution_errors": result.execution_errors,
            "parity_percentage": round(result.parity_percentage, 2),
            "logic_parity_percentage": round(result.logic_parity_percentage, 2),
            "incomplete": result.incomplete,
            "unavailable_seeds": result.unavailable_seeds,
            "passed": result.passed,
        }
        if verdict is not None:
            fields["regression"] = verdict.to_dict()
        self._emit(logging.INFO, "parity_summary", fields)
