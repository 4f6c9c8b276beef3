"""Monitoring and telemetry module for parity validation."""

from src.monitoring.comparison import (
    ParityLogger,
    ParityMetricsPublisher,
    describe_text_difference,
)

__all__ = [
    "ParityLogger",
    "ParityMetricsPublisher",
    "describe_text_difference",
]
