"""
Configuration loader for parity validation runs

Builds run settings from environment variables and an optional YAML
parity matrix validated against ``parity_matrix.schema.json``.

Precedence (lowest to highest): built-in defaults, environment variables,
parity matrix file, explicit overrides (CLI flags).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


CONFIG_DIR = Path(__file__).resolve().parent
PARITY_MATRIX_SCHEMA_PATH = CONFIG_DIR / "parity_matrix.schema.json"

DEFAULT_SEEDS = [42, 123, 456, 789, 999]
DEFAULT_BASELINE_PATH = ".parity/baseline.json"
DEFAULT_SEED_TIMEOUT_SECONDS = 300.0
DEFAULT_MAX_WORKERS = 4
DEFAULT_AWS_REGION = "us-east-1"

# Environment variable names
ENV_BASELINE_PATH = "PARITY_BASELINE_PATH"
ENV_REPORT_DIR = "PARITY_REPORT_DIR"
ENV_SEED_TIMEOUT = "PARITY_SEED_TIMEOUT_SECONDS"
ENV_MAX_WORKERS = "PARITY_MAX_WORKERS"
ENV_METRICS_ENABLED = "PARITY_METRICS_ENABLED"
ENV_REQUIRE_ZERO_LOGIC = "PARITY_REQUIRE_ZERO_LOGIC"
ENV_AWS_REGION = "PARITY_AWS_REGION"


def _read_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() == "true"


def _read_number(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


class ParitySettings:
    """
    Settings for one parity validation run.

    Attributes:
        seeds: Seeds forming the validation matrix
        sequence: Command sequence file path
        command_count: Number of leading commands to run (None = all)
        transcripts_dir: Root of recorded transcripts for the recorded runner
        baseline_path: Persisted baseline document
        report_dir: Directory for JSON/Markdown reports (None = no reports)
        seed_timeout_seconds: Per-seed wall-clock limit
        max_workers: Seeds compared concurrently
        metrics_enabled: Publish CloudWatch metrics
        require_zero_logic: Fail the run on any remaining LOGIC_DIFFERENCE
        aws_region: Region for the CloudWatch client
    """

    def __init__(
        self,
        seeds: Optional[List[int]] = None,
        sequence: Optional[str] = None,
        command_count: Optional[int] = None,
        transcripts_dir: Optional[str] = None,
        baseline_path: str = DEFAULT_BASELINE_PATH,
        report_dir: Optional[str] = None,
        seed_timeout_seconds: float = DEFAULT_SEED_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        metrics_enabled: bool = False,
        require_zero_logic: bool = False,
        aws_region: str = DEFAULT_AWS_REGION,
    ):
        self.seeds = list(seeds) if seeds is not None else list(DEFAULT_SEEDS)
        self.sequence = sequence
        self.command_count = command_count
        self.transcripts_dir = transcripts_dir
        self.baseline_path = baseline_path
        self.report_dir = report_dir
        self.seed_timeout_seconds = seed_timeout_seconds
        self.max_workers = max_workers
        self.metrics_enabled = metrics_enabled
        self.require_zero_logic = require_zero_logic
        self.aws_region = aws_region

    @classmethod
    def from_env(cls) -> "ParitySettings":
        """
        Build settings from PARITY_* environment variables.

        Raises:
            ConfigurationError: If a numeric variable is not a positive number
        """
        return cls(
            baseline_path=os.getenv(ENV_BASELINE_PATH, DEFAULT_BASELINE_PATH),
            report_dir=os.getenv(ENV_REPORT_DIR) or None,
            seed_timeout_seconds=_read_number(
                ENV_SEED_TIMEOUT, float, DEFAULT_SEED_TIMEOUT_SECONDS
            ),
            max_workers=_read_number(ENV_MAX_WORKERS, int, DEFAULT_MAX_WORKERS),
            metrics_enabled=_read_flag(ENV_METRICS_ENABLED),
            require_zero_logic=_read_flag(ENV_REQUIRE_ZERO_LOGIC),
            aws_region=os.getenv(ENV_AWS_REGION, DEFAULT_AWS_REGION),
        )

    def apply(self, values: Dict[str, Any]) -> "ParitySettings":
        """Override attributes from a mapping; None values are ignored."""
        for key, value in values.items():
            if value is None:
                continue
            if not hasattr(self, key):
                raise ConfigurationError(f"Unknown setting: {key}")
            setattr(self, key, list(value) if key == "seeds" else value)
        return self

    def load_matrix(
        self,
        matrix_path: str,
        schema_path: Path = PARITY_MATRIX_SCHEMA_PATH,
    ) -> "ParitySettings":
        """
        Load a parity matrix YAML file and validate it against its schema.

        Args:
            matrix_path: Path to the parity matrix YAML file
            schema_path: Path to parity_matrix.schema.json

        Returns:
            self, with the matrix values applied

        Raises:
            ConfigurationError: If a file is missing, unparsable or invalid
        """
        try:
            with open(schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except FileNotFoundError as e:
            logger.error(f"Parity matrix schema not found: {schema_path}")
            raise ConfigurationError(f"Schema file not found: {schema_path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in {schema_path}: {e}") from e

        try:
            with open(matrix_path, "r", encoding="utf-8") as f:
                matrix = yaml.safe_load(f)
        except FileNotFoundError as e:
            logger.error(f"Parity matrix file not found: {matrix_path}")
            raise ConfigurationError(f"Parity matrix file not found: {matrix_path}") from e
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in parity matrix: {e}")
            raise ConfigurationError(f"Invalid YAML in {matrix_path}: {e}") from e

        if not matrix:
            logger.warning(f"Empty parity matrix: {matrix_path}")
            return self

        try:
            jsonschema.validate(instance=matrix, schema=schema)
        except jsonschema.ValidationError as e:
            logger.error(f"Parity matrix failed schema validation: {e.message}")
            raise ConfigurationError(f"Parity matrix validation failed: {e.message}") from e
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Parity matrix schema is invalid: {e.message}") from e

        # Relative paths in the matrix resolve against the matrix file
        base_dir = Path(matrix_path).resolve().parent
        for key in ("sequence", "transcripts_dir", "baseline_path", "report_dir"):
            if key in matrix and not Path(matrix[key]).is_absolute():
                matrix[key] = str(base_dir / matrix[key])

        logger.info(f"Loaded parity matrix from {matrix_path}")
        return self.apply(matrix)

    def validate(self) -> None:
        """
        Check that the settings describe a runnable validation.

        Raises:
            ConfigurationError: If required values are missing or invalid
        """
        if not self.seeds:
            raise ConfigurationError("At least one seed is required")
        if len(set(self.seeds)) != len(self.seeds):
            raise ConfigurationError("Seeds must be unique")
        if not self.sequence:
            raise ConfigurationError("A command sequence file is required")
        if not self.transcripts_dir:
            raise ConfigurationError("A transcripts directory is required")
        if self.command_count is not None and self.command_count < 1:
            raise ConfigurationError("command_count must be at least 1")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        if self.seed_timeout_seconds <= 0:
            raise ConfigurationError("seed_timeout_seconds must be positive")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seeds": list(self.seeds),
            "sequence": self.sequence,
            "command_count": self.command_count,
            "transcripts_dir": self.transcripts_dir,
            "baseline_path": self.baseline_path,
            "report_dir": self.report_dir,
            "seed_timeout_seconds": self.seed_timeout_seconds,
            "max_workers": self.max_workers,
            "metrics_enabled": self.metrics_enabled,
            "require_zero_logic": self.require_zero_logic,
            "aws_region": self.aws_region,
        }
