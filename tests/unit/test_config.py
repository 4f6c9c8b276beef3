"""
Unit tests for configuration loader (src/config/settings.py)

Tests covering:
- Defaults and PARITY_* environment variables
- Parity matrix YAML loading and schema validation
- Override precedence and validation errors
"""

import os
from unittest.mock import patch

import pytest

from src.config.settings import (
    DEFAULT_BASELINE_PATH,
    DEFAULT_SEEDS,
    ConfigurationError,
    ParitySettings,
)


@pytest.fixture(autouse=True)
def cleanup_env():
    """Cleanup PARITY_* environment variables after each test."""
    yield
    for key in list(os.environ.keys()):
        if key.startswith("PARITY_"):
            os.environ.pop(key, None)


def write_matrix(tmp_path, content):
    path = tmp_path / "parity_matrix.yaml"
    path.write_text(content, encoding="utf-8")
    return str(path)


class TestParitySettingsDefaults:
    def test_defaults(self):
        settings = ParitySettings()

        assert settings.seeds == DEFAULT_SEEDS
        assert settings.baseline_path == DEFAULT_BASELINE_PATH
        assert settings.max_workers == 4
        assert settings.metrics_enabled is False

    def test_from_env(self):
        with patch.dict(
            os.environ,
            {
                "PARITY_BASELINE_PATH": "/tmp/baseline.json",
                "PARITY_MAX_WORKERS": "8",
                "PARITY_SEED_TIMEOUT_SECONDS": "12.5",
                "PARITY_METRICS_ENABLED": "true",
                "PARITY_REQUIRE_ZERO_LOGIC": "TRUE",
            },
        ):
            settings = ParitySettings.from_env()

        assert settings.baseline_path == "/tmp/baseline.json"
        assert settings.max_workers == 8
        assert settings.seed_timeout_seconds == 12.5
        assert settings.metrics_enabled is True
        assert settings.require_zero_logic is True

    @pytest.mark.parametrize("value", ["many", "0", "-2"])
    def test_from_env_rejects_bad_numbers(self, value):
        with patch.dict(os.environ, {"PARITY_MAX_WORKERS": value}):
            with pytest.raises(ConfigurationError, match="PARITY_MAX_WORKERS"):
                ParitySettings.from_env()


class TestLoadMatrix:
    def test_matrix_values_applied(self, tmp_path):
        matrix = write_matrix(
            tmp_path,
            "seeds: [1, 2, 3]\n"
            "sequence: sequences/walkthrough.txt\n"
            "transcripts_dir: /data/recordings\n"
            "command_count: 50\n"
            "require_zero_logic: true\n",
        )

        settings = ParitySettings().load_matrix(matrix)

        assert settings.seeds == [1, 2, 3]
        assert settings.command_count == 50
        assert settings.require_zero_logic is True
        assert settings.transcripts_dir == "/data/recordings"
        assert settings.sequence == str(tmp_path.resolve() / "sequences" / "walkthrough.txt")

    def test_unknown_key_rejected(self, tmp_path):
        matrix = write_matrix(tmp_path, "seeds: [1]\nturbo: true\n")
        with pytest.raises(ConfigurationError, match="validation failed"):
            ParitySettings().load_matrix(matrix)

    def test_duplicate_seeds_rejected(self, tmp_path):
        matrix = write_matrix(tmp_path, "seeds: [1, 1]\n")
        with pytest.raises(ConfigurationError):
            ParitySettings().load_matrix(matrix)

    def test_invalid_yaml(self, tmp_path):
        matrix = write_matrix(tmp_path, "seeds: [1, 2\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ParitySettings().load_matrix(matrix)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ParitySettings().load_matrix(str(tmp_path / "absent.yaml"))

    def test_empty_matrix_keeps_settings(self, tmp_path):
        matrix = write_matrix(tmp_path, "")
        settings = ParitySettings(seeds=[9]).load_matrix(matrix)
        assert settings.seeds == [9]


class TestApplyAndValidate:
    def test_overrides_win_and_none_ignored(self):
        settings = ParitySettings(seeds=[1]).apply({"seeds": (5, 6), "sequence": None})
        assert settings.seeds == [5, 6]
        assert settings.sequence is None

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError, match="Unknown setting"):
            ParitySettings().apply({"colour": "blue"})

    def test_valid_settings(self):
        ParitySettings(sequence="seq.txt", transcripts_dir="rec").validate()

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"seeds": []}, "At least one seed"),
            ({"seeds": [1, 1]}, "unique"),
            ({"sequence": None}, "command sequence"),
            ({"transcripts_dir": None}, "transcripts directory"),
            ({"command_count": 0}, "command_count"),
            ({"max_workers": 0}, "max_workers"),
            ({"seed_timeout_seconds": 0}, "seed_timeout_seconds"),
        ],
    )
    def test_invalid_settings(self, overrides, message):
        values = {"sequence": "seq.txt", "transcripts_dir": "rec"}
        values.update(overrides)
        settings = ParitySettings(**values)

        with pytest.raises(ConfigurationError, match=message):
            settings.validate()

    def test_to_dict(self):
        data = ParitySettings(seeds=[3]).to_dict()
        assert data["seeds"] == [3]
        assert data["aws_region"] == "us-east-1"
