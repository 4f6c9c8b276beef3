"""Shared fixtures for parity tests."""

import json

import pytest

from src.comparison.rng_pools import load_default_registry
from src.domain.transcript import Transcript


@pytest.fixture
def registry():
    """Registry over the bundled pool definitions."""
    return load_default_registry()


@pytest.fixture
def make_transcript():
    """Build a Transcript from plain output strings."""

    def _make(outputs, source="left", seed=None, fork_points=()):
        return Transcript.from_outputs(outputs, source=source, seed=seed, fork_points=fork_points)

    return _make


@pytest.fixture
def record_transcripts(tmp_path):
    """
    Write left/right recordings for one seed under tmp_path/recordings.

    Returns the recordings root.
    """
    root = tmp_path / "recordings"

    def _record(seed, commands, left_outputs, right_outputs, left_forks=None):
        for side, outputs in (("left", left_outputs), ("right", right_outputs)):
            side_dir = root / side
            side_dir.mkdir(parents=True, exist_ok=True)
            document = {"seed": seed, "commands": list(commands), "outputs": list(outputs)}
            if side == "left" and left_forks:
                document["fork_points"] = list(left_forks)
            (side_dir / f"seed_{seed}.json").write_text(json.dumps(document), encoding="utf-8")
        return root

    return _record
