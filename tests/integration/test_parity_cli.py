"""
End-to-end parity runs through the command line entry point.

Recorded transcripts, the sequence file, the baseline and the reports all
live under tmp_path; no external services are involved.
"""

import json

import pytest

from src.cli import EXIT_CONFIG_ERROR, EXIT_FAILED, EXIT_OK, main

pytestmark = pytest.mark.integration

COMMANDS = ["open mailbox", "xyzzy", "take leaflet"]
LEFT = ["Opening the small mailbox reveals a leaflet.", "A hollow voice says 'Fool.'", "Taken."]
RIGHT = ["Opening the small mailbox reveals a leaflet.", "A hollow voice says 'Plugh.'", "Taken."]
RIGHT_REGRESSED = RIGHT[:2] + ["You can't see any leaflet here."]


@pytest.fixture
def workspace(tmp_path):
    sequence = tmp_path / "opening.txt"
    sequence.write_text("#!name: Opening\n" + "\n".join(COMMANDS) + "\n", encoding="utf-8")
    return tmp_path


def base_args(workspace, recordings, *extra):
    return [
        "--sequence",
        str(workspace / "opening.txt"),
        "--transcripts-dir",
        str(recordings),
        "--baseline",
        str(workspace / "baseline.json"),
        "--seeds",
        "42",
        *extra,
    ]


class TestParityCli:
    def test_rng_only_run_passes(self, workspace, record_transcripts, capsys):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT)
        report_dir = workspace / "reports"

        exit_code = main(base_args(workspace, recordings, "--report-dir", str(report_dir)))

        assert exit_code == EXIT_OK
        assert (report_dir / "seed_42.json").exists()
        assert (report_dir / "seed_42.md").exists()
        assert (report_dir / "SUMMARY.md").exists()
        output = capsys.readouterr().out
        assert "Logic parity: 100.00%" in output
        assert "Regression: no baseline present" in output

    def test_baseline_update_then_regression(self, workspace, record_transcripts, capsys):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT)
        baseline_path = workspace / "baseline.json"

        assert main(base_args(workspace, recordings, "--update-baseline")) == EXIT_OK
        saved = json.loads(baseline_path.read_text(encoding="utf-8"))
        assert saved["counts"]["LOGIC_DIFFERENCE"] == 0
        assert saved["signatures"] == [
            ["xyzzy", "RNG_DIFFERENCE", "both responses from HOLLOW_VOICE pool"]
        ]

        record_transcripts(42, COMMANDS, LEFT, RIGHT_REGRESSED)
        capsys.readouterr()

        assert main(base_args(workspace, recordings, "--update-baseline")) == EXIT_FAILED
        output = capsys.readouterr().out
        assert "Regression: FAIL" in output
        assert "take leaflet" in output
        assert json.loads(baseline_path.read_text(encoding="utf-8")) == saved

    def test_require_zero_logic(self, workspace, record_transcripts):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT_REGRESSED)

        assert main(base_args(workspace, recordings)) == EXIT_OK
        assert main(base_args(workspace, recordings, "--require-zero-logic")) == EXIT_FAILED

    def test_unavailable_seed_fails(self, workspace, record_transcripts):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT)
        args = base_args(workspace, recordings)
        args[args.index("42")] = "42,7"

        assert main(args) == EXIT_FAILED

    def test_truncated_transcript_fails_and_keeps_baseline(
        self, workspace, record_transcripts, capsys
    ):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT[:1])

        assert main(base_args(workspace, recordings, "--update-baseline")) == EXIT_FAILED
        assert not (workspace / "baseline.json").exists()
        output = capsys.readouterr().out
        assert "missing transcript entries: 2" in output
        assert "No Missing Transcript Entries" in output

    def test_json_output(self, workspace, record_transcripts, capsys):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT)

        assert main(base_args(workspace, recordings, "--json", "--commands", "2")) == EXIT_OK

        document = json.loads(capsys.readouterr().out)
        assert document["result"]["total_commands"] == 2
        assert document["regression"]["baseline_present"] is False
        assert document["readiness"]["decision"] == "GO_WITH_CAUTION"

    def test_matrix_file(self, workspace, record_transcripts):
        record_transcripts(42, COMMANDS, LEFT, RIGHT)
        matrix = workspace / "parity_matrix.yaml"
        matrix.write_text(
            "seeds: [42]\n"
            "sequence: opening.txt\n"
            "transcripts_dir: recordings\n"
            "baseline_path: baseline.json\n"
            "max_workers: 1\n",
            encoding="utf-8",
        )

        assert main(["--config", str(matrix)]) == EXIT_OK

    def test_missing_sequence_is_config_error(self, workspace, record_transcripts):
        recordings = record_transcripts(42, COMMANDS, LEFT, RIGHT)
        (workspace / "opening.txt").unlink()

        assert main(base_args(workspace, recordings)) == EXIT_CONFIG_ERROR

    def test_invalid_matrix_is_config_error(self, workspace):
        matrix = workspace / "parity_matrix.yaml"
        matrix.write_text("seeds: []\n", encoding="utf-8")

        assert main(["--config", str(matrix)]) == EXIT_CONFIG_ERROR

    def test_missing_transcripts_dir_is_config_error(self, workspace):
        assert main(["--sequence", str(workspace / "opening.txt")]) == EXIT_CONFIG_ERROR
