"""
Unit tests for parity report generation (src/comparison/diff_reporter.py)
"""

import json

from src.comparison.diff_reporter import MAX_LISTED_DIFFERENCES, DiffReporter
from src.domain.results import (
    Classification,
    ClassifiedDifference,
    ParityResult,
    RegressionVerdict,
    SeedResult,
    SeedStatus,
)


def difference(index, classification=Classification.LOGIC_DIFFERENCE):
    return ClassifiedDifference(
        command_index=index,
        command=f"command {index}",
        left_output="Taken.\nThe lamp is on.",
        right_output="Dropped.",
        classification=classification,
        reason="response mismatch",
    )


class TestDiffReporter:
    def test_seed_stats_pass_and_fail(self, tmp_path):
        reporter = DiffReporter(output_dir=tmp_path)
        clean = SeedResult(seed=1, total_commands=3, matching=3)
        broken = SeedResult(seed=2, total_commands=3, matching=2, differences=[difference(0)])
        unavailable = SeedResult.not_executed(3, 3, SeedStatus.UNAVAILABLE, "no session")

        assert reporter.seed_stats(clean)["parity_status"] == "PASS"
        assert reporter.seed_stats(broken)["parity_status"] == "FAIL"
        assert reporter.seed_stats(unavailable)["parity_status"] == "FAIL"

    def test_write_reports(self, tmp_path):
        reporter = DiffReporter(output_dir=tmp_path / "reports")
        seed_result = SeedResult(
            seed=42,
            total_commands=4,
            matching=2,
            differences=[difference(1, Classification.RNG_DIFFERENCE), difference(3)],
        )

        json_path, md_path = reporter.write_reports(seed_result, "walkthrough")

        report = json.loads(json_path.read_text(encoding="utf-8"))
        assert report["metadata"] == {
            "seed": 42,
            "sequence": "walkthrough",
            "generated_at": report["metadata"]["generated_at"],
        }
        assert report["statistics"]["logic_differences"] == 1
        assert len(report["result"]["differences"]) == 2

        markdown = md_path.read_text(encoding="utf-8")
        assert "# Parity Report: seed 42" in markdown
        assert "### LOGIC_DIFFERENCE (1)" in markdown
        assert "Taken. | The lamp is on." in markdown
        assert markdown.index("LOGIC_DIFFERENCE (1)") < markdown.index("RNG_DIFFERENCE (1)")

    def test_long_difference_list_elided(self, tmp_path):
        count = MAX_LISTED_DIFFERENCES + 5
        seed_result = SeedResult(
            seed=1, total_commands=count, differences=[difference(i) for i in range(count)]
        )

        markdown = DiffReporter(output_dir=tmp_path).generate_markdown_summary(seed_result, "long")

        assert "- ... 5 more" in markdown

    def test_perfect_parity(self, tmp_path):
        markdown = DiffReporter(output_dir=tmp_path).generate_markdown_summary(
            SeedResult(seed=1, total_commands=2, matching=2), "short"
        )
        assert "Perfect Parity" in markdown

    def test_aggregate_summary(self, tmp_path):
        reporter = DiffReporter(output_dir=tmp_path)
        result = ParityResult(
            seed_results=[
                SeedResult(seed=1, total_commands=2, matching=2),
                SeedResult.not_executed(2, 2, SeedStatus.UNAVAILABLE, "no session"),
            ]
        )
        verdict = RegressionVerdict(
            passed=True, baseline_present=False, reasons=["no baseline present"]
        )

        summary_path = reporter.write_aggregate_summary(result, verdict)

        summary = summary_path.read_text(encoding="utf-8")
        assert summary_path.name == "SUMMARY.md"
        assert "**Seeds Passed:** 1" in summary
        assert "**Unavailable Seeds:** 2" in summary
        assert "No baseline found" in summary

        document = json.loads((tmp_path / "parity_result.json").read_text(encoding="utf-8"))
        assert document["result"]["incomplete"] is True
        assert document["regression"]["baseline_present"] is False
