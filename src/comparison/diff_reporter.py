"""Diff Reporter - Generate per-seed parity reports and markdown summaries."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from src.domain.results import (
    DIFFERENCE_TYPES,
    Classification,
    ParityResult,
    RegressionVerdict,
    SeedResult,
)
from src.utils.logger import truncate_text

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_RESULTS_DIR = PROJECT_ROOT / "reports" / "parity"

# Differences listed per classification in markdown before eliding the rest
MAX_LISTED_DIFFERENCES = 25


class DiffReporter:
    """Generate structured parity artifacts (JSON + Markdown)."""

    def __init__(self, output_dir: Path | None = None) -> None:
        self.output_dir = Path(output_dir) if output_dir is not None else DEFAULT_RESULTS_DIR
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def seed_stats(self, seed_result: SeedResult) -> Dict[str, Any]:
        logic_count = seed_result.count(Classification.LOGIC_DIFFERENCE)
        return {
            "seed": seed_result.seed,
            "status": seed_result.status.value,
            "total_commands": seed_result.total_commands,
            "matching": seed_result.matching,
            "logic_differences": logic_count,
            "rng_differences": seed_result.count(Classification.RNG_DIFFERENCE),
            "state_divergences": seed_result.count(Classification.STATE_DIVERGENCE),
            "status_bar_only_differences": seed_result.status_bar_only_differences,
            "execution_errors": seed_result.execution_errors,
            "parity_percentage": round(seed_result.parity_percentage, 2),
            "logic_parity_percentage": round(seed_result.logic_parity_percentage, 2),
            "parity_status": (
                "PASS"
                if logic_count == 0 and seed_result.execution_errors == 0
                else "FAIL"
            ),
        }

    def generate_json_report(self, seed_result: SeedResult, sequence_name: str) -> str:
        report = {
            "metadata": {
                "seed": seed_result.seed,
                "sequence": sequence_name,
                "generated_at": datetime.now().isoformat(),
            },
            "statistics": self.seed_stats(seed_result),
            "result": seed_result.to_dict(),
        }
        return json.dumps(report, indent=2, default=str)

    def generate_markdown_summary(self, seed_result: SeedResult, sequence_name: str) -> str:
        stats = self.seed_stats(seed_result)
        md_lines = [
            f"# Parity Report: seed {seed_result.seed}",
            f"**Sequence:** {sequence_name}",
            f"**Generated:** {datetime.now().isoformat()}",
            "",
            "## Summary",
            f"- **Status:** {stats['status']}",
            f"- **Commands:** {stats['total_commands']}",
            f"- **Matching:** {stats['matching']}",
            f"- **Logic Differences:** {stats['logic_differences']} 🚨",
            f"- **RNG Differences:** {stats['rng_differences']}",
            f"- **State Divergences:** {stats['state_divergences']}",
            f"- **Status-Bar Only:** {stats['status_bar_only_differences']}",
            f"- **Execution Errors:** {stats['execution_errors']}",
            f"- **Parity:** {stats['parity_percentage']:.2f}%",
            f"- **Logic Parity:** {stats['logic_parity_percentage']:.2f}%",
            "",
        ]
        if seed_result.error:
            md_lines.extend([f"**Error:** {seed_result.error}", ""])

        if seed_result.differences:
            md_lines.append("## Differences")
            for classification in reversed(DIFFERENCE_TYPES):
                listed = [
                    d for d in seed_result.differences if d.classification is classification
                ]
                if not listed:
                    continue
                md_lines.extend(["", f"### {classification.value} ({len(listed)})", ""])
                for diff in listed[:MAX_LISTED_DIFFERENCES]:
                    md_lines.append(
                        f"- **#{diff.command_index}** `{diff.command}` ({diff.reason}): "
                        f"left=\"{truncate_text(diff.left_output, 80)}\" "
                        f"right=\"{truncate_text(diff.right_output, 80)}\""
                    )
                if len(listed) > MAX_LISTED_DIFFERENCES:
                    md_lines.append(f"- ... {len(listed) - MAX_LISTED_DIFFERENCES} more")
        elif seed_result.execution_errors == 0:
            md_lines.append("Perfect Parity ✅")

        md_lines.extend(["", "---", "*Generated by zork-parity*"])
        return "\n".join(md_lines)

    def write_reports(self, seed_result: SeedResult, sequence_name: str) -> Tuple[Path, Path]:
        json_report = self.generate_json_report(seed_result, sequence_name)
        markdown_report = self.generate_markdown_summary(seed_result, sequence_name)

        json_path = self.output_dir / f"seed_{seed_result.seed}.json"
        md_path = self.output_dir / f"seed_{seed_result.seed}.md"

        json_path.write_text(json_report, encoding="utf-8")
        md_path.write_text(markdown_report, encoding="utf-8")

        logger.info("Wrote parity reports for seed %s", seed_result.seed)
        logger.info("  JSON: %s", json_path)
        logger.info("  Markdown: %s", md_path)

        return json_path, md_path

    def generate_aggregate_summary(
        self, result: ParityResult, verdict: Optional[RegressionVerdict] = None
    ) -> str:
        all_stats: List[Dict[str, Any]] = [self.seed_stats(r) for r in result.seed_results]
        passed = sum(1 for stat in all_stats if stat["parity_status"] == "PASS")

        md_lines = [
            "# Parity Validation - Aggregate Summary",
            f"**Generated:** {datetime.now().isoformat()}",
            "",
            "## Overall Results",
            f"- **Seeds Tested:** {len(all_stats)}",
            f"- **Seeds Passed:** {passed} ✅",
            f"- **Seeds Failed:** {len(all_stats) - passed} ❌",
            f"- **Total Commands:** {result.total_commands}",
            f"- **Parity:** {result.parity_percentage:.2f}%",
            f"- **Logic Parity:** {result.logic_parity_percentage:.2f}%",
            f"- **Run Verdict:** {'PASS' if result.passed else 'FAIL'}",
        ]
        if result.incomplete:
            md_lines.append("- **Incomplete:** some seeds did not finish")
        if result.unavailable_seeds:
            md_lines.append(
                f"- **Unavailable Seeds:** {', '.join(str(s) for s in result.unavailable_seeds)}"
            )

        md_lines.extend(["", "## Difference Summary"])
        for classification, count in result.counts_by_classification().items():
            md_lines.append(f"- **{classification.value}:** {count}")
        md_lines.append(f"- **Status-bar only:** {result.status_bar_only_differences}")
        md_lines.append(f"- **Execution errors:** {result.execution_errors}")

        if verdict is not None:
            md_lines.extend(["", "## Regression Check"])
            if not verdict.baseline_present:
                md_lines.append("- No baseline found; regression check skipped")
            md_lines.append(f"- **Verdict:** {'PASS' if verdict.passed else 'FAIL'}")
            md_lines.append(f"- **Logic difference delta:** {verdict.logic_difference_delta:+d}")
            md_lines.append(f"- **Logic parity delta:** {verdict.logic_parity_delta:+.2f}")
            for signature in verdict.new_signatures:
                md_lines.append(
                    f"- NEW `{signature.command}` {signature.classification}: {signature.reason}"
                )
            for reason in verdict.reasons:
                md_lines.append(f"- {reason}")

        md_lines.extend(["", "## Detailed Results", ""])
        for stat in sorted(all_stats, key=lambda item: item["seed"]):
            status_emoji = "✅" if stat["parity_status"] == "PASS" else "❌"
            md_lines.append(
                f"{status_emoji} **seed {stat['seed']}** ({stat['status']}; "
                f"Logic: {stat['logic_differences']}, "
                f"Logic parity: {stat['logic_parity_percentage']:.2f}%)"
            )

        md_lines.extend(["", "---", "*zork-parity*"])
        return "\n".join(md_lines)

    def write_aggregate_summary(
        self, result: ParityResult, verdict: Optional[RegressionVerdict] = None
    ) -> Path:
        summary = self.generate_aggregate_summary(result, verdict)
        summary_path = self.output_dir / "SUMMARY.md"
        summary_path.write_text(summary, encoding="utf-8")

        result_path = self.output_dir / "parity_result.json"
        document: Dict[str, Any] = {"result": result.to_dict()}
        if verdict is not None:
            document["regression"] = verdict.to_dict()
        result_path.write_text(json.dumps(document, indent=2, default=str), encoding="utf-8")

        logger.info("Wrote aggregate summary: %s", summary_path)
        return summary_path
