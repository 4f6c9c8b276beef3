"""
Baseline persistence for regression gating.

The baseline is the only durable state of a parity run: a JSON summary of
the last accepted ParityResult (logic parity, counts per classification and
the set of known difference signatures). It is read once at the start of a
run and written at most once at the end, atomically and under a lock file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterator, Optional

import jsonschema

from src.comparison.exceptions import BaselineError, BaselineLockedError
from src.domain.results import (
    DIFFERENCE_TYPES,
    Classification,
    DifferenceSignature,
    ParityResult,
    RegressionVerdict,
)

logger = logging.getLogger(__name__)

BASELINE_VERSION = "1.0"
BASELINE_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "config" / "baseline.schema.json"


@dataclass(frozen=True)
class Baseline:
    """Summary of the last accepted parity run."""

    logic_parity_percentage: float
    counts: Dict[str, int] = field(default_factory=dict)
    signatures: FrozenSet[DifferenceSignature] = field(default_factory=frozenset)
    parity_percentage: float = 0.0
    total_commands: int = 0
    updated_at: Optional[str] = None

    @property
    def logic_difference_count(self) -> int:
        return self.counts.get(Classification.LOGIC_DIFFERENCE.value, 0)

    @classmethod
    def from_result(cls, result: ParityResult) -> "Baseline":
        return cls(
            logic_parity_percentage=result.logic_parity_percentage,
            counts={c.value: result.count(c) for c in DIFFERENCE_TYPES},
            signatures=frozenset(result.signatures()),
            parity_percentage=result.parity_percentage,
            total_commands=result.total_commands,
            updated_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Baseline":
        return cls(
            logic_parity_percentage=float(data["logic_parity_percentage"]),
            counts={k: int(v) for k, v in data.get("counts", {}).items()},
            signatures=frozenset(DifferenceSignature(*s) for s in data.get("signatures", [])),
            parity_percentage=float(data.get("parity_percentage", 0.0)),
            total_commands=int(data.get("total_commands", 0)),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization (signatures sorted)."""
        return {
            "version": BASELINE_VERSION,
            "updated_at": self.updated_at,
            "logic_parity_percentage": self.logic_parity_percentage,
            "parity_percentage": self.parity_percentage,
            "total_commands": self.total_commands,
            "counts": dict(self.counts),
            "signatures": [s.to_list() for s in sorted(self.signatures)],
        }


class BaselineStore:
    """
    Reads and writes the baseline document.

    Concurrent runs against one baseline file are rejected through an
    exclusive lock file next to it.
    """

    def __init__(self, path: str, schema_path: Path = BASELINE_SCHEMA_PATH):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.schema_path = Path(schema_path)

    def load(self) -> Optional[Baseline]:
        """
        Read the persisted baseline.

        Returns:
            Baseline, or None when the file is missing or unreadable (a
            warning is logged; a bad baseline never aborts the run)
        """
        if not self.path.exists():
            logger.warning(f"No baseline found at {self.path}")
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            with open(self.schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
            jsonschema.validate(instance=data, schema=schema)
            return Baseline.from_dict(data)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read baseline {self.path}, ignoring it: {e}")
        except jsonschema.ValidationError as e:
            logger.warning(f"Baseline {self.path} failed schema validation, ignoring it: {e.message}")
        return None

    @contextmanager
    def _lock(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(str(self.lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as e:
            raise BaselineLockedError(
                f"Baseline {self.path} is locked by another run ({self.lock_path})"
            ) from e
        try:
            os.write(fd, str(os.getpid()).encode("ascii"))
            os.close(fd)
            yield
        finally:
            try:
                os.unlink(self.lock_path)
            except FileNotFoundError:
                logger.warning(f"Baseline lock {self.lock_path} vanished before release")

    def save(self, baseline: Baseline) -> None:
        """
        Atomically replace the baseline document.

        Raises:
            BaselineLockedError: If another run holds the lock
            BaselineError: If the document cannot be written
        """
        with self._lock():
            tmp_name = None
            try:
                with tempfile.NamedTemporaryFile(
                    "w",
                    encoding="utf-8",
                    dir=str(self.path.parent),
                    prefix=self.path.name + ".",
                    suffix=".tmp",
                    delete=False,
                ) as tmp:
                    tmp_name = tmp.name
                    json.dump(baseline.to_dict(), tmp, indent=2)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name and os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise BaselineError(f"Failed to write baseline {self.path}: {e}") from e

        logger.info(
            f"Baseline updated: logic_parity={baseline.logic_parity_percentage:.2f}%, "
            f"signatures={len(baseline.signatures)}"
        )

    def save_if_improved(
        self,
        result: ParityResult,
        verdict: RegressionVerdict,
        current: Optional[Baseline] = None,
    ) -> bool:
        """
        Persist the run as the new baseline when it is safe to do so.

        The baseline is written only when the regression verdict passed, the
        run is complete with no missing transcript entries, and logic parity
        did not drop below the stored value.

        Args:
            result: Aggregated result of this run
            verdict: Regression verdict for this run
            current: Baseline read at the start of the run (re-read when None)

        Returns:
            True if the baseline was written
        """
        if not verdict.passed:
            logger.info("Baseline not updated: regression check failed")
            return False
        if result.incomplete or not result.seed_results:
            logger.info("Baseline not updated: run is incomplete")
            return False
        if result.missing_entries:
            logger.info(
                f"Baseline not updated: {result.missing_entries} missing transcript entries"
            )
            return False

        stored = current if current is not None else self.load()
        if stored is not None and result.logic_parity_percentage < stored.logic_parity_percentage:
            logger.info(
                f"Baseline not updated: logic parity {result.logic_parity_percentage:.2f}% "
                f"is below baseline {stored.logic_parity_percentage:.2f}%"
            )
            return False

        self.save(Baseline.from_result(result))
        return True
