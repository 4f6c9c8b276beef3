"""
Session runners produce the two transcripts compared for one seed.

The game engines themselves live outside this project. A runner only has to
return one transcript per side for a (seed, commands) pair.
``RecordedTranscriptRunner`` replays transcripts recorded to disk:

    <root>/left/seed_<seed>.json
    <root>/right/seed_<seed>.json

Each document has the shape::

    {"seed": 42, "commands": ["open mailbox", ...], "outputs": ["...", ...],
     "fork_points": [3]}

``fork_points`` is optional.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Protocol, Sequence, Tuple

from src.comparison.exceptions import SessionUnavailableError, TranscriptFormatError
from src.domain.transcript import Transcript

logger = logging.getLogger(__name__)

LEFT_SIDE = "left"
RIGHT_SIDE = "right"


class SessionRunner(Protocol):
    """Anything that can produce (left, right) transcripts for a seed."""

    def transcripts_for(self, seed: int, commands: Sequence[str]) -> Tuple[Transcript, Transcript]:
        ...


def parse_transcript_document(data: Any, source: str) -> Transcript:
    """
    Build a Transcript from a recorded document.

    Raises:
        TranscriptFormatError: If the document does not have the expected shape
    """
    if not isinstance(data, dict):
        raise TranscriptFormatError(f"{source}: transcript document must be an object")

    outputs = data.get("outputs")
    if not isinstance(outputs, list) or not all(isinstance(o, str) for o in outputs):
        raise TranscriptFormatError(f"{source}: 'outputs' must be a list of strings")

    fork_points = data.get("fork_points", [])
    if not isinstance(fork_points, list) or not all(
        isinstance(i, int) and i >= 0 for i in fork_points
    ):
        raise TranscriptFormatError(f"{source}: 'fork_points' must be non-negative integers")

    seed = data.get("seed")
    if seed is not None and not isinstance(seed, int):
        raise TranscriptFormatError(f"{source}: 'seed' must be an integer")

    return Transcript.from_outputs(outputs, source=source, seed=seed, fork_points=fork_points)


class RecordedTranscriptRunner:
    """
    Replay recorded transcripts from a directory tree.

    The recorded command list must start with the requested commands; the
    outputs are trimmed to the requested command count.
    """

    def __init__(self, root: str):
        self.root = Path(root)

    def _document_path(self, side: str, seed: int) -> Path:
        return self.root / side / f"seed_{seed}.json"

    def _load_side(self, side: str, seed: int, commands: Sequence[str]) -> Transcript:
        path = self._document_path(side, seed)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data: Dict[str, Any] = json.load(f)
        except FileNotFoundError as e:
            raise SessionUnavailableError(f"No {side} transcript recorded for seed {seed}: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise SessionUnavailableError(f"Unreadable {side} transcript for seed {seed}: {e}") from e

        try:
            transcript = parse_transcript_document(data, side)
        except TranscriptFormatError as e:
            raise SessionUnavailableError(str(e)) from e

        recorded: List[str] = data.get("commands") or []
        overlap = min(len(recorded), len(commands))
        if list(recorded[:overlap]) != list(commands[:overlap]):
            raise SessionUnavailableError(
                f"{side} transcript for seed {seed} was recorded for a different command sequence"
            )

        if len(transcript) > len(commands):
            transcript = Transcript(
                blocks=transcript.blocks[: len(commands)],
                source=transcript.source,
                seed=transcript.seed,
                fork_points=tuple(i for i in transcript.fork_points if i < len(commands)),
            )
        return transcript

    def transcripts_for(self, seed: int, commands: Sequence[str]) -> Tuple[Transcript, Transcript]:
        """
        Load both sides for a seed.

        Raises:
            SessionUnavailableError: If either side is missing, unreadable,
                malformed or recorded for other commands
        """
        left = self._load_side(LEFT_SIDE, seed, commands)
        right = self._load_side(RIGHT_SIDE, seed, commands)
        logger.debug(f"Loaded recorded transcripts for seed {seed}: {len(left)}/{len(right)} blocks")
        return left, right
