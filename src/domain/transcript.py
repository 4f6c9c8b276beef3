"""
Transcript domain model.

Represents the raw per-command output captured from one engine
implementation for one (seed, command sequence) pair. Transcripts are
produced by the external session runner and are never mutated by the
comparison core.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class RawOutputBlock:
    """
    The complete text one implementation produced in response to one command.

    Includes any banner, status line, room description, action response
    and prompt. Immutable once captured.
    """

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Transcript:
    """
    Ordered sequence of RawOutputBlock, one per command.

    Attributes:
        blocks: Raw output blocks in command order
        source: Label of the producing implementation ("left"/"right",
            "refactored"/"reference", ...)
        seed: Random seed the session was recorded with, if known
        fork_points: Command indices at which the session runner knows the
            two engines took different RNG branches (optional side channel
            consumed by fork tracking)
    """

    blocks: Tuple[RawOutputBlock, ...]
    source: str = "unknown"
    seed: Optional[int] = None
    fork_points: Tuple[int, ...] = field(default_factory=tuple)

    @classmethod
    def from_outputs(
        cls,
        outputs: Iterable[str],
        source: str = "unknown",
        seed: Optional[int] = None,
        fork_points: Iterable[int] = (),
    ) -> "Transcript":
        """
        Build a transcript from plain output strings.

        Args:
            outputs: One output string per command
            source: Implementation label
            seed: Recording seed
            fork_points: Known RNG fork command indices

        Returns:
            Transcript instance
        """
        return cls(
            blocks=tuple(RawOutputBlock(text=str(output)) for output in outputs),
            source=source,
            seed=seed,
            fork_points=tuple(sorted(set(int(i) for i in fork_points))),
        )

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[RawOutputBlock]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> RawOutputBlock:
        return self.blocks[index]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "source": self.source,
            "seed": self.seed,
            "outputs": [block.text for block in self.blocks],
            "fork_points": list(self.fork_points),
        }


@dataclass
class CommandSequence:
    """
    Named, ordered list of player commands.

    Attributes:
        id: Sequence identifier (defaults to the file stem)
        name: Human-readable name
        commands: Commands in execution order
        description: Optional description
        metadata: Extra `#!key: value` metadata from the sequence file
    """

    id: str
    name: str
    commands: List[str]
    description: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def head(self, count: Optional[int]) -> List[str]:
        """Return the first `count` commands (all commands when count is None)."""
        if count is None:
            return list(self.commands)
        return list(self.commands[: max(0, count)])
