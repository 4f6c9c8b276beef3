"""
Command sequence loader.

File format:
    - one command per line; blank lines are ignored
    - ``#`` starts a comment line
    - ``#!key: value`` sets sequence metadata (``id``, ``name``,
      ``description`` and free-form keys)
    - ``@include <path>`` inlines another file's commands; the path is
      relative to the including file
"""

import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

from src.comparison.exceptions import SequenceParseError
from src.domain.transcript import CommandSequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_INCLUDE_DEPTH = 10
INCLUDE_DIRECTIVE = "@include"
METADATA_PREFIX = "#!"
COMMENT_PREFIX = "#"
SEQUENCE_SUFFIX = ".txt"


def _parse_metadata(line: str) -> Optional[Tuple[str, str]]:
    content = line[len(METADATA_PREFIX):].strip()
    key, sep, value = content.partition(":")
    if not sep or not key.strip():
        return None
    return key.strip(), value.strip()


class CommandSequenceLoader:
    """Load command sequences from ``.txt`` files."""

    def __init__(self, max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH):
        self.max_include_depth = max_include_depth

    def load(self, file_path: str) -> CommandSequence:
        """
        Load a command sequence file, resolving includes.

        Args:
            file_path: Path to the sequence file

        Returns:
            CommandSequence (id defaults to the file stem)

        Raises:
            SequenceParseError: If the file or an included file is missing,
                an include is circular, or includes nest too deeply
        """
        resolved = Path(file_path).resolve()
        if not resolved.is_file():
            raise SequenceParseError("File not found", str(resolved))

        commands, metadata = self._parse_file(resolved, frozenset({resolved}))
        sequence_id = metadata.get("id", resolved.stem)
        logger.debug(f"Loaded {len(commands)} commands from {resolved}")
        return CommandSequence(
            id=sequence_id,
            name=metadata.get("name", sequence_id),
            commands=commands,
            description=metadata.get("description"),
            metadata=metadata,
        )

    def load_directory(self, dir_path: str) -> List[CommandSequence]:
        """Load every ``*.txt`` sequence in a directory, sorted by file name."""
        resolved = Path(dir_path).resolve()
        if not resolved.exists():
            raise SequenceParseError("Directory not found", str(resolved))
        if not resolved.is_dir():
            raise SequenceParseError("Path is not a directory", str(resolved))

        files = sorted(p for p in resolved.iterdir() if p.suffix == SEQUENCE_SUFFIX and p.is_file())
        return [self.load(str(p)) for p in files]

    def parse_string(self, content: str, sequence_id: str = "inline") -> CommandSequence:
        """
        Parse sequence text without touching the filesystem.

        Raises:
            SequenceParseError: On an ``@include`` directive
        """
        commands, metadata = self._parse_lines(content, "<string>", None, frozenset())
        sequence_id = metadata.get("id", sequence_id)
        return CommandSequence(
            id=sequence_id,
            name=metadata.get("name", sequence_id),
            commands=commands,
            description=metadata.get("description"),
            metadata=metadata,
        )

    def serialize(self, sequence: CommandSequence) -> str:
        """Write a sequence back to file format (metadata first, then commands)."""
        lines: List[str] = []
        if sequence.name and sequence.name != sequence.id:
            lines.append(f"{METADATA_PREFIX}name: {sequence.name}")
        if sequence.description:
            lines.append(f"{METADATA_PREFIX}description: {sequence.description}")
        for key, value in sequence.metadata.items():
            if key not in ("id", "name", "description"):
                lines.append(f"{METADATA_PREFIX}{key}: {value}")
        if lines:
            lines.append("")
        lines.extend(sequence.commands)
        return "\n".join(lines)

    def _parse_file(
        self, path: Path, visited: FrozenSet[Path]
    ) -> Tuple[List[str], Dict[str, str]]:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise SequenceParseError(f"Cannot read file: {e}", str(path)) from e
        return self._parse_lines(content, str(path), path.parent, visited)

    def _parse_lines(
        self,
        content: str,
        source: str,
        base_dir: Optional[Path],
        visited: FrozenSet[Path],
    ) -> Tuple[List[str], Dict[str, str]]:
        commands: List[str] = []
        metadata: Dict[str, str] = {}

        for line_number, line in enumerate(content.splitlines(), start=1):
            stripped = line.strip()
            if not stripped:
                continue

            if stripped.startswith(METADATA_PREFIX):
                parsed = _parse_metadata(stripped)
                if parsed is not None:
                    metadata[parsed[0]] = parsed[1]
                continue

            if stripped.startswith(COMMENT_PREFIX):
                continue

            if stripped.startswith(INCLUDE_DIRECTIVE):
                commands.extend(
                    self._include(stripped, source, line_number, base_dir, visited)
                )
                continue

            commands.append(stripped)

        return commands, metadata

    def _include(
        self,
        directive: str,
        source: str,
        line_number: int,
        base_dir: Optional[Path],
        visited: FrozenSet[Path],
    ) -> List[str]:
        if base_dir is None:
            raise SequenceParseError(
                "@include is not supported when parsing a string", source, line_number
            )

        include_path = directive[len(INCLUDE_DIRECTIVE):].strip()
        if not include_path:
            raise SequenceParseError(
                "Missing file path in @include directive", source, line_number
            )

        resolved = (base_dir / include_path).resolve()
        if resolved in visited:
            raise SequenceParseError(
                f"Circular include detected: {include_path}", source, line_number
            )
        if len(visited) >= self.max_include_depth:
            raise SequenceParseError(
                f"Maximum include depth ({self.max_include_depth}) exceeded", source, line_number
            )
        if not resolved.is_file():
            raise SequenceParseError(
                f"Included file not found: {include_path}", source, line_number
            )

        # Metadata of included files does not leak into the including sequence
        included, _ = self._parse_file(resolved, visited | {resolved})
        return included
