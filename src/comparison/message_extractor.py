"""
Message Extractor - isolate the action response from a raw output block

Removes everything that is presentation rather than game logic (banner,
status bar, prompt, echoed command) and splits movement output into the
arrival room description and the remaining response text.

Extraction is total: on unexpected input it falls back to the raw text
and logs a warning instead of raising.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from src.domain.transcript import RawOutputBlock

logger = logging.getLogger(__name__)


# Banner markers printed at the top of the first block of a session
HEADER_PATTERNS = [
    re.compile(r"^\s*ZORK I:", re.IGNORECASE),
    re.compile(r"The Great Underground Empire", re.IGNORECASE),
    re.compile(r"Copyright \(c\).*Infocom", re.IGNORECASE),
    re.compile(r"All rights reserved", re.IGNORECASE),
    re.compile(r"ZORK is a registered trademark", re.IGNORECASE),
    re.compile(r"^\s*(Release|Revision) \d+\s*/\s*Serial number \d+", re.IGNORECASE),
    re.compile(r"Infocom interactive fiction", re.IGNORECASE),
]

# "<room>   Score: <n>   Moves: <n>" and the malformed variants seen in recordings
STATUS_LINE_PATTERNS = [
    re.compile(r"^\s*\S.*\s+Score:\s*-?\d+\s+Moves:\s*\d+\s*$", re.IGNORECASE),
    re.compile(r"^\s*\S.*\t+Score:\s*-?\d+\t+Moves:\s*\d+\s*$", re.IGNORECASE),
    re.compile(r"^\S.*Score:-?\d+\s*Moves:\d+\s*$", re.IGNORECASE),
    re.compile(r"^\s*Score:\s*-?\d+\s+Moves:\s*\d+\s*$", re.IGNORECASE),
    re.compile(r"^\s*Score:\s*-?\d+\s*$", re.IGNORECASE),
]

PROMPT_MARKER = ">"

MOVEMENT_DIRECTIONS = frozenset(
    {
        "north", "n",
        "south", "s",
        "east", "e",
        "west", "w",
        "northeast", "ne",
        "northwest", "nw",
        "southeast", "se",
        "southwest", "sw",
        "up", "u",
        "down", "d",
        "in", "out", "enter", "exit", "leave",
        "land", "launch", "cross",
    }
)
MOVEMENT_PREFIXES = frozenset({"go", "walk", "run", "climb"})
LOOK_COMMANDS = frozenset({"look", "l"})

ROOM_NAME_MAX_LENGTH = 49
_TERMINAL_PUNCTUATION = (".", "!", "?", ",", ":", ";", "\"", "'", ")")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n+")


@dataclass(frozen=True)
class ExtractedMessage:
    """
    The comparable part of one raw output block.

    Attributes:
        response: Action response text, free of banner/status/prompt content
        room_description: Room name + first description paragraph (movement
            and look output only)
        is_movement: Whether the command was a movement command
        source: The block this message was extracted from
        room_name: Arrival room name when one was recognized
        status_line: Raw status-bar text removed from the block, if any
    """

    response: str
    room_description: Optional[str]
    is_movement: bool
    source: RawOutputBlock
    room_name: Optional[str] = None
    status_line: Optional[str] = None


def is_status_line(line: str) -> bool:
    return any(pattern.match(line) for pattern in STATUS_LINE_PATTERNS)


def is_header_line(line: str) -> bool:
    return any(pattern.search(line) for pattern in HEADER_PATTERNS)


def is_movement_command(command: str) -> bool:
    """
    Check a command against the closed direction vocabulary.

    Accepts bare directions ("n", "northeast") and directions introduced by
    go/walk/run/climb ("go north", "climb up").
    """
    words = (command or "").strip().lower().split()
    if len(words) == 2 and words[0] in MOVEMENT_PREFIXES:
        words = words[1:]
    return len(words) == 1 and words[0] in MOVEMENT_DIRECTIONS


def is_look_command(command: str) -> bool:
    return (command or "").strip().lower() in LOOK_COMMANDS


def status_line_of(raw: RawOutputBlock) -> Optional[str]:
    """Raw status-bar substring(s) of a block, or None when there is none."""
    all_lines = _split_lines(raw.text)
    lines = [line for line in all_lines[: _leading_noise_length(all_lines)] if is_status_line(line)]
    if not lines:
        return None
    return "\n".join(line.strip() for line in lines)


def _split_lines(text: str) -> List[str]:
    return (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")


def _is_prompt_line(line: str) -> bool:
    return line.strip() == PROMPT_MARKER


def _is_echo_line(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(PROMPT_MARKER) and len(stripped) > 1


def _leading_noise_length(lines: List[str]) -> int:
    """Number of lines at the top of a block that precede the response."""
    start = 0
    while start < len(lines) and (
        not lines[start].strip()
        or is_status_line(lines[start])
        or is_header_line(lines[start])
        or _is_prompt_line(lines[start])
        or _is_echo_line(lines[start])
    ):
        start += 1
    return start


def _looks_like_room_name(line: str) -> bool:
    stripped = line.strip()
    return (
        0 < len(stripped) <= ROOM_NAME_MAX_LENGTH
        and stripped[0].isupper()
        and not stripped.endswith(_TERMINAL_PUNCTUATION)
    )


def _split_room_block(text: str) -> Tuple[Optional[str], Optional[str], str]:
    """
    Split "<room name>\\n<description>\\n\\n<rest>" into its parts.

    Returns:
        (room_name, room_description, rest); room_name is None when the text
        does not begin with a room-name line.
    """
    paragraphs = _PARAGRAPH_BREAK_RE.split(text)
    first_lines = paragraphs[0].split("\n")
    if not _looks_like_room_name(first_lines[0]):
        return None, None, text
    room_name = first_lines[0].strip()
    room_description = paragraphs[0].strip()
    rest = "\n\n".join(p.strip("\n") for p in paragraphs[1:] if p.strip())
    return room_name, room_description, rest


class MessageExtractor:
    """
    Extract comparable messages from raw output blocks.

    Stateless; a single instance may be shared between threads.
    """

    def extract(self, raw: RawOutputBlock, command: str) -> ExtractedMessage:
        """
        Extract the action response for one command.

        Args:
            raw: Complete output block produced for the command
            command: The command that produced the block

        Returns:
            ExtractedMessage (never raises)
        """
        try:
            return self._extract(raw, command)
        except Exception as e:
            logger.warning(
                "Message extraction failed for command %r, using raw text: %s", command, e
            )
            return ExtractedMessage(
                response=raw.text if isinstance(raw.text, str) else str(raw.text),
                room_description=None,
                is_movement=False,
                source=raw,
            )

    def _extract(self, raw: RawOutputBlock, command: str) -> ExtractedMessage:
        status_line = status_line_of(raw)
        lines = [line.rstrip() for line in _split_lines(raw.text)]
        start = _leading_noise_length(lines)

        end = len(lines)
        while end > start and (not lines[end - 1].strip() or _is_prompt_line(lines[end - 1])):
            end -= 1

        text = "\n".join(lines[start:end])
        movement = is_movement_command(command)

        room_name: Optional[str] = None
        room_description: Optional[str] = None
        response = text
        if text and (movement or is_look_command(command)):
            room_name, room_description, rest = _split_room_block(text)
            if room_name is not None:
                response = rest

        return ExtractedMessage(
            response=response,
            room_description=room_description,
            is_movement=movement,
            source=raw,
            room_name=room_name,
            status_line=status_line,
        )
