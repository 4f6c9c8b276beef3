"""
RNG Pool Registry - closed sets of interchangeable random responses.

The reference game picks some responses at random from a fixed table
(YUKS, HO_HUM, HELLOS, ...). Two implementations running with the same
seed can legitimately pick different members of the same table; that is
an RNG difference, not a logic difference.

Pools are loaded from ``src/config/rng_pools.yaml`` and validated against
``rng_pools.schema.json``. The registry is immutable after load and safe
to share between threads.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

import jsonschema
import yaml

from src.config.settings import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
DEFAULT_POOLS_PATH = CONFIG_DIR / "rng_pools.yaml"
DEFAULT_POOLS_SCHEMA_PATH = CONFIG_DIR / "rng_pools.schema.json"

OBJECT_SLOT = "{object}"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """
    Trim and collapse whitespace runs to a single space.

    Case and punctuation are preserved: "Hello." and "hello." are different
    responses.
    """
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


class PoolKind(Enum):
    """How members of a pool may differ between two transcripts."""

    SUBSTITUTABLE = "substitutable"
    INTERJECTION = "interjection"


def _compile_template(template: str) -> Pattern[str]:
    before, _, after = normalize_text(template).partition(OBJECT_SLOT)
    return re.compile(re.escape(before) + r"(?P<object>.+?)" + re.escape(after))


@dataclass(frozen=True)
class RngPool:
    """
    One named pool of canonical responses.

    Attributes:
        name: Pool name (e.g. "YUKS")
        kind: Substitutable or interjection pool
        members: Literal member texts, already normalized
        templates: Member templates with a single ``{object}`` slot
        description: Human-readable note
    """

    name: str
    kind: PoolKind = PoolKind.SUBSTITUTABLE
    members: Tuple[str, ...] = ()
    templates: Tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_patterns", tuple(_compile_template(t) for t in self.templates)
        )

    def match(self, text: str) -> Optional[Tuple[str, Optional[str]]]:
        """
        Match normalized text against this pool.

        Returns:
            ``(pool name, slot filler)`` when the text is a member; the filler
            is None for literal members. None when the text is not a member.
        """
        if text in self.members:
            return self.name, None
        for pattern in self._patterns:  # type: ignore[attr-defined]
            found = pattern.fullmatch(text)
            if found:
                return self.name, found.group("object")
        return None


class RngPoolRegistry:
    """
    Read-only lookup over a fixed collection of RNG pools.

    Pool membership is tested on normalized text (see ``normalize_text``).
    """

    def __init__(self, pools: Iterable[RngPool]):
        self._pools: Tuple[RngPool, ...] = tuple(pools)
        names = [pool.name for pool in self._pools]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate RNG pool names: {', '.join(duplicates)}")

    @property
    def pools(self) -> Tuple[RngPool, ...]:
        return self._pools

    def get(self, name: str) -> Optional[RngPool]:
        for pool in self._pools:
            if pool.name == name:
                return pool
        return None

    def pool_of(self, text: str) -> Optional[str]:
        """
        Name of the first pool the text belongs to, or None.

        Args:
            text: Response text (normalized internally)
        """
        normalized = normalize_text(text)
        if not normalized:
            return None
        for pool in self._pools:
            if pool.match(normalized):
                return pool.name
        return None

    def same_named_pool(self, a: str, b: str) -> bool:
        """
        True iff both texts are members of one substitutable pool.

        Template pools additionally require both sides to fill the object
        slot with the same text: "The lamp has no effect." and "The sword
        has no effect." are not interchangeable.
        """
        return self.shared_pool(a, b) is not None

    def shared_pool(self, a: str, b: str) -> Optional[str]:
        """Name of the substitutable pool containing both texts, or None."""
        left = normalize_text(a)
        right = normalize_text(b)
        if not left or not right:
            return None
        for pool in self._pools:
            if pool.kind is not PoolKind.SUBSTITUTABLE:
                continue
            left_match = pool.match(left)
            right_match = pool.match(right)
            if left_match and right_match and left_match[1] == right_match[1]:
                return pool.name
        return None

    def is_interjection(self, line: str) -> bool:
        normalized = normalize_text(line)
        if not normalized:
            return False
        return any(
            pool.kind is PoolKind.INTERJECTION and pool.match(normalized)
            for pool in self._pools
        )

    def strip_interjections(self, text: str) -> str:
        """Remove stand-alone lines that are interjection pool members."""
        if not text:
            return ""
        kept = [line for line in text.split("\n") if not self.is_interjection(line)]
        return "\n".join(kept)

    def is_interjection_only_difference(self, a: str, b: str) -> bool:
        """
        True iff the texts differ only by interjection lines.

        Identical texts are not a difference and return False.
        """
        if normalize_text(a) == normalize_text(b):
            return False
        return normalize_text(self.strip_interjections(a)) == normalize_text(
            self.strip_interjections(b)
        )

    def __len__(self) -> int:
        return len(self._pools)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RngPoolRegistry":
        pools: List[RngPool] = []
        for entry in data.get("pools", []):
            pools.append(
                RngPool(
                    name=entry["name"],
                    kind=PoolKind(entry.get("kind", PoolKind.SUBSTITUTABLE.value)),
                    members=tuple(normalize_text(m) for m in entry.get("members", [])),
                    templates=tuple(entry.get("templates", [])),
                    description=entry.get("description", ""),
                )
            )
        return cls(pools)

    @classmethod
    def from_yaml(
        cls,
        pools_path: Path = DEFAULT_POOLS_PATH,
        schema_path: Path = DEFAULT_POOLS_SCHEMA_PATH,
    ) -> "RngPoolRegistry":
        """
        Load and validate a pool definition file.

        Args:
            pools_path: YAML pool definitions
            schema_path: JSON schema the definitions must satisfy

        Returns:
            RngPoolRegistry instance

        Raises:
            ConfigurationError: If a file is missing, unparsable or invalid
        """
        try:
            with open(pools_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            with open(schema_path, "r", encoding="utf-8") as f:
                schema = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to read RNG pool definitions: {e}") from e

        try:
            jsonschema.validate(instance=data, schema=schema)
        except jsonschema.ValidationError as e:
            raise ConfigurationError(f"Invalid RNG pool definitions: {e.message}") from e

        registry = cls.from_dict(data)
        logger.debug("Loaded %d RNG pools from %s", len(registry), pools_path)
        return registry


@lru_cache(maxsize=1)
def load_default_registry() -> RngPoolRegistry:
    """Registry for the bundled pool definitions, loaded once per process."""
    return RngPoolRegistry.from_yaml()
