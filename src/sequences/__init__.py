"""Command sequence files."""

from src.sequences.loader import CommandSequenceLoader

__all__ = ["CommandSequenceLoader"]
