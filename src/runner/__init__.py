"""Session runner boundary: producers of left/right transcripts."""

from src.runner.session_runner import RecordedTranscriptRunner, SessionRunner

__all__ = ["RecordedTranscriptRunner", "SessionRunner"]
