"""
Custom exception hierarchy for parity validation.

This module defines domain-specific exceptions used by the comparison,
runner and baseline layers to handle failure scenarios in a granular,
testable way.
"""


class ParityError(Exception):
    """
    Base exception for all parity-validation errors.
    """

    pass


class SessionUnavailableError(ParityError):
    """
    Raised when a session runner cannot produce a transcript for a seed.

    The aggregator skips the affected seed and marks the run incomplete;
    it is never reported as passing.
    """

    pass


class TranscriptFormatError(ParityError):
    """
    Raised when a recorded transcript document is malformed.
    """

    pass


class BaselineError(ParityError):
    """
    Raised when the persisted baseline cannot be written.

    Read failures are not raised: a missing or corrupt baseline is treated
    as "no baseline" with a warning.
    """

    pass


class BaselineLockedError(BaselineError):
    """
    Raised when another validation run holds the baseline lock.

    Concurrent runs against the same baseline file are not supported and
    must be serialized by the caller.
    """

    pass


class SequenceParseError(ParityError):
    """
    Raised when a command sequence file cannot be parsed.
    """

    def __init__(self, message: str, file_path: str, line_number: int = None):
        location = f"{file_path}:{line_number}" if line_number is not None else file_path
        super().__init__(f"{message} at {location}")
        self.file_path = file_path
        self.line_number = line_number
