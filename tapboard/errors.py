"""Exception types for TapBoard.

None of these are fatal to a consumer: each one is caught at the layer that
can degrade to a smaller result (fewer cards, no external suggestions, a
record left unsynced).
"""

from typing import Optional


class BoardError(Exception):
    """Base class for all TapBoard errors."""


class PartialSourceFailure(BoardError):
    """A card source could not be enumerated; it contributes zero cards."""

    def __init__(self, source_name: str, cause: Optional[BaseException] = None):
        self.source_name = source_name
        self.cause = cause
        super().__init__(f"Card source '{source_name}' failed: {cause}")


class ResolutionMiss(BoardError):
    """A suggestion or template key has no catalog entry."""


class InvalidOverrideData(BoardError):
    """An override table entry is malformed."""


class SyncFailure(BoardError):
    """A remote read, write or delete did not complete."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"{key}: {message}")


class PredictionError(BoardError):
    """The external suggestion predictor failed."""
