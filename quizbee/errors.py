# quizbee/errors.py
from typing import Any


class QuizBeeError(Exception):
    """Base class for errors raised by the quiz engine."""


class ParseFailure(QuizBeeError, ValueError):
    """Model text could not be salvaged as JSON."""


class ShapeFailure(QuizBeeError, ValueError):
    """Model text parsed as JSON, but not as an array."""

    def __init__(self, value: Any):
        super().__init__("Model did not return an array.")
        # Kept for callers that can still use a non-array payload (e.g. a chat "content" field)
        self.value = value


class GenerationFailure(QuizBeeError):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class DocumentError(QuizBeeError):
    """Uploaded document cannot be used as source text."""


class DocumentTooLarge(DocumentError):
    pass


class UnsupportedDocument(DocumentError):
    pass


class DocumentReadError(DocumentError):
    pass
