"""
Exception hierarchy for deck_graph.

Every error carries a message plus an optional ``details`` dict that is
appended to its string form, so log lines keep the request context.
"""

from typing import Any, Dict, Optional


class DeckGraphError(Exception):
    """Base exception for all deck_graph errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ModelLoadFailure(DeckGraphError):
    """The embedding worker could not load its model."""


class EmbeddingRequestFailure(DeckGraphError):
    """A single embed request failed after the model was ready."""

    def __init__(self, message: str, request_id: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None):
        details = details or {}
        if request_id is not None:
            details["request_id"] = request_id
        self.request_id = request_id
        super().__init__(message, details)


class EngineDestroyed(EmbeddingRequestFailure):
    """The engine was destroyed while the request was in flight."""


class DimensionMismatch(DeckGraphError, ValueError):
    """Two vectors that must share a dimensionality do not."""

    def __init__(self, left: int, right: int):
        super().__init__(
            "Vector dimensions differ",
            {"left": left, "right": right},
        )
