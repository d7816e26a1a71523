"""
Insight Pipeline Errors

Typed failures raised by the AI-assisted pipeline. The API layer maps
each class to an HTTP status (see ``brainboard.api.errors``).

None of these errors leave partial state behind: writes happen only
after every external call and computation has succeeded.
"""

from __future__ import annotations


class InsightError(Exception):
    """Base class for all pipeline errors."""


class ProviderError(InsightError):
    """External AI call failed (network, quota, timeout) after its retry."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class DimensionMismatch(InsightError):
    """Embedding vectors of a clustering run have inconsistent sizes."""

    def __init__(self, expected: int, found: int, item_id: object) -> None:
        super().__init__(
            f"Embedding for {item_id} has dimension {found}, expected {expected}"
        )
        self.expected = expected
        self.found = found
        self.item_id = item_id


class MalformedResponse(InsightError):
    """Generated output could not be parsed into the expected shape."""

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class OperationTimeout(InsightError):
    """Clustering or summarization exceeded its time bound."""

    def __init__(self, operation: str, seconds: float) -> None:
        super().__init__(f"{operation} exceeded {seconds:g}s")
        self.operation = operation
        self.seconds = seconds


class BoardBusy(InsightError):
    """A clustering run is already in flight for this board."""

    def __init__(self, board_id: object) -> None:
        super().__init__(f"Clustering already running for board {board_id}")
        self.board_id = board_id


class NotFoundError(InsightError):
    """Referenced board, card or suggestion does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id
