from __future__ import annotations

from typing import Any, Optional


class NotFoundError(LookupError):
    """A referenced department, porter or alert does not exist."""

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with ID {entity_id} not found")


class PatternResolutionFailure(LookupError):
    """Shift text is malformed or names a pattern that does not exist."""

    def __init__(self, shift_type: Optional[str], reason: str) -> None:
        self.shift_type = shift_type
        self.reason = reason
        super().__init__(f"Cannot resolve shift pattern {shift_type!r}: {reason}")


class DataFetchFailure(RuntimeError):
    """A store could not complete a read or write."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
