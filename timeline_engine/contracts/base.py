"""
Base Contracts and Shared Types

Foundational types used by every engine layer.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- Engines import these types, never each other's internals
- Errors are values carried by Result, not exceptions
- All instants are normalized to UTC
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Generic, Optional, Tuple, TypeVar
from enum import Enum, auto


T = TypeVar("T")


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every failure a caller can observe is enumerated here.
    """
    # View configuration
    INVALID_CONFIGURATION = auto()

    # Mutation input
    INVALID_PARTITION = auto()
    INSUFFICIENT_INPUT = auto()

    # Event data
    UNRESOLVABLE_TIMESTAMP = auto()

    # Collection commits
    ID_COLLISION = auto()
    EVENT_NOT_FOUND = auto()
    VERSION_CONFLICT = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and inspected.
    """
    code: ErrorCode
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )

    def context_value(self, key: str) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return None


class ResultError(Exception):
    """Raised by Result.unwrap() on a failed result."""

    def __init__(self, error: Error):
        super().__init__(f"{error.code.name}: {error.message}")
        self.error = error


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[T] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: Any) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)

    @staticmethod
    def fail(code: ErrorCode, message: str, **context: str) -> Result:
        """Shorthand for failure(Error(...)) with string context pairs."""
        error = Error(code=code, message=message)
        for key, value in sorted(context.items()):
            error = error.with_context(key, str(value))
        return Result(value=None, error=error)

    def unwrap(self) -> T:
        """Return the value or raise ResultError."""
        if self.error is not None:
            raise ResultError(self.error)
        return self.value

