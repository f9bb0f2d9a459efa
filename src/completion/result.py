from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import ExternalServiceError

T = TypeVar("T")


@dataclass(slots=True)
class CompletionResult(Generic[T]):
    """Outcome of one remote-assisted step: a value, or the error that forces the fallback."""

    value: T | None = None
    error: ExternalServiceError | None = None

    @classmethod
    def success(cls, value: T) -> "CompletionResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ExternalServiceError) -> "CompletionResult[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, fallback: T) -> T:
        if self.error is not None or self.value is None:
            return fallback
        return self.value
