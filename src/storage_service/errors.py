from __future__ import annotations


class PersistenceError(Exception):
    """A key-value store read or write failed (I/O, quota, serialization)."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


class ParseError(ValueError):
    """A persisted record could not be decoded into its expected shape."""
