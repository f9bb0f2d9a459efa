from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Protocol

import redis

from .errors import PersistenceError

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


def _dumps(key: str, value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(key, f"value is not JSON serializable: {exc}") from exc


def _loads(key: str, raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PersistenceError(key, f"stored value is not valid JSON: {exc}") from exc


class InMemoryKeyValueStore:
    """Process-local store. Values are kept as JSON text so writes serialize like a real backend."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> Any | None:
        raw = self._items.get(key)
        if raw is None:
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any) -> None:
        self._items[key] = _dumps(key, value)

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class JsonFileKeyValueStore:
    """One `<key>.json` file per key under a directory; writes replace the file atomically."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(key, "key contains unsupported characters")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Any | None:
        path = self._path(key)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(key, f"read failed: {exc}") from exc
        return _loads(key, raw)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        payload = _dumps(key, value)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(key, f"write failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(key, f"delete failed: {exc}") from exc


class RedisKeyValueStore:
    def __init__(self, redis_url: str, namespace: str = "papertrail") -> None:
        self.redis_url = redis_url
        self.namespace = namespace
        self._client = redis.from_url(redis_url)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Any | None:
        try:
            raw = self._client.get(self._key(key))
        except redis.RedisError as exc:
            raise PersistenceError(key, f"redis get failed: {exc}") from exc
        if raw is None:
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any) -> None:
        payload = _dumps(key, value)
        try:
            self._client.set(self._key(key), payload)
        except redis.RedisError as exc:
            raise PersistenceError(key, f"redis set failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except redis.RedisError as exc:
            raise PersistenceError(key, f"redis delete failed: {exc}") from exc


def build_store(backend: str, *, path: str = "./data", redis_url: str = "redis://localhost:6379/0") -> KeyValueStore:
    backend = backend.lower()
    if backend == "memory":
        return InMemoryKeyValueStore()
    if backend == "file":
        return JsonFileKeyValueStore(path)
    if backend == "redis":
        return RedisKeyValueStore(redis_url)
    raise ValueError(f"unknown store backend '{backend}' (expected memory, file or redis)")
