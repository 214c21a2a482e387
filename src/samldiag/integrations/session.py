"""Session-scoped key/value store used to remember the latest release."""

from __future__ import annotations

from typing import Any


class InMemorySessionCache:
    """Dict-backed session data keyed by ``(namespace, field)``.

    Entries never expire; the lifetime is that of the owning session object.
    Concurrent writers overwrite each other (last write wins).
    """

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def get(self, namespace: str, field: str) -> Any:
        return self._data.get(namespace, {}).get(field)

    def set(self, namespace: str, field: str, value: Any) -> None:
        self._data.setdefault(namespace, {})[field] = value


__all__ = ["InMemorySessionCache"]
