"""Interfaces of the optional outbound collaborators."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Console(Protocol):
    """Notification channel towards UI clients."""

    def broadcast(self, channel: str, payload: dict[str, Any]) -> None: ...

    def refresh(self, key: str) -> None: ...


@runtime_checkable
class Loader(Protocol):
    """The plugin loader that owns the module cache."""

    def is_loaded(self, name: str) -> bool: ...

    def full_reload(self) -> None: ...
