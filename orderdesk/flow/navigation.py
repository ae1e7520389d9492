from __future__ import annotations

from typing import Protocol


class Navigator(Protocol):
    """The host's router, as seen by the flow controller."""

    @property
    def current_path(self) -> str: ...

    def navigate(self, path: str) -> None: ...


class InMemoryNavigator:
    """Navigator for tests and headless shells; records every navigation."""

    def __init__(self, path: str = "/") -> None:
        self._path = path
        self.history: list[str] = []

    @property
    def current_path(self) -> str:
        return self._path

    def navigate(self, path: str) -> None:
        self.history.append(path)
        self._path = path

    def visit(self, path: str) -> None:
        """A user-initiated navigation (not recorded as a redirect)."""
        self._path = path
