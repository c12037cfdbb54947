from __future__ import annotations

from typing import Protocol


class TickClock(Protocol):
    def current_tick(self) -> int: ...


class ManualClock:
    """Caller-driven tick counter; it can only move forward."""

    __slots__ = ("_tick",)

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ValueError("tick cannot be negative")
        self._tick = start

    def current_tick(self) -> int:
        return self._tick

    def advance(self, ticks: int = 1) -> int:
        if ticks < 0:
            raise ValueError("clock cannot move backwards")
        self._tick += ticks
        return self._tick

    def set(self, tick: int) -> int:
        if tick < self._tick:
            raise ValueError(f"clock cannot move backwards ({tick} < {self._tick})")
        self._tick = tick
        return self._tick


__all__ = ["TickClock", "ManualClock"]
