"""Collaborators the engine consumes but does not own."""

from __future__ import annotations

import bisect
from typing import Protocol, Sequence, runtime_checkable

import structlog

from src.grantfund.models import TransferAction

LOGGER = structlog.get_logger(__name__)


@runtime_checkable
class VotingPowerOracle(Protocol):
    """Snapshot query over the delegatable voting token.

    Repeated queries for the same ``(account, tick)`` must return the same value.
    """

    def voting_power_at(self, account: str, tick: int) -> int: ...


@runtime_checkable
class ActionExecutor(Protocol):
    """Runs the transfers of an approved proposal; returns ``True`` on success."""

    async def execute(self, actions: Sequence[TransferAction]) -> bool: ...


class SnapshotVotingPowerOracle:
    """In-memory checkpointed balances for simulations and tests.

    ``checkpoint(account, tick, power)`` records the power effective from ``tick``
    onwards; a lookup returns the latest checkpoint at or before the queried tick.
    """

    __slots__ = ("_ticks", "_powers")

    def __init__(self) -> None:
        self._ticks: dict[str, list[int]] = {}
        self._powers: dict[str, list[int]] = {}

    def checkpoint(self, account: str, tick: int, power: int) -> None:
        if power < 0:
            raise ValueError("voting power cannot be negative")
        ticks = self._ticks.setdefault(account, [])
        powers = self._powers.setdefault(account, [])
        if ticks and tick < ticks[-1]:
            raise ValueError("checkpoints must be recorded in tick order")
        if ticks and ticks[-1] == tick:
            powers[-1] = power
            return
        ticks.append(tick)
        powers.append(power)

    def voting_power_at(self, account: str, tick: int) -> int:
        ticks = self._ticks.get(account)
        if not ticks:
            return 0
        idx = bisect.bisect_right(ticks, tick) - 1
        if idx < 0:
            return 0
        return self._powers[account][idx]


class RecordingActionExecutor:
    """Executor that records every payload it is handed."""

    def __init__(self, *, should_fail: bool = False) -> None:
        self.should_fail = should_fail
        self.calls: list[tuple[TransferAction, ...]] = []

    async def execute(self, actions: Sequence[TransferAction]) -> bool:
        if self.should_fail:
            LOGGER.warning("grantfund.executor.rejected", actions=len(actions))
            return False
        self.calls.append(tuple(actions))
        return True


__all__ = [
    "VotingPowerOracle",
    "ActionExecutor",
    "SnapshotVotingPowerOracle",
    "RecordingActionExecutor",
]
