from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal

import structlog

LOGGER = structlog.get_logger(__name__)

GrantFundEventKind = Literal[
    "distribution_period_started",
    "treasury_funded",
    "proposal_created",
    "screening_vote_cast",
    "funding_vote_cast",
    "slate_updated",
    "proposal_executed",
    "delegate_reward_claimed",
]


@dataclass(frozen=True, slots=True)
class GrantFundEvent:
    period_id: int
    kind: GrantFundEventKind
    proposal_id: str | None = None
    actor: str | None = None
    amount: int | None = None


Subscriber = Callable[[GrantFundEvent], Awaitable[None]]
UnsubscribeCallback = Callable[[], Awaitable[None]]

_subscribers: dict[int, set[Subscriber]] = {}
_lock = asyncio.Lock()


async def subscribe(period_id: int, callback: Subscriber) -> UnsubscribeCallback:
    """Register a subscriber for one period and return an unsubscribe coroutine."""
    async with _lock:
        listeners = _subscribers.setdefault(period_id, set())
        listeners.add(callback)
        listener_count = len(listeners)
    LOGGER.debug("grantfund.events.subscribe", period_id=period_id, listeners=listener_count)

    async def _unsubscribe() -> None:
        remaining = 0
        async with _lock:
            listeners = _subscribers.get(period_id)
            if not listeners:
                return
            listeners.discard(callback)
            remaining = len(listeners)
            if not listeners:
                _subscribers.pop(period_id, None)
        LOGGER.debug("grantfund.events.unsubscribe", period_id=period_id, listeners=remaining)

    return _unsubscribe


async def publish(event: GrantFundEvent) -> None:
    """Deliver an event to every subscriber of its period."""
    async with _lock:
        listeners = list(_subscribers.get(event.period_id, ()))
    if not listeners:
        return

    LOGGER.debug(
        "grantfund.events.publish",
        period_id=event.period_id,
        kind=event.kind,
        proposal_id=event.proposal_id,
    )
    for callback in listeners:
        await _invoke(callback, event)


async def _invoke(callback: Subscriber, event: GrantFundEvent) -> None:
    # subscriber failures are logged, never raised to the publisher
    try:
        await callback(event)
    except Exception as exc:
        LOGGER.warning(
            "grantfund.events.callback_error",
            error=str(exc),
            period_id=event.period_id,
            kind=event.kind,
        )


__all__ = [
    "GrantFundEvent",
    "GrantFundEventKind",
    "publish",
    "subscribe",
]
