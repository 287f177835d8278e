# backend/services/subscriptions.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Generic, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# LIVE SUBSCRIPTIONS
# ============================================================================

class Subscription(Generic[T]):
    """
    Cancellable handle over a live query or document.

    Iterating yields snapshots: the first item is the current snapshot, every
    later item is the newest snapshot after at least one change. A consumer that
    falls behind skips intermediate states and only sees the latest one.

    Starting a new ``async for`` over the same handle restarts from the current
    snapshot. ``cancel()`` unregisters the handle and ends any iteration.

    Usage:
        sub = message_store.subscribe(room_id)
        async for messages in sub:
            render(messages)
        ...
        sub.cancel()
    """

    def __init__(self, hub: "SubscriptionHub", key: str, snapshot: Callable[[], T]) -> None:
        self.key = key
        self._hub = hub
        self._snapshot = snapshot
        self._changed = asyncio.Event()
        self._primed = False
        self.cancelled = False

    def notify(self) -> None:
        self._changed.set()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._hub.unsubscribe(self)
        # Wake a consumer parked in __anext__ so it can finish
        self._changed.set()

    def current(self) -> T:
        return self._snapshot()

    def __aiter__(self) -> "Subscription[T]":
        self._primed = False
        return self

    async def __anext__(self) -> T:
        if self.cancelled:
            raise StopAsyncIteration

        if not self._primed:
            self._primed = True
            self._changed.clear()
            return self._snapshot()

        await self._changed.wait()
        if self.cancelled:
            raise StopAsyncIteration
        self._changed.clear()
        return self._snapshot()


class SubscriptionHub:
    """
    Registry of active subscriptions, keyed by topic (e.g. "messages:<room_id>").

    Stores call ``publish(key)`` after every committed change; each matching
    subscription is flagged and will re-read its snapshot on next iteration.
    """

    def __init__(self) -> None:
        self._subscriptions: Dict[str, Set[Subscription[Any]]] = {}

    def subscribe(self, key: str, snapshot: Callable[[], T]) -> Subscription[T]:
        subscription: Subscription[T] = Subscription(self, key, snapshot)
        self._subscriptions.setdefault(key, set()).add(subscription)
        logger.debug(f"Subscribed to {key} ({len(self._subscriptions[key])} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription[Any]) -> None:
        subscribers = self._subscriptions.get(subscription.key)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscriptions[subscription.key]

    def publish(self, key: str) -> None:
        for subscription in list(self._subscriptions.get(key, ())):
            subscription.notify()

    def count(self, key: str | None = None) -> int:
        if key is not None:
            return len(self._subscriptions.get(key, ()))
        return sum(len(subs) for subs in self._subscriptions.values())
