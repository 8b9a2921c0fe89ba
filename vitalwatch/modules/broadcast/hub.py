from __future__ import annotations

import asyncio
import inspect
import itertools
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

import structlog

from vitalwatch.modules.broadcast.events import MonitoringEvent

log = structlog.get_logger()

SubscriberCallback = Callable[[MonitoringEvent], Union[Awaitable[None], None]]


@dataclass
class _Subscriber:
    handle: int
    callback: SubscriberCallback
    name: str
    active: bool = True


class Subscription:
    """Handle returned by `BroadcastHub.subscribe`; calling it unsubscribes."""

    def __init__(self, hub: BroadcastHub, handle: int) -> None:
        self._hub = hub
        self.handle = handle

    def __call__(self) -> None:
        self._hub.unsubscribe(self.handle)

    @property
    def active(self) -> bool:
        return self._hub.is_subscribed(self.handle)


class BroadcastHub:
    """
    Registry of event subscribers keyed by subscription handle.

    `publish` delivers to a snapshot of the registry in registration order and
    re-checks each subscriber just before delivery, so an unsubscribe that
    lands mid-publish stops further callbacks. Coroutine callbacks are awaited
    on the loop and plain callbacks run in a worker thread; either way each
    delivery is bounded by `callback_timeout`. Callback failures and timeouts
    are logged and never reach the publisher.
    """

    def __init__(self, callback_timeout: float | None = None) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[int, _Subscriber] = {}
        self._handles = itertools.count(1)
        self._callback_timeout = callback_timeout

    def subscribe(self, callback: SubscriberCallback, name: str | None = None) -> Subscription:
        with self._lock:
            handle = next(self._handles)
            self._subscribers[handle] = _Subscriber(
                handle=handle,
                callback=callback,
                name=name or getattr(callback, "__qualname__", repr(callback)),
            )
        log.debug("subscriber registered", handle=handle)
        return Subscription(self, handle)

    def unsubscribe(self, handle: int) -> None:
        with self._lock:
            subscriber = self._subscribers.pop(handle, None)
            if subscriber is not None:
                subscriber.active = False
        if subscriber is not None:
            log.debug("subscriber removed", handle=handle)

    def is_subscribed(self, handle: int) -> bool:
        with self._lock:
            return handle in self._subscribers

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    async def publish(self, event: MonitoringEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers.values())
        for subscriber in subscribers:
            if not subscriber.active:
                continue
            await self._deliver(subscriber, event)

    async def _deliver(self, subscriber: _Subscriber, event: MonitoringEvent) -> None:
        callback = subscriber.callback
        try:
            if _is_async_callback(callback):
                await asyncio.wait_for(callback(event), timeout=self._callback_timeout)
            else:
                # plain callbacks run in a worker thread, off the loop
                result: Any = await asyncio.wait_for(
                    asyncio.to_thread(callback, event), timeout=self._callback_timeout
                )
                if inspect.isawaitable(result):
                    await asyncio.wait_for(result, timeout=self._callback_timeout)
        except asyncio.TimeoutError:
            log.warning(
                "subscriber timed out",
                subscriber=subscriber.name,
                handle=subscriber.handle,
                event_type=event.event,
                timeout=self._callback_timeout,
            )
        except Exception:
            log.exception(
                "subscriber callback failed",
                subscriber=subscriber.name,
                handle=subscriber.handle,
                event_type=event.event,
            )


def _is_async_callback(callback: SubscriberCallback) -> bool:
    return inspect.iscoroutinefunction(callback) or inspect.iscoroutinefunction(
        getattr(callback, "__call__", None)
    )
