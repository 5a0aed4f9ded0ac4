"""In-process change feed fanning store changes out to subscribers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from qscore.config.log import log_extra
from qscore.store.contracts import ChangeEvent

logger = logging.getLogger(__name__)

Subscriber = Callable[[ChangeEvent], Union[Awaitable[Any], Any]]


class ChangeFeed:
    """Table-level publish/subscribe.

    Each delivery runs as its own task, so a slow or failing subscriber
    never blocks the writer that published the change.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers):
            self._dispatch(callback, event)

    def _dispatch(self, callback: Subscriber, event: ChangeEvent) -> None:
        try:
            result = callback(event)
        except Exception:
            logger.exception("Change subscriber failed", extra=log_extra(table=event.table, kind=event.kind))
            return

        if not inspect.isawaitable(result):
            return

        task = asyncio.ensure_future(result)
        self._pending.add(task)
        task.add_done_callback(self._on_delivery_done)

    def _on_delivery_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Change subscriber failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for in-flight deliveries, including ones they trigger."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
