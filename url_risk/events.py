"""Outbound messages.

Messages are plain dicts with an "action" key:
- {"action": "analysisStarted", "url": ...}
- {"action": "progressUpdate", "progress": 0..100}
- {"action": "historyUpdated"}
- {"action": "setBadge", "tabId": ..., "text": ..., "color": ...}

Subscribers may be plain functions or coroutine functions. A failing
subscriber is logged and never breaks the analysis that published.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from .models import Badge

logger = logging.getLogger(__name__)

Message = dict[str, Any]
Subscriber = Callable[[Message], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, fn: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it."""
        self._subscribers.append(fn)

        def unsubscribe() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return unsubscribe

    async def publish(self, message: Message) -> None:
        logger.debug("publish %s", message.get("action"))
        for fn in list(self._subscribers):
            try:
                out = fn(message)
                if inspect.isawaitable(out):
                    await out
            except Exception:
                logger.exception("Subscriber failed on %s", message.get("action"))

    async def analysis_started(self, url: str) -> None:
        await self.publish({"action": "analysisStarted", "url": url})

    async def progress(self, progress: int) -> None:
        await self.publish({"action": "progressUpdate", "progress": progress})

    async def history_updated(self) -> None:
        await self.publish({"action": "historyUpdated"})

    async def set_badge(self, tab_id: Optional[int], badge: Badge) -> None:
        await self.publish({"action": "setBadge", "tabId": tab_id, "text": badge.text, "color": badge.color})


class Recorder:
    """Subscriber that keeps every message; handy for the CLI and tests."""

    def __init__(self) -> None:
        self.messages: list[Message] = []

    def __call__(self, message: Message) -> None:
        self.messages.append(message)

    def actions(self) -> list[str]:
        return [str(m.get("action")) for m in self.messages]
