"""Topic-scoped publish/subscribe channel for live node status.

Executors publish ``{"nodeId": ..., "status": ...}`` events to the channel
owned by their node type. Observers ask for a subscription token scoped to
one exact ``(channel, topic)`` pair and iterate its events. Publishing is
fire-and-forget: it never blocks, never raises into the run, and events for
pairs without subscribers are dropped.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from pydantic import ValidationError

from interfaces import Publisher
from flow_engine.models import StatusEvent

logger = logging.getLogger(__name__)

STATUS_TOPIC = "status"
SUBSCRIBER_QUEUE_SIZE = 256

_CLOSED = None


class SubscriptionToken:
    """Handle for receiving the events of one ``(channel, topic)`` pair."""

    def __init__(self, channel: "StatusChannel", channel_id: str, topic: str, *, max_events: int) -> None:
        self.token = uuid.uuid4().hex
        self.channel_id = channel_id
        self.topic = topic
        self._channel = channel
        self._queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue(maxsize=max_events)
        self.closed = False

    @property
    def scope(self) -> Tuple[str, str]:
        return self.channel_id, self.topic

    def _deliver(self, event: Dict[str, Any]) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(
                "Subscriber %s is full, dropping event for %s/%s",
                self.token,
                self.channel_id,
                self.topic,
            )

    def _finish(self) -> None:
        self.closed = True
        # The sentinel must get through even when the queue is full.
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()

    def close(self) -> None:
        self._channel.unsubscribe(self)

    def pending(self) -> list[Dict[str, Any]]:
        """Drain and return the events already delivered, without waiting."""
        drained: list[Dict[str, Any]] = []
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if event is _CLOSED:
                self._queue.put_nowait(_CLOSED)
                break
            drained.append(event)
        return drained

    async def events(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield events until the token is closed."""
        while True:
            event = await self._queue.get()
            if event is _CLOSED:
                return
            yield event

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        return self.events()


class StatusChannel:
    """In-process status channel keyed by ``(channel, topic)``."""

    def __init__(self, max_events_per_subscriber: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._subscribers: Dict[Tuple[str, str], Dict[str, SubscriptionToken]] = {}
        self._max_events = max_events_per_subscriber

    def subscribe(self, channel_id: str, topic: str = STATUS_TOPIC) -> SubscriptionToken:
        token = SubscriptionToken(self, channel_id, topic, max_events=self._max_events)
        self._subscribers.setdefault(token.scope, {})[token.token] = token
        logger.debug("Subscribed %s to %s/%s", token.token, channel_id, topic)
        return token

    def unsubscribe(self, token: SubscriptionToken) -> None:
        scoped = self._subscribers.get(token.scope)
        if scoped is not None and scoped.pop(token.token, None) is not None:
            if not scoped:
                del self._subscribers[token.scope]
            token._finish()

    def subscriber_count(self, channel_id: str, topic: str = STATUS_TOPIC) -> int:
        return len(self._subscribers.get((channel_id, topic), {}))

    def publish(self, channel_id: str, topic: str, event: Dict[str, Any]) -> None:
        """Deliver ``event`` to every subscriber of ``(channel_id, topic)``."""
        if topic == STATUS_TOPIC:
            try:
                event = StatusEvent.model_validate(event).model_dump(by_alias=True)
            except ValidationError as exc:
                logger.warning("Dropping malformed status event on %s: %s", channel_id, exc)
                return

        scoped = self._subscribers.get((channel_id, topic))
        if not scoped:
            logger.debug("No subscribers for %s/%s, dropping event", channel_id, topic)
            return
        for token in list(scoped.values()):
            token._deliver(dict(event))

    def publisher_for(self, channel_id: str, topic: str = STATUS_TOPIC) -> Publisher:
        """Return the coroutine executors use to publish on ``channel_id``."""

        async def publish(event: Dict[str, Any]) -> None:
            self.publish(channel_id, topic, event)

        return publish


_channel: Optional[StatusChannel] = None


def get_status_channel() -> StatusChannel:
    """Get the process-wide StatusChannel."""
    global _channel
    if _channel is None:
        _channel = StatusChannel()
    return _channel
