"""In-process fan-out of story changes to live editor streams.

Every open editor holds a subscription for the story it shows. Writes that
change a story (saving a chapter, adding one, sharing changes) publish an
event which is copied into each subscription queue for that story. The
``/stories/<id>/events`` endpoint drains a subscription and writes the events
out as Server-Sent Events.

The feed lives in the web process, so listeners only see changes made through
the same process.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Set

LOGGER = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


@dataclass
class ChangeEvent:
    story_id: int
    event: str
    payload: Dict[str, Any]
    published_at: datetime = field(default_factory=datetime.utcnow)


class Subscription:
    def __init__(self, feed: "ChangeFeed", story_id: int, maxsize: int = DEFAULT_QUEUE_SIZE) -> None:
        self.feed = feed
        self.story_id = story_id
        self._queue: "queue.Queue[ChangeEvent]" = queue.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, event: ChangeEvent) -> None:
        while True:
            try:
                self._queue.put_nowait(event)
                return
            except queue.Full:
                try:
                    dropped = self._queue.get_nowait()
                except queue.Empty:
                    continue
                LOGGER.debug("Dropping stale '%s' event for story %s", dropped.event, self.story_id)

    def get(self, timeout: Optional[float] = None) -> Optional[ChangeEvent]:
        """Return the next event, or ``None`` if nothing arrived within ``timeout``."""

        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if not self.closed:
            self.feed.unsubscribe(self)
            self.closed = True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ChangeFeed:
    def __init__(self, app: Any = None) -> None:
        self._lock = threading.Lock()
        self._subscriptions: Dict[int, Set[Subscription]] = {}
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Any) -> None:
        app.extensions["storysync_change_feed"] = self

    def subscribe(self, story_id: int, *, maxsize: int = DEFAULT_QUEUE_SIZE) -> Subscription:
        subscription = Subscription(self, story_id, maxsize=maxsize)
        with self._lock:
            self._subscriptions.setdefault(story_id, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            listeners = self._subscriptions.get(subscription.story_id)
            if not listeners:
                return
            listeners.discard(subscription)
            if not listeners:
                del self._subscriptions[subscription.story_id]

    def publish(self, story_id: int, event: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver ``event`` to every listener of ``story_id`` and return how many received it."""

        change = ChangeEvent(story_id=story_id, event=event, payload=dict(payload or {}))
        with self._lock:
            listeners = list(self._subscriptions.get(story_id, ()))
        for subscription in listeners:
            subscription.deliver(change)
        return len(listeners)

    def listener_count(self, story_id: int) -> int:
        with self._lock:
            return len(self._subscriptions.get(story_id, ()))


def format_sse(event: str, payload: Dict[str, Any]) -> str:
    data = json.dumps(payload, ensure_ascii=False, default=_json_default)
    return f"event: {event}\ndata: {data}\n\n"


def sse_comment(text: str) -> str:
    return f": {text}\n\n"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
