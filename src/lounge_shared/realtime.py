"""
Realtime change feed for the document store.

Every committed write on a collection is published to the listeners
subscribed to that collection. Listeners run synchronously in the writer's
context, after the commit, so they must be quick (enqueue work, do not await
store calls).

When a `RedisChangeBus` is attached, each event is also published as JSON on
`{REDIS_CHANNEL_PREFIX}:{collection}` (default: `lounge:changes:reservations`,
`lounge:changes:orders`, ...) and events published by other processes are
delivered to local listeners. Remote events arrive on the bus listener
thread, not on the event loop.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from .constants import Collection

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_PREFIX = "lounge:changes"


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    action: str  # created, updated
    document_id: int
    payload: dict[str, Any] = field(default_factory=dict)


ChangeListener = Callable[[ChangeEvent], None]


def _serialize_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    if isinstance(value, (set, tuple)):
        return list(value)
    return value


class RedisChangeBus:
    """
    Relays change events between processes over Redis pub/sub.

    Messages carry the publishing bus's `origin` so a process never receives
    its own writes twice.
    """

    def __init__(self, client: Redis, channel_prefix: str = DEFAULT_CHANNEL_PREFIX):
        self.client = client
        self.channel_prefix = channel_prefix
        self.origin = uuid.uuid4().hex
        self._handlers: dict[str, Callable[[ChangeEvent], None]] = {}
        self._pubsub = None
        self._thread = None
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str, channel_prefix: str = DEFAULT_CHANNEL_PREFIX) -> RedisChangeBus:
        return cls(Redis.from_url(url, decode_responses=True), channel_prefix)

    def channel(self, collection: str) -> str:
        return f"{self.channel_prefix}:{collection}"

    def publish(self, event: ChangeEvent) -> None:
        message = {
            "origin": self.origin,
            "collection": event.collection,
            "action": event.action,
            "document_id": event.document_id,
            "payload": event.payload,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        try:
            self.client.publish(
                self.channel(event.collection), json.dumps(message, default=_serialize_value)
            )
        except RedisError as exc:
            logger.warning(
                f"Failed to publish change {event.collection} {event.action} #{event.document_id}: {exc}"
            )

    def listen(self, collection: str, on_event: Callable[[ChangeEvent], None]) -> None:
        """Deliver events other processes publish on `collection` to `on_event`."""
        channel = self.channel(collection)
        with self._lock:
            if channel in self._handlers:
                return
            self._handlers[channel] = on_event
            try:
                if self._pubsub is None:
                    self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
                self._pubsub.subscribe(**{channel: self._handle})
                if self._thread is None:
                    self._thread = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)
            except RedisError as exc:
                self._handlers.pop(channel, None)
                logger.warning(f"Unable to subscribe to redis channel {channel}: {exc}")
                return
        logger.info(f"Listening for remote changes on {channel}")

    def _handle(self, message: dict[str, Any]) -> None:
        handler = self._handlers.get(message.get("channel"))
        if handler is None:
            return
        try:
            data = json.loads(message["data"])
        except (TypeError, ValueError) as exc:
            logger.warning(f"Ignoring malformed change message on {message.get('channel')}: {exc}")
            return
        if data.get("origin") == self.origin:
            return

        handler(
            ChangeEvent(
                collection=data["collection"],
                action=data["action"],
                document_id=data["document_id"],
                payload=data.get("payload") or {},
            )
        )

    def close(self) -> None:
        with self._lock:
            if self._thread is not None:
                self._thread.stop()
                self._thread = None
            if self._pubsub is not None:
                self._pubsub.close()
                self._pubsub = None
            self._handlers.clear()


class ChangeFeed:
    """Publish/subscribe registry keyed by collection name, optionally relayed over a bus."""

    def __init__(self, bus: RedisChangeBus | None = None) -> None:
        self._listeners: dict[str, list[ChangeListener]] = {}
        self.bus = bus

    @staticmethod
    def _collection_key(collection: str | Collection) -> str:
        return collection.value if isinstance(collection, Collection) else str(collection)

    def subscribe(self, collection: str | Collection, listener: ChangeListener) -> Callable[[], None]:
        """Register `listener` for `collection`; returns an idempotent unsubscribe."""
        key = self._collection_key(collection)
        self._listeners.setdefault(key, []).append(listener)
        logger.debug(f"Listener subscribed to '{key}' ({len(self._listeners[key])} total)")
        if self.bus is not None:
            self.bus.listen(key, self._dispatch)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
                logger.debug(f"Listener unsubscribed from '{key}'")

        return unsubscribe

    def listener_count(self, collection: str | Collection) -> int:
        return len(self._listeners.get(self._collection_key(collection), []))

    def emit(
        self,
        collection: str | Collection,
        action: str,
        document_id: int,
        payload: dict[str, Any] | None = None,
    ) -> ChangeEvent:
        key = self._collection_key(collection)
        event = ChangeEvent(
            collection=key,
            action=action,
            document_id=document_id,
            payload={k: _serialize_value(v) for k, v in (payload or {}).items()},
        )
        self._dispatch(event)
        if self.bus is not None:
            self.bus.publish(event)
        return event

    def _dispatch(self, event: ChangeEvent) -> None:
        for listener in list(self._listeners.get(event.collection, [])):
            try:
                listener(event)
            except Exception as exc:
                logger.warning(
                    f"Change listener failed for '{event.collection}' {event.action} "
                    f"#{event.document_id} (continuing): {exc}",
                    exc_info=True,
                )

    def close(self) -> None:
        if self.bus is not None:
            self.bus.close()


def build_change_feed(redis_url: str = "", channel_prefix: str = DEFAULT_CHANNEL_PREFIX) -> ChangeFeed:
    """A feed relayed over Redis when `redis_url` is set, process-local otherwise."""
    if not redis_url:
        return ChangeFeed()
    return ChangeFeed(bus=RedisChangeBus.from_url(redis_url, channel_prefix))
