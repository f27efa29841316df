"""
Pub/Sub bus — Abstract interface with Redis and in-memory backends.

Channel Topology:
  slack-relay-reaction-added   inbound: Slack reaction events relayed by the
                                 events webhook (one JSON envelope per message)
  timebomb-messages            outbound: deferred-deletion requests consumed
                                 by TimeBomb

Outbound Message Schema:
  {"channel": <slack channel id>, "ts": <message ts>, "ttl": <seconds>}

Delivery is plain Redis PUBLISH/SUBSCRIBE: at-most-once, no acknowledgement,
no persistence. A subscriber that is not connected misses the message.
"""
from __future__ import annotations

import asyncio
import structlog
from abc import ABC, abstractmethod
from typing import Optional

from config.settings import ConfigurationError, RedisConfig


# ──────────────────────────────────────────────────────────────
#  Abstract Interface
# ──────────────────────────────────────────────────────────────

class Subscription(ABC):
    """A live subscription to one channel."""

    channel: str

    @abstractmethod
    async def get(self) -> Optional[str]:
        """Wait for the next payload. Returns None once the channel is closed."""
        ...

    @abstractmethod
    async def close(self):
        """Unsubscribe."""
        ...


class PubSub(ABC):
    """Abstract publish/subscribe bus."""

    @abstractmethod
    async def connect(self):
        """Establish connection to the bus. Raises ConfigurationError if unreachable."""
        ...

    @abstractmethod
    async def close(self):
        """Gracefully shut down."""
        ...

    @abstractmethod
    async def subscribe(self, channel: str) -> Subscription:
        ...

    @abstractmethod
    async def publish(self, channel: str, payload: str) -> int:
        """Publish a payload. Returns the number of subscribers that received it."""
        ...


# ──────────────────────────────────────────────────────────────
#  Redis Implementation
# ──────────────────────────────────────────────────────────────

class RedisSubscription(Subscription):

    def __init__(self, pubsub, channel: str, logger=None):
        self._pubsub = pubsub
        self.channel = channel
        self.log = logger or structlog.get_logger()
        self._listener = None

    async def get(self) -> Optional[str]:
        import redis.exceptions

        if self._listener is None:
            self._listener = self._pubsub.listen()
        try:
            async for message in self._listener:
                # skip subscribe/unsubscribe confirmations
                if message["type"] == "message":
                    return message["data"]
        except redis.exceptions.ConnectionError as e:
            self.log.error("redis_subscription_lost", channel=self.channel, error=str(e))
        return None

    async def close(self):
        try:
            await self._pubsub.unsubscribe(self.channel)
        finally:
            await self._pubsub.aclose()


class RedisPubSub(PubSub):
    """Production bus backed by Redis PUBLISH/SUBSCRIBE."""

    def __init__(self, config: RedisConfig = None, logger=None):
        self.config = config or RedisConfig()
        self.log = logger or structlog.get_logger()
        self._redis = None

    async def connect(self):
        import redis.asyncio as aioredis
        import redis.exceptions

        self._redis = aioredis.from_url(
            self.config.url,
            password=self.config.password or None,
            decode_responses=True,
        )
        try:
            await self._redis.ping()
        except redis.exceptions.RedisError as e:
            raise ConfigurationError(
                f"Failed to connect to Redis at {self.config.addr}: {e}"
            ) from e
        self.log.info("redis_connected", addr=self.config.addr, db=self.config.db)

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def subscribe(self, channel: str) -> Subscription:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(channel)
        self.log.info("redis_subscribed", channel=channel)
        return RedisSubscription(pubsub, channel, logger=self.log)

    async def publish(self, channel: str, payload: str) -> int:
        return await self._redis.publish(channel, payload)


# ──────────────────────────────────────────────────────────────
#  In-Memory Implementation (Development)
# ──────────────────────────────────────────────────────────────

class InMemorySubscription(Subscription):

    def __init__(self, bus: InMemoryPubSub, channel: str):
        self._bus = bus
        self.channel = channel
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def _deliver(self, payload: Optional[str]):
        self._queue.put_nowait(payload)

    async def get(self) -> Optional[str]:
        if self._closed:
            return None
        payload = await self._queue.get()
        if payload is None:  # close sentinel
            self._closed = True
        return payload

    async def close(self):
        self._bus._unsubscribe(self)
        self._deliver(None)


class InMemoryPubSub(PubSub):
    """
    Development/test bus backed by asyncio queues.
    Single-process only. Every published payload is also kept in
    `published` for inspection.
    """

    def __init__(self, logger=None):
        self.log = logger or structlog.get_logger()
        self._subscribers: dict[str, list[InMemorySubscription]] = {}
        self.published: list[tuple[str, str]] = []

    async def connect(self):
        self.log.info("inmemory_pubsub_connected")

    async def close(self):
        for subs in list(self._subscribers.values()):
            for sub in list(subs):
                await sub.close()
        self._subscribers.clear()

    async def subscribe(self, channel: str) -> Subscription:
        sub = InMemorySubscription(self, channel)
        self._subscribers.setdefault(channel, []).append(sub)
        self.log.info("inmemory_subscribed", channel=channel)
        return sub

    def _unsubscribe(self, sub: InMemorySubscription):
        subs = self._subscribers.get(sub.channel, [])
        if sub in subs:
            subs.remove(sub)

    async def publish(self, channel: str, payload: str) -> int:
        self.published.append((channel, payload))
        subs = self._subscribers.get(channel, [])
        for sub in subs:
            sub._deliver(payload)
        return len(subs)

    def published_to(self, channel: str) -> list[str]:
        return [payload for ch, payload in self.published if ch == channel]


# ──────────────────────────────────────────────────────────────
#  Factory
# ──────────────────────────────────────────────────────────────

def create_pubsub(config: RedisConfig = None, logger=None) -> PubSub:
    """Factory: create the appropriate bus backend."""
    config = config or RedisConfig()
    if config.backend == "memory":
        return InMemoryPubSub(logger=logger)
    return RedisPubSub(config, logger=logger)
