"""Durable key-value slots shared by every open view of a learner's state.

A slot holds one string (JSON text) under a fixed name.  Writers tag each
change with their ``origin`` (a per-view id) and every subscriber of that
slot is told about it, including the writer, which is expected to ignore
its own echoes.  There is no merge: the last write to a slot wins.

Backends
--------
  InMemorySlotStore: process-local; several views constructed over the
                     same instance behave like browser tabs sharing
                     localStorage.  Values survive as long as the instance.
  RedisSlotStore:    values under ``slot:<name>`` (GET/SET/DEL); change
                     notifications on the ``slot-changes:<name>`` pub/sub
                     channel, consumed by a background task per subscription.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import TimeoutError as RedisTimeoutError

from entangledu.core.config import Settings

logger = logging.getLogger(__name__)

# (new value or None when deleted, origin of the write)
SlotListener = Callable[[str | None, str], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class SlotStore(Protocol):
    async def get(self, key: str) -> str | None:
        """Current value, or None when the slot was never written or was deleted."""
        ...

    async def set(self, key: str, value: str, *, origin: str) -> None: ...

    async def delete(self, key: str, *, origin: str) -> None: ...

    async def subscribe(self, key: str, listener: SlotListener) -> Unsubscribe:
        """Call ``listener`` on every change to ``key`` made after this returns."""
        ...


class InMemorySlotStore:
    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._listeners: dict[str, list[SlotListener]] = {}

    async def get(self, key: str) -> str | None:
        return self._values.get(key)

    async def set(self, key: str, value: str, *, origin: str) -> None:
        self._values[key] = value
        self._notify(key, value, origin)

    async def delete(self, key: str, *, origin: str) -> None:
        self._values.pop(key, None)
        self._notify(key, None, origin)

    async def subscribe(self, key: str, listener: SlotListener) -> Unsubscribe:
        self._listeners.setdefault(key, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, value: str | None, origin: str) -> None:
        for listener in list(self._listeners.get(key, [])):
            listener(value, origin)


class RedisSlotStore:
    _PREFIX = "slot:"
    _CHANNEL_PREFIX = "slot-changes:"
    SUBSCRIBE_TIMEOUT_SECONDS = 5.0

    def __init__(self, redis_client) -> None:
        self._redis = redis_client
        self._tasks: set[asyncio.Task] = set()

    async def get(self, key: str) -> str | None:
        value = await self._redis.get(f"{self._PREFIX}{key}")
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, *, origin: str) -> None:
        await self._redis.set(f"{self._PREFIX}{key}", value)
        await self._publish(key, value, origin)

    async def delete(self, key: str, *, origin: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")
        await self._publish(key, None, origin)

    async def subscribe(self, key: str, listener: SlotListener) -> Unsubscribe:
        """Returns once Redis has confirmed the SUBSCRIBE.

        Changes published after that point reach ``listener`` from a
        background task that lives until unsubscribed.
        """
        channel = f"{self._CHANNEL_PREFIX}{key}"
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            await self._confirmed(pubsub, channel)
        except BaseException:
            await pubsub.aclose()
            raise

        task = asyncio.get_running_loop().create_task(
            self._listen(pubsub, channel, listener)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        # Let the listener enter its try block so a cancel always releases the pubsub.
        await asyncio.sleep(0)

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _publish(self, key: str, value: str | None, origin: str) -> None:
        message = json.dumps({"origin": origin, "value": value})
        await self._redis.publish(f"{self._CHANNEL_PREFIX}{key}", message)

    async def _confirmed(self, pubsub, channel: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.SUBSCRIBE_TIMEOUT_SECONDS
        while (remaining := deadline - loop.time()) > 0:
            message = await pubsub.get_message(timeout=remaining)
            if message is not None and message.get("type") == "subscribe":
                return
        raise RedisTimeoutError(f"SUBSCRIBE to {channel} was not confirmed")

    async def _listen(self, pubsub, channel: str, listener: SlotListener) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    data = json.loads(message["data"])
                    value = data["value"]
                    origin = str(data["origin"])
                except (ValueError, TypeError, KeyError):
                    logger.warning("Ignoring malformed change notice on %s", channel)
                    continue
                listener(value, origin)
        finally:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()


def slot_store_from_settings(settings: Settings) -> SlotStore:
    """Redis-backed slots when REDIS_URL is set, otherwise in-memory."""
    if settings.redis_url:
        client = aioredis.from_url(settings.redis_url, decode_responses=True)
        logger.info("Ledger slots stored in Redis: %s", settings.redis_url)
        return RedisSlotStore(client)
    logger.info("No REDIS_URL configured; ledger slots are in-memory only")
    return InMemorySlotStore()
