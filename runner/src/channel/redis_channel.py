"""
Device channel over Redis pub/sub.

Requests are published on the request channel as {"event": ..., "data": ...};
the device agent publishes its events the same way on the event channel.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis

from runner.src.channel.base import CommandChannel
from runner.src.config import get_settings
from runner.src.errors import ChannelNotConnected

logger = logging.getLogger(__name__)
settings = get_settings()

class RedisChannel(CommandChannel):

    def __init__(
        self,
        redis_url: Optional[str] = None,
        request_channel: Optional[str] = None,
        event_channel: Optional[str] = None,
    ):
        super().__init__()
        self.redis_url = redis_url or settings.redis_url
        self.request_channel = request_channel or settings.request_channel
        self.event_channel = event_channel or settings.event_channel
        self._client: Optional[redis.Redis] = None
        self._pubsub = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._client is not None and self._reader is not None and not self._reader.done()

    async def connect(self):
        """Open the connection and start delivering device events."""
        self._client = redis.from_url(self.redis_url, decode_responses=True)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.event_channel)
        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"Device channel connected ({self.request_channel} -> {self.event_channel})")

    async def _read_loop(self):
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            try:
                envelope = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning(f"Dropping malformed device event: {message['data']!r}")
                continue

            event = envelope.get("event")
            if not event:
                logger.warning(f"Dropping device event without a name: {envelope}")
                continue
            self.deliver(event, envelope.get("data") or {})

    async def emit(self, event: str, data: Dict[str, Any]):
        if not self.connected:
            raise ChannelNotConnected()
        await self._client.publish(
            self.request_channel,
            json.dumps({"event": event, "data": data}),
        )

    async def close(self):
        if self._reader:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._pubsub:
            await self._pubsub.unsubscribe(self.event_channel)
            await self._pubsub.close()
            self._pubsub = None
        if self._client:
            await self._client.close()
            self._client = None
        logger.info("Device channel closed")
