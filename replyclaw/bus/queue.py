"""Async message queue between chat channels and the auto-reply monitor."""

import asyncio

from loguru import logger

from replyclaw.bus.events import InboundEvent


class MessageBus:
    """
    Async message bus that decouples chat channels from the reply pipeline.

    Channels push inbound events, and the monitor consumes them one at a time
    and starts processing for each.
    """

    def __init__(self, maxsize: int = 0):
        self.inbound: asyncio.Queue[InboundEvent] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    async def publish_inbound(self, event: InboundEvent) -> None:
        """Publish an event from a channel to the monitor."""
        if self._closed:
            logger.warning(f"Dropping inbound event {event.id or '<no id>'}: bus closed")
            return
        await self.inbound.put(event)

    async def consume_inbound(self) -> InboundEvent:
        """Consume the next inbound event (blocks until available)."""
        return await self.inbound.get()

    def close(self) -> None:
        """Refuse further inbound events."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def inbound_size(self) -> int:
        """Number of pending inbound events."""
        return self.inbound.qsize()
