"""Base channel interface for chat platforms."""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from replyclaw.bus.events import InboundEvent, OutboundMessage
from replyclaw.bus.queue import MessageBus


class ChannelNotConnectedError(RuntimeError):
    """Raised when a send is attempted while the channel transport is down."""


class BaseChannel(ABC):
    """
    Abstract base class for chat channel implementations.

    A channel owns the transport (login, sockets, reconnection) and exposes
    two things to the reply pipeline: publishing inbound events onto the bus
    and sending outbound payloads. Sends raise on failure so the pipeline
    can report them.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
            bus: The message bus for inbound events.
        """
        self.config = config
        self.bus = bus

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """
        Send a message through this channel.

        Args:
            msg: The message to send.

        Raises:
            ChannelNotConnectedError: If the transport is not connected.
        """
        pass

    @abstractmethod
    async def send_reaction(
        self,
        chat_id: str,
        message_id: str,
        emoji: str,
        *,
        from_me: bool = False,
        participant: str | None = None,
        account_id: str | None = None,
    ) -> None:
        """React to a message with an emoji."""
        pass

    def is_allowed(self, sender_id: str) -> bool:
        """
        Check if a sender is allowed to use this bot.

        Args:
            sender_id: The sender's identifier.

        Returns:
            True if allowed, False otherwise.
        """
        allow_list = getattr(self.config, "allow_from", [])

        # If no allow list, deny everyone
        if not allow_list:
            return False
        if "*" in allow_list:
            return True

        sender_str = str(sender_id)
        if sender_str in allow_list:
            return True
        if "|" in sender_str:
            for part in sender_str.split("|"):
                if part and part in allow_list:
                    return True
        return False

    async def _handle_event(self, event: InboundEvent) -> None:
        """
        Forward an inbound event to the bus after the allow-list check.

        Group events are gated on the group id, direct events on the sender.
        """
        sender = event.from_ if event.is_group else (event.sender_e164 or event.from_)
        if not self.is_allowed(sender):
            logger.warning(
                f"Access denied for sender {sender} on channel {self.name}. "
                f"Add them to allowFrom list in config to grant access."
            )
            return
        await self.bus.publish_inbound(event)

