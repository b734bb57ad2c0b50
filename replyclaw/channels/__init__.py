"""Chat channel boundary for replyclaw."""

from replyclaw.channels.base import BaseChannel, ChannelNotConnectedError

__all__ = ["BaseChannel", "ChannelNotConnectedError"]
