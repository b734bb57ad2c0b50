"""Message bus module for replyclaw."""

from replyclaw.bus.events import GroupHistoryEntry, InboundEvent, Location, OutboundMessage, Route
from replyclaw.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundEvent", "OutboundMessage", "GroupHistoryEntry", "Location", "Route"]
