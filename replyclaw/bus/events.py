"""Event types for the message bus."""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

ChatType = Literal["direct", "group"]


@dataclass(frozen=True)
class Location:
    """A shared location attached to an inbound message."""
    latitude: float
    longitude: float
    name: str | None = None
    address: str | None = None
    accuracy: float | None = None
    is_live: bool = False


@dataclass(frozen=True)
class InboundEvent:
    """One message received from a chat channel."""

    from_: str  # group id for groups, sender chat id for direct chats
    to: str  # our own address on the channel
    body: str
    chat_type: ChatType = "direct"
    channel: str = "whatsapp"
    account_id: str = "default"
    id: str | None = None  # provider-assigned message id
    conversation_id: str | None = None
    sender_name: str | None = None
    sender_jid: str | None = None
    sender_e164: str | None = None
    self_e164: str | None = None
    self_jid: str | None = None
    timestamp: float | None = None  # epoch seconds
    media_path: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    reply_to_id: str | None = None
    reply_to_body: str | None = None
    reply_to_sender: str | None = None
    was_mentioned: bool | None = None
    mentioned_jids: tuple[str, ...] = ()
    group_subject: str | None = None
    group_participants: tuple[str, ...] = ()
    location: Location | None = None
    send_composing: Callable[[], Awaitable[None]] | None = field(default=None, compare=False, repr=False)

    @property
    def is_group(self) -> bool:
        return self.chat_type == "group"

    @property
    def resolved_conversation_id(self) -> str:
        """Conversation id, falling back to the sender address."""
        return self.conversation_id or self.from_


@dataclass(frozen=True)
class Route:
    """Resolved addressing for one conversation."""

    agent_id: str
    session_key: str
    main_session_key: str
    account_id: str = "default"
    channel: str = "whatsapp"
    matched_by: str = "default"


@dataclass
class GroupHistoryEntry:
    """One prior message in a group conversation."""

    sender: str
    body: str
    timestamp: float | None = None
    id: str | None = None
    sender_jid: str | None = None


@dataclass
class OutboundMessage:
    """Message to send to a chat channel."""

    channel: str
    chat_id: str
    content: str
    reply_to: str | None = None
    media: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
