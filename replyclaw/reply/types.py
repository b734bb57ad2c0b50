"""Types shared by the reply resolver and the dispatcher."""

from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Literal, Protocol

BlockKind = Literal["tool", "block", "final"]


@dataclass
class ReplyPayload:
    """Text and/or media produced for one delivery."""
    text: str | None = None
    media_url: str | None = None
    media_urls: list[str] = field(default_factory=list)
    reply_to_id: str | None = None

    @property
    def all_media(self) -> list[str]:
        urls = list(self.media_urls)
        if self.media_url and self.media_url not in urls:
            urls.insert(0, self.media_url)
        return urls

    @property
    def has_media(self) -> bool:
        return bool(self.media_url or self.media_urls)


@dataclass
class ReplyBlock:
    """One unit emitted by the reply resolver."""
    kind: BlockKind
    payload: ReplyPayload


@dataclass(frozen=True)
class ModelSelection:
    """Model picked by the resolver for this reply."""
    provider: str
    model: str
    think_level: str | None = None


@dataclass
class MsgContext:
    """Flattened attribute bag handed to the reply resolver."""

    body: str
    raw_body: str
    command_body: str
    from_: str
    to: str
    session_key: str
    account_id: str | None = None
    message_sid: str | None = None
    reply_to_id: str | None = None
    reply_to_body: str | None = None
    reply_to_sender: str | None = None
    media_path: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    chat_type: str = "direct"
    group_subject: str | None = None
    group_members: str | None = None
    sender_name: str | None = None
    sender_id: str | None = None
    sender_e164: str | None = None
    was_mentioned: bool | None = None
    location_lat: float | None = None
    location_lon: float | None = None
    location_name: str | None = None
    location_address: str | None = None
    location_accuracy: float | None = None
    location_is_live: bool | None = None
    provider: str = "whatsapp"
    surface: str = "whatsapp"
    originating_channel: str = "whatsapp"
    originating_to: str | None = None


@dataclass
class ReplyOptions:
    """Options passed through to the reply resolver."""
    disable_block_streaming: bool | None = None
    on_model_selected: Callable[[ModelSelection], None] | None = None


class ReplyResolver(Protocol):
    """Produces the ordered blocks of one reply."""

    def __call__(self, ctx: MsgContext, options: ReplyOptions) -> AsyncIterator[ReplyBlock]: ...


@dataclass
class DispatchResult:
    """Outcome of one dispatch."""
    queued_final: bool = False
    counts: dict[str, int] = field(default_factory=lambda: {"tool": 0, "block": 0, "final": 0})
    delivered: dict[str, int] = field(default_factory=lambda: {"tool": 0, "block": 0, "final": 0})

    @property
    def delivered_any(self) -> bool:
        return any(self.delivered.values())
