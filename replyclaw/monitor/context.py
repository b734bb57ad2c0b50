"""Effective message body for one inbound event."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from replyclaw.bus.events import GroupHistoryEntry, InboundEvent, Route
from replyclaw.reply.envelope import build_history_context, format_agent_envelope
from replyclaw.utils.helpers import normalize_e164

if TYPE_CHECKING:
    from replyclaw.config.schema import Config

ENVELOPE_CHANNEL = "WhatsApp"
# Literal two-character marker, not a newline.
LINE_BREAK = "\\n"


@dataclass(frozen=True)
class CombinedBody:
    """Text for the resolver plus whether group history is cleared afterwards."""
    body: str
    should_clear_history: bool = False


def is_self_chat(event: InboundEvent) -> bool:
    if event.is_group or not event.self_e164:
        return False
    return normalize_e164(event.from_) == normalize_e164(event.self_e164)


def identity_prefix(config: "Config", agent_id: str) -> str | None:
    name = config.resolve_identity(agent_id).name.strip()
    return f"[{name}]" if name else None


def resolve_message_prefix(config: "Config", event: InboundEvent, agent_id: str) -> str:
    configured = config.messages.message_prefix
    if configured is not None:
        return configured
    if is_self_chat(event):
        return identity_prefix(config, agent_id) or ""
    return ""


def sender_label(event: InboundEvent) -> str:
    """``name (e164)``, whichever is known, else ``Unknown``."""
    if event.sender_name and event.sender_e164:
        return f"{event.sender_name} ({event.sender_e164})"
    return event.sender_name or event.sender_e164 or "Unknown"


def build_inbound_line(config: "Config", event: InboundEvent, agent_id: str) -> str:
    """Envelope of the raw inbound line, including any quoted reply."""
    prefix = resolve_message_prefix(config, event, agent_id)
    if prefix and not prefix.endswith(" "):
        prefix = f"{prefix} "
    reply_context = ""
    if event.reply_to_body:
        quoted_sender = event.reply_to_sender or "unknown sender"
        quoted_id = f" id:{event.reply_to_id}" if event.reply_to_id else ""
        reply_context = f"\n\n[Replying to {quoted_sender}{quoted_id}]\n{event.reply_to_body}\n[/Replying]"
    body = f"{prefix}{event.body}{reply_context}"
    if event.is_group:
        body = f"{event.sender_name or event.sender_e164 or 'Someone'}: {body}"
        from_ = event.resolved_conversation_id
    else:
        from_ = event.from_.removeprefix("whatsapp:")
    return format_agent_envelope(channel=ENVELOPE_CHANNEL, from_=from_, timestamp=event.timestamp, body=body)


def format_history_entry(entry: GroupHistoryEntry, conversation_id: str) -> str:
    body = f"{entry.body}\n[message_id: {entry.id}]" if entry.id else entry.body
    return format_agent_envelope(
        channel=ENVELOPE_CHANNEL,
        from_=conversation_id,
        timestamp=entry.timestamp,
        body=f"{entry.sender}: {body}",
    )


def build_combined_body(
    config: "Config",
    event: InboundEvent,
    route: Route,
    history: list[GroupHistoryEntry] | None = None,
    suppress_history_clear: bool = False,
) -> CombinedBody:
    """
    Build the text the resolver sees for this event.

    Direct chats get the inbound line as-is. Group chats fold the history
    that preceded the current message (its own entry, the last one, is
    dropped so it never appears twice) and always end with a ``[from: ...]``
    trailer naming the sender.
    """
    combined = build_inbound_line(config, event, route.agent_id)
    if not event.is_group:
        return CombinedBody(body=combined, should_clear_history=False)

    entries = list(history or [])
    prior = entries[:-1] if entries else []
    if prior:
        conversation_id = event.resolved_conversation_id
        history_text = LINE_BREAK.join(format_history_entry(entry, conversation_id) for entry in prior)
        combined = build_history_context(
            history_text=history_text,
            current_message=combined,
            line_break=LINE_BREAK,
        )
    combined = f"{combined}{LINE_BREAK}[from: {sender_label(event)}]"
    return CombinedBody(body=combined, should_clear_history=not suppress_history_clear)
