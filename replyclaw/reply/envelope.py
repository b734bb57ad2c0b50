"""Envelope formatting for text handed to the reply resolver."""

from datetime import datetime, timezone

HISTORY_CONTEXT_MARKER = "[Chat messages since your last reply - for context]"
CURRENT_MESSAGE_MARKER = "[Current message - respond to this]"


def format_timestamp(timestamp: float | None) -> str | None:
    if timestamp is None:
        return None
    try:
        return datetime.fromtimestamp(float(timestamp), tz=timezone.utc).strftime("%Y-%m-%dT%H:%MZ")
    except (OverflowError, OSError, ValueError):
        return None


def format_agent_envelope(
    *,
    channel: str,
    body: str,
    from_: str | None = None,
    timestamp: float | None = None,
) -> str:
    """``[WhatsApp +1555 2026-01-01T10:00Z] body``"""
    parts = [channel.strip() or "Channel"]
    if from_ and from_.strip():
        parts.append(from_.strip())
    ts = format_timestamp(timestamp)
    if ts:
        parts.append(ts)
    return f"[{' '.join(parts)}] {body}"


def build_history_context(*, history_text: str, current_message: str, line_break: str = "\n") -> str:
    """Prepend folded history to the current message."""
    if not history_text.strip():
        return current_message
    return line_break.join(
        [HISTORY_CONTEXT_MARKER, history_text, "", CURRENT_MESSAGE_MARKER, current_message]
    )
