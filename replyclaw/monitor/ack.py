"""Acknowledgement reaction sent as soon as an event passes gating."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replyclaw.bus.events import InboundEvent
from replyclaw.logs import log_verbose
from replyclaw.monitor.loggers import reply_log
from replyclaw.monitor.tasks import BackgroundTaskTracker

if TYPE_CHECKING:
    from replyclaw.channels.base import BaseChannel
    from replyclaw.config.schema import Config


def should_ack(config: "Config", event: InboundEvent) -> bool:
    ack = config.channels.whatsapp.ack_reaction
    if not ack.emoji.strip() or not event.id:
        return False
    if not event.is_group:
        return ack.direct
    if ack.group == "never":
        return False
    if ack.group == "mentions":
        return bool(event.was_mentioned)
    return True


def maybe_send_ack_reaction(
    *,
    config: "Config",
    event: InboundEvent,
    channel: "BaseChannel",
    tracker: BackgroundTaskTracker,
    agent_id: str,
    session_key: str,
    conversation_id: str,
    account_id: str | None = None,
) -> bool:
    """
    Schedule the ack reaction without waiting for it.

    Returns True when a reaction was scheduled. Send failures are logged by
    the scheduled task and never reach the caller.
    """
    if not should_ack(config, event):
        return False
    emoji = config.channels.whatsapp.ack_reaction.emoji.strip()
    message_id = str(event.id)

    async def _send() -> None:
        log_verbose(f"Sending ack reaction {emoji} on {conversation_id}/{message_id} (agent {agent_id})")
        try:
            await channel.send_reaction(
                conversation_id,
                message_id,
                emoji,
                from_me=False,
                participant=event.sender_jid if event.is_group else None,
                account_id=account_id,
            )
        except Exception as exc:
            reply_log.warning(
                f"Failed to send ack reaction on {conversation_id} (session {session_key}): {exc}"
            )
            return
        reply_log.info(f"Sent ack reaction {emoji} to {conversation_id} message {message_id}")

    tracker.track(_send, label=f"ack:{conversation_id}:{message_id}")
    return True
