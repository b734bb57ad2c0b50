"""Per-event auto-reply pipeline."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from replyclaw.bus.events import GroupHistoryEntry, InboundEvent, Route
from replyclaw.logs import log_verbose, should_log_verbose
from replyclaw.monitor.ack import maybe_send_ack_reaction
from replyclaw.monitor.context import build_combined_body, identity_prefix, is_self_chat
from replyclaw.monitor.deliver import deliver_web_reply
from replyclaw.monitor.echo import EchoTracker
from replyclaw.monitor.history import GroupHistoryStore, format_group_members
from replyclaw.monitor.last_route import update_last_route_in_background
from replyclaw.monitor.loggers import inbound_log, outbound_log, reply_log
from replyclaw.monitor.tasks import BackgroundTaskTracker
from replyclaw.reply.dispatcher import DispatcherOptions, dispatch_reply, kind_label
from replyclaw.reply.prefix import ResponsePrefixContext
from replyclaw.reply.tokens import HEARTBEAT_TOKEN
from replyclaw.reply.types import BlockKind, MsgContext, ReplyOptions, ReplyPayload, ReplyResolver
from replyclaw.utils.helpers import elide, jid_to_e164, normalize_e164

if TYPE_CHECKING:
    from replyclaw.channels.base import BaseChannel
    from replyclaw.config.schema import Config
    from replyclaw.session.store import LastRouteStore

DEFAULT_SELF_CHAT_PREFIX = "[replyclaw]"


def resolve_response_prefix(config: "Config", event: InboundEvent, agent_id: str) -> str | None:
    """Agent override, then global config, then an identity tag in self-chats."""
    resolved = config.resolve_response_prefix(agent_id)
    if resolved is not None:
        return resolved
    if is_self_chat(event):
        return identity_prefix(config, agent_id) or DEFAULT_SELF_CHAT_PREFIX
    return None


def direct_recipient(event: InboundEvent) -> str | None:
    if event.sender_e164:
        return normalize_e164(event.sender_e164)
    if "@" in event.from_:
        return jid_to_e164(event.from_)
    return normalize_e164(event.from_)


def build_msg_context(
    *,
    event: InboundEvent,
    route: Route,
    combined_body: str,
    group_members: str | None,
) -> MsgContext:
    location = event.location
    return MsgContext(
        body=combined_body,
        raw_body=event.body,
        command_body=event.body,
        from_=event.from_,
        to=event.to,
        session_key=route.session_key,
        account_id=route.account_id,
        message_sid=event.id,
        reply_to_id=event.reply_to_id,
        reply_to_body=event.reply_to_body,
        reply_to_sender=event.reply_to_sender,
        media_path=event.media_path,
        media_url=event.media_url,
        media_type=event.media_type,
        chat_type=event.chat_type,
        group_subject=event.group_subject,
        group_members=group_members,
        sender_name=event.sender_name,
        sender_id=(event.sender_jid or "").strip() or event.sender_e164,
        sender_e164=event.sender_e164,
        was_mentioned=event.was_mentioned,
        location_lat=location.latitude if location else None,
        location_lon=location.longitude if location else None,
        location_name=location.name if location else None,
        location_address=location.address if location else None,
        location_accuracy=location.accuracy if location else None,
        location_is_live=location.is_live if location else None,
        provider=event.channel,
        surface=event.channel,
        originating_channel=event.channel,
        originating_to=event.from_,
    )


async def process_message(
    *,
    config: "Config",
    event: InboundEvent,
    route: Route,
    channel: "BaseChannel",
    resolver: ReplyResolver,
    history_store: GroupHistoryStore,
    group_history_key: str,
    echo: EchoTracker,
    tracker: BackgroundTaskTracker,
    last_route_store: "LastRouteStore | None" = None,
    connection_id: str = "",
    max_media_bytes: int | None = None,
    max_media_text_chunk_limit: int | None = None,
    group_history: list[GroupHistoryEntry] | None = None,
    suppress_group_history_clear: bool = False,
) -> bool:
    """
    Turn one inbound event into at most one streamed reply.

    Group callers must hold ``history_store.lock(group_history_key)`` for the
    duration of the call. Returns True when a final reply was delivered.
    Resolver failures propagate to the caller.
    """
    whatsapp_cfg = config.channels.whatsapp
    conversation_id = event.resolved_conversation_id
    history = None
    if event.is_group:
        history = group_history if group_history is not None else history_store.get(group_history_key)
    combined = build_combined_body(
        config,
        event,
        route,
        history=history,
        suppress_history_clear=suppress_group_history_clear,
    )

    # Keyed on the combined body so the same text in another context is not an echo.
    echo_key = echo.build_combined_key(route.session_key, combined.body)
    if echo.check_and_consume(echo_key):
        log_verbose("Skipping auto-reply: detected echo for combined message")
        return False

    maybe_send_ack_reaction(
        config=config,
        event=event,
        channel=channel,
        tracker=tracker,
        agent_id=route.agent_id,
        session_key=route.session_key,
        conversation_id=conversation_id,
        account_id=route.account_id,
    )

    correlation_id = event.id or uuid.uuid4().hex[:12]
    from_display = conversation_id if event.is_group else event.from_
    reply_log.bind(connection_id=connection_id, correlation_id=correlation_id).info(
        f"inbound web message from={from_display} to={event.to} body={elide(combined.body, 240)!r} "
        f"media_type={event.media_type} media_path={event.media_path}"
    )
    media_label = f", {event.media_type}" if event.media_type else ""
    inbound_log.info(
        f"Inbound message {from_display} -> {event.to} ({event.chat_type}{media_label}, {len(combined.body)} chars)"
    )
    if should_log_verbose():
        inbound_log.debug(f"Inbound body: {elide(combined.body, 400)}")

    if not event.is_group and last_route_store is not None:
        to = direct_recipient(event)
        if to:
            update_last_route_in_background(
                tracker=tracker,
                store=last_route_store,
                agent_id=route.agent_id,
                session_key=route.main_session_key,
                channel=event.channel,
                to=to,
                account_id=route.account_id,
            )

    text_limit = max_media_text_chunk_limit or whatsapp_cfg.text_chunk_limit
    media_limit = max_media_bytes or whatsapp_cfg.media_max_mb * 1024 * 1024
    identity_name = config.resolve_identity(route.agent_id).name.strip() or None
    prefix_context = ResponsePrefixContext(identity_name=identity_name)

    async def _deliver(payload: ReplyPayload, kind: BlockKind) -> None:
        await deliver_web_reply(
            payload=payload,
            event=event,
            channel=channel,
            text_limit=text_limit,
            max_media_bytes=media_limit,
            connection_id=connection_id,
            # Tool and block updates are noisy; only finals get a send log line.
            skip_log=kind != "final",
        )
        if kind == "tool":
            echo.remember_text(payload.text)
            return
        echo.remember_text(
            payload.text,
            combined_body=combined.body,
            combined_body_session_key=route.session_key,
            log_verbose_message=kind == "final" and bool(payload.text),
        )
        if kind == "final":
            media_note = " (media)" if payload.has_media else ""
            outbound_log.info(f"Auto-replied to {from_display}{media_note}")
            if should_log_verbose():
                preview = elide(payload.text, 400) if payload.text is not None else "<media>"
                outbound_log.debug(f"Reply body: {preview}{media_note}")

    def _on_error(exc: BaseException, kind: BlockKind) -> None:
        outbound_log.error(f"Failed sending web {kind_label(kind)} to {event.from_ or conversation_id}: {exc}")

    disable_block_streaming = None
    if whatsapp_cfg.block_streaming is not None:
        disable_block_streaming = not whatsapp_cfg.block_streaming

    ctx = build_msg_context(
        event=event,
        route=route,
        combined_body=combined.body,
        group_members=format_group_members(
            participants=event.group_participants,
            roster=history_store.roster(group_history_key),
            fallback_e164=event.sender_e164,
        )
        if event.is_group
        else None,
    )
    result = await dispatch_reply(
        ctx,
        resolver,
        DispatcherOptions(
            deliver=_deliver,
            on_error=_on_error,
            response_prefix=resolve_response_prefix(config, event, route.agent_id),
            response_prefix_context_provider=lambda: prefix_context,
            on_heartbeat_strip=lambda: log_verbose(f"Stripped stray {HEARTBEAT_TOKEN} token from web reply"),
            on_reply_start=event.send_composing,
        ),
        ReplyOptions(
            disable_block_streaming=disable_block_streaming,
            on_model_selected=prefix_context.apply_model_selection,
        ),
    )

    if not result.queued_final:
        log_verbose("Skipping auto-reply: silent token or no text/media returned from resolver")
        return False

    if combined.should_clear_history:
        history_store.clear(group_history_key)
    return True
