"""Chunked delivery of one reply payload through a channel."""

from __future__ import annotations

import asyncio
from pathlib import Path

from replyclaw.bus.events import InboundEvent, OutboundMessage
from replyclaw.channels.base import BaseChannel, ChannelNotConnectedError
from replyclaw.monitor.loggers import outbound_log
from replyclaw.reply.chunk import chunk_text
from replyclaw.reply.types import ReplyPayload
from replyclaw.utils.helpers import elide


class DeliveryError(RuntimeError):
    """Raised when nothing of a payload could be delivered."""


def _media_too_large(url: str, max_media_bytes: int) -> bool:
    if "://" in url:
        return False
    try:
        return Path(url).expanduser().stat().st_size > max_media_bytes
    except OSError:
        return False


async def _send_with_retry(
    channel: BaseChannel,
    msg: OutboundMessage,
    *,
    attempts: int,
    retry_delay_s: float,
) -> None:
    for attempt in range(1, attempts + 1):
        try:
            await channel.send(msg)
            return
        except ChannelNotConnectedError:
            if attempt >= attempts:
                raise
            outbound_log.warning(f"Channel disconnected sending to {msg.chat_id}; retry {attempt}/{attempts - 1}")
            await asyncio.sleep(retry_delay_s * attempt)


async def deliver_web_reply(
    *,
    payload: ReplyPayload,
    event: InboundEvent,
    channel: BaseChannel,
    text_limit: int,
    max_media_bytes: int,
    connection_id: str | None = None,
    skip_log: bool = False,
    attempts: int = 3,
    retry_delay_s: float = 0.5,
) -> None:
    """
    Send text in chunks of ``text_limit``; media goes out with the first
    chunk as caption and any remaining chunks follow as plain text.
    """
    target = event.from_
    chunks = chunk_text(payload.text or "", text_limit)
    media = [url for url in payload.all_media if url]
    accepted_media: list[str] = []
    for url in media:
        if _media_too_large(url, max_media_bytes):
            outbound_log.warning(f"Skipping media over {max_media_bytes // (1024 * 1024)}MB: {url}")
            continue
        accepted_media.append(url)

    if not chunks and not accepted_media:
        raise DeliveryError(f"Nothing deliverable for {target}")

    metadata = {"connection_id": connection_id} if connection_id else {}
    reply_to = payload.reply_to_id
    if accepted_media:
        caption = chunks.pop(0) if chunks else ""
        for index, url in enumerate(accepted_media):
            await _send_with_retry(
                channel,
                OutboundMessage(
                    channel=channel.name,
                    chat_id=target,
                    content=caption if index == 0 else "",
                    reply_to=reply_to if index == 0 else None,
                    media=[url],
                    metadata=metadata,
                ),
                attempts=attempts,
                retry_delay_s=retry_delay_s,
            )
        reply_to = None

    for index, chunk in enumerate(chunks):
        await _send_with_retry(
            channel,
            OutboundMessage(
                channel=channel.name,
                chat_id=target,
                content=chunk,
                reply_to=reply_to if index == 0 else None,
                metadata=metadata,
            ),
            attempts=attempts,
            retry_delay_s=retry_delay_s,
        )

    if not skip_log:
        media_note = f", {len(accepted_media)} media" if accepted_media else ""
        outbound_log.info(
            f"Sent reply to {target} ({len(payload.text or '')} chars{media_note}): {elide(payload.text, 120)}"
        )
