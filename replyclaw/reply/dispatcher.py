"""Streaming reply dispatcher: resolver blocks in, ordered deliveries out."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import suppress
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

from loguru import logger

from replyclaw.logs import log_verbose
from replyclaw.reply.prefix import ResponsePrefixContext, resolve_response_prefix_template
from replyclaw.reply.tokens import HEARTBEAT_TOKEN, is_silent_reply_text, strip_heartbeat_token
from replyclaw.reply.types import (
    BlockKind,
    DispatchResult,
    ModelSelection,
    MsgContext,
    ReplyBlock,
    ReplyOptions,
    ReplyPayload,
    ReplyResolver,
)

KIND_LABELS: dict[str, str] = {
    "tool": "tool update",
    "block": "block update",
    "final": "auto-reply",
}


def kind_label(kind: BlockKind) -> str:
    return KIND_LABELS.get(kind, "auto-reply")


@dataclass
class DispatcherOptions:
    """Callbacks and policy for one dispatch."""

    deliver: Callable[[ReplyPayload, BlockKind], Awaitable[None]]
    on_error: Callable[[BaseException, BlockKind], None] | None = None
    response_prefix: str | None = None
    response_prefix_context_provider: Callable[[], ResponsePrefixContext | None] | None = None
    on_heartbeat_strip: Callable[[], None] | None = None
    on_reply_start: Callable[[], Any] | None = None
    queue_size: int = 8


@dataclass
class _ResolverFailure:
    error: Exception


_DONE = object()


class ReplyDispatcher:
    """
    Drives one reply resolver and delivers its blocks in generation order.

    The resolver runs in a producer task feeding a bounded queue, so slow
    deliveries hold generation back once the queue is full. Model selections
    reported by the resolver are tagged with the number of blocks produced
    before them and applied just before the next block is delivered, which
    keeps every block's prefix consistent with its position in the stream.

    The final block ends the reply: anything the resolver yields after it is
    dropped with a warning.

    A dispatcher instance serves a single dispatch.
    """

    def __init__(self, options: DispatcherOptions):
        self.options = options
        self._heartbeat_reported = False
        self._reply_started = False

    async def run(
        self,
        ctx: MsgContext,
        resolver: ReplyResolver,
        reply_options: ReplyOptions | None = None,
    ) -> DispatchResult:
        result = DispatchResult()
        base_options = reply_options or ReplyOptions()
        on_model_selected = base_options.on_model_selected
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max(1, int(self.options.queue_size)))
        selections: list[tuple[int, ModelSelection]] = []
        produced = 0

        def _record_selection(selection: ModelSelection) -> None:
            selections.append((produced, selection))

        forwarded = replace(base_options, on_model_selected=_record_selection)

        async def _produce() -> None:
            nonlocal produced
            try:
                async for block in resolver(ctx, forwarded):
                    index = produced
                    produced += 1
                    await queue.put((index, block))
            except Exception as exc:
                await queue.put(_ResolverFailure(exc))
                return
            await queue.put(_DONE)

        applied = 0

        def _apply_selections(upto: int | None) -> None:
            nonlocal applied
            while applied < len(selections):
                seq, selection = selections[applied]
                if upto is not None and seq > upto:
                    break
                applied += 1
                if on_model_selected is not None:
                    on_model_selected(selection)

        producer = asyncio.create_task(_produce())
        final_seen = False
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                if isinstance(item, _ResolverFailure):
                    raise item.error
                index, block = item
                if final_seen:
                    logger.warning(f"Dropping {kind_label(block.kind)} produced after the final reply")
                    continue
                _apply_selections(index)
                await self._deliver_block(block, result)
                final_seen = block.kind == "final"
        finally:
            if not producer.done():
                producer.cancel()
                with suppress(asyncio.CancelledError):
                    await producer

        _apply_selections(None)
        return result

    async def _deliver_block(self, block: ReplyBlock, result: DispatchResult) -> None:
        kind = block.kind
        result.counts[kind] = result.counts.get(kind, 0) + 1
        payload = self._normalize_payload(block.payload)
        if payload is None:
            return

        await self._ensure_reply_started()
        try:
            await self.options.deliver(payload, kind)
        except Exception as exc:
            self._report_error(exc, kind)
            return

        result.delivered[kind] = result.delivered.get(kind, 0) + 1
        if kind == "final":
            result.queued_final = True

    def _normalize_payload(self, payload: ReplyPayload) -> ReplyPayload | None:
        """Strip sentinels and apply the response prefix; None means skip."""
        text = payload.text
        if text and HEARTBEAT_TOKEN in text:
            text, stripped = strip_heartbeat_token(text)
            if stripped:
                self._report_heartbeat_strip()
        if text and is_silent_reply_text(text):
            text = None
        if not (text and text.strip()) and not payload.has_media:
            return None

        if text and self.options.response_prefix:
            context = None
            if self.options.response_prefix_context_provider is not None:
                context = self.options.response_prefix_context_provider()
            prefix = resolve_response_prefix_template(self.options.response_prefix, context)
            if prefix and not text.startswith(prefix):
                text = f"{prefix} {text}"

        return replace(payload, text=text or None)

    def _report_heartbeat_strip(self) -> None:
        if self._heartbeat_reported:
            return
        self._heartbeat_reported = True
        if self.options.on_heartbeat_strip is not None:
            self.options.on_heartbeat_strip()
        else:
            log_verbose(f"Stripped stray {HEARTBEAT_TOKEN} token from reply")

    async def _ensure_reply_started(self) -> None:
        if self._reply_started:
            return
        self._reply_started = True
        hook = self.options.on_reply_start
        if hook is None:
            return
        try:
            outcome = hook()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.warning(f"Reply start hook failed: {exc}")

    def _report_error(self, exc: BaseException, kind: BlockKind) -> None:
        if self.options.on_error is not None:
            try:
                self.options.on_error(exc, kind)
                return
            except Exception as hook_exc:
                logger.error(f"Error hook failed while reporting {kind_label(kind)}: {hook_exc}")
        logger.error(f"Failed sending {kind_label(kind)}: {exc}")


async def dispatch_reply(
    ctx: MsgContext,
    resolver: ReplyResolver,
    options: DispatcherOptions,
    reply_options: ReplyOptions | None = None,
) -> DispatchResult:
    """Run one dispatch with a fresh dispatcher."""
    return await ReplyDispatcher(options).run(ctx, resolver, reply_options)
