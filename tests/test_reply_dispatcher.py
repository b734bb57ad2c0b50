import asyncio

import pytest

from replyclaw.reply.dispatcher import DispatcherOptions, dispatch_reply
from replyclaw.reply.prefix import ResponsePrefixContext
from replyclaw.reply.types import ModelSelection, MsgContext, ReplyBlock, ReplyOptions, ReplyPayload


def _ctx() -> MsgContext:
    return MsgContext(body="hi", raw_body="hi", command_body="hi", from_="+1555", to="+1999", session_key="s")


def _block(kind: str, text: str | None = None, **kwargs) -> ReplyBlock:
    return ReplyBlock(kind=kind, payload=ReplyPayload(text=text, **kwargs))


def _resolver(*blocks: ReplyBlock, select_before: int | None = None, selection: ModelSelection | None = None):
    async def resolver(ctx: MsgContext, options: ReplyOptions):
        for index, block in enumerate(blocks):
            if select_before == index and options.on_model_selected is not None:
                options.on_model_selected(selection)
            yield block

    return resolver


class _Recorder:
    def __init__(self, fail_kinds: set[str] | None = None) -> None:
        self.delivered: list[tuple[str, str | None]] = []
        self.errors: list[tuple[str, str]] = []
        self.fail_kinds = fail_kinds or set()

    async def deliver(self, payload: ReplyPayload, kind: str) -> None:
        if kind in self.fail_kinds:
            raise RuntimeError(f"{kind} send failed")
        self.delivered.append((kind, payload.text))

    def on_error(self, exc: BaseException, kind: str) -> None:
        self.errors.append((kind, str(exc)))


async def test_blocks_delivered_in_generation_order() -> None:
    rec = _Recorder()
    result = await dispatch_reply(
        _ctx(),
        _resolver(_block("tool", "t1"), _block("tool", "t2"), _block("final", "done")),
        DispatcherOptions(deliver=rec.deliver, on_error=rec.on_error),
    )

    assert rec.delivered == [("tool", "t1"), ("tool", "t2"), ("final", "done")]
    assert result.queued_final is True
    assert result.counts == {"tool": 2, "block": 0, "final": 1}


async def test_final_without_content_is_not_queued() -> None:
    rec = _Recorder()
    result = await dispatch_reply(
        _ctx(),
        _resolver(_block("tool", "t1"), _block("final", "   ")),
        DispatcherOptions(deliver=rec.deliver),
    )
    assert rec.delivered == [("tool", "t1")]
    assert result.queued_final is False


async def test_silent_final_is_not_queued() -> None:
    rec = _Recorder()
    result = await dispatch_reply(_ctx(), _resolver(_block("final", "NO_REPLY")), DispatcherOptions(deliver=rec.deliver))
    assert rec.delivered == []
    assert result.queued_final is False
    assert result.counts["final"] == 1


async def test_media_only_final_is_queued() -> None:
    rec = _Recorder()
    result = await dispatch_reply(
        _ctx(),
        _resolver(_block("final", None, media_url="https://example.com/a.png")),
        DispatcherOptions(deliver=rec.deliver),
    )
    assert rec.delivered == [("final", None)]
    assert result.queued_final is True


async def test_no_blocks_means_no_reply() -> None:
    rec = _Recorder()
    result = await dispatch_reply(_ctx(), _resolver(), DispatcherOptions(deliver=rec.deliver))
    assert result.queued_final is False
    assert not result.delivered_any


async def test_heartbeat_token_stripped_and_reported_once() -> None:
    rec = _Recorder()
    strips: list[int] = []
    result = await dispatch_reply(
        _ctx(),
        _resolver(
            _block("block", "HEARTBEAT_OK first"),
            _block("block", "second HEARTBEAT_OK"),
            _block("final", "HEARTBEAT_OK"),
        ),
        DispatcherOptions(deliver=rec.deliver, on_heartbeat_strip=lambda: strips.append(1)),
    )
    assert rec.delivered == [("block", "first"), ("block", "second")]
    assert strips == [1]
    assert result.queued_final is False


async def test_delivery_failure_reported_and_processing_continues() -> None:
    rec = _Recorder(fail_kinds={"tool", "block"})
    result = await dispatch_reply(
        _ctx(),
        _resolver(_block("tool", "t"), _block("block", "b"), _block("final", "f")),
        DispatcherOptions(deliver=rec.deliver, on_error=rec.on_error),
    )
    assert rec.errors == [("tool", "tool send failed"), ("block", "block send failed")]
    assert rec.delivered == [("final", "f")]
    assert result.queued_final is True


async def test_failed_final_is_not_queued() -> None:
    rec = _Recorder(fail_kinds={"final"})
    result = await dispatch_reply(
        _ctx(), _resolver(_block("final", "f")), DispatcherOptions(deliver=rec.deliver, on_error=rec.on_error)
    )
    assert result.queued_final is False
    assert rec.errors == [("final", "final send failed")]


async def test_resolver_failure_propagates_after_earlier_blocks() -> None:
    rec = _Recorder()

    async def resolver(ctx, options):
        yield _block("block", "partial")
        raise TimeoutError("model timed out")

    with pytest.raises(TimeoutError):
        await dispatch_reply(_ctx(), resolver, DispatcherOptions(deliver=rec.deliver))
    assert rec.delivered == [("block", "partial")]


async def test_model_selection_applies_only_to_later_blocks() -> None:
    rec = _Recorder()
    context = ResponsePrefixContext(identity_name="Claw")
    selection = ModelSelection(provider="anthropic", model="claude-opus-4-5-20251101", think_level="high")

    result = await dispatch_reply(
        _ctx(),
        _resolver(
            _block("block", "one"),
            _block("block", "two"),
            _block("final", "three"),
            select_before=2,
            selection=selection,
        ),
        DispatcherOptions(
            deliver=rec.deliver,
            response_prefix="[{model}|{thinkingLevel}]",
            response_prefix_context_provider=lambda: context,
        ),
        ReplyOptions(on_model_selected=context.apply_model_selection),
    )

    assert rec.delivered == [
        ("block", "[{model}|{thinkingLevel}] one"),
        ("block", "[{model}|{thinkingLevel}] two"),
        ("final", "[claude-opus-4-5|high] three"),
    ]
    assert result.queued_final is True
    assert context.model_full == "anthropic/claude-opus-4-5-20251101"


async def test_prefix_not_duplicated() -> None:
    rec = _Recorder()
    await dispatch_reply(
        _ctx(),
        _resolver(_block("final", "[bot] already prefixed")),
        DispatcherOptions(deliver=rec.deliver, response_prefix="[bot]"),
    )
    assert rec.delivered == [("final", "[bot] already prefixed")]


async def test_reply_start_hook_fires_once_before_first_delivery() -> None:
    events: list[str] = []

    async def deliver(payload, kind):
        events.append(f"deliver:{kind}")

    async def on_reply_start():
        events.append("start")

    await dispatch_reply(
        _ctx(),
        _resolver(_block("tool", "t"), _block("final", "f")),
        DispatcherOptions(deliver=deliver, on_reply_start=on_reply_start),
    )
    assert events == ["start", "deliver:tool", "deliver:final"]


async def test_slow_delivery_throttles_generation() -> None:
    gate = asyncio.Event()
    produced = 0
    delivered: list[str] = []

    async def resolver(ctx, options):
        nonlocal produced
        for i in range(6):
            produced += 1
            yield _block("block" if i < 5 else "final", f"b{i}")

    async def deliver(payload, kind):
        await gate.wait()
        delivered.append(payload.text)

    task = asyncio.create_task(dispatch_reply(_ctx(), resolver, DispatcherOptions(deliver=deliver, queue_size=1)))
    for _ in range(20):
        await asyncio.sleep(0)
    assert produced <= 3
    assert delivered == []

    gate.set()
    result = await task
    assert delivered == [f"b{i}" for i in range(6)]
    assert result.queued_final is True


async def test_blocks_after_final_are_dropped() -> None:
    rec = _Recorder()
    result = await dispatch_reply(
        _ctx(),
        _resolver(_block("block", "b"), _block("final", "done"), _block("block", "late"), _block("final", "again")),
        DispatcherOptions(deliver=rec.deliver),
    )

    assert rec.delivered == [("block", "b"), ("final", "done")]
    assert result.counts == {"tool": 0, "block": 1, "final": 1}
    assert result.queued_final is True
