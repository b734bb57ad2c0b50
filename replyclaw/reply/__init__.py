"""Reply dispatch: resolver contract, payload shaping and streaming delivery."""

from replyclaw.reply.dispatcher import DispatcherOptions, ReplyDispatcher, dispatch_reply, kind_label
from replyclaw.reply.prefix import ResponsePrefixContext, extract_short_model_name, resolve_response_prefix_template
from replyclaw.reply.types import (
    DispatchResult,
    ModelSelection,
    MsgContext,
    ReplyBlock,
    ReplyOptions,
    ReplyPayload,
    ReplyResolver,
)

__all__ = [
    "DispatchResult",
    "DispatcherOptions",
    "ModelSelection",
    "MsgContext",
    "ReplyBlock",
    "ReplyDispatcher",
    "ReplyOptions",
    "ReplyPayload",
    "ReplyResolver",
    "ResponsePrefixContext",
    "dispatch_reply",
    "extract_short_model_name",
    "kind_label",
    "resolve_response_prefix_template",
]
