"""Reserved sentinel tokens a resolver may emit."""

import re

HEARTBEAT_TOKEN = "HEARTBEAT_OK"
SILENT_REPLY_TOKEN = "NO_REPLY"


def strip_heartbeat_token(text: str | None, token: str = HEARTBEAT_TOKEN) -> tuple[str, bool]:
    """
    Remove the heartbeat token from the start and end of a reply.

    Returns the remaining text and whether anything was stripped. Tokens in
    the middle of a sentence are left alone.
    """
    if not text:
        return text or "", False
    stripped = False
    remaining = text.strip()
    edge = re.compile(rf"^(?:[*_`]*){re.escape(token)}(?:[*_`]*)[\s.!:,-]*|[\s.!:,-]*(?:[*_`]*){re.escape(token)}(?:[*_`]*)$")
    while True:
        updated = edge.sub("", remaining, count=1).strip()
        if updated == remaining:
            break
        stripped = True
        remaining = updated
    if not stripped:
        return text, False
    return remaining, True


def is_silent_reply_text(text: str | None, token: str = SILENT_REPLY_TOKEN) -> bool:
    """True when the reply is the silent token alone or wrapped around by it."""
    if not text:
        return False
    escaped = re.escape(token)
    if re.match(rf"^\s*{escaped}(?=$|\W)", text):
        return True
    return bool(re.search(rf"\b{escaped}\b\W*$", text))
