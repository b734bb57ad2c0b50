"""Group conversation history and member rosters, keyed per conversation."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from replyclaw.bus.events import GroupHistoryEntry
from replyclaw.utils.helpers import jid_to_e164, normalize_e164

DEFAULT_GROUP_HISTORY_LIMIT = 50


def _member_id(raw: str | None) -> str | None:
    if not raw:
        return None
    return jid_to_e164(raw) or normalize_e164(raw)


class GroupHistoryStore:
    """
    Shared history and roster maps with one writer per conversation key.

    Callers take ``lock(key)`` around any read-modify-write cycle on a key
    (append, fold into a prompt, clear after replying). Different keys never
    contend with each other.
    """

    def __init__(self, history_limit: int = DEFAULT_GROUP_HISTORY_LIMIT):
        self.history_limit = max(0, int(history_limit))
        self._histories: dict[str, list[GroupHistoryEntry]] = {}
        self._rosters: dict[str, dict[str, str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users.get(key, 1) - 1
            if remaining <= 0:
                self._lock_users.pop(key, None)
                self._locks.pop(key, None)
            else:
                self._lock_users[key] = remaining

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    def append(self, key: str, entry: GroupHistoryEntry, limit: int | None = None) -> list[GroupHistoryEntry]:
        """Append an entry, dropping the oldest past the limit. Returns a snapshot."""
        cap = self.history_limit if limit is None else max(0, int(limit))
        history = self._histories.setdefault(key, [])
        if cap <= 0:
            history.clear()
            return []
        history.append(entry)
        if len(history) > cap:
            del history[: len(history) - cap]
        return list(history)

    def get(self, key: str) -> list[GroupHistoryEntry]:
        return list(self._histories.get(key, []))

    def clear(self, key: str) -> None:
        self._histories[key] = []

    def note_member(self, key: str, member_id: str | None, name: str | None) -> None:
        """Remember the display name of a group participant."""
        member = _member_id(member_id)
        if not member or not name or not name.strip():
            return
        self._rosters.setdefault(key, {})[member] = name.strip()

    def roster(self, key: str) -> dict[str, str]:
        return dict(self._rosters.get(key, {}))


def format_group_members(
    *,
    participants: list[str] | tuple[str, ...] | None,
    roster: dict[str, str] | None,
    fallback_e164: str | None = None,
) -> str | None:
    """``Alice (+1555), +1666`` from participants, roster and sender fallback."""
    ordered: list[str] = []
    seen: set[str] = set()
    for raw in participants or ():
        member = _member_id(raw)
        if member and member not in seen:
            seen.add(member)
            ordered.append(member)
    if not ordered:
        for member in (roster or {}):
            if member not in seen:
                seen.add(member)
                ordered.append(member)
    if not ordered and fallback_e164:
        fallback = _member_id(fallback_e164)
        if fallback:
            ordered.append(fallback)
    if not ordered:
        return None
    names = roster or {}
    return ", ".join(f"{names[m]} ({m})" if names.get(m) else m for m in ordered)
