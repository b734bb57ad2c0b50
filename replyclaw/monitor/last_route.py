"""Background bookkeeping of the last route a session was reached on."""

from __future__ import annotations

import asyncio

from replyclaw.monitor.loggers import reply_log
from replyclaw.monitor.tasks import BackgroundTaskTracker
from replyclaw.session.store import LastRouteStore


def update_last_route_in_background(
    *,
    tracker: BackgroundTaskTracker,
    store: LastRouteStore,
    agent_id: str,
    session_key: str,
    channel: str,
    to: str,
    account_id: str | None = None,
) -> None:
    """Persist the last route off the reply path; failures only warn."""

    async def _update() -> None:
        try:
            await asyncio.to_thread(
                store.update_last_route,
                agent_id=agent_id,
                session_key=session_key,
                channel=channel,
                to=to,
                account_id=account_id,
            )
        except Exception as exc:
            reply_log.warning(f"Failed updating last route for {session_key}: {exc}")

    tracker.track(_update, label=f"last-route:{session_key}")
