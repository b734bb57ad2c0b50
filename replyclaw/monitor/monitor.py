"""Auto-reply monitor: bus consumer that runs the reply pipeline per event."""

from __future__ import annotations

import asyncio
import re
import uuid
from typing import TYPE_CHECKING, Any

from loguru import logger

from replyclaw.bus.events import GroupHistoryEntry, InboundEvent, Route
from replyclaw.bus.queue import MessageBus
from replyclaw.logs import log_verbose
from replyclaw.monitor.echo import EchoTracker
from replyclaw.monitor.history import GroupHistoryStore
from replyclaw.monitor.loggers import inbound_log
from replyclaw.monitor.process import process_message
from replyclaw.monitor.tasks import BackgroundTaskTracker
from replyclaw.reply.types import ReplyResolver
from replyclaw.routing import RouteResolver

if TYPE_CHECKING:
    from replyclaw.channels.base import BaseChannel
    from replyclaw.config.schema import Config
    from replyclaw.session.store import LastRouteStore


class AutoReplyMonitor:
    """
    Consumes inbound events and replies to them.

    Each event gets its own task. Group events are serialized per group key:
    recording the history entry, folding it into the prompt, dispatching and
    clearing after a reply all happen under that key's lock.
    """

    def __init__(
        self,
        *,
        config: "Config",
        bus: MessageBus,
        channel: "BaseChannel",
        resolver: ReplyResolver,
        route_resolver: RouteResolver | None = None,
        history_store: GroupHistoryStore | None = None,
        echo: EchoTracker | None = None,
        tracker: BackgroundTaskTracker | None = None,
        last_route_store: "LastRouteStore | None" = None,
    ):
        self.config = config
        self.bus = bus
        self.channel = channel
        self.resolver = resolver
        self.route_resolver = route_resolver or RouteResolver(config)
        self.history_store = history_store or GroupHistoryStore(config.channels.whatsapp.history_limit)
        self.echo = echo or EchoTracker()
        self.tracker = tracker or BackgroundTaskTracker()
        self.last_route_store = last_route_store
        self.connection_id = uuid.uuid4().hex[:12]
        self._mention_patterns = self._compile_mention_patterns(config.messages.group_chat.mention_patterns)
        self._event_tasks: set[asyncio.Task[bool]] = set()
        self._running = False

    @staticmethod
    def _compile_mention_patterns(patterns: list[str]) -> list[re.Pattern[str]]:
        compiled: list[re.Pattern[str]] = []
        for pattern in patterns:
            try:
                compiled.append(re.compile(pattern, re.IGNORECASE))
            except re.error as exc:
                logger.warning(f"Ignoring invalid mention pattern {pattern!r}: {exc}")
        return compiled

    async def run(self) -> None:
        """Consume inbound events until stopped."""
        self._running = True
        logger.info(f"Auto-reply monitor started (connection {self.connection_id})")

        while self._running:
            try:
                event = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            self.submit(event)

    def submit(self, event: InboundEvent) -> asyncio.Task[bool]:
        """Start processing an event in its own task."""
        task = asyncio.create_task(self.handle_event(event))
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)
        return task

    async def stop(self, timeout: float | None = 10.0) -> None:
        """Stop consuming, let in-flight events finish, then drain background work."""
        self._running = False
        self.bus.close()
        logger.info("Auto-reply monitor stopping")
        if self._event_tasks:
            await asyncio.wait(set(self._event_tasks), timeout=timeout)
        if not await self.tracker.drain(timeout=timeout):
            logger.warning(f"{self.tracker.pending} background task(s) still running after shutdown wait")

    def resolve_route(self, event: InboundEvent) -> Route:
        peer_id = event.resolved_conversation_id if event.is_group else (event.sender_e164 or event.from_)
        return self.route_resolver.resolve(
            channel=event.channel,
            account_id=event.account_id,
            peer_kind=event.chat_type,
            peer_id=peer_id,
        )

    @staticmethod
    def group_history_key(event: InboundEvent, route: Route) -> str:
        return f"{event.channel}:{route.account_id}:group:{event.resolved_conversation_id}"

    def was_mentioned(self, event: InboundEvent) -> bool:
        if event.was_mentioned:
            return True
        own_ids = {i for i in (event.self_jid, event.self_e164) if i}
        if own_ids and any(jid in own_ids for jid in event.mentioned_jids):
            return True
        return any(pattern.search(event.body or "") for pattern in self._mention_patterns)

    async def handle_event(self, event: InboundEvent, *, suppress_group_history_clear: bool = False) -> bool:
        """
        Run the reply pipeline for one event.

        Returns True when a reply was delivered. Resolver failures are logged
        here and reported as no reply. Callers that clear group history on
        their own terms pass ``suppress_group_history_clear``.
        """
        # Our own outbound text reflected back by the channel.
        if self.echo.check_and_consume(event.body):
            log_verbose(
                f"Skipping auto-reply: detected echo (message matches recently sent text) "
                f"in {event.resolved_conversation_id}"
            )
            return False

        route = self.resolve_route(event)
        if not event.is_group:
            return await self._process(event, route, group_history_key="")

        key = self.group_history_key(event, route)
        async with self.history_store.lock(key):
            history = self.history_store.append(
                key,
                GroupHistoryEntry(
                    sender=event.sender_name or event.sender_e164 or "Unknown",
                    body=event.body,
                    timestamp=event.timestamp,
                    id=event.id,
                    sender_jid=event.sender_jid,
                ),
            )
            self.history_store.note_member(key, event.sender_e164 or event.sender_jid, event.sender_name)

            if self.config.channels.whatsapp.require_mention and not self.was_mentioned(event):
                inbound_log.debug(
                    f"Group message stored for context (no mention) in {event.resolved_conversation_id}"
                )
                return False

            return await self._process(
                event,
                route,
                group_history_key=key,
                group_history=history,
                suppress_group_history_clear=suppress_group_history_clear,
            )

    async def _process(self, event: InboundEvent, route: Route, **kwargs: Any) -> bool:
        try:
            return await process_message(
                config=self.config,
                event=event,
                route=route,
                channel=self.channel,
                resolver=self.resolver,
                history_store=self.history_store,
                echo=self.echo,
                tracker=self.tracker,
                last_route_store=self.last_route_store,
                connection_id=self.connection_id,
                **kwargs,
            )
        except Exception as exc:
            logger.error(f"Auto-reply failed for {event.resolved_conversation_id} ({event.id or 'no id'}): {exc}")
            return False
