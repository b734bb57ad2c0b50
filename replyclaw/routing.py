"""Deterministic route resolution for inbound conversations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from replyclaw.bus.events import ChatType, Route

if TYPE_CHECKING:
    from replyclaw.config.schema import AgentRoutingRule, Config

DEFAULT_AGENT_ID = "default"


class RouteResolver:
    """Maps (channel, account, peer) to an agent and its session keys."""

    def __init__(self, config: "Config"):
        self.config = config
        self.routing_rules = list(config.agents.routing.rules)
        self.known_agent_ids = {inst.id.strip() for inst in config.agents.instances} | {DEFAULT_AGENT_ID}

    def resolve(
        self,
        *,
        channel: str,
        account_id: str | None,
        peer_kind: ChatType,
        peer_id: str,
    ) -> Route:
        account = (account_id or "default").strip() or "default"
        agent_id = DEFAULT_AGENT_ID
        matched_by = "default"
        for index, rule in enumerate(self.routing_rules):
            if self._rule_matches(rule, channel=channel, account_id=account, peer_kind=peer_kind, peer_id=peer_id):
                agent_id = rule.agent.strip()
                matched_by = f"rule:{index}"
                break
        if agent_id not in self.known_agent_ids:
            agent_id = DEFAULT_AGENT_ID

        return Route(
            agent_id=agent_id,
            session_key=self.session_key(agent_id=agent_id, channel=channel, peer_kind=peer_kind, peer_id=peer_id),
            main_session_key=self.main_session_key(agent_id),
            account_id=account,
            channel=channel,
            matched_by=matched_by,
        )

    @staticmethod
    def session_key(*, agent_id: str, channel: str, peer_kind: ChatType, peer_id: str) -> str:
        kind = "group" if peer_kind == "group" else "dm"
        return f"agent:{agent_id}:{channel}:{kind}:{peer_id.strip().lower()}"

    @staticmethod
    def main_session_key(agent_id: str) -> str:
        return f"agent:{agent_id}:main"

    @staticmethod
    def _match_value(rule_value: str | list[str] | None, actual: str) -> bool:
        if rule_value is None:
            return True
        if isinstance(rule_value, list):
            return actual in {str(v) for v in rule_value}
        return actual == str(rule_value)

    @classmethod
    def _rule_matches(
        cls,
        rule: "AgentRoutingRule",
        *,
        channel: str,
        account_id: str,
        peer_kind: ChatType,
        peer_id: str,
    ) -> bool:
        if not cls._match_value(rule.channel, channel):
            return False
        if not cls._match_value(rule.account_id, account_id):
            return False
        if not cls._match_value(rule.peer_id, peer_id):
            return False
        if rule.is_group is not None and rule.is_group != (peer_kind == "group"):
            return False
        return True


def resolve_agent_route(
    config: "Config",
    *,
    channel: str,
    account_id: str | None,
    peer_kind: ChatType,
    peer_id: str,
) -> Route:
    """One-shot resolution without keeping a resolver around."""
    return RouteResolver(config).resolve(
        channel=channel,
        account_id=account_id,
        peer_kind=peer_kind,
        peer_id=peer_id,
    )
