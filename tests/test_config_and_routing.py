import json

import pytest
from pydantic import ValidationError

from replyclaw.config.loader import camel_to_snake, load_config
from replyclaw.config.schema import AgentInstanceConfig, AgentMessagesConfig, AgentsConfig, Config
from replyclaw.routing import RouteResolver, resolve_agent_route


def test_load_config_converts_camel_case(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "channels": {
                    "whatsapp": {
                        "allowFrom": ["+15550001111"],
                        "textChunkLimit": 1200,
                        "blockStreaming": False,
                        "ackReaction": {"emoji": "👀", "group": "ALWAYS"},
                    }
                },
                "messages": {
                    "responsePrefix": "[{model}]",
                    "groupChat": {"mentionPatterns": ["@Claw"]},
                },
                "agents": {
                    "instances": [{"id": "work", "identity": {"name": "Worker"}}],
                    "routing": {"rules": [{"agent": "work", "peerId": "120363@g.us", "isGroup": True}]},
                },
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)
    whatsapp = config.channels.whatsapp
    assert whatsapp.allow_from == ["+15550001111"]
    assert whatsapp.text_chunk_limit == 1200
    assert whatsapp.block_streaming is False
    assert whatsapp.ack_reaction.group == "always"
    assert config.messages.response_prefix == "[{model}]"
    assert config.messages.group_chat.mention_patterns == ["@Claw"]
    assert config.agents.routing.rules[0].peer_id == "120363@g.us"
    assert config.resolve_identity("work").name == "Worker"


def test_invalid_config_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    config = load_config(path)
    assert config.channels.whatsapp.text_chunk_limit == 4000
    assert config.channels.whatsapp.require_mention is True


def test_missing_config_uses_defaults(tmp_path) -> None:
    assert load_config(tmp_path / "absent.json").messages.response_prefix is None


def test_camel_to_snake() -> None:
    assert camel_to_snake("mediaMaxMb") == "media_max_mb"
    assert camel_to_snake("enabled") == "enabled"


def test_agent_response_prefix_overrides_global() -> None:
    config = Config(
        agents=AgentsConfig(
            instances=[AgentInstanceConfig(id="work", messages=AgentMessagesConfig(response_prefix="[work]"))]
        ),
        messages={"response_prefix": "[global]"},
    )
    assert config.resolve_response_prefix("work") == "[work]"
    assert config.resolve_response_prefix("default") == "[global]"


def test_routing_rejects_unknown_agent() -> None:
    with pytest.raises(ValidationError):
        AgentsConfig.model_validate({"routing": {"rules": [{"agent": "ghost"}]}})


def test_routing_rejects_duplicate_instances() -> None:
    with pytest.raises(ValidationError):
        AgentsConfig.model_validate({"instances": [{"id": "a"}, {"id": "a"}]})


def test_first_matching_rule_wins() -> None:
    config = Config(
        agents=AgentsConfig.model_validate(
            {
                "instances": [{"id": "work"}, {"id": "family"}],
                "routing": {
                    "rules": [
                        {"agent": "family", "peerId": ["120363@g.us"], "isGroup": True},
                        {"agent": "work", "isGroup": True},
                    ]
                },
            }
        )
    )
    resolver = RouteResolver(config)

    family = resolver.resolve(channel="whatsapp", account_id=None, peer_kind="group", peer_id="120363@g.us")
    assert (family.agent_id, family.matched_by) == ("family", "rule:0")
    assert family.session_key == "agent:family:whatsapp:group:120363@g.us"
    assert family.main_session_key == "agent:family:main"
    assert family.account_id == "default"

    work = resolver.resolve(channel="whatsapp", account_id="biz", peer_kind="group", peer_id="777@g.us")
    assert (work.agent_id, work.matched_by, work.account_id) == ("work", "rule:1", "biz")


def test_direct_chat_falls_back_to_default_agent() -> None:
    route = resolve_agent_route(Config(), channel="whatsapp", account_id="", peer_kind="direct", peer_id="+1555ABC")
    assert route.agent_id == "default"
    assert route.matched_by == "default"
    assert route.session_key == "agent:default:whatsapp:dm:+1555abc"
