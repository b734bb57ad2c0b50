"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class AckReactionConfig(BaseModel):
    """Immediate acknowledgement reaction sent when a message is accepted."""
    emoji: str = ""  # Empty disables acks
    direct: bool = True
    group: Literal["always", "mentions", "never"] = "mentions"

    @field_validator("group", mode="before")
    @classmethod
    def normalize_group(cls, value: str) -> str:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized:
                return normalized
        return "mentions"


class WhatsAppConfig(BaseModel):
    """WhatsApp channel configuration."""
    enabled: bool = False
    allow_from: list[str] = Field(default_factory=list)  # Allowed phone numbers / group ids
    text_chunk_limit: int = Field(default=4000, ge=1)
    media_max_mb: int = Field(default=50, ge=1)
    block_streaming: bool | None = None  # None leaves the resolver default
    history_limit: int = Field(default=50, ge=0)
    require_mention: bool = True
    ack_reaction: AckReactionConfig = Field(default_factory=AckReactionConfig)


class ChannelsConfig(BaseModel):
    """Configuration for chat channels."""
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)


class GroupChatConfig(BaseModel):
    """Group chat behaviour."""
    mention_patterns: list[str] = Field(default_factory=list)  # Regexes matched case-insensitively


class MessagesConfig(BaseModel):
    """Message shaping shared by every agent."""
    response_prefix: str | None = None  # Template, e.g. "[{model}]"
    message_prefix: str | None = None  # Prefix added to inbound lines
    group_chat: GroupChatConfig = Field(default_factory=GroupChatConfig)


class AgentMessagesConfig(BaseModel):
    """Per-agent message overrides."""
    response_prefix: str | None = None


class IdentityConfig(BaseModel):
    """Agent identity."""
    name: str = ""
    emoji: str = ""


class AgentDefaults(BaseModel):
    """Default agent configuration."""
    identity: IdentityConfig = Field(default_factory=IdentityConfig)


class AgentInstanceConfig(BaseModel):
    """Per-agent instance overrides for multi-agent routing."""

    id: str = "default"
    identity: IdentityConfig | None = None
    messages: AgentMessagesConfig | None = None


class AgentRoutingRule(BaseModel):
    """Deterministic top-down routing rule."""

    model_config = ConfigDict(populate_by_name=True)

    agent: str = "default"
    channel: str | list[str] | None = None
    account_id: str | list[str] | None = Field(default=None, alias="accountId")
    peer_id: str | list[str] | None = Field(default=None, alias="peerId")
    is_group: bool | None = Field(default=None, alias="isGroup")


class AgentRoutingConfig(BaseModel):
    """Routing configuration for multi-agent dispatch."""

    rules: list[AgentRoutingRule] = Field(default_factory=list)


class AgentsConfig(BaseModel):
    """Agent configuration."""

    defaults: AgentDefaults = Field(default_factory=AgentDefaults)
    instances: list[AgentInstanceConfig] = Field(default_factory=list)
    routing: AgentRoutingConfig = Field(default_factory=AgentRoutingConfig)

    @model_validator(mode="after")
    def validate_instances_and_routing(self) -> "AgentsConfig":
        instance_ids = [inst.id.strip() for inst in self.instances]
        if any(not agent_id for agent_id in instance_ids):
            raise ValueError("agents.instances entries must have a non-empty id.")
        if len(instance_ids) != len(set(instance_ids)):
            raise ValueError("agents.instances contains duplicate ids.")

        known_agent_ids = set(instance_ids) | {"default"}
        for rule in self.routing.rules:
            target = rule.agent.strip()
            if not target:
                raise ValueError("agents.routing.rules entries must include a non-empty agent id.")
            if target not in known_agent_ids:
                raise ValueError(f"agents.routing.rules references unknown agent '{target}'.")

        return self

    def get_instance(self, agent_id: str) -> AgentInstanceConfig | None:
        for inst in self.instances:
            if inst.id.strip() == agent_id:
                return inst
        return None


class LoggingConfig(BaseModel):
    """Log output settings."""
    level: str = "INFO"
    verbose: bool = False


class Config(BaseSettings):
    """Root configuration for replyclaw."""
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def resolve_identity(self, agent_id: str) -> IdentityConfig:
        """Identity for an agent, falling back to the defaults."""
        inst = self.agents.get_instance(agent_id)
        if inst and inst.identity and inst.identity.name.strip():
            return inst.identity
        return self.agents.defaults.identity

    def resolve_response_prefix(self, agent_id: str) -> str | None:
        """Agent-level response prefix, else the global one."""
        inst = self.agents.get_instance(agent_id)
        if inst and inst.messages and inst.messages.response_prefix is not None:
            return inst.messages.response_prefix
        return self.messages.response_prefix

    class Config:
        env_prefix = "REPLYCLAW_"
        env_nested_delimiter = "__"
