"""Response prefix templates and the per-dispatch context they render from."""

import re
from dataclasses import dataclass

from replyclaw.reply.types import ModelSelection

_TEMPLATE_VAR = re.compile(r"\{([a-zA-Z][a-zA-Z0-9.]*)\}")
_DATE_SUFFIX = re.compile(r"-\d{8}$")


@dataclass
class ResponsePrefixContext:
    """
    Template state for one dispatch.

    ``identity_name`` is fixed at creation. The model fields start unset and
    are filled once, when the resolver reports its model selection; later
    selections never overwrite them.
    """

    identity_name: str | None = None
    provider: str | None = None
    model: str | None = None
    model_full: str | None = None
    thinking_level: str | None = None

    def apply_model_selection(self, selection: ModelSelection) -> bool:
        """Fill unset model fields. Returns True if anything changed."""
        updates = {
            "provider": selection.provider,
            "model": extract_short_model_name(selection.model),
            "model_full": f"{selection.provider}/{selection.model}",
            "thinking_level": selection.think_level or "off",
        }
        changed = False
        for name, value in updates.items():
            if getattr(self, name) is None and value:
                setattr(self, name, value)
                changed = True
        return changed

    def variables(self) -> dict[str, str | None]:
        return {
            "model": self.model,
            "modelfull": self.model_full,
            "provider": self.provider,
            "thinkinglevel": self.thinking_level,
            "think": self.thinking_level,
            "identity.name": self.identity_name,
            "identityname": self.identity_name,
        }


def extract_short_model_name(full_model: str) -> str:
    """anthropic/claude-opus-4-5-20251101 -> claude-opus-4-5"""
    name = full_model.rsplit("/", 1)[-1]
    name = _DATE_SUFFIX.sub("", name)
    if name.endswith("-latest"):
        name = name[: -len("-latest")]
    return name


def resolve_response_prefix_template(template: str | None, context: ResponsePrefixContext | None) -> str | None:
    """Interpolate ``{var}`` placeholders; unknown or unset ones stay literal."""
    if not template:
        return template
    values = context.variables() if context else {}

    def _sub(match: re.Match[str]) -> str:
        value = values.get(match.group(1).lower())
        return value if value else match.group(0)

    return _TEMPLATE_VAR.sub(_sub, template)
