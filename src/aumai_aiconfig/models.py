"""Pydantic v2 models for aumai-aiconfig.

Provides the resolved configuration value types handed to callers, the metric
accumulator owned by each usage tracker, and the typed intermediate used to
decode a raw evaluation result exactly once at the resolver boundary.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "META_KEY",
    "Message",
    "ModelConfig",
    "ProviderConfig",
    "TokenUsage",
    "FeedbackKind",
    "MetricSummary",
    "AIConfig",
    "ConfigMeta",
    "ConfigVariation",
]

#: Key of the metadata block in the evaluation wire shape.
META_KEY = "_ldMeta"

# Accepted on decode only; serialization always writes META_KEY.
_META_ALIASES = (META_KEY, "_meta")


# ---------------------------------------------------------------------------
# Resolved configuration
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """A single prompt message.

    ``role`` is free-form.  ``content`` may be absent (``None``), which is
    preserved as-is rather than rendered to an empty string.

    Example::

        msg = Message(role="system", content="Hello, {{ldctx.name}}!")
    """

    model_config = ConfigDict(frozen=True)

    role: str
    content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ModelConfig(BaseModel):
    """The chosen model and its tunables.

    Example::

        model = ModelConfig(name="gpt-4o", parameters={"temperature": 0.2})
        model.get_parameter("temperature")  # 0.2
        model.get_parameter("name")         # "gpt-4o"
    """

    model_config = ConfigDict(frozen=True)

    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    custom: dict[str, Any] = Field(default_factory=dict)

    @field_validator("parameters", "custom", mode="before")
    @classmethod
    def _own_copy(cls, value: Any) -> Any:
        return {} if value is None else copy.deepcopy(value)

    def get_parameter(self, key: str) -> Any:
        """Return a model parameter; ``"name"`` resolves to :attr:`name`."""
        if key == "name":
            return self.name
        return self.parameters.get(key)

    def get_custom(self, key: str) -> Any:
        """Return caller-provided custom data, without parameter fallback."""
        return self.custom.get(key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "parameters": copy.deepcopy(self.parameters),
            "custom": copy.deepcopy(self.custom),
        }


class ProviderConfig(BaseModel):
    """The model provider, e.g. ``openai`` or ``bedrock``."""

    model_config = ConfigDict(frozen=True)

    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name}


class AIConfig(BaseModel):
    """A resolved configuration snapshot for one evaluation.

    Instances returned by :meth:`ConfigResolver.resolve` always carry a fresh
    :class:`~aumai_aiconfig.tracker.UsageTracker`.  Instances built by callers
    as *default values* usually have none.

    Example::

        default = AIConfig(
            enabled=True,
            model=ModelConfig(name="fallback-model"),
            messages=[Message(role="system", content="You are helpful.")],
        )
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    enabled: bool = False
    model: ModelConfig | None = None
    provider: ProviderConfig | None = None
    messages: tuple[Message, ...] | None = None
    # UsageTracker attached by ConfigResolver.resolve; None for untracked configs.
    tracker: Any = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> AIConfig:
        """Build an untracked config from its wire shape, e.g. a stored default."""
        variation = ConfigVariation.from_value(data)
        return cls(
            enabled=variation.meta.enabled,
            model=variation.model,
            provider=variation.provider,
            messages=variation.messages,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the evaluation wire shape (tracker excluded)."""
        data: dict[str, Any] = {META_KEY: {"enabled": self.enabled}}
        if self.model is not None:
            data["model"] = self.model.to_dict()
        if self.provider is not None:
            data["provider"] = self.provider.to_dict()
        if self.messages is not None:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class TokenUsage(BaseModel):
    """Token counts for one provider call.  Every field is optional."""

    model_config = ConfigDict(frozen=True)

    total: int | None = None
    input: int | None = None
    output: int | None = None


class FeedbackKind(str, Enum):
    """User feedback on a generation."""

    POSITIVE = "positive"
    NEGATIVE = "negative"


class MetricSummary(BaseModel):
    """Mutable accumulator of the metrics tracked so far.

    Each field starts unset and is overwritten by the matching ``track_*``
    call; the most recent call wins.
    """

    model_config = ConfigDict(validate_assignment=True)

    duration: int | None = None
    success: bool | None = None
    feedback: FeedbackKind | None = None
    usage: TokenUsage | None = None
    time_to_first_token: int | None = None


# ---------------------------------------------------------------------------
# Evaluation wire shape
# ---------------------------------------------------------------------------


class ConfigMeta(BaseModel):
    """The metadata block of an evaluation result."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    variation_key: str = ""
    version: int = 1


class ConfigVariation(BaseModel):
    """A decoded evaluation result with explicit per-field presence.

    ``None`` means "absent or malformed".  Message contents are the raw,
    unrendered templates.
    """

    model_config = ConfigDict(frozen=True)

    meta: ConfigMeta = Field(default_factory=ConfigMeta)
    model: ModelConfig | None = None
    provider: ProviderConfig | None = None
    messages: tuple[Message, ...] | None = None

    @classmethod
    def from_value(cls, value: Any) -> ConfigVariation:
        """Decode a raw evaluation result, dropping malformed parts."""
        if not isinstance(value, Mapping):
            return cls()
        return cls(
            meta=_decode_meta(value),
            model=_decode_model(value.get("model")),
            provider=_decode_provider(value.get("provider")),
            messages=_decode_messages(value.get("messages")),
        )


def _decode_meta(value: Mapping[str, Any]) -> ConfigMeta:
    raw: Any = None
    for alias in _META_ALIASES:
        if alias in value:
            raw = value[alias]
            break
    if not isinstance(raw, Mapping):
        return ConfigMeta()

    enabled = raw.get("enabled")
    variation_key = raw.get("variationKey")
    version = raw.get("version")
    return ConfigMeta(
        enabled=enabled if isinstance(enabled, bool) else False,
        variation_key=variation_key if isinstance(variation_key, str) else "",
        version=(
            version
            if isinstance(version, int) and not isinstance(version, bool)
            else 1
        ),
    )


def _decode_model(raw: Any) -> ModelConfig | None:
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    parameters = raw.get("parameters")
    custom = raw.get("custom")
    return ModelConfig(
        name=name if isinstance(name, str) else "",
        parameters=dict(parameters) if isinstance(parameters, Mapping) else {},
        custom=dict(custom) if isinstance(custom, Mapping) else {},
    )


def _decode_provider(raw: Any) -> ProviderConfig | None:
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    return ProviderConfig(name=name if isinstance(name, str) else "")


def _decode_messages(raw: Any) -> tuple[Message, ...] | None:
    if not isinstance(raw, list) or not all(isinstance(m, Mapping) for m in raw):
        return None
    messages: list[Message] = []
    for entry in raw:
        role = entry.get("role")
        content = entry.get("content")
        messages.append(
            Message(
                role=role if isinstance(role, str) else "",
                content=content if isinstance(content, str) else None,
            )
        )
    return tuple(messages)
