"""Core logic for aumai-aiconfig.

Implements configuration resolution: a raw flag evaluation plus a caller
default and variables become a typed, template-rendered :class:`AIConfig`
bound to a fresh :class:`UsageTracker`.  Flag evaluation and event delivery
are external collaborators described by the :class:`Evaluator` and
:class:`EventRecorder` protocols.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from aumai_aiconfig.context import flatten
from aumai_aiconfig.errors import ConfigurationError
from aumai_aiconfig.log import get_logger
from aumai_aiconfig.models import AIConfig, ConfigVariation, Message
from aumai_aiconfig.templating import render
from aumai_aiconfig.tracker import UsageTracker

__all__ = ["CONTEXT_VARIABLE", "Evaluator", "EventRecorder", "ConfigResolver"]

#: Reserved template variable holding the flattened evaluation context.
CONTEXT_VARIABLE = "ldctx"


@runtime_checkable
class Evaluator(Protocol):
    """Evaluates a flag for a context, returning its JSON value."""

    def evaluate(self, key: str, context: Any, default: Any) -> Any: ...


@runtime_checkable
class EventRecorder(Protocol):
    """Records a named metric event.  Delivery is best-effort."""

    def record(
        self,
        event_name: str,
        context: Any,
        metadata: Mapping[str, Any],
        value: float,
    ) -> None: ...


class ConfigResolver:
    """Resolves AI configurations for evaluation contexts.

    The resolver is stateless: every call to :meth:`resolve` evaluates the
    flag anew and returns a new :class:`AIConfig` with its own tracker.

    Example::

        resolver = ConfigResolver(evaluator, recorder)
        config = resolver.resolve(
            "chat-assistant",
            Context(key="u-1", name="Sandy"),
            AIConfig(enabled=False),
            {"tone": "friendly"},
        )
        if config.enabled:
            ...

    Args:
        evaluator: Flag-evaluation capability.
        recorder: Event-recording capability.  Defaults to ``evaluator``
            when that object can also record events.
        logger: Optional structlog logger, also handed to each tracker.

    Raises:
        ConfigurationError: If no usable evaluator or recorder is supplied.
    """

    def __init__(
        self,
        evaluator: Evaluator,
        recorder: EventRecorder | None = None,
        *,
        logger: Any = None,
    ) -> None:
        if evaluator is None or not callable(getattr(evaluator, "evaluate", None)):
            raise ConfigurationError("an evaluator with an evaluate() method is required")
        if recorder is None:
            if not callable(getattr(evaluator, "record", None)):
                raise ConfigurationError(
                    "an event recorder is required when the evaluator cannot record events"
                )
            recorder = evaluator  # type: ignore[assignment]
        elif not callable(getattr(recorder, "record", None)):
            raise ConfigurationError("the event recorder must provide a record() method")

        self._evaluator = evaluator
        self._recorder = recorder
        self._log = logger if logger is not None else get_logger(__name__)

    @property
    def evaluator(self) -> Evaluator:
        return self._evaluator

    @property
    def recorder(self) -> EventRecorder:
        return self._recorder

    def resolve(
        self,
        config_key: str,
        context: Any,
        default_value: AIConfig | None = None,
        variables: Mapping[str, Any] | None = None,
    ) -> AIConfig:
        """Resolve ``config_key`` for ``context``.

        Sub-objects (model, provider, messages) are taken from the evaluation
        result only; when it lacks one, the output field is ``None`` even if
        ``default_value`` defines it.  ``default_value`` reaches the result
        only through the evaluator, which returns it when the flag is unknown.

        Args:
            config_key: Key of the AI configuration flag.
            context: Evaluation context (see :class:`~aumai_aiconfig.context.Context`).
            default_value: Value the evaluator falls back to.
            variables: Extra template variables.  ``ldctx`` is reserved and
                always replaced by the flattened context.

        Returns:
            The resolved :class:`AIConfig` with a fresh tracker.

        Raises:
            ConfigurationError: If ``config_key`` is not a non-empty string
                or ``variables`` is not a mapping.
            ContextError: If ``context`` cannot be flattened.
        """
        if not isinstance(config_key, str) or not config_key:
            raise ConfigurationError("config_key must be a non-empty string")
        if variables is not None and not isinstance(variables, Mapping):
            raise ConfigurationError("variables must be a mapping")

        default = (
            default_value if default_value is not None else AIConfig(enabled=False)
        ).to_dict()
        raw = self._evaluator.evaluate(config_key, context, default)
        variation = ConfigVariation.from_value(raw)

        all_variables: dict[str, Any] = dict(variables) if variables else {}
        all_variables[CONTEXT_VARIABLE] = flatten(context)

        messages: tuple[Message, ...] | None = None
        if variation.messages is not None:
            messages = tuple(
                _render_message(message, all_variables)
                for message in variation.messages
            )

        tracker = UsageTracker(
            self._recorder,
            config_key=config_key,
            variation_key=variation.meta.variation_key,
            version=variation.meta.version,
            context=context,
            model_name=variation.model.name if variation.model else "",
            provider_name=variation.provider.name if variation.provider else "",
            logger=self._log,
        )

        self._log.debug(
            "resolver.resolved",
            config_key=config_key,
            variation_key=variation.meta.variation_key,
            version=variation.meta.version,
            enabled=variation.meta.enabled,
        )

        return AIConfig(
            enabled=variation.meta.enabled,
            model=variation.model,
            provider=variation.provider,
            messages=messages,
            tracker=tracker,
        )


def _render_message(message: Message, variables: Mapping[str, Any]) -> Message:
    if message.content is None:
        return message
    return Message(role=message.role, content=render(message.content, variables))
