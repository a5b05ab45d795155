"""Usage tracking for a resolved AI configuration.

A :class:`UsageTracker` is created by the resolver for every resolution.  It
keeps a :class:`~aumai_aiconfig.models.MetricSummary` of what has been tracked
and forwards each metric as a named event to an event recorder, tagged with
the configuration's identity.  Recording is best-effort: recorder failures are
logged and never reach the caller, while failures of a wrapped operation are
always re-raised after duration and error metrics are recorded.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

from aumai_aiconfig.log import get_logger
from aumai_aiconfig.models import FeedbackKind, MetricSummary, TokenUsage

if TYPE_CHECKING:
    from aumai_aiconfig.core import EventRecorder

__all__ = [
    "EVENT_DURATION_TOTAL",
    "EVENT_TOKENS_TOTAL",
    "EVENT_TOKENS_INPUT",
    "EVENT_TOKENS_OUTPUT",
    "EVENT_TIME_TO_FIRST_TOKEN",
    "EVENT_FEEDBACK_POSITIVE",
    "EVENT_FEEDBACK_NEGATIVE",
    "EVENT_GENERATION",
    "EVENT_GENERATION_SUCCESS",
    "EVENT_GENERATION_ERROR",
    "UsageTracker",
    "UsageExtractor",
    "extract_token_usage",
    "openai_to_token_usage",
    "bedrock_to_token_usage",
]

T = TypeVar("T")

# Event names are consumed by existing dashboards; do not rename.
EVENT_DURATION_TOTAL = "$ld:ai:duration:total"
EVENT_TOKENS_TOTAL = "$ld:ai:tokens:total"
EVENT_TOKENS_INPUT = "$ld:ai:tokens:input"
EVENT_TOKENS_OUTPUT = "$ld:ai:tokens:output"
EVENT_TIME_TO_FIRST_TOKEN = "$ld:ai:tokens:ttf"
EVENT_FEEDBACK_POSITIVE = "$ld:ai:feedback:user:positive"
EVENT_FEEDBACK_NEGATIVE = "$ld:ai:feedback:user:negative"
EVENT_GENERATION = "$ld:ai:generation"
EVENT_GENERATION_SUCCESS = "$ld:ai:generation:success"
EVENT_GENERATION_ERROR = "$ld:ai:generation:error"

UsageExtractor = Callable[[Any], "TokenUsage | None"]


# ---------------------------------------------------------------------------
# Provider usage adapters
# ---------------------------------------------------------------------------


def _lookup(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _count(obj: Any, name: str) -> int | None:
    value = _lookup(obj, name)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def openai_to_token_usage(usage: Any) -> TokenUsage:
    """Map an OpenAI ``usage`` object or dict to :class:`TokenUsage`."""
    return TokenUsage(
        total=_count(usage, "total_tokens"),
        input=_count(usage, "prompt_tokens"),
        output=_count(usage, "completion_tokens"),
    )


def bedrock_to_token_usage(usage: Any) -> TokenUsage:
    """Map a Bedrock Converse ``usage`` dict to :class:`TokenUsage`."""
    return TokenUsage(
        total=_count(usage, "totalTokens"),
        input=_count(usage, "inputTokens"),
        output=_count(usage, "outputTokens"),
    )


def _generic_to_token_usage(usage: Any) -> TokenUsage:
    return TokenUsage(
        total=_count(usage, "total_tokens"),
        input=_count(usage, "input_tokens"),
        output=_count(usage, "output_tokens"),
    )


def extract_token_usage(result: Any) -> TokenUsage | None:
    """Best-effort token usage extraction from a provider response.

    Recognises a bare :class:`TokenUsage`, or a ``usage`` attribute/key holding
    a :class:`TokenUsage`, OpenAI-style, Bedrock-style, or generic
    ``input_tokens``/``output_tokens`` counts.

    Returns:
        The extracted usage, or ``None`` when the result carries none.
    """
    if isinstance(result, TokenUsage):
        return result
    if result is None:
        return None
    usage = _lookup(result, "usage")
    if usage is None:
        return None
    if isinstance(usage, TokenUsage):
        return usage
    if _count(usage, "prompt_tokens") is not None or _count(usage, "completion_tokens") is not None:
        return openai_to_token_usage(usage)
    if any(_count(usage, k) is not None for k in ("inputTokens", "outputTokens", "totalTokens")):
        return bedrock_to_token_usage(usage)
    if any(_count(usage, k) is not None for k in ("input_tokens", "output_tokens", "total_tokens")):
        return _generic_to_token_usage(usage)
    return None


def _elapsed_ms(start: float) -> int:
    return max(0, int((time.perf_counter() - start) * 1000))


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------


class UsageTracker:
    """Records metrics for one resolved configuration.

    Example::

        config = resolver.resolve("chat-assistant", context, default)
        reply = config.tracker.track_openai_metrics(
            lambda: client.chat.completions.create(
                model=config.model.name,
                messages=[m.to_dict() for m in config.messages],
            )
        )
        config.tracker.track_feedback(FeedbackKind.POSITIVE)

    Args:
        recorder: Receives every emitted event.
        config_key: Key of the resolved configuration.
        variation_key: Variation that was served.
        version: Version of the configuration.
        context: The evaluation context used for resolution.
        model_name: Resolved model name, or ``""``.
        provider_name: Resolved provider name, or ``""``.
        logger: Optional structlog logger for recorder failures.
    """

    def __init__(
        self,
        recorder: EventRecorder,
        *,
        config_key: str,
        variation_key: str,
        version: int,
        context: Any,
        model_name: str = "",
        provider_name: str = "",
        logger: Any = None,
    ) -> None:
        self._recorder = recorder
        self._config_key = config_key
        self._variation_key = variation_key
        self._version = version
        self._model_name = model_name
        self._provider_name = provider_name
        self._context = context
        self._log = logger if logger is not None else get_logger(__name__)
        self._metadata: dict[str, Any] = {
            "variationKey": variation_key,
            "configKey": config_key,
            "version": version,
            "modelName": model_name,
            "providerName": provider_name,
        }
        self._summary = MetricSummary()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def config_key(self) -> str:
        return self._config_key

    @property
    def variation_key(self) -> str:
        return self._variation_key

    @property
    def version(self) -> int:
        return self._version

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def context(self) -> Any:
        return self._context

    @property
    def metadata(self) -> dict[str, Any]:
        """The identity metadata attached to every event (a copy)."""
        return dict(self._metadata)

    @property
    def summary(self) -> MetricSummary:
        """A snapshot of the metrics tracked so far."""
        with self._lock:
            return self._summary.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _emit(self, event_name: str, value: float) -> None:
        try:
            self._recorder.record(event_name, self._context, dict(self._metadata), value)
        except Exception as exc:
            self._log.warning(
                "tracker.record_failed",
                event_name=event_name,
                config_key=self._config_key,
                error=repr(exc),
            )

    def _update(self, **fields: Any) -> None:
        with self._lock:
            for name, value in fields.items():
                setattr(self._summary, name, value)

    # ------------------------------------------------------------------
    # Tracking operations
    # ------------------------------------------------------------------

    def track_duration(self, duration: int) -> None:
        """Record an operation duration in milliseconds.

        Raises:
            ValueError: If ``duration`` is negative.
        """
        if duration < 0:
            raise ValueError(f"duration must be >= 0, got {duration}")
        self._update(duration=duration)
        self._emit(EVENT_DURATION_TOTAL, duration)

    def track_duration_of(self, operation: Callable[[], T]) -> T:
        """Run ``operation`` and record its wall-clock duration.

        The duration is recorded even when ``operation`` raises; the
        exception then propagates unchanged.
        """
        start = time.perf_counter()
        try:
            return operation()
        finally:
            self.track_duration(_elapsed_ms(start))

    async def atrack_duration_of(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Async counterpart of :meth:`track_duration_of`.

        Cancellation is recorded like any other exception: the duration up to
        the point of cancellation is tracked and the error propagates.
        """
        start = time.perf_counter()
        try:
            return await operation()
        finally:
            self.track_duration(_elapsed_ms(start))

    def track_time_to_first_token(self, time_to_first_token: int) -> None:
        """Record the time to the first streamed token in milliseconds."""
        if time_to_first_token < 0:
            raise ValueError(
                f"time_to_first_token must be >= 0, got {time_to_first_token}"
            )
        self._update(time_to_first_token=time_to_first_token)
        self._emit(EVENT_TIME_TO_FIRST_TOKEN, time_to_first_token)

    def track_feedback(self, kind: FeedbackKind | str) -> None:
        """Record positive or negative user feedback.

        Raises:
            ValueError: If ``kind`` is not a valid feedback kind.
        """
        feedback = FeedbackKind(kind)
        self._update(feedback=feedback)
        if feedback is FeedbackKind.POSITIVE:
            self._emit(EVENT_FEEDBACK_POSITIVE, 1)
        else:
            self._emit(EVENT_FEEDBACK_NEGATIVE, 1)

    def track_success(self) -> None:
        """Record a successful generation."""
        self._update(success=True)
        self._emit(EVENT_GENERATION, 1)
        self._emit(EVENT_GENERATION_SUCCESS, 1)

    def track_error(self) -> None:
        """Record a failed generation."""
        self._update(success=False)
        self._emit(EVENT_GENERATION, 1)
        self._emit(EVENT_GENERATION_ERROR, 1)

    def track_tokens(self, usage: TokenUsage) -> None:
        """Record token usage; zero, negative and absent counts emit nothing."""
        self._update(usage=usage)
        for count, event_name in (
            (usage.total, EVENT_TOKENS_TOTAL),
            (usage.input, EVENT_TOKENS_INPUT),
            (usage.output, EVENT_TOKENS_OUTPUT),
        ):
            if count is not None and count > 0:
                self._emit(event_name, count)

    # ------------------------------------------------------------------
    # Provider wrappers
    # ------------------------------------------------------------------

    def track_provider_metrics(
        self,
        operation: Callable[[], T],
        usage_extractor: UsageExtractor | None = None,
    ) -> T:
        """Track duration, success/error and token usage of a provider call.

        Args:
            operation: Zero-argument callable performing the provider call.
            usage_extractor: Maps the call's result to :class:`TokenUsage`.
                Defaults to :func:`extract_token_usage`.

        Returns:
            The result of ``operation``.  Exceptions are re-raised after the
            error has been tracked.
        """
        try:
            result = self.track_duration_of(operation)
        except Exception:
            self.track_error()
            raise
        self.track_success()
        self._track_result_usage(result, usage_extractor)
        return result

    async def atrack_provider_metrics(
        self,
        operation: Callable[[], Awaitable[T]],
        usage_extractor: UsageExtractor | None = None,
    ) -> T:
        """Async counterpart of :meth:`track_provider_metrics`."""
        try:
            result = await self.atrack_duration_of(operation)
        except Exception:
            self.track_error()
            raise
        self.track_success()
        self._track_result_usage(result, usage_extractor)
        return result

    def track_openai_metrics(self, operation: Callable[[], T]) -> T:
        """Track an OpenAI chat completion call."""
        return self.track_provider_metrics(
            operation, lambda result: _usage_via(result, openai_to_token_usage)
        )

    def track_bedrock_converse_metrics(self, operation: Callable[[], T]) -> T:
        """Track an AWS Bedrock ``converse`` call."""
        return self.track_provider_metrics(
            operation, lambda result: _usage_via(result, bedrock_to_token_usage)
        )

    def _track_result_usage(
        self, result: Any, usage_extractor: UsageExtractor | None
    ) -> None:
        extractor = usage_extractor or extract_token_usage
        try:
            usage = extractor(result)
        except Exception as exc:
            self._log.warning(
                "tracker.usage_extraction_failed",
                config_key=self._config_key,
                error=repr(exc),
            )
            return
        if usage is not None:
            self.track_tokens(usage)

    def __repr__(self) -> str:
        return (
            f"UsageTracker(config_key={self._config_key!r}, "
            f"variation_key={self._variation_key!r}, version={self._version})"
        )


def _usage_via(result: Any, adapter: Callable[[Any], TokenUsage]) -> TokenUsage | None:
    usage = _lookup(result, "usage") if result is not None else None
    return adapter(usage) if usage is not None else None
