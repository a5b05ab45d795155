"""Quickstart examples for aumai-aiconfig.

Demonstrates the full configuration workflow:
  1. Resolving an AI config and rendering its prompt templates
  2. Multi-kind contexts in templates
  3. Tracking a provider call (duration, success, tokens) and feedback
  4. Failure tracking when the provider call raises
  5. Falling back to a default when the config key is unknown

Run this file to verify your installation:

    python examples/quickstart.py
"""

from __future__ import annotations

from typing import Any

from aumai_aiconfig import (
    AIConfig,
    ConfigResolver,
    Context,
    FeedbackKind,
    InMemoryEvaluator,
    InMemoryEventRecorder,
    Message,
    ModelConfig,
)
from aumai_aiconfig.log import setup_logging

FLAGS: dict[str, Any] = {
    "chat-assistant": {
        "_ldMeta": {"enabled": True, "variationKey": "friendly", "version": 4},
        "model": {"name": "gpt-4o-mini", "parameters": {"temperature": 0.3}},
        "provider": {"name": "openai"},
        "messages": [
            {"role": "system", "content": "You are a {{tone}} assistant for {{ldctx.name}}."},
            {"role": "system"},
        ],
    },
    "team-assistant": {
        "_ldMeta": {"enabled": True, "variationKey": "teams", "version": 1},
        "messages": [
            {
                "role": "system",
                "content": "Help {{ldctx.user.name}} from {{ldctx.org.shortname}}.",
            }
        ],
    },
}


def _fake_completion() -> dict[str, Any]:
    """Stand-in for a provider call, shaped like an OpenAI response."""
    return {
        "choices": [{"message": {"role": "assistant", "content": "Happy to help!"}}],
        "usage": {"total_tokens": 42, "prompt_tokens": 30, "completion_tokens": 12},
    }


def _failing_completion() -> dict[str, Any]:
    raise TimeoutError("provider timed out")


# ---------------------------------------------------------------------------
# Demo 1: Resolve and render
# ---------------------------------------------------------------------------


def demo_resolve(resolver: ConfigResolver) -> None:
    print("=" * 60)
    print("Demo 1: Resolve and render")
    print("=" * 60)

    context = Context(key="user-123", name="Sandy")
    config = resolver.resolve("chat-assistant", context, None, {"tone": "friendly"})

    print(f"enabled:  {config.enabled}")
    print(f"model:    {config.model.name if config.model else None}")
    print(f"provider: {config.provider.name if config.provider else None}")
    for message in config.messages or ():
        print(f"  [{message.role}] {message.content}")


# ---------------------------------------------------------------------------
# Demo 2: Multi-kind contexts
# ---------------------------------------------------------------------------


def demo_multi_context(resolver: ConfigResolver) -> None:
    print("\n" + "=" * 60)
    print("Demo 2: Multi-kind context")
    print("=" * 60)

    context = Context.create_multi(
        Context(key="user-123", name="Sandy"),
        Context(kind="org", key="org-9", attributes={"shortname": "LD"}),
    )
    config = resolver.resolve("team-assistant", context)
    print((config.messages or ())[0].content)


# ---------------------------------------------------------------------------
# Demo 3: Tracking a provider call
# ---------------------------------------------------------------------------


def demo_tracking(resolver: ConfigResolver, recorder: InMemoryEventRecorder) -> None:
    print("\n" + "=" * 60)
    print("Demo 3: Tracking a provider call")
    print("=" * 60)

    recorder.clear()
    config = resolver.resolve("chat-assistant", Context(key="user-123"), None, {"tone": "terse"})
    response = config.tracker.track_openai_metrics(_fake_completion)
    config.tracker.track_feedback(FeedbackKind.POSITIVE)

    print(f"reply: {response['choices'][0]['message']['content']}")
    print(f"summary: {config.tracker.summary.model_dump()}")
    for event in recorder.events:
        print(f"  {event.name:<32} value={event.value}")


# ---------------------------------------------------------------------------
# Demo 4: Failure tracking
# ---------------------------------------------------------------------------


def demo_failure(resolver: ConfigResolver, recorder: InMemoryEventRecorder) -> None:
    print("\n" + "=" * 60)
    print("Demo 4: Failure tracking")
    print("=" * 60)

    recorder.clear()
    config = resolver.resolve("chat-assistant", Context(key="user-123"))
    try:
        config.tracker.track_provider_metrics(_failing_completion)
    except TimeoutError as exc:
        print(f"caller sees the original error: {exc!r}")
    print(f"success recorded as: {config.tracker.summary.success}")
    print(f"events: {recorder.names()}")


# ---------------------------------------------------------------------------
# Demo 5: Default fallback
# ---------------------------------------------------------------------------


def demo_default(resolver: ConfigResolver) -> None:
    print("\n" + "=" * 60)
    print("Demo 5: Default fallback for an unknown key")
    print("=" * 60)

    default = AIConfig(
        enabled=True,
        model=ModelConfig(name="backup-model"),
        messages=[Message(role="system", content="You are the backup assistant for {{ldctx.name}}.")],
    )
    config = resolver.resolve("not-configured", Context(key="u-5", name="Lucy"), default)
    print(f"enabled: {config.enabled}, model: {config.model.name if config.model else None}")
    print((config.messages or ())[0].content)


def main() -> None:
    setup_logging(level="WARNING")
    recorder = InMemoryEventRecorder()
    resolver = ConfigResolver(InMemoryEvaluator(FLAGS), recorder)

    demo_resolve(resolver)
    demo_multi_context(resolver)
    demo_tracking(resolver, recorder)
    demo_failure(resolver, recorder)
    demo_default(resolver)


if __name__ == "__main__":
    main()
