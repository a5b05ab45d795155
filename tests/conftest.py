"""Shared test fixtures for aumai-aiconfig."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from aumai_aiconfig.context import Context
from aumai_aiconfig.core import ConfigResolver
from aumai_aiconfig.memory import InMemoryEvaluator, InMemoryEventRecorder
from aumai_aiconfig.tracker import UsageTracker

SAMPLE_FLAGS: dict[str, Any] = {
    "model-config": {
        "model": {
            "name": "fakeModel",
            "parameters": {"temperature": 0.5, "maxTokens": 4096},
            "custom": {"extra-attribute": "value"},
        },
        "provider": {"name": "fakeProvider"},
        "messages": [{"role": "system", "content": "Hello, {{name}}!"}],
        "_ldMeta": {"enabled": True, "variationKey": "abcd", "version": 1},
    },
    "multiple-messages": {
        "model": {"name": "fakeModel", "parameters": {"temperature": 0.7, "maxTokens": 8192}},
        "messages": [
            {"role": "system", "content": "Hello, {{name}}!"},
            {"role": "user", "content": "The day is, {{day}}!"},
        ],
        "_ldMeta": {"enabled": True, "variationKey": "abcd", "version": 1},
    },
    "ctx-interpolation": {
        "model": {"name": "fakeModel"},
        "messages": [
            {
                "role": "system",
                "content": "Hello, {{ldctx.name}}! Is your last name {{ldctx.last}}?",
            }
        ],
        "_ldMeta": {"enabled": True, "variationKey": "abcd", "version": 1},
    },
    "multi-ctx-interpolation": {
        "model": {"name": "fakeModel"},
        "messages": [
            {
                "role": "system",
                "content": "Hello, {{ldctx.user.name}}! Do you work for {{ldctx.org.shortname}}?",
            }
        ],
        "_ldMeta": {"enabled": True, "variationKey": "abcd", "version": 1},
    },
    "off-config": {
        "model": {"name": "fakeModel", "parameters": {"temperature": 0.1}},
        "messages": [{"role": "system", "content": "Hello, {{name}}!"}],
        "_ldMeta": {"enabled": False, "variationKey": "abcd", "version": 1},
    },
    "initial-config-disabled": {
        "variations": [{"_ldMeta": {"enabled": False}}, {"_ldMeta": {"enabled": True}}],
        "fallthrough": 0,
    },
    "initial-config-enabled": {
        "variations": [{"_ldMeta": {"enabled": False}}, {"_ldMeta": {"enabled": True}}],
        "fallthrough": 1,
    },
    "role-only": {
        "messages": [
            {"role": "system"},
            {"role": "user", "content": "Hi {{name}}"},
        ],
        "_ldMeta": {"enabled": True, "variationKey": "v2", "version": 7},
    },
    "no-meta": {"model": {"name": "bareModel"}},
    "malformed": {
        "_ldMeta": {"enabled": True, "variationKey": 42, "version": "three"},
        "model": "gpt-4o",
        "provider": ["openai"],
        "messages": "Hello there",
    },
}


class CapturingLogger:
    """Minimal stand-in for a structlog bound logger."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def _log(self, level: str, event: str, **kw: Any) -> None:
        self.calls.append((level, event, kw))

    def debug(self, event: str, **kw: Any) -> None:
        self._log("debug", event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._log("info", event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log("warning", event, **kw)

    def events(self, level: str) -> list[str]:
        return [event for lvl, event, _ in self.calls if lvl == level]


@pytest.fixture()
def sample_flags() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_FLAGS)


@pytest.fixture()
def recorder() -> InMemoryEventRecorder:
    return InMemoryEventRecorder()


@pytest.fixture()
def evaluator() -> InMemoryEvaluator:
    return InMemoryEvaluator(SAMPLE_FLAGS)


@pytest.fixture()
def resolver(evaluator: InMemoryEvaluator, recorder: InMemoryEventRecorder) -> ConfigResolver:
    return ConfigResolver(evaluator, recorder)


@pytest.fixture()
def user_context() -> Context:
    return Context(key="user-key", name="Sandy", attributes={"last": "Beaches"})


@pytest.fixture()
def multi_context() -> Context:
    return Context.create_multi(
        Context(key="user-key", name="Sandy"),
        Context(kind="org", key="org-key", name="LaunchDarkly", attributes={"shortname": "LD"}),
    )


@pytest.fixture()
def capturing_logger() -> CapturingLogger:
    return CapturingLogger()


@pytest.fixture()
def tracker(
    recorder: InMemoryEventRecorder,
    user_context: Context,
    capturing_logger: CapturingLogger,
) -> UsageTracker:
    return UsageTracker(
        recorder,
        config_key="config-key",
        variation_key="variation-key",
        version=3,
        context=user_context,
        model_name="fakeModel",
        provider_name="fakeProvider",
        logger=capturing_logger,
    )
