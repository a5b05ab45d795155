"""Tests for the in-memory evaluator and event recorder."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from aumai_aiconfig.context import Context
from aumai_aiconfig.errors import FlagFileError
from aumai_aiconfig.memory import InMemoryEvaluator, InMemoryEventRecorder, RecordedEvent

TARGETED_FLAG = {
    "variations": [
        {"_ldMeta": {"enabled": False, "variationKey": "off"}},
        {"_ldMeta": {"enabled": True, "variationKey": "on"}},
    ],
    "contextTargets": {"beta-user": 1, "beta-org": 1},
    "fallthrough": 0,
}

SAMPLE_YAML_FLAGS = """\
chat-assistant:
  _ldMeta:
    enabled: true
    variationKey: v1
    version: 2
  model:
    name: gpt-4o
    parameters:
      temperature: 0.2
  messages:
    - role: system
      content: "You help {{ldctx.name}}."
"""


class TestInMemoryEvaluator:
    def test_unknown_key_returns_default(self) -> None:
        evaluator = InMemoryEvaluator()
        default = {"_ldMeta": {"enabled": False}}
        result = evaluator.evaluate("missing", Context(key="u1"), default)
        assert result == default
        result["_ldMeta"]["enabled"] = True
        assert default["_ldMeta"]["enabled"] is False

    def test_set_and_remove(self) -> None:
        evaluator = InMemoryEvaluator()
        evaluator.set("k", {"_ldMeta": {"enabled": True}})
        assert evaluator.keys() == ["k"]
        assert evaluator.evaluate("k", Context(key="u1"), None) == {"_ldMeta": {"enabled": True}}
        evaluator.remove("k")
        assert evaluator.evaluate("k", Context(key="u1"), "fallback") == "fallback"

    def test_stored_value_is_isolated(self) -> None:
        value = {"_ldMeta": {"enabled": True}}
        evaluator = InMemoryEvaluator({"k": value})
        value["_ldMeta"]["enabled"] = False
        served = evaluator.evaluate("k", Context(key="u1"), None)
        served["_ldMeta"]["enabled"] = "tampered"
        assert evaluator.evaluate("k", Context(key="u1"), None) == {"_ldMeta": {"enabled": True}}

    def test_fallthrough(self) -> None:
        evaluator = InMemoryEvaluator({"f": TARGETED_FLAG})
        result = evaluator.evaluate("f", Context(key="someone"), None)
        assert result["_ldMeta"]["variationKey"] == "off"

    def test_context_target(self) -> None:
        evaluator = InMemoryEvaluator({"f": TARGETED_FLAG})
        result = evaluator.evaluate("f", Context(key="beta-user"), None)
        assert result["_ldMeta"]["variationKey"] == "on"

    def test_multi_context_target(self) -> None:
        evaluator = InMemoryEvaluator({"f": TARGETED_FLAG})
        ctx = Context.create_multi(Context(key="someone"), Context(kind="org", key="beta-org"))
        assert evaluator.evaluate("f", ctx, None)["_ldMeta"]["variationKey"] == "on"

    def test_bad_variation_index_returns_default(self) -> None:
        evaluator = InMemoryEvaluator({"f": {**TARGETED_FLAG, "fallthrough": 9}})
        assert evaluator.evaluate("f", Context(key="someone"), "default") == "default"

    def test_empty_variations_returns_default(self) -> None:
        evaluator = InMemoryEvaluator({"f": {"variations": []}})
        assert evaluator.evaluate("f", Context(key="u1"), "default") == "default"


class TestInMemoryEvaluatorFromFile:
    def test_json(self, tmp_path: Path) -> None:
        path = tmp_path / "flags.json"
        path.write_text(json.dumps({"f": TARGETED_FLAG}), encoding="utf-8")
        evaluator = InMemoryEvaluator.from_file(path)
        assert evaluator.keys() == ["f"]

    def test_yaml(self, tmp_path: Path) -> None:
        pytest.importorskip("yaml")
        path = tmp_path / "flags.yaml"
        path.write_text(SAMPLE_YAML_FLAGS, encoding="utf-8")
        evaluator = InMemoryEvaluator.from_file(path)
        value = evaluator.evaluate("chat-assistant", Context(key="u1"), None)
        assert value["model"]["name"] == "gpt-4o"
        assert value["messages"][0]["content"] == "You help {{ldctx.name}}."

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FlagFileError):
            InMemoryEvaluator.from_file(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "flags.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(FlagFileError):
            InMemoryEvaluator.from_file(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "flags.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(FlagFileError):
            InMemoryEvaluator.from_file(path)


class TestInMemoryEventRecorder:
    def test_record_and_query(self) -> None:
        recorder = InMemoryEventRecorder()
        ctx = Context(key="u1")
        metadata = {"configKey": "k"}
        recorder.record("a", ctx, metadata, 1)
        recorder.record("b", ctx, metadata, 2.5)
        recorder.record("a", ctx, metadata, 3)
        metadata["configKey"] = "mutated"

        assert recorder.names() == ["a", "b", "a"]
        assert [e.value for e in recorder.by_name("a")] == [1, 3]
        assert recorder.events[1] == RecordedEvent("b", ctx, {"configKey": "k"}, 2.5)

    def test_clear(self) -> None:
        recorder = InMemoryEventRecorder()
        recorder.record("a", None, {}, 1)
        recorder.clear()
        assert recorder.events == []
