"""In-memory collaborators for aumai-aiconfig.

:class:`InMemoryEvaluator` serves flag values from a static table (optionally
loaded from a YAML or JSON file) and :class:`InMemoryEventRecorder` captures
tracked events.  Both are meant for tests, local development and the CLI; a
production deployment plugs in its flag-evaluation SDK instead.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from aumai_aiconfig.context import MULTI_KIND, flatten
from aumai_aiconfig.errors import FlagFileError

__all__ = ["InMemoryEvaluator", "InMemoryEventRecorder", "RecordedEvent"]

_VARIATIONS = "variations"
_TARGETS = "contextTargets"
_FALLTHROUGH = "fallthrough"


def _context_keys(context: Any) -> set[str]:
    data = flatten(context)
    if data.get("kind") == MULTI_KIND:
        return {
            str(value["key"])
            for kind, value in data.items()
            if kind != "kind" and isinstance(value, Mapping) and "key" in value
        }
    return {str(data["key"])} if "key" in data else set()


class InMemoryEvaluator:
    """Serves flag values from an in-memory table.

    A flag is either a plain wire-shape value served to everyone, or a
    targeted definition::

        {
            "variations": [{...}, {...}],
            "contextTargets": {"user-key": 1},
            "fallthrough": 0,
        }

    Unknown keys evaluate to the caller's default.

    Example::

        evaluator = InMemoryEvaluator()
        evaluator.set("chat-assistant", {"_ldMeta": {"enabled": True}})
    """

    def __init__(self, flags: Mapping[str, Any] | None = None) -> None:
        self._flags: dict[str, Any] = {}
        for key, value in (flags or {}).items():
            self.set(key, value)

    @classmethod
    def from_file(cls, path: str | Path) -> InMemoryEvaluator:
        """Load flags from a YAML (``.yaml``/``.yml``) or JSON file.

        Raises:
            FlagFileError: If the file cannot be read or parsed, or its top
                level is not a mapping of flag keys.
        """
        file_path = Path(path)
        try:
            text = file_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise FlagFileError(f"cannot read flag file {file_path}: {exc}") from exc

        data: Any
        if file_path.suffix.lower() in (".yaml", ".yml"):
            try:
                import yaml  # type: ignore[import-untyped]
            except ImportError as exc:
                raise FlagFileError(
                    "PyYAML is required for YAML flag files. "
                    "Install with: pip install aumai-aiconfig[yaml]"
                ) from exc
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise FlagFileError(f"invalid YAML in {file_path}: {exc}") from exc
        else:
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise FlagFileError(f"invalid JSON in {file_path}: {exc}") from exc

        if not isinstance(data, Mapping):
            raise FlagFileError(f"{file_path} must map flag keys to flag values")
        return cls(data)

    def set(self, key: str, value: Any) -> None:
        """Store (or replace) the value for ``key``."""
        self._flags[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._flags.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._flags)

    def evaluate(self, key: str, context: Any, default: Any) -> Any:
        """Return the value served to ``context`` for ``key``, or ``default``."""
        if key not in self._flags:
            return copy.deepcopy(default)
        flag = self._flags[key]
        if isinstance(flag, Mapping) and _VARIATIONS in flag:
            return copy.deepcopy(self._select_variation(flag, context, default))
        return copy.deepcopy(flag)

    def _select_variation(self, flag: Mapping[str, Any], context: Any, default: Any) -> Any:
        variations = flag[_VARIATIONS]
        if not isinstance(variations, list) or not variations:
            return default
        index = flag.get(_FALLTHROUGH, 0)
        targets = flag.get(_TARGETS) or {}
        for context_key in sorted(_context_keys(context)):
            if context_key in targets:
                index = targets[context_key]
                break
        if not isinstance(index, int) or not 0 <= index < len(variations):
            return default
        return variations[index]


@dataclass(frozen=True)
class RecordedEvent:
    """One event captured by :class:`InMemoryEventRecorder`."""

    name: str
    context: Any
    metadata: dict[str, Any]
    value: float


@dataclass
class InMemoryEventRecorder:
    """Captures recorded events in memory, in emission order."""

    events: list[RecordedEvent] = field(default_factory=list)

    def record(
        self,
        event_name: str,
        context: Any,
        metadata: Mapping[str, Any],
        value: float,
    ) -> None:
        self.events.append(RecordedEvent(event_name, context, dict(metadata), value))

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def by_name(self, name: str) -> list[RecordedEvent]:
        return [event for event in self.events if event.name == name]

    def clear(self) -> None:
        self.events.clear()
