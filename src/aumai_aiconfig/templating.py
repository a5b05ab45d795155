"""Prompt template rendering.

Templates use ``{{path}}`` placeholders where ``path`` is a dot-separated
traversal into the variable mapping.  The raw-output forms ``{{{path}}}`` and
``{{& path}}`` render identically, since values are never HTML-escaped.
Unresolvable paths render as the empty string and any text that is not a
well-formed placeholder is left untouched, so rendering never fails on sparse
context data or stray braces.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

__all__ = ["render", "resolve_path"]

_PATH = r"\s*([A-Za-z0-9_$-]+(?:\.[A-Za-z0-9_$-]+)*)\s*"

# Triple-brace and ampersand tags are the raw-output forms of a placeholder;
# they must be tried before the plain double-brace form.
_PLACEHOLDER = re.compile(
    r"\{\{\{" + _PATH + r"\}\}\}"
    r"|\{\{&" + _PATH + r"\}\}"
    r"|\{\{" + _PATH + r"\}\}"
)

_MISSING = object()


def resolve_path(variables: Mapping[str, Any], path: str) -> Any:
    """Walk ``path`` through nested mappings and sequences.

    Args:
        variables: Root variable mapping.
        path: Dot-separated segments; integer segments index sequences.

    Returns:
        The value found, or ``None`` if any segment cannot be resolved.
    """
    current: Any = variables
    for segment in path.split("."):
        current = _step(current, segment)
        if current is _MISSING:
            return None
    return current


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, _MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        if segment.isdigit():
            index = int(segment)
            if index < len(current):
                return current[index]
    return _MISSING


def _format(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (Mapping, list, tuple)):
        try:
            return json.dumps(value, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            return str(value)
    return str(value)


def render(template: str, variables: Mapping[str, Any]) -> str:
    """Interpolate ``variables`` into ``template``.

    Example::

        render("Hi {{ldctx.user.name}}!", {"ldctx": {"user": {"name": "Sandy"}}})
        # 'Hi Sandy!'
    """
    return _PLACEHOLDER.sub(
        lambda match: _format(resolve_path(variables, match.group(match.lastindex))),
        template,
    )
