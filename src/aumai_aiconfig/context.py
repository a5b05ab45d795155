"""Evaluation contexts and the context flattener.

A :class:`Context` identifies who a configuration is resolved for.  It is
either single-kind (one ``kind``/``key`` pair with attributes) or multi-kind
(several single-kind contexts keyed by kind).  :func:`flatten` turns any
context into the nested mapping exposed to templates under ``ldctx``.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from aumai_aiconfig.errors import ContextError

__all__ = ["Context", "flatten"]

MULTI_KIND = "multi"

_BUILTIN_ATTRIBUTES = frozenset({"kind", "key", "name"})


class Context(BaseModel):
    """A single- or multi-kind evaluation context.

    Example::

        user = Context(key="u-123", name="Sandy", attributes={"plan": "pro"})
        org = Context(kind="org", key="o-1", attributes={"shortname": "LD"})
        both = Context.create_multi(user, org)
    """

    model_config = ConfigDict(frozen=True)

    kind: str = "user"
    key: str = ""
    name: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    contexts: tuple[Context, ...] = ()

    @field_validator("attributes")
    @classmethod
    def _no_builtin_overrides(cls, value: dict[str, Any]) -> dict[str, Any]:
        clashes = _BUILTIN_ATTRIBUTES.intersection(value)
        if clashes:
            raise ValueError(
                f"attributes may not redefine built-in fields: {sorted(clashes)}"
            )
        return value

    @model_validator(mode="after")
    def _check_shape(self) -> Context:
        if self.kind == MULTI_KIND:
            if not self.contexts:
                raise ValueError("a multi-kind context needs at least one context")
            return self
        if self.contexts:
            raise ValueError("only a multi-kind context may hold nested contexts")
        if not self.kind:
            raise ValueError("context kind must be non-empty")
        if not self.key:
            raise ValueError("context key must be non-empty")
        return self

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def create_multi(cls, *contexts: Context) -> Context:
        """Combine single-kind contexts into one multi-kind context.

        A single argument is returned unchanged.

        Raises:
            ContextError: If no contexts are given, a context is itself
                multi-kind, or two contexts share a kind.
        """
        if not contexts:
            raise ContextError("create_multi requires at least one context")
        kinds: set[str] = set()
        for ctx in contexts:
            if ctx.multiple:
                raise ContextError("multi-kind contexts cannot be nested")
            if ctx.kind in kinds:
                raise ContextError(f"duplicate context kind: {ctx.kind!r}")
            kinds.add(ctx.kind)
        if len(contexts) == 1:
            return contexts[0]
        return cls(kind=MULTI_KIND, contexts=tuple(contexts))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Context:
        """Build a context from its :meth:`to_dict` shape.

        Raises:
            ContextError: If the mapping does not describe a valid context.
        """
        if not isinstance(data, Mapping):
            raise ContextError(
                f"context data must be a mapping, not {type(data).__name__}"
            )
        try:
            if data.get("kind") == MULTI_KIND:
                parts = [
                    cls._single_from_dict({**value, "kind": kind})
                    for kind, value in data.items()
                    if kind != "kind"
                ]
                return cls.create_multi(*parts)
            return cls._single_from_dict(data)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ContextError):
                raise
            raise ContextError(f"invalid context: {exc}") from exc

    @classmethod
    def _single_from_dict(cls, data: Mapping[str, Any]) -> Context:
        if not isinstance(data, Mapping):
            raise ContextError("each context kind must map to an attribute object")
        attributes = {
            k: v for k, v in data.items() if k not in _BUILTIN_ATTRIBUTES
        }
        return cls(
            kind=data.get("kind", "user"),
            key=data.get("key", ""),
            name=data.get("name"),
            attributes=attributes,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def multiple(self) -> bool:
        return self.kind == MULTI_KIND

    def get(self, attribute: str) -> Any:
        """Return a built-in or custom attribute, or ``None``."""
        if attribute in _BUILTIN_ATTRIBUTES:
            return getattr(self, attribute)
        return self.attributes.get(attribute)

    def get_individual_context(self, kind: str) -> Context | None:
        """Return the single-kind context for ``kind``, if present."""
        if not self.multiple:
            return self if self.kind == kind else None
        return next((c for c in self.contexts if c.kind == kind), None)

    def to_dict(self) -> dict[str, Any]:
        if self.multiple:
            data: dict[str, Any] = {"kind": MULTI_KIND}
            for ctx in self.contexts:
                data[ctx.kind] = ctx._attributes_dict()
            return data
        return {"kind": self.kind, **self._attributes_dict()}

    def _attributes_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"key": self.key}
        if self.name is not None:
            data["name"] = self.name
        data.update(copy.deepcopy(self.attributes))
        return data


def flatten(context: Any) -> dict[str, Any]:
    """Convert an evaluation context into a nested template-variable mapping.

    Single-kind contexts flatten to their attributes (``key`` included);
    multi-kind contexts flatten to one attribute mapping per kind, so that
    ``{{ldctx.user.name}}`` and ``{{ldctx.org.shortname}}`` both resolve.
    Objects from other SDKs are accepted when they expose ``to_dict()``.

    Raises:
        ContextError: If ``context`` is none of the supported shapes.
    """
    if isinstance(context, Context):
        return context.to_dict()
    to_dict = getattr(context, "to_dict", None)
    if callable(to_dict):
        data = to_dict()
        if isinstance(data, Mapping):
            return copy.deepcopy(dict(data))
    if isinstance(context, Mapping):
        return copy.deepcopy(dict(context))
    raise ContextError(
        f"cannot flatten context of type {type(context).__name__}"
    )
