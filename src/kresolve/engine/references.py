"""Reference grammar.

A reference is a string field value of one of these shapes::

    [<namespace>::]outputs/<instance>/<key>
    connections/<instance>/<key>
    secrets/<instance>/<resource>[/<key>]
    configs/<instance>/<resource>[/<key>]

Anything else is a literal.  Only ``outputs/`` may name another namespace.
Parsing is pure; resolution lives in :mod:`kresolve.engine.resolver`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from kresolve.engine.errors import CrossNamespaceViolationError, ReferenceSyntaxError

NAMESPACE_SEPARATOR = "::"

# ── Descriptors ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class OutputRef:
    """Literal value another instance published."""

    raw: str
    instance: str
    key: str
    namespace: str | None = None


@dataclass(frozen=True, slots=True)
class ConnectionRef:
    """Key in another instance's connection secret (same namespace only)."""

    raw: str
    instance: str
    key: str


@dataclass(frozen=True, slots=True)
class SecretRef:
    """Secret managed by a secrets instance (same namespace only)."""

    raw: str
    instance: str
    resource: str
    key: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigRef:
    """Config map managed by a configs instance (same namespace only)."""

    raw: str
    instance: str
    resource: str
    key: str | None = None


ReferenceDescriptor: TypeAlias = OutputRef | ConnectionRef | SecretRef | ConfigRef

# ── Resolved references ─────────────────────────────────────────────

PointerSource: TypeAlias = Literal["secret", "config"]


@dataclass(frozen=True, slots=True)
class LiteralValue:
    """A value safe to inline (only ever produced from ``outputs/``)."""

    value: Any


@dataclass(frozen=True, slots=True)
class Pointer:
    """Secret- or config-backed reference to mount or inject, never inlined."""

    resource_name: str
    key: str | None
    source: PointerSource


ResolvedReference: TypeAlias = LiteralValue | Pointer

# ── Parser ──────────────────────────────────────────────────────────

_PREFIXES = ("outputs", "connections", "secrets", "configs")


def _segments(raw: str, path: str, *, min_parts: int, max_parts: int) -> list[str]:
    parts = path.split("/")
    if not min_parts <= len(parts) <= max_parts:
        expected = (
            f"{min_parts} path segments"
            if min_parts == max_parts
            else f"{min_parts} to {max_parts} path segments"
        )
        raise ReferenceSyntaxError(raw, f"expected {expected}, got {len(parts)}")
    if any(not p for p in parts):
        raise ReferenceSyntaxError(raw, "empty path segment")
    return parts


def is_reference(value: Any) -> bool:
    """Cheap check for the reference prefixes, without validating the path."""
    if not isinstance(value, str):
        return False
    remainder = value.split(NAMESPACE_SEPARATOR, 1)[-1]
    return any(remainder.startswith(f"{p}/") for p in _PREFIXES)


def parse_reference(value: Any) -> ReferenceDescriptor | None:
    """Parse *value* into a reference descriptor, or ``None`` for a literal.

    Raises:
        CrossNamespaceViolationError: A namespace was given for a non-``outputs/`` type.
        ReferenceSyntaxError: The prefix matched but the path is malformed.
    """
    if not isinstance(value, str):
        return None

    namespace: str | None = None
    remainder = value
    if NAMESPACE_SEPARATOR in value:
        namespace, remainder = value.split(NAMESPACE_SEPARATOR, 1)

    ref_type, sep, path = remainder.partition("/")
    if not sep or ref_type not in _PREFIXES:
        return None

    if namespace is not None:
        if ref_type != "outputs":
            raise CrossNamespaceViolationError(ref_type, value)
        if not namespace:
            raise ReferenceSyntaxError(value, "empty namespace before '::'")

    match ref_type:
        case "outputs":
            instance, key = _segments(value, path, min_parts=2, max_parts=2)
            return OutputRef(raw=value, instance=instance, key=key, namespace=namespace)
        case "connections":
            instance, key = _segments(value, path, min_parts=2, max_parts=2)
            return ConnectionRef(raw=value, instance=instance, key=key)
        case "secrets":
            parts = _segments(value, path, min_parts=2, max_parts=3)
            return SecretRef(raw=value, instance=parts[0], resource=parts[1], key=_opt(parts, 2))
        case "configs":
            parts = _segments(value, path, min_parts=2, max_parts=3)
            return ConfigRef(raw=value, instance=parts[0], resource=parts[1], key=_opt(parts, 2))
        case _:  # pragma: no cover
            raise AssertionError(ref_type)


def _opt(parts: list[str], index: int) -> str | None:
    return parts[index] if len(parts) > index else None


def _string_leaves(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from _string_leaves(v)
    elif isinstance(value, list):
        for v in value:
            yield from _string_leaves(v)


def collect_references(values: Iterable[Any]) -> list[ReferenceDescriptor]:
    """Parse every string leaf of *values*; return distinct references in order found."""
    found: dict[str, ReferenceDescriptor] = {}
    for value in values:
        for leaf in _string_leaves(value):
            if leaf in found:
                continue
            ref = parse_reference(leaf)
            if ref is not None:
                found[leaf] = ref
    return list(found.values())
