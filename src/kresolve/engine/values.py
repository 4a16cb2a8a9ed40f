"""Four-level value resolution.

Precedence (lowest first): composition default < cluster default < instance
spec < project override.  Each level is merged into the accumulated value with
:func:`deep_merge`.  A level set to ``None`` is skipped; the instance spec is
also skipped when its value is empty (``""``, ``[]``, ``{}``).
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kresolve.engine.errors import MissingRequiredValueError

if TYPE_CHECKING:
    from kresolve.config.schema import ClusterConfig, ProjectConfig
    from kresolve.resources.base import WorkloadInstance
    from kresolve.resources.composition import FieldDeclaration

logger = logging.getLogger(__name__)


def _strip_nulls(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _strip_nulls(v) for k, v in value.items() if v is not None}
    return copy.deepcopy(value)


def deep_merge(base: Any, override: Any) -> Any:
    """Merge *override* onto *base*, dispatching on the override's type.

    - mapping over mapping: recursive merge; a ``None`` value deletes the key
    - mapping over anything else: the override (minus ``None`` keys) replaces
    - list or scalar: replaces, lists are never merged element-wise

    Neither argument is mutated.
    """
    if isinstance(override, Mapping):
        if not isinstance(base, Mapping):
            return _strip_nulls(override)
        merged = {k: copy.deepcopy(v) for k, v in base.items()}
        for key, value in override.items():
            if value is None:
                merged.pop(key, None)
            elif key in merged:
                merged[key] = deep_merge(merged[key], value)
            else:
                merged[key] = _strip_nulls(value)
        return merged
    return copy.deepcopy(override)


def is_absent(value: Any) -> bool:
    """``None`` or an empty string, list or map (skips the instance spec level)."""
    if value is None:
        return True
    if isinstance(value, str | list | tuple | dict):
        return len(value) == 0
    return False


@dataclass
class ResolvedField:
    path: str
    value: Any
    # Precedence levels that contributed, lowest first.
    sources: list[str] = field(default_factory=list)


class ValueResolver:
    """Resolve every declared field of one instance."""

    def __init__(
        self,
        instance: WorkloadInstance,
        cluster: ClusterConfig,
        project: ProjectConfig | None,
    ) -> None:
        self._instance = instance
        self._cluster = cluster
        self._project = project

    def candidates(self, decl: FieldDeclaration) -> list[tuple[str, Any]]:
        """Raw per-level values for *decl*, lowest precedence first."""
        project = (
            self._project.override_for(self._instance.name, decl.path)
            if self._project is not None
            else None
        )
        return [
            ("composition", decl.default),
            ("cluster", self._cluster.default_for(self._instance.kind, decl.path)),
            ("spec", self._instance.spec_value(decl.path)),
            ("project", project),
        ]

    def resolve_field(self, decl: FieldDeclaration) -> ResolvedField | None:
        """Merge all levels for one field.

        Returns ``None`` when nothing supplied a value for an optional field.

        Raises:
            MissingRequiredValueError: If *decl* is required and no level has a value.
        """
        value: Any = None
        sources: list[str] = []
        for level, candidate in self.candidates(decl):
            skip = is_absent(candidate) if level == "spec" else candidate is None
            if skip:
                continue
            value = deep_merge(value, candidate)
            sources.append(level)

        if not sources:
            if decl.required:
                raise MissingRequiredValueError(decl.path)
            logger.debug("No value for optional field %s", decl.path)
            return None

        logger.debug("Resolved %s from %s", decl.path, "+".join(sources))
        return ResolvedField(path=decl.path, value=value, sources=sources)

    def resolve(self, decls: list[FieldDeclaration]) -> dict[str, ResolvedField]:
        """Resolve *decls*; fails fast on the first missing required field."""
        resolved: dict[str, ResolvedField] = {}
        for decl in decls:
            result = self.resolve_field(decl)
            if result is not None:
                resolved[decl.path] = result
        return resolved
