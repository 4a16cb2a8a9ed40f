"""Composition registry keyed by workload kind."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kresolve.engine.errors import UnknownWorkloadKindError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from kresolve.resources.composition import Composition


class CompositionRegistry:
    """Registry mapping workload kind -> composition."""

    def __init__(self) -> None:
        self._compositions: dict[str, Composition] = {}

    def register(self, composition: Composition) -> None:
        if composition.kind in self._compositions:
            raise ValueError(f"Composition already registered for kind: {composition.kind}")
        self._compositions[composition.kind] = composition

    def get(self, kind: str) -> Composition:
        try:
            return self._compositions[kind]
        except KeyError as e:
            raise UnknownWorkloadKindError(kind) from e

    def kinds(self) -> list[str]:
        return sorted(self._compositions)

    def __contains__(self, kind: object) -> bool:
        return kind in self._compositions

    def __iter__(self) -> Iterator[Composition]:
        return iter(self._compositions[k] for k in self.kinds())

    def __len__(self) -> int:
        return len(self._compositions)
