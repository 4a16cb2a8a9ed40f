"""Reference resolution against published outputs of other instances."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

from kresolve.engine.errors import (
    ReferenceKeyNotFoundError,
    ReferenceKindMismatchError,
    ReferenceTargetNotFoundError,
)
from kresolve.engine.references import (
    ConfigRef,
    ConnectionRef,
    LiteralValue,
    OutputRef,
    Pointer,
    SecretRef,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kresolve.config.settings import EngineSettings
    from kresolve.core.state import TargetInstance
    from kresolve.engine.lookup import InstanceCache
    from kresolve.engine.references import (
        PointerSource,
        ReferenceDescriptor,
        ResolvedReference,
    )

logger = logging.getLogger(__name__)


class ReferenceResolver:
    """Resolve parsed references for one instance in one namespace."""

    def __init__(self, namespace: str, cache: InstanceCache, settings: EngineSettings) -> None:
        self._namespace = namespace
        self._cache = cache
        self._settings = settings

    def resolve(self, ref: ReferenceDescriptor) -> ResolvedReference:
        match ref:
            case OutputRef():
                return self._resolve_output(ref)
            case ConnectionRef():
                return self._resolve_connection(ref)
            case SecretRef():
                return self._resolve_managed(ref, self._settings.secrets_kind, "secret")
            case ConfigRef():
                return self._resolve_managed(ref, self._settings.configs_kind, "config")
            case _:  # pragma: no cover
                raise TypeError(f"Unknown reference descriptor: {ref!r}")

    def resolve_all(self, refs: Iterable[ReferenceDescriptor]) -> dict[str, ResolvedReference]:
        """Resolve distinct references concurrently, keyed by their raw text.

        The first failure (in input order) is raised after all workers finish.
        """
        unique = list({r.raw: r for r in refs}.values())
        if not unique:
            return {}
        workers = min(self._settings.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kresolve-ref") as pool:
            futures = [(r.raw, pool.submit(self.resolve, r)) for r in unique]
        resolved = {raw: future.result() for raw, future in futures}
        logger.debug("Resolved %d reference(s) in %s", len(resolved), self._namespace)
        return resolved

    def _require(self, namespace: str, instance: str) -> TargetInstance:
        target = self._cache.get(namespace, instance)
        if target is None:
            raise ReferenceTargetNotFoundError(instance, namespace)
        return target

    def _output_namespace(self, ref: OutputRef) -> str:
        if ref.namespace is not None:
            return ref.namespace
        if self._cache.exists(self._namespace, ref.instance):
            return self._namespace
        fallback = self._settings.fallback_namespace
        if fallback and fallback != self._namespace and self._cache.exists(fallback, ref.instance):
            logger.debug("Resolved %s via fallback namespace %s", ref.raw, fallback)
            return fallback
        raise ReferenceTargetNotFoundError(ref.instance, self._namespace)

    def _resolve_output(self, ref: OutputRef) -> LiteralValue:
        target = self._require(self._output_namespace(ref), ref.instance)
        if ref.key not in target.outputs:
            raise ReferenceKeyNotFoundError(ref.instance, ref.key, list(target.outputs))
        return LiteralValue(target.outputs[ref.key])

    def _resolve_connection(self, ref: ConnectionRef) -> Pointer:
        target = self._require(self._namespace, ref.instance)
        keys = target.connection_keys
        if keys is not None and ref.key not in keys:
            raise ReferenceKeyNotFoundError(ref.instance, ref.key, keys)
        return Pointer(
            resource_name=target.connection_secret,
            key=ref.key,
            source="secret",
        )

    def _resolve_managed(
        self, ref: SecretRef | ConfigRef, expected_kind: str, source: PointerSource
    ) -> Pointer:
        target = self._require(self._namespace, ref.instance)
        if target.kind != expected_kind:
            raise ReferenceKindMismatchError(ref.instance, expected_kind, target.kind)
        if target.resources is not None and ref.resource not in target.resources:
            raise ReferenceKeyNotFoundError(ref.instance, ref.resource, target.resources)
        return Pointer(
            resource_name=f"{ref.instance}-{ref.resource}",
            key=ref.key,
            source=source,
        )
