"""Reconciliation driver."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kresolve.config.loader import ConfigLoader
from kresolve.config.settings import EngineSettings
from kresolve.engine.context import ReconciliationContext
from kresolve.engine.errors import ReconcileCancelled, ResolutionError
from kresolve.engine.lookup import InstanceCache
from kresolve.engine.patch import PatchApplier, render
from kresolve.engine.publisher import OutputPublisher
from kresolve.engine.references import collect_references
from kresolve.engine.resolver import ReferenceResolver
from kresolve.engine.types import Condition, Phase, ReconcileResult
from kresolve.engine.values import ValueResolver

if TYPE_CHECKING:
    import threading

    from kresolve.config.loader import ConfigSource
    from kresolve.core.store import OutputStore
    from kresolve.engine.references import ResolvedReference
    from kresolve.engine.registry import CompositionRegistry
    from kresolve.engine.values import ResolvedField
    from kresolve.resources.base import WorkloadInstance

logger = logging.getLogger(__name__)


class Reconciler:
    """Runs one reconciliation pass per call.

    ``Pending → LoadingConfig → Resolving → Patching → Publishing → Complete``;
    any stage may end in ``Failed``.  Resolution errors never escape
    :meth:`reconcile`: they become a ``Ready=False`` condition on the result and
    the external scheduler decides when to try again.  Reconciler instances hold
    no per-pass state and can serve concurrent passes for different instances.
    """

    def __init__(
        self,
        *,
        config_source: ConfigSource,
        store: OutputStore,
        registry: CompositionRegistry,
        settings: EngineSettings | None = None,
    ) -> None:
        self._config_source = config_source
        self._store = store
        self._registry = registry
        self._settings = settings or EngineSettings()

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    def _context(self, instance: WorkloadInstance) -> ReconciliationContext:
        composition = self._registry.get(instance.kind)
        loader = ConfigLoader(self._config_source, timeout=self._settings.lookup_timeout)
        loaded = loader.load(instance.namespace)
        return ReconciliationContext(
            instance=instance,
            composition=composition,
            cluster=loaded.cluster,
            project=loaded.project,
            cache=InstanceCache(self._store, timeout=self._settings.lookup_timeout),
            settings=self._settings,
        )

    @staticmethod
    def _resolve(
        ctx: ReconciliationContext,
    ) -> tuple[dict[str, ResolvedField], dict[str, ResolvedReference]]:
        """Merge field values, then resolve the references left in the merged values.

        References shadowed by a higher precedence level are never looked up.
        """
        values = ValueResolver(ctx.instance, ctx.cluster, ctx.project).resolve(
            ctx.composition.fields()
        )
        refs = collect_references(field.value for field in values.values())
        resolver = ReferenceResolver(ctx.namespace, ctx.cache, ctx.settings)
        return values, resolver.resolve_all(refs)

    def reconcile(
        self,
        instance: WorkloadInstance,
        *,
        cancel: threading.Event | None = None,
    ) -> ReconcileResult:
        result = ReconcileResult(instance=instance.name, namespace=instance.namespace)
        logger.info("Reconciling %s (%s)", instance.address, instance.kind)

        def enter(phase: Phase) -> None:
            if cancel is not None and cancel.is_set():
                raise ReconcileCancelled(phase.value)
            logger.debug("%s: %s", instance.address, phase.value)
            result.phase = phase

        try:
            enter(Phase.LOADING_CONFIG)
            ctx = self._context(instance)

            enter(Phase.RESOLVING)
            values, refs = self._resolve(ctx)

            enter(Phase.PATCHING)
            applier = PatchApplier(instance, ctx.composition, manager=self._settings.field_manager)
            resources = applier.apply(values, refs)

            enter(Phase.PUBLISHING)
            publisher = OutputPublisher(
                instance, ctx.composition, self._store, manager=self._settings.field_manager
            )
            published = publisher.compute(values, refs)
            resources.append(publisher.connection_manifest(published))
            publisher.publish(published)
        except ResolutionError as exc:
            logger.warning(
                "Reconcile of %s failed in %s: %s", instance.address, result.phase.value, exc
            )
            return result.model_copy(
                update={
                    "failed_stage": result.phase,
                    "phase": Phase.FAILED,
                    "conditions": [exc.to_condition()],
                }
            )

        logger.info("Reconciled %s: %d resource(s)", instance.address, len(resources))
        return result.model_copy(
            update={
                "phase": Phase.COMPLETE,
                "resources": resources,
                "rendered": render(resources),
                "published": True,
                "conditions": [_ready_condition(len(resources))],
            }
        )


def _ready_condition(count: int) -> Condition:
    return Condition(
        type="Ready",
        status="True",
        reason="Reconciled",
        message=f"Generated {count} resource(s)",
    )

