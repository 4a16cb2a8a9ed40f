"""Per-reconciliation context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kresolve.config.schema import ClusterConfig, ProjectConfig
    from kresolve.config.settings import EngineSettings
    from kresolve.engine.lookup import InstanceCache
    from kresolve.resources.base import WorkloadInstance
    from kresolve.resources.composition import Composition


@dataclass(frozen=True)
class ReconciliationContext:
    """Everything one pass reads, built fresh for every pass and then dropped.

    Never shared between reconciliations of different instances; the cache
    is the only member written to during the pass.
    """

    instance: WorkloadInstance
    composition: Composition
    cluster: ClusterConfig
    project: ProjectConfig | None
    cache: InstanceCache
    settings: EngineSettings

    @property
    def namespace(self) -> str:
        return self.instance.namespace
