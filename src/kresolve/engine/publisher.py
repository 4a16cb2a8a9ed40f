"""Publishing an instance's outputs after successful generation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from kresolve.core.state import (
    ConnectionSecret,
    PublishedOutputs,
    canonical_json,
    connection_secret_name,
)
from kresolve.engine.errors import UnpublishableValueError
from kresolve.engine.patch import (
    INSTANCE_LABEL,
    MANAGED_BY_LABEL,
    inject_references,
    sort_keys,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kresolve.core.store import OutputStore
    from kresolve.engine.references import Pointer, ResolvedReference
    from kresolve.engine.values import ResolvedField
    from kresolve.resources.base import WorkloadInstance
    from kresolve.resources.composition import Composition, PublishSpec

logger = logging.getLogger(__name__)


def _as_secret_value(value: Any) -> str:
    return value if isinstance(value, str) else canonical_json(value)


class OutputPublisher:
    """Compute and overwrite one instance's published outputs.

    Downstream instances are not notified; they see the new values on their
    own next reconciliation.
    """

    def __init__(
        self,
        instance: WorkloadInstance,
        composition: Composition,
        store: OutputStore,
        *,
        manager: str,
    ) -> None:
        self._instance = instance
        self._composition = composition
        self._store = store
        self._manager = manager

    def _literal(
        self,
        spec: PublishSpec,
        values: Mapping[str, ResolvedField],
        refs: Mapping[str, ResolvedReference],
    ) -> Any:
        def reject(_: Pointer) -> Any:
            raise UnpublishableValueError(spec.key, spec.from_field)

        field = values.get(spec.from_field)
        if field is None:
            return None
        return inject_references(field.value, refs, on_pointer=reject)

    def compute(
        self,
        values: Mapping[str, ResolvedField],
        refs: Mapping[str, ResolvedReference],
    ) -> PublishedOutputs:
        """Build the full published record (unset fields are left out)."""
        outputs: dict[str, Any] = {}
        connection: dict[str, str] = {}
        for spec in self._composition.publish:
            value = self._literal(spec, values, refs)
            if value is None:
                continue
            if spec.sensitive:
                connection[spec.key] = _as_secret_value(value)
            else:
                outputs[spec.key] = value

        return PublishedOutputs(
            kind=self._instance.kind,
            namespace=self._instance.namespace,
            instance=self._instance.name,
            outputs=sort_keys(outputs),
            connection=ConnectionSecret(
                name=connection_secret_name(self._instance.name),
                data=dict(sorted(connection.items())),
            ),
            resources=sorted(t.name for t in self._composition.resources),
        )

    def connection_manifest(self, published: PublishedOutputs) -> dict[str, Any]:
        """Secret resource carrying the connection data."""
        return sort_keys(
            {
                "apiVersion": "v1",
                "kind": "Secret",
                "type": "Opaque",
                "metadata": {
                    "name": published.connection.name,
                    "namespace": published.namespace,
                    "labels": {
                        MANAGED_BY_LABEL: self._manager,
                        INSTANCE_LABEL: published.instance,
                    },
                },
                "stringData": dict(published.connection.data),
            }
        )

    def publish(self, published: PublishedOutputs) -> PublishedOutputs:
        """Overwrite the stored record (never an incremental patch)."""
        stored = self._store.publish(published)
        logger.info(
            "Published %d output(s) and %d connection key(s) for %s",
            len(stored.outputs),
            len(stored.connection.data),
            stored.address,
        )
        return stored

