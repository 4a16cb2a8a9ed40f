"""Published outputs: the only state that outlives a reconciliation."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field, computed_field


def canonical_json(obj: Any) -> str:
    # Stable encoding for hashes/digests and rendered output.
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def compute_digest(obj: Any) -> str:
    """Compute a stable sha256 hex digest of a JSON-compatible value."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()


def connection_secret_name(instance: str) -> str:
    """Deterministic name of an instance's connection secret."""
    return f"{instance}-conn"


class ConnectionSecret(BaseModel):
    """Sensitive key/value pairs an instance exposes only via pointer."""

    name: str
    data: dict[str, str] = Field(default_factory=dict)


class PublishedOutputs(BaseModel):
    """Everything one instance publishes for other instances to consume.

    Attributes:
        kind: Workload kind of the publishing instance
        namespace: Namespace of the publishing instance
        instance: Name of the publishing instance
        outputs: Literal-safe key/value pairs readable via ``outputs/`` references
        connection: Connection secret readable via ``connections/`` pointers
        resources: Names of resources the instance manages (used for
            ``secrets/`` and ``configs/`` validation)
        generation: Incremented on every publish
        updated_at: When the record was last overwritten
    """

    kind: str
    namespace: str
    instance: str
    outputs: dict[str, Any] = Field(default_factory=dict)
    connection: ConnectionSecret
    resources: list[str] = Field(default_factory=list)
    generation: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def address(self) -> str:
        return f"{self.namespace}/{self.instance}"


class TargetInstance(BaseModel):
    """What a reference can see of another instance.

    Deliberately excludes connection secret *values*: consumers only ever get
    the secret name and the set of keys.
    """

    kind: str
    namespace: str
    name: str
    outputs: dict[str, Any] = Field(default_factory=dict)
    connection_secret: str
    connection_keys: list[str] | None = None
    resources: list[str] | None = None

    @classmethod
    def from_published(cls, published: PublishedOutputs) -> TargetInstance:
        return cls(
            kind=published.kind,
            namespace=published.namespace,
            name=published.instance,
            outputs=dict(published.outputs),
            connection_secret=published.connection.name,
            connection_keys=sorted(published.connection.data),
            resources=list(published.resources) or None,
        )
