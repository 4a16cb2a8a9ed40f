"""Workload instance model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from kresolve.resources.paths import get_path

_DNS_LABEL = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$"


class WorkloadInstance(BaseModel):
    """A single deployable workload description, as produced by the renderer.

    Instances are pure data, already templated upstream.
    The engine only reads it.
    """

    model_config = ConfigDict(extra="forbid")

    kind: str = Field(min_length=1)
    name: str = Field(pattern=_DNS_LABEL, max_length=63)
    namespace: str = Field(pattern=_DNS_LABEL, max_length=63)
    uid: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    spec: dict[str, Any] = Field(default_factory=dict)

    def spec_value(self, path: str) -> Any:
        """Value at dotted *path* in ``spec``, or ``None`` if absent."""
        return get_path(self.spec, path)

    @computed_field
    @property
    def address(self) -> str:
        """Unique address for this instance (e.g., 'team-a/orders-db')."""
        return f"{self.namespace}/{self.name}"
