"""Configuration models for cluster-wide and per-project config records."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _none_to_dict(v: Any) -> Any:
    return v if v is not None else {}


class RecordMetadata(BaseModel):
    """Metadata block shared by all config records."""

    name: str
    labels: dict[str, str] = Field(default_factory=dict)


class EnvironmentMetadata(BaseModel):
    """Where the cluster lives: environment name, base domain and region."""

    name: str
    domain: str = ""
    region: str = ""


class ClusterConfig(BaseModel):
    """Environment-wide configuration (exactly one per environment).

    ``defaults`` maps workload kind → dotted field path → value.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    environment: EnvironmentMetadata
    defaults: Annotated[
        dict[str, Annotated[dict[str, Any], BeforeValidator(_none_to_dict)]],
        BeforeValidator(_none_to_dict),
    ] = {}

    def default_for(self, kind: str, path: str) -> Any:
        return self.defaults.get(kind, {}).get(path)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ClusterConfig:
        meta = RecordMetadata.model_validate(record.get("metadata", {}))
        return cls.model_validate({"name": meta.name, **(record.get("spec") or {})})


class ProjectConfig(BaseModel):
    """Per-project overrides (optional, scoped to one namespace).

    ``overrides`` maps instance name → dotted field path → value.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    project: str
    overrides: Annotated[
        dict[str, Annotated[dict[str, Any], BeforeValidator(_none_to_dict)]],
        BeforeValidator(_none_to_dict),
    ] = {}

    def override_for(self, instance: str, path: str) -> Any:
        return self.overrides.get(instance, {}).get(path)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> ProjectConfig:
        meta = RecordMetadata.model_validate(record.get("metadata", {}))
        spec = dict(record.get("spec") or {})
        spec.setdefault("project", meta.labels.get("project", ""))
        return cls.model_validate({"name": meta.name, **spec})
