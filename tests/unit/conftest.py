"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from kresolve.config.loader import InMemoryConfigSource
from kresolve.config.settings import EngineSettings
from kresolve.core.state import ConnectionSecret, PublishedOutputs, connection_secret_name
from kresolve.core.store import InMemoryOutputStore
from kresolve.engine.engine import Reconciler
from kresolve.engine.registry import CompositionRegistry
from kresolve.resources.base import WorkloadInstance
from kresolve.resources.composition import Composition

if TYPE_CHECKING:
    from collections.abc import Callable

_KRESOLVE_ENV_VARS = (
    "KRESOLVE_LOOKUP_TIMEOUT",
    "KRESOLVE_FALLBACK_NAMESPACE",
    "KRESOLVE_SECRETS_KIND",
    "KRESOLVE_CONFIGS_KIND",
    "KRESOLVE_MAX_WORKERS",
    "KRESOLVE_FIELD_MANAGER",
    "KRESOLVE_LOG",
)


@pytest.fixture(autouse=True)
def _clean_kresolve_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove KRESOLVE_* env vars so unit tests don't leak host config."""
    for var in _KRESOLVE_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def _cluster_record(
    defaults: dict[str, Any] | None = None, *, name: str = "cluster"
) -> dict[str, Any]:
    return {
        "metadata": {"name": name, "labels": {"type": "cluster"}},
        "spec": {
            "environment": {"name": "dev", "domain": "dev.example.com", "region": "eu-west-1"},
            "defaults": defaults or {},
        },
    }


def _project_record(
    namespace: str, overrides: dict[str, Any] | None = None, *, name: str | None = None
) -> dict[str, Any]:
    return {
        "metadata": {
            "name": name or f"{namespace}-project",
            "labels": {"type": "project", "project": namespace},
        },
        "spec": {"overrides": overrides or {}},
    }


def _published(
    name: str,
    *,
    namespace: str = "team-a",
    kind: str = "Database",
    outputs: dict[str, Any] | None = None,
    connection: dict[str, str] | None = None,
    resources: list[str] | None = None,
) -> PublishedOutputs:
    return PublishedOutputs(
        kind=kind,
        namespace=namespace,
        instance=name,
        outputs=outputs or {},
        connection=ConnectionSecret(name=connection_secret_name(name), data=connection or {}),
        resources=resources or [],
    )


WEB_COMPOSITION: dict[str, Any] = {
    "kind": "WebApp",
    "description": "Deployment plus service",
    "resources": [
        {
            "name": "deploy",
            "api_version": "apps/v1",
            "kind": "Deployment",
            "base": {"spec": {"replicas": 1, "template": {"spec": {"containers": []}}}},
            "patches": [
                {"field": "replicas", "to": "spec.replicas", "default": 1},
                {"field": "image", "to": "spec.template.spec.image", "required": True},
                {"field": "env", "to": "spec.template.spec.env"},
            ],
        },
        {
            "name": "svc",
            "kind": "Service",
            "base": {"spec": {"type": "ClusterIP"}},
            "patches": [{"field": "port", "to": "spec.port", "default": 8080}],
        },
    ],
    "publish": [
        {"key": "url", "from_field": "image"},
        {"key": "port", "from_field": "port"},
    ],
}

DATABASE_COMPOSITION: dict[str, Any] = {
    "kind": "Database",
    "resources": [
        {
            "name": "db",
            "kind": "StatefulSet",
            "patches": [
                {"field": "host", "to": "spec.host", "required": True},
                {"field": "password", "to": "spec.password"},
            ],
        }
    ],
    "publish": [
        {"key": "host", "from_field": "host"},
        {"key": "password", "from_field": "password", "sensitive": True},
    ],
}


@pytest.fixture
def registry() -> CompositionRegistry:
    reg = CompositionRegistry()
    reg.register(Composition.model_validate(WEB_COMPOSITION))
    reg.register(Composition.model_validate(DATABASE_COMPOSITION))
    return reg


@pytest.fixture
def store() -> InMemoryOutputStore:
    return InMemoryOutputStore()


@pytest.fixture
def config_source() -> InMemoryConfigSource:
    return InMemoryConfigSource([_cluster_record({"WebApp": {"replicas": 3}})])


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(lookup_timeout=2.0)


@pytest.fixture
def reconciler(
    config_source: InMemoryConfigSource,
    store: InMemoryOutputStore,
    registry: CompositionRegistry,
    settings: EngineSettings,
) -> Reconciler:
    return Reconciler(
        config_source=config_source, store=store, registry=registry, settings=settings
    )


@pytest.fixture
def make_instance() -> Callable[..., WorkloadInstance]:
    """Factory fixture: build a workload instance with sensible defaults."""

    def _make(
        name: str = "web",
        *,
        kind: str = "WebApp",
        namespace: str = "team-a",
        **spec: Any,
    ) -> WorkloadInstance:
        return WorkloadInstance(
            kind=kind, name=name, namespace=namespace, uid=f"uid-{name}", spec=spec
        )

    return _make


@pytest.fixture
def cluster_record() -> Callable[..., dict[str, Any]]:
    """Factory fixture: cluster config record with the given per-kind defaults."""
    return _cluster_record


@pytest.fixture
def project_record() -> Callable[..., dict[str, Any]]:
    """Factory fixture: project config record for a namespace."""
    return _project_record


@pytest.fixture
def make_published() -> Callable[..., PublishedOutputs]:
    """Factory fixture: published outputs of another instance."""
    return _published
