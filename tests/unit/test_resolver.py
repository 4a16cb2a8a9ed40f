"""Tests for resolving references against published outputs."""

from __future__ import annotations

import pytest

from kresolve.config.settings import EngineSettings
from kresolve.core.state import ConnectionSecret, PublishedOutputs
from kresolve.core.store import InMemoryOutputStore
from kresolve.engine.errors import (
    ReferenceKeyNotFoundError,
    ReferenceKindMismatchError,
    ReferenceTargetNotFoundError,
)
from kresolve.engine.lookup import InstanceCache
from kresolve.engine.references import LiteralValue, Pointer, parse_reference
from kresolve.engine.resolver import ReferenceResolver


@pytest.fixture
def populated_store(make_published) -> InMemoryOutputStore:
    store = InMemoryOutputStore()
    store.publish(
        make_published(
            "db",
            outputs={"host": "10.0.0.5", "port": 5432},
            connection={"password": "s3cret", "username": "app"},
        )
    )
    store.publish(make_published("dns", namespace="platform", outputs={"zone": "example.com"}))
    store.publish(make_published("db", namespace="platform", outputs={"host": "10.9.9.9"}))
    store.publish(
        make_published("vault", kind="Secrets", resources=["api-keys", "tls"])
    )
    store.publish(make_published("settings", kind="Configs", resources=["app"]))
    return store


def _resolver(
    store: InMemoryOutputStore, namespace: str = "team-a", **settings
) -> ReferenceResolver:
    engine_settings = EngineSettings(**settings)
    cache = InstanceCache(store, timeout=engine_settings.lookup_timeout)
    return ReferenceResolver(namespace, cache, engine_settings)


def _resolve(resolver: ReferenceResolver, raw: str):
    ref = parse_reference(raw)
    assert ref is not None
    return resolver.resolve(ref)


class TestOutputReferences:
    def test_resolves_to_literal(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "outputs/db/host") == LiteralValue("10.0.0.5")
        assert _resolve(resolver, "outputs/db/port") == LiteralValue(5432)

    def test_current_namespace_wins_over_fallback(
        self, populated_store: InMemoryOutputStore
    ) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "outputs/db/host") == LiteralValue("10.0.0.5")

    def test_falls_back_to_platform_namespace(
        self, populated_store: InMemoryOutputStore
    ) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "outputs/dns/zone") == LiteralValue("example.com")

    def test_explicit_namespace(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "platform::outputs/db/host") == LiteralValue("10.9.9.9")

    def test_custom_fallback_namespace(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store, fallback_namespace="shared")
        with pytest.raises(ReferenceTargetNotFoundError):
            _resolve(resolver, "outputs/dns/zone")

    def test_missing_target(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceTargetNotFoundError) as exc_info:
            _resolve(resolver, "outputs/cache/host")
        assert exc_info.value.namespace == "team-a"
        assert exc_info.value.retryable

    def test_missing_target_in_explicit_namespace(
        self, populated_store: InMemoryOutputStore
    ) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceTargetNotFoundError) as exc_info:
            _resolve(resolver, "other::outputs/db/host")
        assert exc_info.value.namespace == "other"

    def test_missing_key_lists_available(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceKeyNotFoundError) as exc_info:
            _resolve(resolver, "outputs/db/hostname")
        assert exc_info.value.available == ["host", "port"]
        assert "host, port" in str(exc_info.value)
        condition = exc_info.value.to_condition()
        assert condition.reason == "ReferenceKeyNotFound"
        assert condition.available_keys == ["host", "port"]


class TestConnectionReferences:
    def test_resolves_to_pointer(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "connections/db/password") == Pointer(
            resource_name="db-conn", key="password", source="secret"
        )

    def test_pointer_uses_published_secret_name(self) -> None:
        store = InMemoryOutputStore()
        store.publish(
            PublishedOutputs(
                kind="Database",
                namespace="team-a",
                instance="db",
                connection=ConnectionSecret(name="db-credentials", data={"password": "p"}),
            )
        )
        resolver = _resolver(store)
        assert _resolve(resolver, "connections/db/password") == Pointer(
            resource_name="db-credentials", key="password", source="secret"
        )

    def test_never_uses_fallback_namespace(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceTargetNotFoundError):
            _resolve(resolver, "connections/dns/password")

    def test_missing_key(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceKeyNotFoundError) as exc_info:
            _resolve(resolver, "connections/db/token")
        assert exc_info.value.available == ["password", "username"]


class TestManagedReferences:
    def test_secret_pointer(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "secrets/vault/api-keys/token") == Pointer(
            resource_name="vault-api-keys", key="token", source="secret"
        )
        assert _resolve(resolver, "secrets/vault/tls") == Pointer(
            resource_name="vault-tls", key=None, source="secret"
        )

    def test_config_pointer(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        assert _resolve(resolver, "configs/settings/app/level") == Pointer(
            resource_name="settings-app", key="level", source="config"
        )

    def test_kind_mismatch(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceKindMismatchError) as exc_info:
            _resolve(resolver, "secrets/db/creds")
        assert exc_info.value.expected == "Secrets"
        assert exc_info.value.got == "Database"

    def test_config_ref_to_secrets_instance(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceKindMismatchError):
            _resolve(resolver, "configs/vault/tls")

    def test_unknown_resource(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        with pytest.raises(ReferenceKeyNotFoundError) as exc_info:
            _resolve(resolver, "secrets/vault/ssh")
        assert exc_info.value.available == ["api-keys", "tls"]

    def test_custom_kinds(self, populated_store: InMemoryOutputStore, make_published) -> None:
        populated_store.publish(make_published("kv", kind="VaultStore", resources=["main"]))
        resolver = _resolver(populated_store, secrets_kind="VaultStore")
        assert _resolve(resolver, "secrets/kv/main").resource_name == "kv-main"


class TestResolveAll:
    def test_keyed_by_raw_text(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        refs = [
            parse_reference(r)
            for r in ("outputs/db/host", "connections/db/password", "outputs/db/host")
        ]
        resolved = resolver.resolve_all(refs)
        assert resolved == {
            "outputs/db/host": LiteralValue("10.0.0.5"),
            "connections/db/password": Pointer("db-conn", "password", "secret"),
        }

    def test_shared_targets_looked_up_once(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store, max_workers=4)
        raws = ["outputs/db/host", "outputs/db/port", "connections/db/password"]
        resolver.resolve_all([parse_reference(r) for r in raws])
        assert populated_store.lookups[("team-a", "db")] == 1

    def test_failure_propagates(self, populated_store: InMemoryOutputStore) -> None:
        resolver = _resolver(populated_store)
        refs = [parse_reference("outputs/db/host"), parse_reference("outputs/nope/host")]
        with pytest.raises(ReferenceTargetNotFoundError):
            resolver.resolve_all(refs)

    def test_empty(self, populated_store: InMemoryOutputStore) -> None:
        assert _resolver(populated_store).resolve_all([]) == {}
