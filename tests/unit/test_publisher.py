"""Tests for computing and publishing instance outputs."""

from __future__ import annotations

from typing import Any

import pytest

from kresolve.core.store import InMemoryOutputStore
from kresolve.engine.errors import UnpublishableValueError
from kresolve.engine.publisher import OutputPublisher
from kresolve.engine.references import LiteralValue, Pointer
from kresolve.engine.values import ResolvedField
from kresolve.resources.base import WorkloadInstance
from kresolve.resources.composition import Composition

_COMPOSITION = Composition.model_validate(
    {
        "kind": "Database",
        "resources": [
            {
                "name": "db",
                "kind": "StatefulSet",
                "patches": [
                    {"field": "host", "to": "spec.host"},
                    {"field": "port", "to": "spec.port", "default": 5432},
                    {"field": "password", "to": "spec.password"},
                    {"field": "options", "to": "spec.options"},
                ],
            },
            {"name": "backup", "kind": "CronJob"},
        ],
        "publish": [
            {"key": "host", "from_field": "host"},
            {"key": "port", "from_field": "port"},
            {"key": "password", "from_field": "password", "sensitive": True},
            {"key": "options", "from_field": "options", "sensitive": True},
        ],
    }
)

_INSTANCE = WorkloadInstance(kind="Database", name="db", namespace="team-a")


def _values(**values: Any) -> dict[str, ResolvedField]:
    return {k: ResolvedField(path=k, value=v) for k, v in values.items()}


@pytest.fixture
def store() -> InMemoryOutputStore:
    return InMemoryOutputStore()


@pytest.fixture
def publisher(store: InMemoryOutputStore) -> OutputPublisher:
    return OutputPublisher(_INSTANCE, _COMPOSITION, store, manager="kresolve")


class TestCompute:
    def test_splits_literal_and_sensitive(self, publisher: OutputPublisher) -> None:
        published = publisher.compute(
            _values(host="10.0.0.5", port=5432, password="s3cret", options={"ssl": True}), {}
        )
        assert published.outputs == {"host": "10.0.0.5", "port": 5432}
        assert published.connection.name == "db-conn"
        assert published.connection.data == {"options": '{"ssl":true}', "password": "s3cret"}
        assert published.resources == ["backup", "db"]
        assert published.address == "team-a/db"

    def test_unset_fields_are_left_out(self, publisher: OutputPublisher) -> None:
        published = publisher.compute(_values(port=5432), {})
        assert published.outputs == {"port": 5432}
        assert published.connection.data == {}

    def test_literal_references_are_published(self, publisher: OutputPublisher) -> None:
        refs = {"outputs/net/ip": LiteralValue("10.1.1.1")}
        published = publisher.compute(_values(host="outputs/net/ip"), refs)
        assert published.outputs["host"] == "10.1.1.1"

    def test_pointer_cannot_be_published(self, publisher: OutputPublisher) -> None:
        refs = {"secrets/vault/db/password": Pointer("vault-db", "password", "secret")}
        with pytest.raises(UnpublishableValueError) as exc_info:
            publisher.compute(_values(password="secrets/vault/db/password"), refs)
        assert exc_info.value.key == "password"
        assert not exc_info.value.retryable


class TestPublish:
    def test_overwrites_and_bumps_generation(
        self, publisher: OutputPublisher, store: InMemoryOutputStore
    ) -> None:
        first = publisher.publish(publisher.compute(_values(host="a", port=1), {}))
        second = publisher.publish(publisher.compute(_values(host="b"), {}))

        assert first.generation == 1
        assert second.generation == 2
        stored = store.read("team-a", "db")
        assert stored is not None
        # Full overwrite: the stale "port" key is gone.
        assert stored.outputs == {"host": "b"}

    def test_connection_manifest(self, publisher: OutputPublisher) -> None:
        published = publisher.compute(_values(password="s3cret"), {})
        manifest = publisher.connection_manifest(published)
        assert manifest["kind"] == "Secret"
        assert manifest["metadata"]["name"] == "db-conn"
        assert manifest["metadata"]["namespace"] == "team-a"
        assert manifest["stringData"] == {"password": "s3cret"}
