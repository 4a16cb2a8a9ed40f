"""Config sources and the per-reconciliation config loader."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kresolve.config.schema import ClusterConfig, ProjectConfig
from kresolve.engine.errors import ConfigAmbiguousError, ConfigError, ConfigNotFoundError
from kresolve.engine.lookup import call_with_timeout

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

CLUSTER_SELECTOR: dict[str, str] = {"type": "cluster"}


class ConfigSource(Protocol):
    """Anything that can answer label-selector queries for config records."""

    def select(self, labels: Mapping[str, str]) -> list[dict[str, Any]]:
        """Return every record whose ``metadata.labels`` contain all of *labels*."""
        ...


def _labels_match(record: Mapping[str, Any], labels: Mapping[str, str]) -> bool:
    record_labels = (record.get("metadata") or {}).get("labels") or {}
    return all(record_labels.get(k) == v for k, v in labels.items())


def _record_name(record: Mapping[str, Any]) -> str:
    return str((record.get("metadata") or {}).get("name", "<unnamed>"))


class InMemoryConfigSource:
    """Config source backed by a list of record dicts."""

    def __init__(self, records: Iterable[dict[str, Any]] = ()) -> None:
        self._records = list(records)

    def add(self, record: dict[str, Any]) -> None:
        self._records.append(record)

    def select(self, labels: Mapping[str, str]) -> list[dict[str, Any]]:
        return [r for r in self._records if _labels_match(r, labels)]


class YamlConfigSource:
    """Config source reading every ``*.yaml`` / ``*.yml`` document in a directory.

    Files are re-read on every query, so edits become visible on the next
    reconciliation without restarting anything.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    def _documents(self) -> list[dict[str, Any]]:
        yaml = YAML(typ="safe")
        docs: list[dict[str, Any]] = []
        paths = sorted([*self._directory.glob("*.yaml"), *self._directory.glob("*.yml")])
        for path in paths:
            try:
                loaded = list(yaml.load_all(path))
            except (OSError, YAMLError) as exc:
                raise ConfigError(f"Failed to read {path}: {exc}") from exc
            docs.extend(d for d in loaded if isinstance(d, dict))
        return docs

    def select(self, labels: Mapping[str, str]) -> list[dict[str, Any]]:
        return [r for r in self._documents() if _labels_match(r, labels)]


def project_name_for(namespace: str) -> str:
    """Derive the project label value for a namespace (one project per namespace)."""
    return namespace


def project_selector(namespace: str) -> dict[str, str]:
    return {"type": "project", "project": project_name_for(namespace)}


@dataclass(frozen=True)
class LoadedConfig:
    cluster: ClusterConfig
    project: ProjectConfig | None


class ConfigLoader:
    """Fetches cluster and project configs for one reconciliation.

    Results are memoised on the loader; build a new loader for every pass so
    that config changes are picked up.
    """

    def __init__(self, source: ConfigSource, *, timeout: float) -> None:
        self._source = source
        self._timeout = timeout
        self._cache: dict[str, LoadedConfig] = {}

    def _select(self, selector: dict[str, str]) -> list[dict[str, Any]]:
        what = f"config selector {','.join(f'{k}={v}' for k, v in sorted(selector.items()))}"
        return call_with_timeout(lambda: self._source.select(selector), self._timeout, what)

    def load_cluster(self) -> ClusterConfig:
        records = self._select(CLUSTER_SELECTOR)
        if not records:
            raise ConfigNotFoundError(CLUSTER_SELECTOR)
        if len(records) > 1:
            raise ConfigAmbiguousError(CLUSTER_SELECTOR, sorted(map(_record_name, records)))
        try:
            return ClusterConfig.from_record(records[0])
        except ValidationError as exc:
            raise ConfigError(f"Invalid cluster config {_record_name(records[0])}: {exc}") from exc

    def load_project(self, namespace: str) -> ProjectConfig | None:
        selector = project_selector(namespace)
        records = self._select(selector)
        if not records:
            logger.debug("No project config for namespace %s", namespace)
            return None
        if len(records) > 1:
            raise ConfigAmbiguousError(selector, sorted(map(_record_name, records)))
        try:
            return ProjectConfig.from_record(records[0])
        except ValidationError as exc:
            raise ConfigError(f"Invalid project config {_record_name(records[0])}: {exc}") from exc

    def load(self, namespace: str) -> LoadedConfig:
        cached = self._cache.get(namespace)
        if cached is not None:
            return cached
        loaded = LoadedConfig(cluster=self.load_cluster(), project=self.load_project(namespace))
        self._cache[namespace] = loaded
        logger.debug(
            "Loaded config for %s: cluster=%s project=%s",
            namespace,
            loaded.cluster.name,
            loaded.project.name if loaded.project else None,
        )
        return loaded
