"""Configuration sources, settings and a convenience reconciler factory."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from kresolve.config.loader import (
    ConfigLoader,
    ConfigSource,
    InMemoryConfigSource,
    LoadedConfig,
    YamlConfigSource,
    project_name_for,
)
from kresolve.config.schema import ClusterConfig, EnvironmentMetadata, ProjectConfig
from kresolve.config.settings import EngineSettings, load_settings
from kresolve.engine.errors import ConfigError

if TYPE_CHECKING:
    from kresolve.engine.engine import Reconciler

__all__ = [
    "ClusterConfig",
    "ConfigError",
    "ConfigLoader",
    "ConfigSource",
    "EngineSettings",
    "EnvironmentMetadata",
    "InMemoryConfigSource",
    "LoadedConfig",
    "ProjectConfig",
    "YamlConfigSource",
    "build_reconciler",
    "load_settings",
    "project_name_for",
]

_DEFAULT_STORE_DIR = ".kresolve-state"


def build_reconciler(
    config_dir: Path | str,
    *,
    store_dir: Path | str | None = None,
    **settings: Any,
) -> Reconciler:
    """Build a file-backed ``Reconciler`` from a config directory.

    Layout::

        <config_dir>/.env             optional KRESOLVE_* settings
        <config_dir>/configs/         cluster and project config records
        <config_dir>/compositions/    one composition per YAML document

    Published outputs are stored under *store_dir* (default
    ``<config_dir>/.kresolve-state``).
    """
    from kresolve.core.store import FileOutputStore
    from kresolve.engine.engine import Reconciler
    from kresolve.resources.loader import load_compositions

    config_dir = Path(config_dir)
    if not config_dir.is_dir():
        raise ConfigError(f"Config directory not found: {config_dir}")
    engine_settings = load_settings(config_dir, **settings)
    store_root = Path(store_dir) if store_dir is not None else config_dir / _DEFAULT_STORE_DIR
    return Reconciler(
        config_source=YamlConfigSource(config_dir / "configs"),
        store=FileOutputStore(store_root, lock_timeout=engine_settings.lookup_timeout),
        registry=load_compositions(config_dir / "compositions"),
        settings=engine_settings,
    )
