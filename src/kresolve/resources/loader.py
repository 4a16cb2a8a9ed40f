"""YAML composition loading."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from kresolve.engine.errors import ConfigError
from kresolve.engine.registry import CompositionRegistry
from kresolve.resources.composition import Composition

logger = logging.getLogger(__name__)


def _composition_files(path: Path) -> list[Path]:
    if path.is_dir():
        return sorted([*path.glob("*.yaml"), *path.glob("*.yml")])
    return [path]


def _read_documents(path: Path) -> list[Any]:
    try:
        return [d for d in YAML(typ="safe").load_all(path) if d is not None]
    except (OSError, YAMLError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc


def load_compositions(path: Path | str) -> CompositionRegistry:
    """Load compositions from a YAML file or a directory of YAML files.

    Each YAML document is one composition.

    Raises:
        ConfigError: On YAML parse errors, validation failures or duplicate kinds.
    """
    path = Path(path)
    registry = CompositionRegistry()
    for file in _composition_files(path):
        for raw in _read_documents(file):
            try:
                composition = Composition.model_validate(raw)
            except ValidationError as exc:
                raise ConfigError(f"Invalid composition in {file}: {exc}") from exc
            try:
                registry.register(composition)
            except ValueError as exc:
                raise ConfigError(f"{file}: {exc}") from exc
            logger.debug("Registered composition %s from %s", composition.kind, file)

    logger.info("Loaded %d composition(s) from %s", len(registry), path)
    return registry
