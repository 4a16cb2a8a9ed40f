"""Engine settings resolved from kwargs, environment and ``.env`` files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from kresolve.engine.errors import ConfigError

logger = logging.getLogger(__name__)


class EngineSettings(BaseSettings):
    """Tunables for one resolution engine.

    Fields can be set via constructor kwargs or environment variables with the
    ``KRESOLVE_`` prefix.  Constructor kwargs take precedence.
    """

    model_config = SettingsConfigDict(env_prefix="KRESOLVE_", extra="ignore")

    lookup_timeout: float = Field(default=5.0, gt=0)
    fallback_namespace: str = "platform"
    secrets_kind: str = "Secrets"
    configs_kind: str = "Configs"
    max_workers: int = Field(default=4, ge=1)
    field_manager: str = "kresolve"


# Field name → environment variable.
_SETTINGS_ENV_MAP: dict[str, str] = {
    name: f"KRESOLVE_{name.upper()}" for name in EngineSettings.model_fields
}


def load_settings(config_dir: Path | str | None = None, **overrides: Any) -> EngineSettings:
    """Resolve settings from kwargs, env vars, and a ``.env`` file.

    Priority (highest wins): kwargs > env var > ``.env`` file in *config_dir*.

    Raises:
        ConfigError: If a resolved value fails validation.
    """
    dotenv_vals: dict[str, str | None] = {}
    if config_dir is not None:
        env_file = Path(config_dir) / ".env"
        if env_file.is_file():
            dotenv_vals = dotenv_values(env_file, encoding="utf-8-sig")
            logger.debug("Read %d value(s) from %s", len(dotenv_vals), env_file)

    resolved: dict[str, Any] = {}
    for field, env_key in _SETTINGS_ENV_MAP.items():
        val = overrides.get(field)
        if val is None:
            val = os.environ.get(env_key)
        if val is None:
            val = dotenv_vals.get(env_key)
        if val is not None:
            resolved[field] = val

    unknown = sorted(set(overrides) - set(_SETTINGS_ENV_MAP))
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")

    try:
        return EngineSettings(**resolved)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
