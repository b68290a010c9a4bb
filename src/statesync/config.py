"""Engine configuration for statesync."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from statesync.exceptions import StateConfigError

_logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "app_state"

StorageKind = Literal["memory", "local", "session"]


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def normalize_persistent_keys(keys: Any) -> tuple[str, ...] | None:
    """Validate a persistent-key filter.

    ``None`` means "persist everything". A non-empty list or tuple of
    non-empty strings is accepted in order. Anything else (a bare string,
    a set, an empty list, a list holding a non-string or blank entry) is
    logged and rejected by falling back to ``None``.
    """
    if keys is None:
        return None
    if not isinstance(keys, (list, tuple)):
        _logger.warning("Ignoring persistent keys of type %s; persisting everything", type(keys).__name__)
        return None
    normalized: list[str] = []
    for key in keys:
        if not isinstance(key, str) or not key.strip():
            _logger.warning("Ignoring persistent keys containing %r; persisting everything", key)
            return None
        normalized.append(key.strip())
    return tuple(normalized) or None


class StateSyncConfig(BaseModel):
    """Engine configuration.

    Parameters
    ----------
    storage_key : str
        Key the serialized state is stored under. Defaults to ``"app_state"``.
    persistence_enabled : bool
        Save on every state-changing write and seed the tree from storage
        at construction. Defaults to ``False``.
    persistent_keys : tuple of str or None
        Dot-notation paths to persist. ``None`` (the default) persists the
        whole tree. Empty, non-list or otherwise invalid input is coerced
        to ``None``.
    storage : {"memory", "local", "session"}
        Backend used when no adapter is injected. Defaults to ``"memory"``.
    storage_dir : Path or None
        Directory for the ``"local"`` backend. Defaults to ``~/.statesync``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    storage_key: str = Field(default=DEFAULT_STORAGE_KEY, min_length=1)
    persistence_enabled: bool = False
    persistent_keys: tuple[str, ...] | None = None
    storage: StorageKind = "memory"
    storage_dir: Path | None = None

    @field_validator("persistent_keys", mode="before")
    @classmethod
    def _normalize_persistent_keys(cls, value: Any) -> tuple[str, ...] | None:
        return normalize_persistent_keys(value)

    @classmethod
    def create(cls, **kwargs: Any) -> StateSyncConfig:
        """Build a config, raising :class:`StateConfigError` on invalid input."""
        try:
            return cls(**kwargs)
        except ValidationError as exc:
            raise StateConfigError(str(exc)) from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> StateSyncConfig:
        """Create configuration from environment variables.

        Reads ``STATESYNC_STORAGE_KEY``, ``STATESYNC_PERSISTENCE_ENABLED``,
        ``STATESYNC_PERSISTENT_KEYS`` (comma-separated paths),
        ``STATESYNC_STORAGE`` and ``STATESYNC_STORAGE_DIR``. Explicit
        keyword arguments override environment values.

        Raises
        ------
        StateConfigError
            If the resulting configuration is invalid.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        key_env = env.get("STATESYNC_STORAGE_KEY")
        if key_env is not None:
            config_kwargs["storage_key"] = key_env

        if "persistence_enabled" not in overrides:
            config_kwargs["persistence_enabled"] = _env_bool(env.get("STATESYNC_PERSISTENCE_ENABLED"), False)

        keys_env = env.get("STATESYNC_PERSISTENT_KEYS")
        if keys_env is not None and "persistent_keys" not in overrides:
            parts: Sequence[str] = [part.strip() for part in keys_env.split(",") if part.strip()]
            config_kwargs["persistent_keys"] = list(parts) or None

        storage_env = env.get("STATESYNC_STORAGE")
        if storage_env is not None:
            config_kwargs["storage"] = storage_env.strip().lower()

        dir_env = env.get("STATESYNC_STORAGE_DIR")
        if dir_env is not None:
            config_kwargs["storage_dir"] = Path(dir_env).expanduser()

        config_kwargs.update(overrides)
        return cls.create(**config_kwargs)
