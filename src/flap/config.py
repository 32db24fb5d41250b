"""Configuration system for flap.

Configuration decides which matcher interprets plain string patterns in
`Guard.when("$..user", ...)`, and how guards are named in dispatch logs.
The matcher is resolved when a clause is built, never when a guard is
called, so a constructed guard keeps its behavior regardless of later
configuration changes. The name prefix only affects logs and is read when
a logged dispatch starts.

Design Note: Pydantic vs Dataclass Usage
----------------------------------------
This module uses Pydantic BaseModel for `FlapSettings` because:
- It validates user-provided configuration from pyproject.toml
- It parses and coerces TOML/env data into typed Python objects
- It provides helpful error messages for invalid config

See logging.py and clause.py for contrast - those use dataclasses for
internal types where validation overhead is not needed.
"""

from __future__ import annotations

import os
import sys
import threading
import warnings
from contextvars import ContextVar
from pathlib import Path
from types import TracebackType
from typing import Any, TypedDict

# Self is 3.11+; use typing_extensions for 3.10
if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

from pydantic import BaseModel, ConfigDict, field_validator, ValidationError as PydanticValidationError

from flap._pyproject import TOMLDecodeError, find_pyproject, flap_table, load_pyproject
from flap.exceptions import FlapConfigError


# Environment variable names for configuration
ENV_MATCHER = "FLAP_MATCHER"
ENV_NAME_PREFIX = "FLAP_NAME_PREFIX"

DEFAULT_MATCHER = "jsonpath"

# Keys allowed directly under [tool.flap]; sub-tables are owned by other modules
_KNOWN_FILE_KEYS = {"matcher", "name_prefix", "logging"}


# Thread Safety Notes:
# --------------------
# _config_context: Thread-safe via ContextVar (each thread/async context gets its own value)
#
# _process_default: NOT thread-safe. set_as_default() should be called during application
# startup before spawning threads.
#
# _file_config_cache, _env_config_cache: Protected by _config_cache_lock. Once initialized,
# the cached Config objects are immutable and safe to read concurrently.

_config_context: ContextVar[Config | None] = ContextVar("flap_config", default=None)
_process_default: Config | None = None
_file_config_cache: Config | None = None
_env_config_cache: Config | None = None
_config_cache_lock = threading.Lock()


class FlapSettingsDict(TypedDict, total=False):
    """TypedDict for settings with explicit key hints."""

    matcher: str
    """Registered matcher name used for string patterns (e.g. 'jmespath')."""

    name_prefix: str | None
    """Prefix prepended to guard names in dispatch logs (e.g. 'billing.')."""


class FlapSettings(BaseModel):
    """Validated flap settings.

    Example:
        FlapSettings(matcher="jmespath", name_prefix="billing.")
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    matcher: str = DEFAULT_MATCHER
    """Name of the matcher that compiles plain string patterns."""

    name_prefix: str | None = None
    """Prefix prepended to guard names in dispatch logs."""

    @field_validator("matcher")
    @classmethod
    def normalize_matcher(cls, v: str) -> str:
        """Strip and lowercase the matcher name; reject unregistered names."""
        # Import here to avoid circular import (matcher resolves the default via config)
        from flap.matcher import available_matchers

        v = v.strip().lower()
        if not v:
            raise ValueError("Matcher name cannot be empty")
        names = available_matchers()
        if v not in names:
            raise ValueError(f"Unknown matcher '{v}'. Available: {names}")
        return v

    @field_validator("name_prefix")
    @classmethod
    def normalize_name_prefix(cls, v: str | None) -> str | None:
        """Treat a blank prefix as no prefix."""
        if v is None or not v.strip():
            return None
        return v.strip()


class Config:
    """Immutable configuration container.

    Supports context manager for scoped overrides and process-level defaults.

    Example:
        config = Config({"matcher": "jmespath"})

        with config:
            g = guard(handle).when("user.id", on_user)  # compiled as JMESPath

        with Config(name_prefix="billing."):
            route(invoice)  # logged as "billing.route"
    """

    def __init__(
        self,
        settings: FlapSettings | FlapSettingsDict | None = None,
        **overrides: Any,
    ) -> None:
        """Create config.

        Args:
            settings: FlapSettings instance or a dict with the same keys.
                      Only keys given explicitly take part in merging.
            **overrides: Individual settings applied on top of `settings`.

        Raises:
            pydantic.ValidationError: If a setting is invalid.
        """
        if settings is None:
            base = FlapSettings()
        elif isinstance(settings, dict):
            base = FlapSettings.model_validate(settings)
        else:
            base = settings
        if overrides:
            explicit = base.model_dump(include=set(base.model_fields_set))
            base = FlapSettings.model_validate({**explicit, **overrides})
        self._settings = base
        self._token: Any = None  # contextvars.Token, private implementation detail

    @property
    def settings(self) -> FlapSettings:
        return self._settings

    @property
    def matcher(self) -> str:
        """Name of the default matcher for string patterns."""
        return self._settings.matcher

    @property
    def name_prefix(self) -> str | None:
        """Prefix for guard names in dispatch logs, if any."""
        return self._settings.name_prefix

    def _explicit(self) -> dict[str, Any]:
        return self._settings.model_dump(include=set(self._settings.model_fields_set))

    def __enter__(self) -> Self:
        """Push this config onto the context stack."""
        self._token = _config_context.set(self)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Pop this config from the context stack."""
        if self._token is not None:
            _config_context.reset(self._token)
            self._token = None

    def set_as_default(self) -> None:
        """Set as process-level default (below context, above env and file config).

        Thread Safety:
            This method is NOT thread-safe. It should be called during
            application startup before spawning threads.
        """
        global _process_default
        _process_default = self

    def merge(self, other: Config) -> Config:
        """Merge another config on top of this one.

        Only settings that `other` set explicitly override those of `self`.

        Returns:
            A new Config with merged settings.
        """
        merged = {**self._explicit(), **other._explicit()}
        # Both sides are already validated
        return Config(FlapSettings.model_construct(_fields_set=set(merged), **merged))

    @classmethod
    def from_file(cls, path: Path | str | None = None) -> Config:
        """Load config from the [tool.flap] table of pyproject.toml.

        Args:
            path: Path to pyproject.toml. If None, searches from cwd upward.

        Returns:
            Config from file, or empty Config if not found.

        Example pyproject.toml:
            [tool.flap]
            matcher = "jmespath"
            name_prefix = "billing."
        """
        if path is not None:
            pyproject_path = Path(path)
        else:
            pyproject_path = find_pyproject()

        if pyproject_path is None or not pyproject_path.exists():
            return cls()

        try:
            data = load_pyproject(pyproject_path, strict=True)
        except TOMLDecodeError as e:
            warnings.warn(
                f"Failed to parse {pyproject_path}: {e}. "
                "Flap configuration will be ignored.",
                stacklevel=2,
            )
            return cls()

        tool_config = flap_table(data)
        if not tool_config:
            return cls()

        if not isinstance(tool_config, dict):
            raise FlapConfigError(
                f"Invalid config for [tool.flap] in {pyproject_path}: "
                f"expected a table/dict, got {type(tool_config).__name__}"
            )

        unknown = set(tool_config.keys()) - _KNOWN_FILE_KEYS
        if unknown:
            warnings.warn(
                f"Unknown fields in [tool.flap]: {unknown}",
                stacklevel=2,
            )

        settings = {k: v for k, v in tool_config.items() if k != "logging"}
        try:
            return cls(FlapSettings.model_validate(settings))
        except PydanticValidationError as e:
            error_details = []
            for error in e.errors():
                loc = ".".join(str(x) for x in error["loc"]) if error["loc"] else "root"
                error_details.append(f"  - {loc}: {error['msg']}")

            raise FlapConfigError(
                f"Invalid config for [tool.flap] in {pyproject_path}:\n"
                + "\n".join(error_details)
            ) from e

    @classmethod
    def from_env(cls) -> Config:
        """Load config from environment variables.

        - FLAP_MATCHER: default matcher name (e.g. 'jmespath')
        - FLAP_NAME_PREFIX: prefix for guard names in dispatch logs

        Blank values are ignored. Invalid values are ignored with a warning.
        """
        settings: dict[str, Any] = {}
        for key, env_name in (("matcher", ENV_MATCHER), ("name_prefix", ENV_NAME_PREFIX)):
            value = os.environ.get(env_name, "").strip()
            if not value:
                continue
            try:
                FlapSettings.model_validate({key: value})
            except PydanticValidationError as e:
                warnings.warn(
                    f"Ignoring invalid {env_name}={value!r}: {e.errors()[0]['msg']}",
                    stacklevel=2,
                )
                continue
            settings[key] = value
        return cls(FlapSettings.model_validate(settings))

    @classmethod
    def current(cls) -> Config:
        """Get the currently active config.

        Resolution order (highest priority first):
        1. Active context (from `with config:`)
        2. Process default (from `config.set_as_default()`)
        3. Environment variables (FLAP_*, cached)
        4. File config (from pyproject.toml, cached)
        """
        global _file_config_cache, _env_config_cache

        with _config_cache_lock:
            if _file_config_cache is None:
                _file_config_cache = cls.from_file()
            if _env_config_cache is None:
                _env_config_cache = cls.from_env()

        base = _file_config_cache.merge(_env_config_cache)

        if _process_default is not None:
            base = base.merge(_process_default)

        context_config = _config_context.get()
        if context_config is not None:
            base = base.merge(context_config)

        return base

    def __repr__(self) -> str:
        if self.name_prefix is None:
            return f"Config(matcher={self.matcher!r})"
        return f"Config(matcher={self.matcher!r}, name_prefix={self.name_prefix!r})"


def current_config() -> Config:
    """Get the currently active config."""
    return Config.current()


def clear_config_cache() -> None:
    """Clear the cached file and environment configuration.

    Forces the next call to Config.current() to reload from pyproject.toml
    and environment variables. Does NOT clear programmatic config set via
    set_as_default() or active context managers.
    """
    global _file_config_cache, _env_config_cache
    with _config_cache_lock:
        _file_config_cache = None
        _env_config_cache = None


__all__ = [
    "Config",
    "FlapSettings",
    "FlapSettingsDict",
    "current_config",
    "clear_config_cache",
    "DEFAULT_MATCHER",
    "ENV_MATCHER",
    "ENV_NAME_PREFIX",
]
