"""Centralized test configuration and fixtures.

This module provides shared fixtures that reset all global state between tests,
addressing test pollution issues from shared module-level state.

Global state that must be reset:
- config_module._file_config_cache / _env_config_cache
- config_module._process_default
- config_module._config_context (ContextVar)
- logging_module._process_logging_config
- logging_module._file_logging_config_cache / _file_logging_config_loaded
- logging_module._logging_config (ContextVar)
- logging_module._trace_context (ContextVar)
- logging_module._handler_failure_warned
- matcher_module._registry
"""

from contextvars import ContextVar

import pytest

import flap.config as config_module
import flap.logging as logging_module
import flap.matcher as matcher_module


def _reset_module_state() -> None:
    # Reset config module state
    config_module._file_config_cache = None
    config_module._env_config_cache = None
    config_module._process_default = None

    # Reset logging module state
    logging_module._process_logging_config = None
    logging_module._file_logging_config_cache = None
    logging_module._file_logging_config_loaded = False
    logging_module._handler_failure_warned.clear()


@pytest.fixture(autouse=True)
def reset_all_global_state(monkeypatch):
    """Reset all global state before/after each test.

    A single autouse fixture keeps cleanup consistent across test files.
    """
    monkeypatch.delenv(config_module.ENV_MATCHER, raising=False)
    monkeypatch.delenv(config_module.ENV_NAME_PREFIX, raising=False)

    # === BEFORE TEST ===
    _reset_module_state()
    # Recreate ContextVars to ensure clean state (reset to default)
    config_module._config_context = ContextVar("flap_config", default=None)
    logging_module._logging_config = ContextVar("logging_config", default=None)
    logging_module._trace_context = ContextVar("trace", default=None)
    registry_snapshot = dict(matcher_module._registry)

    yield

    # === AFTER TEST ===
    _reset_module_state()
    matcher_module._registry.clear()
    matcher_module._registry.update(registry_snapshot)


@pytest.fixture
def add3():
    """Plain three-argument sum used as a guarded base function."""

    def add3(a, b, c):
        return a + b + c

    return add3


@pytest.fixture
def pyproject(tmp_path, monkeypatch):
    """Write a pyproject.toml into a temp dir and chdir into it.

    Returns a function taking the file contents.
    """

    def write(contents: str):
        path = tmp_path / "pyproject.toml"
        path.write_text(contents)
        monkeypatch.chdir(tmp_path)
        return path

    return write
