"""
Pytest configuration for toolrunner tests
"""

import sys
from pathlib import Path

import pytest

# Ensure the parent directory is in the Python path for imports
parent_dir = Path(__file__).resolve().parent.parent
if str(parent_dir) not in sys.path:
    sys.path.insert(0, str(parent_dir))

import utils.env as env_config  # noqa: E402
from toolrunner import registry as registry_module  # noqa: E402

# Ensure tests operate with runtime environment rather than .env overrides during imports
env_config.reload_env({"TOOLRUNNER_FORCE_ENV_OVERRIDE": "false"})


@pytest.fixture(autouse=True)
def disable_force_env_override(monkeypatch):
    """Default tests to runtime environment visibility unless they explicitly opt in."""

    monkeypatch.setenv("TOOLRUNNER_FORCE_ENV_OVERRIDE", "false")
    env_config.reload_env({"TOOLRUNNER_FORCE_ENV_OVERRIDE": "false"})
    try:
        yield
    finally:
        env_config.reload_env()


@pytest.fixture(autouse=True)
def isolated_registry(monkeypatch, tmp_path):
    """Keep user-level tool definitions and the cached registry out of tests."""

    monkeypatch.delenv(registry_module.CONFIG_ENV_VAR, raising=False)
    monkeypatch.setattr(registry_module, "USER_CONFIG_DIR", tmp_path / "user-tools")
    registry_module.reset_registry()
    try:
        yield
    finally:
        registry_module.reset_registry()
