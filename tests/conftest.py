"""Shared pytest fixtures for the hardhat-shield test suite.

The fake adapters themselves live in ``tests/fakes.py``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeChain, FakeHardhat, FakeInstaller
from hardhat_shield.config import Config


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An existing, empty project directory."""
    path = tmp_path / "token-project"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Config with no project directory resolved yet and no RPC probe."""
    return Config(manifest_dir=tmp_path, check_rpc=False)


@pytest.fixture
def resolved_config(config: Config, project_dir: Path) -> Config:
    """Config whose project directory has already been chosen."""
    config.project_dir = project_dir
    return config


@pytest.fixture
def installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def hardhat() -> FakeHardhat:
    return FakeHardhat()


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()
