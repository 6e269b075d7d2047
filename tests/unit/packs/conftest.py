"""Fixtures for pack installation tests."""

from pathlib import Path

import pytest

from packsmith.config import InstallerConfig

from .fakes import TEST_SERVER, DeferredExecutor, ImmediateExecutor


@pytest.fixture
def immediate_executor() -> ImmediateExecutor:
    return ImmediateExecutor()


@pytest.fixture
def deferred_executor() -> DeferredExecutor:
    return DeferredExecutor()


@pytest.fixture
def config(tmp_path: Path) -> InstallerConfig:
    """Installer config pointing at a fake server and a per-test cache."""
    return InstallerConfig(download_server=TEST_SERVER, cache_root=tmp_path / "cache")
