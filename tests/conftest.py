"""Pytest configuration and fixtures for packsmith tests.

Keeps tests away from the user's real cache and environment, and restores the
CLI output stream that some tests redirect.
"""

import sys
from pathlib import Path

import pytest

from packsmith import output


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the default cache at a temp dir and clear packsmith env overrides."""
    cache_dir = tmp_path_factory.mktemp("packsmith-cache")
    monkeypatch.setenv("PACKSMITH_CACHE_DIR", str(cache_dir))
    monkeypatch.delenv("PACKSMITH_DOWNLOAD_SERVER", raising=False)
    monkeypatch.delenv("PACKSMITH_DEV_MODE", raising=False)
    return cache_dir


@pytest.fixture(autouse=True)
def _restore_output_stream():
    """Send CLI output back to stdout after each test."""
    yield
    output._output_stream = sys.stdout
    output.set_verbose(False)
