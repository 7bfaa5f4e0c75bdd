"""Shared fixtures: a scripted git double and run configuration."""

import os

import pytest

from clonefleet.config import SyncConfig, SyncMode
from clonefleet.core.stats import StatsAggregator

from tests.fakes import FakeGit


@pytest.fixture
def git():
    return FakeGit()


@pytest.fixture
def stats():
    return StatsAggregator()


@pytest.fixture
def output_dir(tmp_path):
    root = tmp_path / "out"
    root.mkdir()
    return str(root)


@pytest.fixture
def make_config(output_dir):
    """Factory for a config rooted in a temporary directory."""
    def _make(**overrides) -> SyncConfig:
        overrides.setdefault("mode", SyncMode.STANDARD)
        return SyncConfig(output_dir=output_dir, **overrides)
    return _make


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every CLONEFLEET_* variable from the environment."""
    for name in list(os.environ):
        if name.startswith("CLONEFLEET_"):
            monkeypatch.delenv(name)
    return monkeypatch
