"""Shared fixtures."""

import pytest

from pyryu.config import Config, default_config
from pyryu.tests.fakes import FakeGit, FakePlatform


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def config() -> Config:
    return default_config()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host overrides and tokens from the developer's shell out of tests."""
    for name in ("GH_HOST", "GITLAB_HOST", "GITHUB_TOKEN", "GH_TOKEN", "GITLAB_TOKEN", "GL_TOKEN"):
        monkeypatch.delenv(name, raising=False)
