"""Tests for token resolution."""

import subprocess
from pathlib import Path
from typing import Any, List

import pytest

from pyryu import auth
from pyryu.auth import get_github_auth, get_gitlab_auth, gh_hosts_token, resolve_auth, setup_instructions
from pyryu.errors import AuthUnavailable
from pyryu.typing import Platform, PlatformConfig


class FakeRun:
    """Replacement for subprocess.run that records invocations."""

    def __init__(self, stdout: str = "", returncode: int = 0, missing: bool = False, timeout: bool = False):
        self.stdout = stdout
        self.returncode = returncode
        self.missing = missing
        self.timeout = timeout
        self.calls: List[List[str]] = []

    def __call__(self, args: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append(list(args))
        if self.missing:
            raise FileNotFoundError(args[0])
        if self.timeout:
            raise subprocess.TimeoutExpired(args, kwargs.get("timeout", 10))
        return subprocess.CompletedProcess(args, self.returncode, self.stdout, "not logged in")


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


class TestGitHubAuth:

    def test_cli_token_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = FakeRun("gho_cli\n")
        monkeypatch.setattr(auth.subprocess, "run", run)
        monkeypatch.setenv("GITHUB_TOKEN", "from-env")

        config = get_github_auth()
        assert config.token == "gho_cli"
        assert config.source == "gh auth token"
        assert config.host == "github.com"
        assert run.calls == [["gh", "auth", "token"]]

    def test_enterprise_host_is_passed_to_cli(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = FakeRun("ghe_token")
        monkeypatch.setattr(auth.subprocess, "run", run)
        config = get_github_auth("github.example.com")
        assert run.calls == [["gh", "auth", "token", "--hostname", "github.example.com"]]
        assert config.host == "github.example.com"

    def test_env_fallback_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(returncode=1))
        monkeypatch.setenv("GH_TOKEN", "second")
        assert get_github_auth().source == "GH_TOKEN"

        monkeypatch.setenv("GITHUB_TOKEN", "first")
        config = get_github_auth()
        assert config.token == "first"
        assert config.source == "GITHUB_TOKEN"

    def test_empty_env_var_is_skipped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(returncode=1))
        monkeypatch.setenv("GITHUB_TOKEN", "")
        monkeypatch.setenv("GH_TOKEN", "second")
        assert get_github_auth().token == "second"

    def test_timeout_falls_through(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(timeout=True))
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert get_github_auth().source == "GITHUB_TOKEN"

    def test_missing_gh_reads_hosts_file(self, monkeypatch: pytest.MonkeyPatch, home: Path) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(missing=True))
        hosts = home / ".config" / "gh" / "hosts.yml"
        hosts.parent.mkdir(parents=True)
        hosts.write_text("github.com:\n  oauth_token: gho_file\n  user: octocat\n")
        assert get_github_auth().token == "gho_file"

    def test_nothing_found(self, monkeypatch: pytest.MonkeyPatch, home: Path) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(missing=True))
        with pytest.raises(AuthUnavailable) as exc_info:
            get_github_auth()
        assert exc_info.value.sources == ["gh auth token", "GITHUB_TOKEN", "GH_TOKEN"]
        assert "GH_TOKEN" in str(exc_info.value)

    def test_gh_host_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(returncode=1))
        monkeypatch.setenv("GH_HOST", "git.corp.example")
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert get_github_auth().host == "git.corp.example"


class TestGitLabAuth:

    def test_cli_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        run = FakeRun("glpat-cli")
        monkeypatch.setattr(auth.subprocess, "run", run)
        config = get_gitlab_auth()
        assert config.token == "glpat-cli"
        assert run.calls == [["glab", "auth", "token", "--hostname", "gitlab.com"]]

    def test_env_fallback_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(missing=True))
        monkeypatch.setenv("GL_TOKEN", "second")
        monkeypatch.setenv("GITLAB_TOKEN", "first")
        assert get_gitlab_auth().source == "GITLAB_TOKEN"

    def test_nothing_found(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(auth.subprocess, "run", FakeRun(missing=True))
        with pytest.raises(AuthUnavailable) as exc_info:
            get_gitlab_auth()
        assert exc_info.value.provider == "GitLab"
        assert exc_info.value.sources == ["glab auth token", "GITLAB_TOKEN", "GL_TOKEN"]


def test_resolve_auth_uses_platform_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(auth.subprocess, "run", FakeRun(missing=True))
    monkeypatch.setenv("GITLAB_TOKEN", "token")
    config = resolve_auth(PlatformConfig(Platform.GITLAB, "group/sub", "repo", "gitlab.example.com"))
    assert config.host == "gitlab.example.com"


def test_hosts_file_without_entry(tmp_path: Path) -> None:
    path = tmp_path / "hosts.yml"
    path.write_text("github.example.com:\n  oauth_token: other\n")
    assert gh_hosts_token("github.com", path) is None
    assert gh_hosts_token("github.example.com", path) == "other"


def test_setup_instructions_name_the_variables() -> None:
    assert "GITHUB_TOKEN" in setup_instructions(Platform.GITHUB)
    assert "glab auth login" in setup_instructions(Platform.GITLAB)
