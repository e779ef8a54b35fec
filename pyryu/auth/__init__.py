"""Token resolution for GitHub and GitLab.

Each platform tries its own CLI helper first, then two environment variables.
The first non-empty token wins.
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import yaml

from ..errors import AuthUnavailable
from ..typing import Platform, PlatformConfig

# Get module logger
logger = logging.getLogger(__name__)

CLI_TIMEOUT = 10

@dataclass(frozen=True)
class AuthConfig:
    """A resolved token and where it came from."""
    token: str
    source: str
    host: str

TokenSource = Tuple[str, Callable[[], Optional[str]]]

def _run_helper(args: List[str]) -> Optional[str]:
    """Run a CLI helper and return its trimmed stdout, or None on failure.

    Raises FileNotFoundError when the helper is not installed.
    """
    logger.debug(f"> {' '.join(args)}")
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=CLI_TIMEOUT)
    except subprocess.TimeoutExpired:
        logger.debug(f"{args[0]} timed out")
        return None
    if result.returncode != 0:
        logger.debug(f"{args[0]} exited with {result.returncode}: {result.stderr.strip()}")
        return None
    return result.stdout.strip() or None

def gh_hosts_token(host: str, config_path: Optional[Path] = None) -> Optional[str]:
    """oauth_token stored by gh in ~/.config/gh/hosts.yml."""
    path = config_path or Path.home() / ".config" / "gh" / "hosts.yml"
    try:
        with open(path, "r") as f:
            hosts = yaml.safe_load(f)
    except FileNotFoundError:
        return None
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error reading gh CLI config {path}: {e}")
        return None
    if not isinstance(hosts, dict):
        return None
    entry = hosts.get(host)
    if isinstance(entry, dict):
        token = entry.get("oauth_token")
        if isinstance(token, str) and token:
            return token
    return None

def gh_cli_token(host: str) -> Optional[str]:
    args = ["gh", "auth", "token"]
    if host != "github.com":
        args += ["--hostname", host]
    try:
        return _run_helper(args)
    except FileNotFoundError:
        logger.debug("gh is not installed, checking its hosts.yml")
        return gh_hosts_token(host)

def glab_cli_token(host: str) -> Optional[str]:
    try:
        return _run_helper(["glab", "auth", "token", "--hostname", host])
    except FileNotFoundError:
        logger.debug("glab is not installed")
        return None

def _env(name: str) -> Callable[[], Optional[str]]:
    return lambda: os.environ.get(name) or None

def _resolve(provider: str, host: str, sources: List[TokenSource]) -> AuthConfig:
    tried: List[str] = []
    for name, lookup in sources:
        tried.append(name)
        token = lookup()
        if token:
            logger.debug(f"Found {provider} token from {name}")
            return AuthConfig(token=token, source=name, host=host)
    raise AuthUnavailable(provider, tried)

def get_github_auth(host: Optional[str] = None) -> AuthConfig:
    """gh auth token, then GITHUB_TOKEN, then GH_TOKEN."""
    host = host or os.environ.get("GH_HOST") or "github.com"
    return _resolve("GitHub", host, [
        ("gh auth token", lambda: gh_cli_token(host)),
        ("GITHUB_TOKEN", _env("GITHUB_TOKEN")),
        ("GH_TOKEN", _env("GH_TOKEN")),
    ])

def get_gitlab_auth(host: Optional[str] = None) -> AuthConfig:
    """glab auth token, then GITLAB_TOKEN, then GL_TOKEN."""
    host = host or os.environ.get("GITLAB_HOST") or "gitlab.com"
    return _resolve("GitLab", host, [
        ("glab auth token", lambda: glab_cli_token(host)),
        ("GITLAB_TOKEN", _env("GITLAB_TOKEN")),
        ("GL_TOKEN", _env("GL_TOKEN")),
    ])

def resolve_auth(config: PlatformConfig) -> AuthConfig:
    if config.platform == Platform.GITHUB:
        return get_github_auth(config.host)
    return get_gitlab_auth(config.host)

def setup_instructions(platform: Platform) -> str:
    if platform == Platform.GITHUB:
        return "\n".join([
            "GitHub Authentication Setup",
            "",
            "Option 1: GitHub CLI (recommended)",
            "  Install: https://cli.github.com/",
            "  Run: gh auth login",
            "",
            "Option 2: Environment variable",
            "  export GITHUB_TOKEN=<personal access token>  (or GH_TOKEN)",
            "",
            "For GitHub Enterprise:",
            "  Set GH_HOST to your instance hostname",
        ])
    return "\n".join([
        "GitLab Authentication Setup",
        "",
        "Option 1: GitLab CLI (glab)",
        "  Install: https://gitlab.com/gitlab-org/cli",
        "  Run: glab auth login",
        "",
        "Option 2: Environment variable",
        "  export GITLAB_TOKEN=<personal access token>  (or GL_TOKEN)",
        "",
        "For self-hosted GitLab:",
        "  Set GITLAB_HOST to your instance hostname",
    ])
