"""Detect the hosting platform from a git remote URL."""

import os
import re
from typing import Optional
from urllib.parse import urlparse

from ..errors import UnsupportedRemote
from ..typing import Platform, PlatformConfig

SSH_RE = re.compile(r"^(?:ssh://)?[^@/]+@([^:/]+)[:/](.+?)(?:\.git)?/?$")
HTTPS_RE = re.compile(r"^https?://[^/]+/(.+?)(?:\.git)?/?$")

def extract_hostname(url: str) -> Optional[str]:
    match = SSH_RE.match(url)
    if match and not url.startswith(("http://", "https://")):
        return match.group(1)
    parsed = urlparse(url)
    return parsed.hostname

def detect_platform(url: str) -> Optional[Platform]:
    """GitHub or GitLab, judging by the remote's hostname. None if neither."""
    hostname = extract_hostname(url)
    if not hostname:
        return None
    gh_host = os.environ.get("GH_HOST")
    gitlab_host = os.environ.get("GITLAB_HOST")
    if hostname == "github.com" or hostname.endswith(".github.com") or hostname == gh_host:
        return Platform.GITHUB
    if hostname == "gitlab.com" or hostname.endswith(".gitlab.com") or hostname == gitlab_host:
        return Platform.GITLAB
    return None

def parse_repo_info(url: str) -> PlatformConfig:
    """Parse owner and repository out of an SSH or HTTPS remote URL.

    GitLab owners may be nested groups, so everything up to the last path
    component is the owner.
    """
    platform = detect_platform(url)
    if platform is None:
        raise UnsupportedRemote(url)

    if url.startswith(("http://", "https://")):
        match = HTTPS_RE.match(url)
        path = match.group(1) if match else None
    else:
        match = SSH_RE.match(url)
        path = match.group(2) if match else None
    parts = path.split("/") if path else []
    if len(parts) < 2:
        raise UnsupportedRemote(url)

    hostname = extract_hostname(url)
    public = "github.com" if platform == Platform.GITHUB else "gitlab.com"
    host = hostname if hostname and hostname != public else None
    return PlatformConfig(platform, "/".join(parts[:-1]), parts[-1], host)
