"""Error types raised by pyryu."""

from typing import List, Optional, Sequence


class RyuError(Exception):
    """Base class for all pyryu errors."""


class NoSuchBookmark(RyuError):
    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        message = f"No such bookmark: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class AmbiguousStack(RyuError):
    """The requested bookmark does not resolve to one linear chain."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Bookmark {name} is not part of a linear stack: {reason}")


class MissingParentPullRequest(RyuError):
    def __init__(self, name: str, parent: str) -> None:
        self.name = name
        self.parent = parent
        super().__init__(
            f"Cannot submit {name} on its own: parent bookmark {parent} has no open pull request. "
            f"Submit {parent} first.")


class AuthUnavailable(RyuError):
    def __init__(self, provider: str, sources: Sequence[str]) -> None:
        self.provider = provider
        self.sources: List[str] = list(sources)
        super().__init__(
            f"No {provider} authentication found. Tried: {', '.join(self.sources)}")


class ProviderError(RyuError):
    """A provider call failed. status_code is None for transport failures."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        self.message = message
        status = status_code if status_code is not None else "network"
        super().__init__(f"[{status}] {message}")


class RemoteStateUnavailable(RyuError):
    def __init__(self, name: str, cause: Exception) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Could not read pull request state for {name}: {cause}")


class GitError(RyuError):
    """A git command failed."""


class UnsupportedRemote(RyuError):
    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(
            f"Remote {url} is not a GitHub or GitLab repository "
            f"(set GH_HOST or GITLAB_HOST for self-hosted instances)")


class RemoteNotFound(RyuError):
    def __init__(self, name: str, available: Sequence[str]) -> None:
        self.name = name
        super().__init__(
            f"Remote '{name}' not found. Available remotes: {', '.join(available) or '(none)'}")


class Interrupted(RyuError):
    def __init__(self) -> None:
        super().__init__("Interrupted before this action was started")
