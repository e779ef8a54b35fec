"""Hosting platform interfaces.

GitHub pull requests and GitLab merge requests are both handled through
PlatformService, so the submission engine never needs to know which one it is
talking to.
"""

import logging
from typing import TYPE_CHECKING, ClassVar, List, Optional

from ..submit.comments import is_managed_comment
from ..typing import CommentOutcome, Platform, PlatformConfig, PrComment, RemotePullRequest
from ..util import ensure

if TYPE_CHECKING:
    from ..auth import AuthConfig

# Get module logger
logger = logging.getLogger(__name__)

class PlatformService:
    """Operations the submission engine needs from a hosting platform.

    Subclasses implement the individual API calls; comment upserting is built
    on top of them here. Every call fails with ProviderError on a non-2xx
    response or transport failure.
    """
    name: ClassVar[str] = ""
    # Prefix used to cross-reference a pull request in markdown
    reference_prefix: ClassVar[str] = "#"

    def __init__(self, config: PlatformConfig, auth: Optional['AuthConfig'] = None):
        self.config = config
        self._auth = auth

    def resolve_token(self) -> str:
        """Token for API calls, resolved through the auth chain on first use."""
        if self._auth is None:
            from ..auth import resolve_auth
            self._auth = resolve_auth(self.config)
            logger.debug(f"Using {self.name} token from {self._auth.source}")
        return self._auth.token

    @property
    def auth(self) -> 'AuthConfig':
        self.resolve_token()
        return ensure(self._auth)

    def find_pull_request_by_head(self, head: str) -> Optional[RemotePullRequest]:
        raise NotImplementedError

    def create_pull_request(self, head: str, base: str, title: str, body: str = "",
                            draft: bool = False) -> RemotePullRequest:
        raise NotImplementedError

    def update_base(self, pr: RemotePullRequest, new_base: str) -> RemotePullRequest:
        raise NotImplementedError

    def publish(self, pr: RemotePullRequest) -> RemotePullRequest:
        """Mark a draft pull request ready for review."""
        raise NotImplementedError

    def list_comments(self, pr: RemotePullRequest) -> List[PrComment]:
        raise NotImplementedError

    def create_comment(self, pr: RemotePullRequest, body: str) -> None:
        raise NotImplementedError

    def update_comment(self, pr: RemotePullRequest, comment_id: int, body: str) -> None:
        raise NotImplementedError

    def whoami(self) -> str:
        """Login of the authenticated user."""
        raise NotImplementedError

    def reference(self, number: int) -> str:
        return f"{self.reference_prefix}{number}"

    def upsert_managed_comment(self, pr: RemotePullRequest, body: str) -> CommentOutcome:
        """Create or update the single tool-managed comment on a pull request.

        The managed comment is found by its footer marker. An existing comment
        with an identical body is left alone.
        """
        existing = next((c for c in self.list_comments(pr) if is_managed_comment(c.body)), None)
        if existing is None:
            logger.info(f"> {self.name} add stack comment {self.reference(pr.number)}")
            self.create_comment(pr, body)
            return CommentOutcome.CREATED
        if existing.body == body:
            logger.debug(f"Stack comment on {self.reference(pr.number)} is up to date")
            return CommentOutcome.UNCHANGED
        logger.info(f"> {self.name} update stack comment {self.reference(pr.number)}")
        self.update_comment(pr, existing.id, body)
        return CommentOutcome.UPDATED

def create_platform_service(config: PlatformConfig, auth: Optional['AuthConfig'] = None) -> PlatformService:
    """Build the service for the platform a remote points at."""
    if config.platform == Platform.GITHUB:
        from .github import GitHubService
        return GitHubService(config, auth)
    from .gitlab import GitLabService
    return GitLabService(config, auth)
