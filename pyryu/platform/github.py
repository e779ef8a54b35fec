"""GitHub implementation on top of PyGithub."""

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import requests
from github import Auth, Github, GithubException
from github.PullRequest import PullRequest as PyGithubPullRequest
from github.Repository import Repository

from . import PlatformService
from ..errors import ProviderError
from ..typing import PlatformConfig, PrComment, PRState, RemotePullRequest

if TYPE_CHECKING:
    from ..auth import AuthConfig

logger = logging.getLogger(__name__)

def api_base_url(host: Optional[str]) -> Optional[str]:
    """REST base URL for GitHub Enterprise hosts; None for github.com."""
    if host is None:
        return None
    return f"https://{host}/api/v3"

def error_message(e: GithubException) -> str:
    data = e.data
    if isinstance(data, dict) and data.get("message"):
        message = str(data["message"])
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            details = [err.get("message", str(err)) if isinstance(err, dict) else str(err) for err in errors]
            message = f"{message}: {'; '.join(details)}"
        return message
    return str(e)

@contextmanager
def provider_errors() -> Iterator[None]:
    """Translate PyGithub and transport failures into ProviderError."""
    try:
        yield
    except GithubException as e:
        raise ProviderError(e.status, error_message(e)) from e
    except requests.RequestException as e:
        raise ProviderError(None, str(e)) from e

def to_remote_pull_request(pr: PyGithubPullRequest) -> RemotePullRequest:
    if pr.merged_at is not None:
        state = PRState.MERGED
    elif pr.state == "closed":
        state = PRState.CLOSED
    elif pr.draft:
        state = PRState.DRAFT
    else:
        state = PRState.OPEN
    return RemotePullRequest(
        number=pr.number,
        head_branch=pr.head.ref,
        base_branch=pr.base.ref,
        state=state,
        body=pr.body or "",
        url=pr.html_url or "",
        title=pr.title or "",
    )

class GitHubService(PlatformService):
    """Pull requests on github.com or a GitHub Enterprise host."""
    name = "github"
    reference_prefix = "#"

    def __init__(self, config: PlatformConfig, auth: Optional['AuthConfig'] = None,
                 client: Optional[Github] = None):
        super().__init__(config, auth)
        self._client = client
        self._repo: Optional[Repository] = None

    @property
    def client(self) -> Github:
        if self._client is None:
            kwargs: Dict[str, Any] = {"auth": Auth.Token(self.resolve_token())}
            base_url = api_base_url(self.config.host)
            if base_url:
                kwargs["base_url"] = base_url
            self._client = Github(**kwargs)
        return self._client

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            with provider_errors():
                self._repo = self.client.get_repo(self.config.full_name)
        return self._repo

    def _get_pull(self, number: int) -> PyGithubPullRequest:
        with provider_errors():
            return self.repo.get_pull(number)

    def find_pull_request_by_head(self, head: str) -> Optional[RemotePullRequest]:
        logger.debug(f"> github find pull request for {head}")
        with provider_errors():
            pulls = [
                to_remote_pull_request(pr)
                for pr in self.repo.get_pulls(state="all", head=f"{self.config.owner}:{head}")
                if pr.head.ref == head
            ]
        if not pulls:
            return None
        # An open pull request wins over older merged or closed ones
        active = [pr for pr in pulls if pr.is_active]
        return active[0] if active else pulls[0]

    def create_pull_request(self, head: str, base: str, title: str, body: str = "",
                            draft: bool = False) -> RemotePullRequest:
        logger.info(f"> github create {head} -> {base}{' (draft)' if draft else ''} : {title}")
        with provider_errors():
            pr = self.repo.create_pull(base=base, head=head, title=title, body=body, draft=draft)
            return to_remote_pull_request(pr)

    def update_base(self, pr: RemotePullRequest, new_base: str) -> RemotePullRequest:
        logger.info(f"> github update #{pr.number} base -> {new_base}")
        gh_pr = self._get_pull(pr.number)
        with provider_errors():
            gh_pr.edit(base=new_base)
        return replace(to_remote_pull_request(gh_pr), base_branch=new_base)

    def publish(self, pr: RemotePullRequest) -> RemotePullRequest:
        logger.info(f"> github ready for review #{pr.number}")
        gh_pr = self._get_pull(pr.number)
        with provider_errors():
            gh_pr.mark_ready_for_review()
        return replace(pr, state=PRState.OPEN)

    def list_comments(self, pr: RemotePullRequest) -> List[PrComment]:
        gh_pr = self._get_pull(pr.number)
        with provider_errors():
            return [PrComment(c.id, c.body or "") for c in gh_pr.get_issue_comments()]

    def create_comment(self, pr: RemotePullRequest, body: str) -> None:
        gh_pr = self._get_pull(pr.number)
        with provider_errors():
            gh_pr.create_issue_comment(body)

    def update_comment(self, pr: RemotePullRequest, comment_id: int, body: str) -> None:
        gh_pr = self._get_pull(pr.number)
        with provider_errors():
            gh_pr.get_issue_comment(comment_id).edit(body)

    def whoami(self) -> str:
        with provider_errors():
            return self.client.get_user().login
