"""GitLab implementation on top of the REST API (v4)."""

import logging
import re
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import PlatformService
from ..errors import ProviderError
from ..typing import PlatformConfig, PrComment, PRState, RemotePullRequest

if TYPE_CHECKING:
    from ..auth import AuthConfig

logger = logging.getLogger(__name__)

DEFAULT_HOST = "gitlab.com"
REQUEST_TIMEOUT = 30
PER_PAGE = 100
DRAFT_PREFIX = "Draft: "
DRAFT_PREFIX_RE = re.compile(r"^\s*(?:\[draft\]|\(draft\)|draft:|wip:)\s*", re.IGNORECASE)

def strip_draft_prefix(title: str) -> str:
    return DRAFT_PREFIX_RE.sub("", title, count=1)

def error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason or "request failed"
    if isinstance(data, dict):
        message = data.get("message") or data.get("error") or data
        if isinstance(message, list):
            return "; ".join(str(m) for m in message)
        return str(message)
    return str(data)

def to_remote_pull_request(mr: Dict[str, Any]) -> RemotePullRequest:
    state = mr.get("state")
    if state in ("opened", "locked"):
        draft = mr.get("draft") or mr.get("work_in_progress")
        pr_state = PRState.DRAFT if draft else PRState.OPEN
    elif state == "merged":
        pr_state = PRState.MERGED
    else:
        pr_state = PRState.CLOSED
    return RemotePullRequest(
        number=mr["iid"],
        head_branch=mr["source_branch"],
        base_branch=mr["target_branch"],
        state=pr_state,
        body=mr.get("description") or "",
        url=mr.get("web_url") or "",
        title=mr.get("title") or "",
    )

class GitLabService(PlatformService):
    """Merge requests on gitlab.com or a self-hosted GitLab."""
    name = "gitlab"
    reference_prefix = "!"

    def __init__(self, config: PlatformConfig, auth: Optional['AuthConfig'] = None,
                 session: Optional[requests.Session] = None, timeout: int = REQUEST_TIMEOUT):
        super().__init__(config, auth)
        self._session = session
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return f"https://{self.config.host or DEFAULT_HOST}/api/v4"

    @property
    def project_path(self) -> str:
        return f"/projects/{quote(self.config.full_name, safe='')}"

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            session = requests.Session()
            session.headers.update({
                "PRIVATE-TOKEN": self.resolve_token(),
                "Accept": "application/json",
            })
            self._session = session
        return self._session

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(None, str(e)) from e
        if not response.ok:
            raise ProviderError(response.status_code, error_message(response))
        return response

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._send(method, path, **kwargs)
        if not response.content:
            return None
        return response.json()

    def _paginate(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """GET every page of a list endpoint, following X-Next-Page."""
        items: List[Dict[str, Any]] = []
        page = "1"
        while page:
            response = self._send("GET", path, params={**params, "per_page": PER_PAGE, "page": page})
            if response.content:
                items.extend(response.json())
            page = response.headers.get("X-Next-Page", "")
        return items

    def _mr_path(self, number: int) -> str:
        return f"{self.project_path}/merge_requests/{number}"

    def find_pull_request_by_head(self, head: str) -> Optional[RemotePullRequest]:
        logger.debug(f"> gitlab find merge request for {head}")
        mrs = self._paginate(f"{self.project_path}/merge_requests", {"source_branch": head})
        found = [to_remote_pull_request(mr) for mr in mrs if mr.get("source_branch") == head]
        if not found:
            return None
        active = [mr for mr in found if mr.is_active]
        return active[0] if active else found[0]

    def create_pull_request(self, head: str, base: str, title: str, body: str = "",
                            draft: bool = False) -> RemotePullRequest:
        logger.info(f"> gitlab create {head} -> {base}{' (draft)' if draft else ''} : {title}")
        payload = {
            "source_branch": head,
            "target_branch": base,
            "title": f"{DRAFT_PREFIX}{title}" if draft else title,
            "description": body,
        }
        return to_remote_pull_request(
            self._request("POST", f"{self.project_path}/merge_requests", json=payload))

    def update_base(self, pr: RemotePullRequest, new_base: str) -> RemotePullRequest:
        logger.info(f"> gitlab update !{pr.number} base -> {new_base}")
        mr = self._request("PUT", self._mr_path(pr.number), json={"target_branch": new_base})
        return to_remote_pull_request(mr)

    def publish(self, pr: RemotePullRequest) -> RemotePullRequest:
        logger.info(f"> gitlab ready for review !{pr.number}")
        current = self._request("GET", self._mr_path(pr.number))
        title = strip_draft_prefix(current.get("title") or pr.title)
        mr = self._request("PUT", self._mr_path(pr.number), json={"title": title})
        return replace(to_remote_pull_request(mr), state=PRState.OPEN)

    def list_comments(self, pr: RemotePullRequest) -> List[PrComment]:
        notes = self._paginate(f"{self._mr_path(pr.number)}/notes", {})
        return [PrComment(n["id"], n.get("body") or "") for n in notes if not n.get("system")]

    def create_comment(self, pr: RemotePullRequest, body: str) -> None:
        self._request("POST", f"{self._mr_path(pr.number)}/notes", json={"body": body})

    def update_comment(self, pr: RemotePullRequest, comment_id: int, body: str) -> None:
        self._request("PUT", f"{self._mr_path(pr.number)}/notes/{comment_id}", json={"body": body})

    def whoami(self) -> str:
        return self._request("GET", "/user")["username"]
