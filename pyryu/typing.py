"""Common types used across the codebase."""

import enum
from dataclasses import dataclass, field, replace
from typing import ClassVar, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple


@dataclass(frozen=True)
class LogEntry:
    """A commit in a trunk..bookmark range."""
    commit_id: str
    parents: Tuple[str, ...] = ()
    subject: str = ""

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


@dataclass(frozen=True)
class LocalBookmark:
    """A bookmark as read from the repository, before any stacking."""
    name: str
    commit_id: str
    subject: str = ""
    body: str = ""


@dataclass(frozen=True)
class GitRemote:
    """A git remote."""
    name: str
    url: str


@dataclass(frozen=True)
class Bookmark:
    """A bookmark placed in the stack graph.

    ``parent`` is the bookmark immediately below this one, or None when the
    bookmark sits directly on trunk. ``remote_commit_id`` is the tip of the
    same-named branch on the remote, or None when the branch is not there.
    """
    name: str
    commit_id: str
    parent: Optional[str] = None
    remote_commit_id: Optional[str] = None
    subject: str = ""
    body: str = ""

    @property
    def has_remote(self) -> bool:
        return self.remote_commit_id is not None

    @property
    def is_synced(self) -> bool:
        return self.remote_commit_id == self.commit_id

    @property
    def title(self) -> str:
        """Pull request title for this bookmark."""
        return self.subject or self.name


@dataclass(frozen=True)
class Stack:
    """Linear chain of bookmarks, trunk-most first.

    ``base`` is the branch the bottom bookmark targets: None for trunk, or a
    bookmark name when the stack was cut down to a single bookmark.
    """
    bookmarks: Tuple[Bookmark, ...]
    base: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.bookmarks:
            raise ValueError("A stack needs at least one bookmark")
        if self.bookmarks[0].parent != self.base:
            raise ValueError(
                f"Bottom bookmark {self.bookmarks[0].name} has parent "
                f"{self.bookmarks[0].parent!r}, expected {self.base!r}")
        for below, above in zip(self.bookmarks, self.bookmarks[1:]):
            if above.parent != below.name:
                raise ValueError(
                    f"Bookmark {above.name} has parent {above.parent!r}, expected {below.name!r}")

    def __iter__(self) -> Iterator[Bookmark]:
        return iter(self.bookmarks)

    def __len__(self) -> int:
        return len(self.bookmarks)

    def __getitem__(self, index: int) -> Bookmark:
        return self.bookmarks[index]

    @property
    def tip(self) -> Bookmark:
        return self.bookmarks[-1]

    def names(self) -> List[str]:
        return [b.name for b in self.bookmarks]

    def narrow(self, names: Sequence[str]) -> 'Stack':
        """Keep only the named bookmarks, re-chained in stack order."""
        wanted = set(names)
        unknown = wanted.difference(self.names())
        if unknown:
            raise ValueError(f"Not in stack: {', '.join(sorted(unknown))}")
        kept: List[Bookmark] = []
        parent = self.base
        for bookmark in self.bookmarks:
            if bookmark.name in wanted:
                kept.append(replace(bookmark, parent=parent))
                parent = bookmark.name
        return Stack(tuple(kept), base=self.base)


class Platform(str, enum.Enum):
    GITHUB = "github"
    GITLAB = "gitlab"


@dataclass(frozen=True)
class PlatformConfig:
    """Where the pull requests of a repository live."""
    platform: Platform
    owner: str
    repo: str
    # None for the public instance (github.com / gitlab.com)
    host: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class PRState(str, enum.Enum):
    """Pull request state as seen by the tool."""
    OPEN = "open"
    DRAFT = "draft"
    MERGED = "merged"
    CLOSED = "closed"

    @property
    def is_active(self) -> bool:
        return self in (PRState.OPEN, PRState.DRAFT)


@dataclass(frozen=True)
class RemotePullRequest:
    """Pull request (or merge request) on the hosting provider."""
    number: int
    head_branch: str
    base_branch: str
    state: PRState = PRState.OPEN
    body: str = ""
    url: str = ""
    title: str = ""

    @property
    def is_active(self) -> bool:
        return self.state.is_active


@dataclass
class RemoteStackState:
    """Existing pull requests for one stack, keyed by bookmark name."""
    pull_requests: Dict[str, Optional[RemotePullRequest]] = field(default_factory=dict)
    # Pull request of the branch under the stack when that is not trunk
    base_pull_request: Optional[RemotePullRequest] = None

    def get(self, name: str) -> Optional[RemotePullRequest]:
        return self.pull_requests.get(name)


@dataclass(frozen=True)
class PrComment:
    """A comment on a pull request."""
    id: int
    body: str


class CommentOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class Action:
    """A single idempotent unit of planned work."""
    bookmark: Bookmark
    phase: ClassVar[int] = 1

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class PushRef(Action):
    def describe(self) -> str:
        return f"push {self.bookmark.name} ({self.bookmark.commit_id[:8]})"


@dataclass(frozen=True)
class CreatePullRequest(Action):
    base: str
    title: str
    body: str = ""
    draft: bool = False

    def describe(self) -> str:
        draft = " [draft]" if self.draft else ""
        return f"create PR {self.bookmark.name} -> {self.base}{draft}: {self.title}"


@dataclass(frozen=True)
class UpdatePullRequestBase(Action):
    pr: RemotePullRequest
    new_base: str

    def describe(self) -> str:
        return (f"update PR #{self.pr.number} ({self.bookmark.name}) base "
                f"{self.pr.base_branch} -> {self.new_base}")


@dataclass(frozen=True)
class PublishPullRequest(Action):
    pr: RemotePullRequest

    def describe(self) -> str:
        return f"publish draft PR #{self.pr.number} ({self.bookmark.name})"


@dataclass(frozen=True)
class UpsertStackComment(Action):
    """Write the stack comment once every entry has a pull request number.

    ``stack_bookmarks`` names the bookmarks whose pull requests are listed, in
    stack order; their numbers are resolved at execution time because some of
    them may only be created during phase 1.
    """
    stack_bookmarks: Tuple[str, ...]
    current_index: int
    phase: ClassVar[int] = 2

    def describe(self) -> str:
        entries = ", ".join(
            f"*{name}*" if i == self.current_index else name
            for i, name in enumerate(self.stack_bookmarks))
        return f"sync stack comment on {self.bookmark.name} [{entries}]"


@dataclass
class Plan:
    """Ordered actions for one stack, split into the two execution phases."""
    stack: Stack
    trunk: str
    phase1: List[Action] = field(default_factory=list)
    phase2: List[UpsertStackComment] = field(default_factory=list)
    # Bookmarks left alone because --update-only found no pull request
    skipped: List[str] = field(default_factory=list)
    # Bookmarks whose pull request is merged or closed
    synced: List[str] = field(default_factory=list)

    @property
    def actions(self) -> List[Action]:
        return [*self.phase1, *self.phase2]

    @property
    def is_noop(self) -> bool:
        """True when nothing but (possibly unchanged) stack comments is planned."""
        return not self.phase1


class Outcome(str, enum.Enum):
    """Per-bookmark outcome of executing a plan."""
    NOOP = "noop"
    PUSHED = "pushed"
    CREATED = "created"
    BASE_UPDATED = "baseUpdated"
    PUBLISHED = "published"
    COMMENT_UPDATED = "commentUpdated"
    SYNCED = "synced"
    SKIPPED_NO_EXISTING_PR = "skippedNoExistingPR"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"


class ExecutionState(str, enum.Enum):
    PLANNED = "planned"
    PHASE1_RUNNING = "phase1_running"
    PHASE1_COMPLETE = "phase1_complete"
    PHASE2_RUNNING = "phase2_running"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BookmarkResult:
    """What happened to one bookmark during a run."""
    name: str
    outcomes: List[Outcome] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    # Problems worth reporting that did not stop the bookmark
    warnings: List[str] = field(default_factory=list)
    pull_request: Optional[RemotePullRequest] = None

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def add(self, outcome: Outcome) -> None:
        if outcome not in self.outcomes:
            self.outcomes.append(outcome)


@dataclass
class SubmissionResult:
    """Result of reconciling one stack."""
    stack_name: str
    state: ExecutionState = ExecutionState.PLANNED
    bookmarks: Dict[str, BookmarkResult] = field(default_factory=dict)
    plan: Optional[Plan] = None
    # Failure that prevented the stack from being planned at all
    error: Optional[Exception] = None
    executed: bool = False

    @property
    def success(self) -> bool:
        if self.error is not None or self.state == ExecutionState.FAILED:
            return False
        return not any(r.failed for r in self.bookmarks.values())

    def bookmark(self, name: str) -> BookmarkResult:
        if name not in self.bookmarks:
            self.bookmarks[name] = BookmarkResult(name)
        return self.bookmarks[name]


@dataclass
class SubmissionReport:
    """Aggregated results, one slot per stack."""
    results: List[Optional[SubmissionResult]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r is not None and r.success for r in self.results)

    def completed(self) -> List[SubmissionResult]:
        return [r for r in self.results if r is not None]


class GitInterface(Protocol):
    """What the stack engine needs from the version-control collaborator."""

    def list_bookmarks(self) -> List[LocalBookmark]:
        ...

    def commits_between(self, base_ref: str, commit_id: str) -> List[LogEntry]:
        """Commits reachable from commit_id but not base_ref, newest first."""
        ...

    def remote_tips(self, remote: str) -> Dict[str, str]:
        ...

    def remote_tip(self, remote: str, name: str) -> Optional[str]:
        ...

    def push(self, remote: str, commit_id: str, name: str) -> None:
        ...
