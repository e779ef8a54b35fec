"""Git interfaces and implementation.

Bookmarks live in the colocated git store as local branches, so everything
the stack engine needs from version control can be read with plain git.
"""

import os
import logging
from typing import Dict, List, Optional
import git
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from ..errors import GitError
from ..typing import GitRemote, LocalBookmark, LogEntry
from ..config.models import RyuConfig

# Get module logger
logger = logging.getLogger(__name__)

# for-each-ref field and record separators
FIELD_SEP = "\x00"
RECORD_SEP = "\x1e"
BOOKMARK_FORMAT = "%(refname:short)%00%(objectname)%00%(contents:subject)%00%(contents:body)%1e"
LOG_FORMAT = "%H%x00%P%x00%s"

def parse_bookmarks(output: str) -> List[LocalBookmark]:
    """Parse for-each-ref output produced with BOOKMARK_FORMAT."""
    bookmarks: List[LocalBookmark] = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        fields = record.split(FIELD_SEP)
        if len(fields) < 2:
            logger.warning(f"Skipping unparseable ref record: {record!r}")
            continue
        fields += [""] * (4 - len(fields))
        name, commit_id, subject, body = fields[:4]
        bookmarks.append(LocalBookmark(name, commit_id, subject.strip(), body.strip()))
    return bookmarks

def parse_log(output: str) -> List[LogEntry]:
    """Parse log output produced with LOG_FORMAT. Order is preserved."""
    entries: List[LogEntry] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        commit_id, parents, subject = (line.split(FIELD_SEP) + ["", ""])[:3]
        entries.append(LogEntry(commit_id, tuple(parents.split()), subject))
    return entries

def parse_ls_remote(output: str) -> Dict[str, str]:
    """Parse `git ls-remote --heads` output into branch name -> commit id."""
    tips: Dict[str, str] = {}
    for line in output.splitlines():
        parts = line.split()
        if len(parts) != 2 or not parts[1].startswith("refs/heads/"):
            continue
        tips[parts[1][len("refs/heads/"):]] = parts[0]
    return tips

class RealGit:
    """Real Git implementation."""
    def __init__(self, config: RyuConfig, path: Optional[str] = None):
        """Initialize with config and the directory to operate in."""
        self.config: RyuConfig = config
        self.path = path or os.getcwd()
        self._repo: Optional[git.Repo] = None

    @property
    def repo(self) -> git.Repo:
        if self._repo is None:
            try:
                self._repo = git.Repo(self.path, search_parent_directories=True)
            except (InvalidGitRepositoryError, NoSuchPathError):
                raise GitError(f"Not in a git repository: {self.path}")
        return self._repo

    @property
    def root(self) -> str:
        """Top-level directory of the working tree."""
        return self.repo.working_tree_dir or self.path

    def git(self, *args: str, quiet: bool = False) -> str:
        """Run git with separate arguments, failing with GitError."""
        cmd_str = " ".join(args)
        if quiet and not self.config.user.log_git_commands:
            logger.debug(f"> git {cmd_str}")
        else:
            logger.info(f"> git {cmd_str}")
        try:
            method = getattr(self.repo.git, args[0].replace('-', '_'))
            result = method(*args[1:])
            return result if isinstance(result, str) else str(result)
        except GitCommandError as e:
            raise GitError(f"Git command failed: {e}") from e

    def list_bookmarks(self) -> List[LocalBookmark]:
        output = self.git("for-each-ref", f"--format={BOOKMARK_FORMAT}", "refs/heads", quiet=True)
        return parse_bookmarks(output)

    def commits_between(self, base_ref: str, commit_id: str) -> List[LogEntry]:
        """Commits reachable from commit_id but not from base_ref, newest first."""
        output = self.git("log", "--topo-order", f"--format={LOG_FORMAT}",
                          f"{base_ref}..{commit_id}", quiet=True)
        return parse_log(output)

    def remote_tips(self, remote: str) -> Dict[str, str]:
        """Branch tips on the remote, read from the remote itself."""
        return parse_ls_remote(self.git("ls-remote", "--heads", remote, quiet=True))

    def remote_tip(self, remote: str, name: str) -> Optional[str]:
        tips = parse_ls_remote(self.git("ls-remote", "--heads", remote, f"refs/heads/{name}", quiet=True))
        return tips.get(name)

    def push(self, remote: str, commit_id: str, name: str) -> None:
        self.git("push", "--force", remote, f"{commit_id}:refs/heads/{name}")

    def remotes(self) -> List[GitRemote]:
        return [GitRemote(r.name, r.url) for r in self.repo.remotes]

    def remote_url(self, remote: str) -> Optional[str]:
        for r in self.remotes():
            if r.name == remote:
                return r.url
        return None

    def default_trunk(self, remote: str) -> str:
        """Trunk branch name: the remote's HEAD, else main or master."""
        try:
            head = self.git("symbolic-ref", "--short", f"refs/remotes/{remote}/HEAD", quiet=True).strip()
            if head.startswith(f"{remote}/"):
                return head[len(remote) + 1:]
        except GitError:
            logger.debug(f"{remote}/HEAD is not set")
        local = {b.name for b in self.list_bookmarks()}
        for candidate in ("main", "master", "trunk"):
            if candidate in local:
                return candidate
        return "main"

    def trunk_ref(self, remote: str, trunk: str) -> str:
        """Revision to stack on: the remote-tracking trunk when it exists."""
        try:
            self.git("rev-parse", "--verify", "--quiet", f"refs/remotes/{remote}/{trunk}", quiet=True)
            return f"{remote}/{trunk}"
        except GitError:
            return trunk
