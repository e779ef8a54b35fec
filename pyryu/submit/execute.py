"""Plan execution.

Phase 1 pushes branches and mutates pull requests strictly in stack order.
Phase 2 waits for all of it, re-reads the pull requests phase 1 created, and
then writes the stack comment on every pull request in the stack.
"""

import logging
import threading
from typing import Dict, List, Optional, Set

from ..errors import Interrupted, ProviderError, RyuError
from ..platform import PlatformService
from ..typing import (
    Action, CommentOutcome, CreatePullRequest, ExecutionState, GitInterface, Outcome, Plan,
    PublishPullRequest, PushRef, RemotePullRequest, RemoteStackState, SubmissionResult,
    UpdatePullRequestBase, UpsertStackComment,
)
from .comments import render_stack_comment

logger = logging.getLogger(__name__)

class StackExecutor:
    """Runs the plan of one stack against git and the hosting platform."""

    def __init__(self, git_cmd: GitInterface, platform: PlatformService, remote: str,
                 cancel: Optional[threading.Event] = None):
        self.git_cmd = git_cmd
        self.platform = platform
        self.remote = remote
        self.cancel = cancel or threading.Event()

    def _transition(self, result: SubmissionResult, state: ExecutionState) -> None:
        logger.debug(f"{result.stack_name}: {result.state.value} -> {state.value}")
        result.state = state

    def execute(self, plan: Plan, state: RemoteStackState) -> SubmissionResult:
        """Execute the plan. Failures are recorded on the result, never raised."""
        names = plan.stack.names()
        result = SubmissionResult(stack_name=plan.stack.tip.name, plan=plan, executed=True)
        for name in names:
            result.bookmark(name)
        for name in plan.skipped:
            result.bookmark(name).add(Outcome.SKIPPED_NO_EXISTING_PR)
        for name in plan.synced:
            result.bookmark(name).add(Outcome.SYNCED)
            result.bookmark(name).pull_request = state.get(name)

        pull_requests: Dict[str, RemotePullRequest] = {
            name: pr for name, pr in state.pull_requests.items()
            if pr is not None and pr.is_active
        }
        created: Set[str] = set()

        self._transition(result, ExecutionState.PHASE1_RUNNING)
        for action in plan.phase1:
            name = action.bookmark.name
            if self.cancel.is_set():
                logger.warning(f"Interrupted, not starting: {action.describe()}")
                self._mark_from(result, names, names.index(name), Outcome.CANCELLED, Interrupted())
                self._finish(result, pull_requests)
                self._transition(result, ExecutionState.FAILED)
                return result
            try:
                self._run_phase1(action, result, pull_requests, created)
            except RyuError as e:
                logger.error(f"{action.describe()} failed: {e}")
                result.bookmark(name).errors.append(e)
                self._mark_from(result, names, names.index(name) + 1, Outcome.BLOCKED)
                self._finish(result, pull_requests)
                self._transition(result, ExecutionState.FAILED)
                return result
        self._transition(result, ExecutionState.PHASE1_COMPLETE)

        if plan.phase2:
            self._refresh_created(created, result, pull_requests)
            self._transition(result, ExecutionState.PHASE2_RUNNING)
            if not self._run_phase2(plan.phase2, result, pull_requests):
                self._finish(result, pull_requests)
                self._transition(result, ExecutionState.FAILED)
                return result

        self._finish(result, pull_requests)
        self._transition(result, ExecutionState.DONE)
        return result

    def _run_phase1(self, action: Action, result: SubmissionResult,
                    pull_requests: Dict[str, RemotePullRequest], created: Set[str]) -> None:
        bookmark = action.bookmark
        outcomes = result.bookmark(bookmark.name)
        if isinstance(action, PushRef):
            tip = self.git_cmd.remote_tip(self.remote, bookmark.name)
            if tip == bookmark.commit_id:
                logger.debug(f"{bookmark.name} is already at {tip[:8]} on {self.remote}")
                return
            self.git_cmd.push(self.remote, bookmark.commit_id, bookmark.name)
            outcomes.add(Outcome.PUSHED)
        elif isinstance(action, CreatePullRequest):
            pr = self.platform.create_pull_request(
                bookmark.name, action.base, action.title, action.body, action.draft)
            pull_requests[bookmark.name] = pr
            created.add(bookmark.name)
            outcomes.add(Outcome.CREATED)
        elif isinstance(action, UpdatePullRequestBase):
            pull_requests[bookmark.name] = self.platform.update_base(action.pr, action.new_base)
            outcomes.add(Outcome.BASE_UPDATED)
        elif isinstance(action, PublishPullRequest):
            pull_requests[bookmark.name] = self.platform.publish(action.pr)
            outcomes.add(Outcome.PUBLISHED)
        else:
            raise TypeError(f"Unexpected phase 1 action: {action!r}")

    def _refresh_created(self, created: Set[str], result: SubmissionResult,
                         pull_requests: Dict[str, RemotePullRequest]) -> None:
        """Re-read newly created pull requests so comments use provider numbers."""
        for name in sorted(created):
            try:
                fresh = self.platform.find_pull_request_by_head(name)
            except ProviderError as e:
                logger.warning(f"Could not re-read pull request for {name}, using create response: {e}")
                result.bookmark(name).warnings.append(f"could not re-read pull request, stack comment uses create response ({e})")
                continue
            if fresh is not None and fresh.is_active:
                pull_requests[name] = fresh

    def _run_phase2(self, actions: List[UpsertStackComment], result: SubmissionResult,
                    pull_requests: Dict[str, RemotePullRequest]) -> bool:
        ok = True
        for action in actions:
            name = action.bookmark.name
            if self.cancel.is_set():
                logger.warning(f"Interrupted, not starting: {action.describe()}")
                result.bookmark(name).add(Outcome.CANCELLED)
                result.bookmark(name).errors.append(Interrupted())
                ok = False
                continue
            pr = pull_requests.get(name)
            missing = [n for n in action.stack_bookmarks if n not in pull_requests]
            if pr is None or missing:
                # Only reachable when phase 1 did not resolve every listed pull request
                logger.debug(f"Skipping stack comment on {name}, unresolved: {missing}")
                continue
            numbers = [pull_requests[n].number for n in action.stack_bookmarks]
            body = render_stack_comment(numbers, action.current_index, self.platform.reference_prefix)
            try:
                outcome = self.platform.upsert_managed_comment(pr, body)
            except RyuError as e:
                logger.error(f"{action.describe()} failed: {e}")
                result.bookmark(name).errors.append(e)
                ok = False
                continue
            if outcome != CommentOutcome.UNCHANGED:
                result.bookmark(name).add(Outcome.COMMENT_UPDATED)
        return ok

    def _mark_from(self, result: SubmissionResult, names: List[str], start: int,
                   outcome: Outcome, error: Optional[Exception] = None) -> None:
        for name in names[start:]:
            bookmark = result.bookmark(name)
            if Outcome.SKIPPED_NO_EXISTING_PR in bookmark.outcomes or Outcome.SYNCED in bookmark.outcomes:
                continue
            bookmark.add(outcome)
            if error is not None:
                bookmark.errors.append(error)

    def _finish(self, result: SubmissionResult, pull_requests: Dict[str, RemotePullRequest]) -> None:
        for name, bookmark in result.bookmarks.items():
            if name in pull_requests:
                bookmark.pull_request = pull_requests[name]
            if not bookmark.outcomes and not bookmark.errors:
                bookmark.add(Outcome.NOOP)
