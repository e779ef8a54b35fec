"""Reconciliation: derive the actions that bring the remote in line with a stack."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..errors import MissingParentPullRequest
from ..typing import (
    Action, CreatePullRequest, Plan, PRState, PublishPullRequest, PushRef,
    RemoteStackState, Stack, UpdatePullRequestBase, UpsertStackComment,
)

logger = logging.getLogger(__name__)

@dataclass
class SubmitOptions:
    """Options shared by submit and sync."""
    dry_run: bool = False
    confirm: bool = False
    # Never create pull requests, only update existing ones
    update_only: bool = False
    # Open newly created pull requests as drafts
    draft: bool = False
    # Mark existing draft pull requests ready for review
    publish: bool = False
    # Scope filters for submit
    upto: Optional[str] = None
    only: bool = False
    include_descendants: bool = False
    select: bool = False
    # sync: only stacks containing this bookmark
    stack: Optional[str] = None
    remote: Optional[str] = None

def create_plan(stack: Stack, state: RemoteStackState, trunk: str,
                options: Optional[SubmitOptions] = None) -> Plan:
    """Compute the plan for one stack. Performs no I/O.

    Bookmark i is expected to target bookmark i-1, and the bottom bookmark
    targets the stack base (trunk unless the stack was cut with only).
    """
    options = options or SubmitOptions()
    if stack.base is not None:
        base_pr = state.base_pull_request
        if base_pr is None or not base_pr.is_active:
            raise MissingParentPullRequest(stack[0].name, stack.base)

    plan = Plan(stack, trunk)
    listed: List[str] = []
    for i, bookmark in enumerate(stack):
        expected_base = (stack.base or trunk) if i == 0 else stack[i - 1].name
        pr = state.get(bookmark.name)

        if pr is None:
            if options.update_only:
                logger.debug(f"{bookmark.name}: no pull request, skipped (update only)")
                plan.skipped.append(bookmark.name)
                continue
            logger.debug(f"{bookmark.name}: no pull request, will create against {expected_base}")
            plan.phase1.append(PushRef(bookmark))
            plan.phase1.append(CreatePullRequest(
                bookmark, base=expected_base, title=bookmark.title,
                body=bookmark.body, draft=options.draft))
            listed.append(bookmark.name)
            continue

        if not pr.is_active:
            logger.debug(f"{bookmark.name}: pull request #{pr.number} is {pr.state.value}")
            plan.synced.append(bookmark.name)
            continue

        actions: List[Action] = []
        if bookmark.commit_id != bookmark.remote_commit_id:
            actions.append(PushRef(bookmark))
        if pr.base_branch != expected_base:
            actions.append(UpdatePullRequestBase(bookmark, pr=pr, new_base=expected_base))
        if options.publish and pr.state == PRState.DRAFT:
            actions.append(PublishPullRequest(bookmark, pr=pr))
        logger.debug(f"{bookmark.name}: #{pr.number} needs {[a.describe() for a in actions] or 'nothing'}")
        plan.phase1.extend(actions)
        listed.append(bookmark.name)

    by_name = {b.name: b for b in stack}
    entries = tuple(listed)
    for index, name in enumerate(listed):
        plan.phase2.append(UpsertStackComment(by_name[name], stack_bookmarks=entries, current_index=index))
    return plan
