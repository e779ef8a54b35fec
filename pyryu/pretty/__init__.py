"""Pretty formatting utilities for CLI output."""

import shutil
import sys
from typing import IO, List, Optional

from ..graph import ChangeGraph
from ..typing import (
    Bookmark, CreatePullRequest, Outcome, Plan, PushRef, PublishPullRequest,
    SubmissionReport, SubmissionResult, UpdatePullRequestBase,
)
from ..util import plural

def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except (AttributeError, ValueError, OSError):
        return 80


def header(text: str, use_emoji: bool = True) -> str:
    """Create a boxed header with optional emoji."""
    width = max(get_term_width(), len(text) + 8)
    h_line = "─" * (width - 2)
    v_line = "│"
    emoji = "📚 " if use_emoji else ""
    # The emoji renders two columns wide
    padding = width - len(text) - (len(emoji) + 1 if emoji else 0) - 3
    return "\n".join([
        f"┌{h_line}┐",
        f"{v_line} {emoji}{text}{' ' * padding}{v_line}",
        f"└{h_line}┘",
    ])


def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    print(header(text, use_emoji), file=file or sys.stdout)


def bookmark_status(bookmark: Bookmark) -> str:
    if not bookmark.has_remote:
        return "not pushed"
    if bookmark.is_synced:
        return "synced"
    return "needs push"


def format_plan(plan: Plan, prefix: str = "#") -> str:
    """Describe a plan, phase by phase."""
    lines = [f"Stack {plan.stack.tip.name} ({plural(len(plan.stack), 'bookmark')}, "
             f"base {plan.stack.base or plan.trunk}):"]
    if plan.is_noop:
        lines.append("  Nothing to push or update - already in sync")
    for action in plan.phase1:
        if isinstance(action, PushRef):
            lines.append(f"  ↑ push {action.bookmark.name} ({action.bookmark.commit_id[:8]})")
        elif isinstance(action, CreatePullRequest):
            draft = " as draft" if action.draft else ""
            lines.append(f"  + create {action.bookmark.name} -> {action.base}{draft}: {action.title}")
        elif isinstance(action, UpdatePullRequestBase):
            lines.append(f"  ~ retarget {prefix}{action.pr.number} ({action.bookmark.name}) "
                         f"{action.pr.base_branch} -> {action.new_base}")
        elif isinstance(action, PublishPullRequest):
            lines.append(f"  ✓ publish {prefix}{action.pr.number} ({action.bookmark.name})")
    if plan.phase2:
        lines.append(f"  ≡ sync stack comments on {plural(len(plan.phase2), 'pull request')}")
    for name in plan.skipped:
        lines.append(f"  - skip {name}: no existing pull request")
    for name in plan.synced:
        lines.append(f"  = {name}: pull request already merged or closed")
    return "\n".join(lines)


def print_plan(plan: Plan, prefix: str = "#", file: Optional[IO[str]] = None) -> None:
    print(format_plan(plan, prefix), file=file or sys.stdout)


OUTCOME_LABELS = {
    Outcome.NOOP: "up to date",
    Outcome.PUSHED: "pushed",
    Outcome.CREATED: "created",
    Outcome.BASE_UPDATED: "base updated",
    Outcome.PUBLISHED: "published",
    Outcome.COMMENT_UPDATED: "comment updated",
    Outcome.SYNCED: "merged/closed",
    Outcome.SKIPPED_NO_EXISTING_PR: "skipped (no existing pull request)",
    Outcome.BLOCKED: "blocked",
    Outcome.CANCELLED: "cancelled",
}


def format_result(result: SubmissionResult, prefix: str = "#") -> str:
    status = "ok" if result.success else "FAILED"
    lines = [f"Stack {result.stack_name}: {status}"]
    if result.error is not None:
        lines.append(f"  error: {result.error}")
    if not result.executed:
        return "\n".join(lines)
    for bookmark in result.bookmarks.values():
        outcomes = ", ".join(OUTCOME_LABELS[o] for o in bookmark.outcomes)
        pr = bookmark.pull_request
        ref = f" {prefix}{pr.number}" if pr is not None else ""
        url = f" {pr.url}" if pr is not None and pr.url else ""
        lines.append(f"  {bookmark.name}{ref}: {outcomes}{url}")
        for error in bookmark.errors:
            lines.append(f"    error: {error}")
        for warning in bookmark.warnings:
            lines.append(f"    warning: {warning}")
    return "\n".join(lines)


def format_report(report: SubmissionReport, prefix: str = "#") -> str:
    completed = report.completed()
    parts = [format_result(r, prefix) for r in completed]
    failed = sum(1 for r in completed if not r.success)
    summary = f"{plural(len(completed), 'stack')} processed"
    if failed:
        summary += f", {failed} failed"
    parts.append(summary)
    return "\n".join(parts)


def print_report(report: SubmissionReport, prefix: str = "#", file: Optional[IO[str]] = None) -> None:
    print(format_report(report, prefix), file=file or sys.stdout)


def format_stacks(graph: ChangeGraph) -> str:
    """The no-argument view: every stack, tip first, with push status."""
    stacks = graph.stacks()
    if not stacks:
        lines: List[str] = [f"No bookmarks stacked on {graph.trunk}"]
    else:
        lines = []
        for stack in stacks:
            lines.append(f"Stack {stack.tip.name}:")
            for bookmark in reversed(stack.bookmarks):
                lines.append(f"  ○ {bookmark.name} [{bookmark_status(bookmark)}] {bookmark.subject}".rstrip())
            lines.append(f"  ◆ {graph.trunk}")
    if graph.excluded:
        lines.append(f"{plural(len(graph.excluded), 'bookmark')} excluded (more than one path to {graph.trunk}):")
        for name in sorted(graph.excluded):
            lines.append(f"  {name}: {graph.excluded[name]}")
    return "\n".join(lines)


def print_stacks(graph: ChangeGraph, file: Optional[IO[str]] = None) -> None:
    print_header(f"Stacks on {graph.trunk}", file=file)
    print(format_stacks(graph), file=file or sys.stdout)
