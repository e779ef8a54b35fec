"""Tests for executing plans against git and the platform."""

import threading
from typing import Optional, Tuple

from pyryu.errors import GitError, Interrupted, ProviderError
from pyryu.graph import build_change_graph, build_stack
from pyryu.pretty import format_result
from pyryu.submit.comments import render_stack_comment
from pyryu.submit.execute import StackExecutor
from pyryu.submit.plan import SubmitOptions, create_plan
from pyryu.submit.remote import fetch_remote_state
from pyryu.tests.fakes import FakeGit, FakePlatform, provider_error
from pyryu.typing import ExecutionState, Outcome, Plan, PRState, RemoteStackState, SubmissionResult


def prepare(git: FakeGit, platform: FakePlatform, target: str,
            options: Optional[SubmitOptions] = None) -> Tuple[Plan, RemoteStackState]:
    graph = build_change_graph(git, "main", "origin/main", git.remote_tips("origin"))
    stack = build_stack(graph, target)
    state = fetch_remote_state(stack, platform)
    return create_plan(stack, state, "main", options), state


def run(git: FakeGit, platform: FakePlatform, target: str,
        options: Optional[SubmitOptions] = None,
        cancel: Optional[threading.Event] = None) -> Tuple[Plan, SubmissionResult]:
    plan, state = prepare(git, platform, target, options)
    return plan, StackExecutor(git, platform, "origin", cancel).execute(plan, state)


class TestExecute:

    def test_new_stack(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b", "c"])
        _, result = run(git, platform, "c")

        assert result.state == ExecutionState.DONE
        assert result.success
        prs = {pr.head_branch: pr for pr in platform.pull_requests.values()}
        assert {name: pr.number for name, pr in prs.items()} == {"a": 1, "b": 2, "c": 3}
        assert {name: pr.base_branch for name, pr in prs.items()} == {"a": "main", "b": "a", "c": "b"}
        assert [name for _, _, name in git.pushes] == ["a", "b", "c"]

        for index, number in enumerate([1, 2, 3]):
            comments = platform.managed_comments(number)
            assert len(comments) == 1
            assert comments[0].body == render_stack_comment([1, 2, 3], index, "#")

        assert result.bookmark("b").outcomes == [Outcome.PUSHED, Outcome.CREATED, Outcome.COMMENT_UPDATED]
        assert result.bookmark("b").pull_request is not None
        assert result.bookmark("b").pull_request.number == 2

    def test_rerun_converges_to_noop(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b", "c"])
        run(git, platform, "c")
        calls_before = len(platform.calls)

        plan, result = run(git, platform, "c")
        assert plan.is_noop
        assert result.state == ExecutionState.DONE
        assert all(r.outcomes == [Outcome.NOOP] for r in result.bookmarks.values())
        new_calls = [op for op, _ in platform.calls[calls_before:]]
        assert "create_comment" not in new_calls
        assert "update_comment" not in new_calls
        assert len(git.pushes) == 3

    def test_amended_commit_is_pushed_again(self, git: FakeGit, platform: FakePlatform) -> None:
        a, b = git.stack(["a", "b"])
        run(git, platform, "b")
        amended = git.add_commit([a], "Add b, take two")
        git.bookmark("b", amended)

        plan, result = run(git, platform, "b")
        assert [type(action).__name__ for action in plan.phase1] == ["PushRef"]
        assert git.remote["b"] == amended
        assert result.bookmark("b").outcomes == [Outcome.PUSHED]

    def test_create_failure_blocks_bookmarks_above(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b", "c"])
        platform.fail[("create", "b")] = provider_error(422, "Validation Failed")
        _, result = run(git, platform, "c")

        assert result.state == ExecutionState.FAILED
        assert not result.success
        assert isinstance(result.bookmark("b").errors[0], ProviderError)
        assert result.bookmark("c").outcomes == [Outcome.BLOCKED]
        assert platform.calls_for("create") == ["a", "b"]
        assert [name for _, _, name in git.pushes] == ["a", "b"]
        # Phase 2 is skipped entirely
        assert platform.calls_for("create_comment") == []
        # Already applied actions are not rolled back
        assert result.bookmark("a").outcomes == [Outcome.PUSHED, Outcome.CREATED]

    def test_push_failure_blocks_everything_above(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b"])
        git.fail_push.add("a")
        _, result = run(git, platform, "b")

        assert result.state == ExecutionState.FAILED
        assert isinstance(result.bookmark("a").errors[0], GitError)
        assert result.bookmark("b").outcomes == [Outcome.BLOCKED]
        assert platform.calls_for("create") == []

    def test_push_is_skipped_when_remote_already_matches(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a"])
        plan, state = prepare(git, platform, "a")
        git.push_all("a")

        result = StackExecutor(git, platform, "origin").execute(plan, state)
        assert git.pushes == []
        assert result.bookmark("a").outcomes == [Outcome.CREATED, Outcome.COMMENT_UPDATED]

    def test_comment_failure_does_not_stop_other_comments(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b", "c"])
        platform.fail[("create_comment", "b")] = provider_error(500)
        _, result = run(git, platform, "c")

        assert result.state == ExecutionState.FAILED
        assert result.bookmark("b").failed
        assert len(platform.managed_comments(1)) == 1
        assert len(platform.managed_comments(3)) == 1
        assert platform.managed_comments(2) == []

    def test_reread_failure_falls_back_to_create_response(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a"])
        plan, state = prepare(git, platform, "a")
        platform.fail[("find", "a")] = provider_error(502)

        result = StackExecutor(git, platform, "origin").execute(plan, state)
        assert result.state == ExecutionState.DONE
        assert platform.managed_comments(1)[0].body == render_stack_comment([1], 0, "#")
        assert result.success
        assert len(result.bookmarks["a"].warnings) == 1
        assert "could not re-read pull request" in result.bookmarks["a"].warnings[0]
        assert "\n    warning: could not re-read pull request" in format_result(result)

    def test_cancel_before_start(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b"])
        cancel = threading.Event()
        cancel.set()
        _, result = run(git, platform, "b", cancel=cancel)

        assert result.state == ExecutionState.FAILED
        assert git.pushes == []
        for name in ("a", "b"):
            assert result.bookmark(name).outcomes == [Outcome.CANCELLED]
            assert isinstance(result.bookmark(name).errors[0], Interrupted)

    def test_merged_pull_request_is_left_out_of_comments(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b"])
        git.push_all("a", "b")
        platform.add_pull_request("a", "main", PRState.MERGED)
        platform.add_pull_request("b", "a")
        _, result = run(git, platform, "b")

        assert result.bookmark("a").outcomes == [Outcome.SYNCED]
        assert platform.managed_comments(1) == []
        assert platform.managed_comments(2)[0].body == render_stack_comment([2], 0, "#")

    def test_removed_bookmark_retargets_child(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a", "b"])
        run(git, platform, "b")

        # Drop a from the stack: b is rebuilt directly on trunk
        del git.branches["a"]
        git.bookmark("b", git.add_commit([git.branches["main"]], "Add b"))
        _, result = run(git, platform, "b")

        assert result.success
        assert platform.pull_requests[2].base_branch == "main"
        assert Outcome.BASE_UPDATED in result.bookmark("b").outcomes
        assert platform.managed_comments(2)[0].body == render_stack_comment([2], 0, "#")

    def test_publish_marks_drafts_ready(self, git: FakeGit, platform: FakePlatform) -> None:
        git.stack(["a"])
        run(git, platform, "a", SubmitOptions(draft=True))
        assert platform.pull_requests[1].state == PRState.DRAFT

        _, result = run(git, platform, "a", SubmitOptions(publish=True))
        assert platform.pull_requests[1].state == PRState.OPEN
        assert result.bookmark("a").outcomes == [Outcome.PUBLISHED]
