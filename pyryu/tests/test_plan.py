"""Tests for reconciliation."""

from typing import Optional

import pytest

from pyryu.errors import MissingParentPullRequest
from pyryu.submit.plan import SubmitOptions, create_plan
from pyryu.typing import (
    Bookmark, CreatePullRequest, PRState, PublishPullRequest, PushRef, RemotePullRequest,
    RemoteStackState, Stack, UpdatePullRequestBase, UpsertStackComment,
)


def bm(name: str, parent: Optional[str] = None, pushed: bool = False) -> Bookmark:
    commit = f"{name}-commit"
    return Bookmark(name, commit, parent=parent, remote_commit_id=commit if pushed else None,
                    subject=f"Add {name}")


def pr(number: int, head: str, base: str, state: PRState = PRState.OPEN) -> RemotePullRequest:
    return RemotePullRequest(number, head, base, state=state)


def linear(*names: str, pushed: bool = False) -> Stack:
    bookmarks = []
    parent = None
    for name in names:
        bookmarks.append(bm(name, parent, pushed))
        parent = name
    return Stack(tuple(bookmarks))


class TestCreatePlan:

    def test_new_stack_creates_everything(self) -> None:
        """Scenario A: nothing exists yet."""
        stack = linear("a", "b", "c")
        state = RemoteStackState({"a": None, "b": None, "c": None})
        plan = create_plan(stack, state, "main")

        kinds = [(type(a).__name__, a.bookmark.name) for a in plan.phase1]
        assert kinds == [
            ("PushRef", "a"), ("CreatePullRequest", "a"),
            ("PushRef", "b"), ("CreatePullRequest", "b"),
            ("PushRef", "c"), ("CreatePullRequest", "c"),
        ]
        creates = [a for a in plan.phase1 if isinstance(a, CreatePullRequest)]
        assert [c.base for c in creates] == ["main", "a", "b"]
        assert [c.title for c in creates] == ["Add a", "Add b", "Add c"]

        assert len(plan.phase2) == 3
        for index, action in enumerate(plan.phase2):
            assert action.stack_bookmarks == ("a", "b", "c")
            assert action.current_index == index
            assert action.bookmark.name == ["a", "b", "c"][index]

    def test_removed_bookmark_retargets_child(self) -> None:
        """Scenario B: a was dropped, so b now sits on trunk."""
        stack = Stack((bm("b", pushed=True),))
        state = RemoteStackState({"b": pr(2, "b", "a")})
        plan = create_plan(stack, state, "main")
        assert plan.phase1 == [UpdatePullRequestBase(stack[0], pr=pr(2, "b", "a"), new_base="main")]

    def test_only_without_parent_pull_request(self) -> None:
        """Scenario C."""
        stack = Stack((bm("b", parent="a"),), base="a")
        state = RemoteStackState({"b": None}, base_pull_request=None)
        with pytest.raises(MissingParentPullRequest) as exc_info:
            create_plan(stack, state, "main", SubmitOptions(only=True))
        assert exc_info.value.parent == "a"

    def test_only_with_merged_parent_pull_request(self) -> None:
        stack = Stack((bm("b", parent="a"),), base="a")
        state = RemoteStackState({"b": None}, base_pull_request=pr(1, "a", "main", PRState.MERGED))
        with pytest.raises(MissingParentPullRequest):
            create_plan(stack, state, "main", SubmitOptions(only=True))

    def test_only_targets_parent_branch(self) -> None:
        stack = Stack((bm("b", parent="a"),), base="a")
        state = RemoteStackState({"b": None}, base_pull_request=pr(1, "a", "main"))
        plan = create_plan(stack, state, "main", SubmitOptions(only=True))
        creates = [a for a in plan.phase1 if isinstance(a, CreatePullRequest)]
        assert creates[0].base == "a"
        assert plan.phase2[0].stack_bookmarks == ("b",)

    def test_update_only_skips_missing(self) -> None:
        """Scenario D."""
        stack = Stack((bm("a", pushed=False), bm("b", "a", pushed=True), bm("c", "b")))
        state = RemoteStackState({"a": pr(1, "a", "main"), "b": pr(2, "b", "a"), "c": None})
        plan = create_plan(stack, state, "main", SubmitOptions(update_only=True))

        assert not any(isinstance(a, CreatePullRequest) for a in plan.phase1)
        assert plan.skipped == ["c"]
        assert [a.bookmark.name for a in plan.phase1] == ["a"]
        assert isinstance(plan.phase1[0], PushRef)
        assert [a.bookmark.name for a in plan.phase2] == ["a", "b"]
        assert plan.phase2[0].stack_bookmarks == ("a", "b")

    def test_in_sync_stack_is_noop(self) -> None:
        stack = linear("a", "b", pushed=True)
        state = RemoteStackState({"a": pr(1, "a", "main"), "b": pr(2, "b", "a")})
        plan = create_plan(stack, state, "main")
        assert plan.is_noop
        assert len(plan.phase2) == 2

    def test_changed_commit_is_pushed(self) -> None:
        stack = Stack((Bookmark("a", "new", remote_commit_id="old"),))
        state = RemoteStackState({"a": pr(1, "a", "main")})
        plan = create_plan(stack, state, "main")
        assert plan.phase1 == [PushRef(stack[0])]

    def test_merged_pull_request_is_synced_and_left_out_of_comments(self) -> None:
        stack = linear("a", "b", pushed=True)
        state = RemoteStackState({"a": pr(1, "a", "main", PRState.MERGED), "b": pr(2, "b", "a")})
        plan = create_plan(stack, state, "main")
        assert plan.synced == ["a"]
        assert plan.phase1 == []
        assert [a.stack_bookmarks for a in plan.phase2] == [("b",)]

    def test_draft_flag_applies_to_new_pull_requests(self) -> None:
        stack = linear("a")
        plan = create_plan(stack, RemoteStackState({"a": None}), "main", SubmitOptions(draft=True))
        assert [a.draft for a in plan.phase1 if isinstance(a, CreatePullRequest)] == [True]

    def test_publish_existing_drafts(self) -> None:
        stack = linear("a", "b", pushed=True)
        draft = pr(2, "b", "a", PRState.DRAFT)
        state = RemoteStackState({"a": pr(1, "a", "main"), "b": draft})
        plan = create_plan(stack, state, "main", SubmitOptions(publish=True))
        assert plan.phase1 == [PublishPullRequest(stack[1], pr=draft)]

    def test_drafts_left_alone_without_publish(self) -> None:
        stack = linear("a", pushed=True)
        state = RemoteStackState({"a": pr(1, "a", "main", PRState.DRAFT)})
        assert create_plan(stack, state, "main").phase1 == []

    def test_comment_actions_come_after_everything_else(self) -> None:
        stack = linear("a", "b")
        plan = create_plan(stack, RemoteStackState({"a": None, "b": None}), "main")
        kinds = [type(a) for a in plan.actions]
        first_comment = kinds.index(UpsertStackComment)
        assert all(k is UpsertStackComment for k in kinds[first_comment:])
