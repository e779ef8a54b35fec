"""Change graph building.

Turns the local bookmarks into a graph showing how they stack on top of each
other, and cuts linear stacks out of it.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from ..errors import AmbiguousStack, NoSuchBookmark
from ..typing import Bookmark, GitInterface, LocalBookmark, Stack

logger = logging.getLogger(__name__)


@dataclass
class ChangeGraph:
    """Snapshot of the local bookmark graph."""
    trunk: str
    # Stackable bookmarks, each with its parent resolved
    bookmarks: Dict[str, Bookmark] = field(default_factory=dict)
    # Bookmarks with more than one path to trunk, with the reason
    excluded: Dict[str, str] = field(default_factory=dict)
    # Bookmarks whose commit is already part of trunk
    in_trunk: List[str] = field(default_factory=list)

    def children(self, name: str) -> List[str]:
        return sorted(b.name for b in self.bookmarks.values() if b.parent == name)

    def path_to_root(self, name: str) -> List[Bookmark]:
        """Bookmarks from trunk up to and including name."""
        path: List[Bookmark] = []
        current: Optional[str] = name
        while current is not None:
            bookmark = self.bookmarks[current]
            path.append(bookmark)
            current = bookmark.parent
        path.reverse()
        return path

    def linear_descendants(self, name: str) -> List[Bookmark]:
        """Bookmarks above name, which must form a single chain."""
        chain: List[Bookmark] = []
        current = name
        while True:
            children = self.children(current)
            if not children:
                return chain
            if len(children) > 1:
                raise AmbiguousStack(
                    name, f"{current} has more than one child bookmark ({', '.join(children)})")
            current = children[0]
            chain.append(self.bookmarks[current])

    def leaves(self) -> List[str]:
        parents = {b.parent for b in self.bookmarks.values()}
        return sorted(name for name in self.bookmarks if name not in parents)

    def stacks(self) -> List[Stack]:
        """Every maximal stack, one per leaf bookmark, ordered by leaf name."""
        return [Stack(tuple(self.path_to_root(leaf))) for leaf in self.leaves()]


def build_change_graph(git_cmd: GitInterface, trunk: str, trunk_ref: str,
                       remote_tips: Optional[Mapping[str, str]] = None) -> ChangeGraph:
    """Build the bookmark graph from the repository.

    For each bookmark the commits in trunk_ref..bookmark are walked newest
    first; the nearest commit carrying another bookmark makes that bookmark
    the parent. A merge commit in the range, or two bookmarks on the nearest
    bookmarked commit, leaves more than one candidate path and the bookmark is
    excluded. Exclusion propagates to everything stacked on top.
    """
    remote_tips = remote_tips or {}
    local = [b for b in git_cmd.list_bookmarks() if b.name != trunk]
    logger.debug(f"Found {len(local)} bookmarks: {[b.name for b in local]}")

    by_commit: Dict[str, List[str]] = {}
    for b in local:
        by_commit.setdefault(b.commit_id, []).append(b.name)

    graph = ChangeGraph(trunk)
    parents: Dict[str, Optional[str]] = {}
    locals_by_name: Dict[str, LocalBookmark] = {b.name: b for b in local}

    for b in local:
        entries = git_cmd.commits_between(trunk_ref, b.commit_id)
        if not entries:
            logger.debug(f"  {b.name} is already in {trunk_ref}")
            graph.in_trunk.append(b.name)
            continue

        merge = next((e for e in entries if e.is_merge), None)
        if merge is not None:
            graph.excluded[b.name] = f"merge commit {merge.commit_id[:8]} between trunk and {b.name}"
            logger.debug(f"  Excluding {b.name}: {graph.excluded[b.name]}")
            continue

        parent: Optional[str] = None
        ambiguous = False
        for entry in entries:
            if entry.commit_id == b.commit_id:
                continue
            names = sorted(by_commit.get(entry.commit_id, []))
            if not names:
                continue
            if len(names) > 1:
                graph.excluded[b.name] = (
                    f"bookmarks {', '.join(names)} all point at {entry.commit_id[:8]} below {b.name}")
                ambiguous = True
            else:
                parent = names[0]
            break
        if ambiguous:
            logger.debug(f"  Excluding {b.name}: {graph.excluded[b.name]}")
            continue

        parents[b.name] = parent
        logger.debug(f"  Stacking: {b.name} -> {parent or trunk}")

    # Anything sitting on an excluded bookmark cannot be stacked either
    changed = True
    while changed:
        changed = False
        for name, parent in list(parents.items()):
            if parent is not None and parent not in parents:
                reason = graph.excluded.get(parent, f"{parent} is not stackable")
                graph.excluded[name] = f"stacked on excluded bookmark {parent}: {reason}"
                del parents[name]
                changed = True

    for name, parent in parents.items():
        lb = locals_by_name[name]
        graph.bookmarks[name] = Bookmark(
            name=name,
            commit_id=lb.commit_id,
            parent=parent,
            remote_commit_id=remote_tips.get(name),
            subject=lb.subject,
            body=lb.body,
        )

    if graph.excluded:
        logger.info(f"Excluded {len(graph.excluded)} bookmark(s) with more than one path to trunk")
    return graph


def build_stack(graph: ChangeGraph, target: str, upto: Optional[str] = None,
                only: bool = False, include_descendants: bool = False) -> Stack:
    """Cut the linear stack for target out of the graph, applying scope filters.

    - default: trunk up to and including target
    - include_descendants: also the (linear) chain above target
    - upto: drop everything strictly above upto
    - only: just target, based on its parent bookmark
    """
    if only and (upto is not None or include_descendants):
        raise ValueError("only cannot be combined with upto or include_descendants")
    if target in graph.excluded:
        raise AmbiguousStack(target, graph.excluded[target])
    if target not in graph.bookmarks:
        detail = f"already part of {graph.trunk}" if target in graph.in_trunk else ""
        raise NoSuchBookmark(target, detail)

    if only:
        bookmark = graph.bookmarks[target]
        return Stack((bookmark,), base=bookmark.parent)

    path = graph.path_to_root(target)
    if include_descendants:
        path.extend(graph.linear_descendants(target))

    if upto is not None:
        names = [b.name for b in path]
        if upto not in names:
            raise NoSuchBookmark(upto, f"not in the stack of {target}")
        path = path[:names.index(upto) + 1]

    return Stack(tuple(path))
