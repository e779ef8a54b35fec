"""Stack submission orchestration."""

import concurrent.futures
import dataclasses
import logging
import sys
import threading
from concurrent.futures import Future
from typing import IO, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from ..config.models import RyuConfig
from ..errors import AmbiguousStack, NoSuchBookmark, RyuError
from ..graph import ChangeGraph, build_change_graph, build_stack
from ..platform import PlatformService
from ..pretty import print_plan
from ..submit.execute import StackExecutor
from ..submit.plan import SubmitOptions, create_plan
from ..submit.remote import fetch_remote_state
from ..typing import (
    ExecutionState, GitInterface, Plan, RemoteStackState, Stack, SubmissionReport, SubmissionResult,
)

logger = logging.getLogger(__name__)

class BookmarkSelector(Protocol):
    """Interactive choice of which bookmarks of a stack to submit."""

    def __call__(self, stack: Stack) -> Sequence[str]:
        ...

Confirmer = Callable[[List[Plan]], bool]

class StackSubmitter:
    """Submit and sync stacks of bookmarks as pull requests."""

    def __init__(self, config: RyuConfig, git_cmd: GitInterface, platform: PlatformService,
                 trunk: str, trunk_ref: Optional[str] = None, remote: Optional[str] = None,
                 selector: Optional[BookmarkSelector] = None, confirmer: Optional[Confirmer] = None,
                 output: Optional[IO[str]] = None):
        self.config = config
        self.git_cmd = git_cmd
        self.platform = platform
        self.trunk = trunk
        self.trunk_ref = trunk_ref or trunk
        self.remote = remote or config.repo.remote
        self.selector = selector
        self.confirmer = confirmer
        self.output = output or sys.stdout
        self.concurrency: int = config.tool.concurrency
        self.cancel = threading.Event()

    def load_graph(self) -> ChangeGraph:
        remote_tips = self.git_cmd.remote_tips(self.remote)
        return build_change_graph(self.git_cmd, self.trunk, self.trunk_ref, remote_tips)

    def submit(self, bookmark: str, options: SubmitOptions) -> SubmissionReport:
        """Submit the stack ending at bookmark.

        Graph, auth and remote-state failures are raised; failures while
        executing are recorded in the report.
        """
        self.platform.resolve_token()
        graph = self.load_graph()
        stack = build_stack(graph, bookmark, upto=options.upto, only=options.only,
                            include_descendants=options.include_descendants)
        if options.select:
            stack = self.select(stack)

        state = fetch_remote_state(stack, self.platform, self.concurrency)
        plan = create_plan(stack, state, self.trunk, options)
        report = SubmissionReport([SubmissionResult(stack.tip.name, plan=plan)])
        if not self.approve([plan], options):
            return report

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(self.execute, plan, state)
            self._wait([future])
        report.results[0] = future.result()
        return report

    def select(self, stack: Stack) -> Stack:
        if self.selector is None:
            raise RyuError("Interactive selection is not available")
        chosen = list(self.selector(stack))
        if not chosen:
            raise RyuError("No bookmarks selected")
        logger.debug(f"Selected bookmarks: {chosen}")
        return stack.narrow(chosen)

    def sync(self, options: SubmitOptions) -> SubmissionReport:
        """Reconcile every stack in the repository.

        Stacks sharing a root bookmark form a group; groups run concurrently,
        stacks within a group one after another. A failing stack never stops
        the others.
        """
        self.platform.resolve_token()
        graph = self.load_graph()
        stacks = graph.stacks()
        if options.stack is not None:
            stacks = [s for s in stacks if options.stack in s.names()]
            if not stacks and options.stack in graph.excluded:
                raise AmbiguousStack(options.stack, graph.excluded[options.stack])
            if not stacks:
                raise NoSuchBookmark(options.stack, "not part of any stack")
        if not stacks:
            logger.info(f"No stacks found on {self.trunk}")
            return SubmissionReport()

        report = SubmissionReport([None] * len(stacks))
        planned: Dict[int, Tuple[Plan, RemoteStackState]] = {}
        for i, stack in enumerate(stacks):
            try:
                state = fetch_remote_state(stack, self.platform, self.concurrency)
                planned[i] = (create_plan(stack, state, self.trunk, options), state)
            except RyuError as e:
                logger.error(f"Skipping stack {stack.tip.name}: {e}")
                report.results[i] = SubmissionResult(stack.tip.name, state=ExecutionState.FAILED, error=e)

        plans = [planned[i][0] for i in sorted(planned)]
        for i, (plan, _) in planned.items():
            report.results[i] = SubmissionResult(plan.stack.tip.name, plan=plan)
        if not plans or not self.approve(plans, options):
            return report

        groups: Dict[str, List[int]] = {}
        for i in sorted(planned):
            groups.setdefault(stacks[i][0].name, []).append(i)

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            futures: Sequence[Future[None]] = [
                executor.submit(self._run_group, indexes, stacks, planned, report, options)
                for indexes in groups.values()
            ]
            self._wait(futures)
        for future in futures:
            future.result()
        return report

    def _run_group(self, indexes: List[int], stacks: List[Stack],
                   planned: Dict[int, Tuple[Plan, RemoteStackState]],
                   report: SubmissionReport, options: SubmitOptions) -> None:
        # Forked stacks share their lower bookmarks; each comment is written by the first stack to reach it
        commented: Set[str] = set()
        for position, i in enumerate(indexes):
            plan, state = planned[i]
            if position > 0:
                # Earlier stacks in the group changed shared bookmarks, so re-read
                try:
                    state = fetch_remote_state(stacks[i], self.platform, self.concurrency)
                    plan = create_plan(stacks[i], state, self.trunk, options)
                except RyuError as e:
                    logger.error(f"Skipping stack {stacks[i].tip.name}: {e}")
                    report.results[i] = SubmissionResult(
                        stacks[i].tip.name, state=ExecutionState.FAILED, plan=plan, error=e)
                    continue
            plan = dataclasses.replace(plan, phase2=[a for a in plan.phase2 if a.bookmark.name not in commented])
            result = self.execute(plan, state)
            report.results[i] = result
            if result.state == ExecutionState.DONE:
                commented.update(a.bookmark.name for a in plan.phase2)

    def approve(self, plans: List[Plan], options: SubmitOptions) -> bool:
        """Show plans when asked to, and decide whether to execute them."""
        if options.dry_run or options.confirm:
            for plan in plans:
                print_plan(plan, self.platform.reference_prefix, file=self.output)
        if options.dry_run:
            return False
        if options.confirm:
            if self.confirmer is None or not self.confirmer(plans):
                logger.info("Aborted, nothing was changed")
                return False
        return True

    def execute(self, plan: Plan, state: RemoteStackState) -> SubmissionResult:
        executor = StackExecutor(self.git_cmd, self.platform, self.remote, self.cancel)
        return executor.execute(plan, state)

    def _wait(self, futures: Sequence[Future]) -> None:
        """Wait for work to finish; on Ctrl-C stop new actions but let running calls complete."""
        try:
            concurrent.futures.wait(futures)
        except KeyboardInterrupt:
            logger.warning("Interrupted, waiting for in-flight requests to finish")
            self.cancel.set()
            concurrent.futures.wait(futures)
