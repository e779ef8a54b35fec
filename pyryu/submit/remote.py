"""Remote state fetching."""

import concurrent.futures
import logging
from concurrent.futures import Future
from typing import Dict, List, Optional, Sequence

from ..errors import ProviderError, RemoteStateUnavailable
from ..platform import PlatformService
from ..typing import RemotePullRequest, RemoteStackState, Stack

logger = logging.getLogger(__name__)

def fetch_remote_state(stack: Stack, platform: PlatformService, concurrency: int = 4) -> RemoteStackState:
    """Look up the pull request of every bookmark in the stack.

    Lookups run concurrently on a bounded pool. The fetch is all or nothing:
    if any lookup fails the whole stack is unreadable, since a missing pull
    request and a failed lookup must not be confused.
    """
    names: List[str] = stack.names()
    if stack.base is not None:
        names.append(stack.base)
    logger.debug(f"Fetching pull requests for {names}")

    with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
        futures: Sequence[Future[Optional[RemotePullRequest]]] = [
            executor.submit(platform.find_pull_request_by_head, name) for name in names
        ]
        concurrent.futures.wait(futures)

    found: Dict[str, Optional[RemotePullRequest]] = {}
    for name, future in zip(names, futures):
        try:
            found[name] = future.result()
        except ProviderError as e:
            logger.error(f"Pull request lookup for {name} failed: {e}")
            raise RemoteStateUnavailable(name, e) from e

    state = RemoteStackState({name: found[name] for name in stack.names()})
    if stack.base is not None:
        state.base_pull_request = found[stack.base]
    return state
