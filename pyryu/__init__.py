"""
pyryu: stacked pull requests on GitHub and GitLab.
"""
import logging
import sys

LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s'
# Stacks are synced concurrently, so -v tags each line with its worker
THREADED_LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] (%(threadName)s) %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

def setup_logging(verbose: int = 0) -> None:
    """Configure the root logger for a CLI run.

    Args:
        verbose: Verbosity level
            0 = INFO: every push and provider mutation
            1 = INFO, tagged with the worker thread
            2 = DEBUG: planning detail and read-only git commands
            3 = DEBUG including PyGithub and urllib3
    """
    level = logging.DEBUG if verbose >= 2 else logging.INFO
    fmt = THREADED_LOG_FORMAT if verbose >= 1 else LOG_FORMAT

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt, LOG_DATE_FORMAT))
    root.addHandler(handler)

    for noisy in ("github", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose >= 3 else logging.WARNING)
