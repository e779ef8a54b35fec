"""Config parser logic."""

from pathlib import Path
from typing import Any, Dict, Optional
import logging
import yaml

# Get module logger
logger = logging.getLogger(__name__)

RawConfig = Dict[str, Dict[str, Any]]

CONFIG_FILE_NAME = ".ryu.yaml"
SECTIONS = ("repo", "user", "tool")

def parse_config(repo_root: Optional[str] = None, home: Optional[Path] = None) -> RawConfig:
    """Parse config from built-in defaults, then user, then repository config files.

    Later sources win key by key within each section.
    """
    config: RawConfig = {
        'repo': {
            'remote': 'origin',
            'trunk': None,
            'draft': False,
        },
        'user': {
            'log_git_commands': False,
        },
        'tool': {
            'concurrency': 4,
        },
    }

    user_path = (home or Path.home()) / CONFIG_FILE_NAME
    repo_path = Path(repo_root or ".") / CONFIG_FILE_NAME
    for path in (user_path, repo_path):
        merge_config(config, load_config_file(path))
    return config

def load_config_file(path: Path) -> RawConfig:
    """Load one YAML config file. A missing or empty file yields no settings."""
    try:
        with open(path, 'r') as f:
            logger.debug(f"Found {path}, loading...")
            loaded = yaml.safe_load(f)
    except FileNotFoundError:
        logger.debug(f"No {path} found")
        return {}
    if not loaded:
        return {}
    if not isinstance(loaded, dict):
        logger.warning(f"Ignoring {path}: expected a mapping at the top level")
        return {}
    logger.debug(f"Config from {path}: {loaded}")
    return loaded

def merge_config(config: RawConfig, overrides: RawConfig) -> None:
    """Merge known sections of overrides into config in place."""
    for section in SECTIONS:
        values = overrides.get(section)
        if isinstance(values, dict):
            config[section].update(values)
        elif values is not None:
            logger.warning(f"Ignoring config section '{section}': expected a mapping")
