"""Centralized path resolution for the prgate package.

This is the ONLY module that touches __file__ or searches directories for
well-known filenames.  Every other module imports from here.

Environment variables:
    PRGATE_POLICY_DIR — Default shared policy directory when the caller
        does not pass one explicitly.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

_PACKAGE_DIR = Path(__file__).resolve().parent


def _cfg_list(key: str) -> list[str]:
    """Lazy config accessor to avoid circular imports at module level."""
    from prgate.lib.config import get_list

    return [str(item) for item in get_list(key)]


def _cfg(key: str) -> str:
    from prgate.lib.config import get_str

    return get_str(key)


def default_policy_dir() -> Optional[Path]:
    """Return the policy directory named by $PRGATE_POLICY_DIR, if it exists."""
    env = os.environ.get(_cfg("env_vars.policy_dir"))
    if env:
        p = Path(env)
        if p.is_dir():
            return p
    return None


def find_first(directory: Path, names: list[str]) -> Optional[Path]:
    """Return the first of ``names`` that exists as a file in ``directory``."""
    for name in names:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def global_config_candidates() -> list[str]:
    """Return the accepted filenames for the global config document."""
    return _cfg_list("filenames.global_config")


def rule_catalog_candidates() -> list[str]:
    """Return the accepted filenames for the rule catalog document."""
    return _cfg_list("filenames.rule_catalog")


def override_candidates() -> list[str]:
    """Return the accepted filenames for a repository override document."""
    return _cfg_list("filenames.override")


def find_override(snapshot_root: Path) -> Optional[Path]:
    """Locate the override document at the root of a repository snapshot."""
    return find_first(snapshot_root, override_candidates())


def cli_dir() -> Path:
    """Return the cli/ directory path."""
    return _PACKAGE_DIR / _cfg("directories.cli")


def theme_path() -> Path:
    """Return the path to cli/theme.yaml."""
    return cli_dir() / _cfg("filenames.theme")
