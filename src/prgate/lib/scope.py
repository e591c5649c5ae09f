"""scope — glob matching for rule file selection and chart root lookup.

Rules select files with glob patterns relative to the repository root.
Matching follows ``fnmatch`` semantics on the POSIX path (``*`` may cross
``/``), with two conveniences: a leading ``**/`` also matches files at the
root, and a pattern without ``/`` is matched against the basename too.
"""

from __future__ import annotations

import fnmatch
import posixpath
from pathlib import Path
from typing import Iterable, Optional, Union

from prgate.lib import config


def path_matches(path: str, pattern: str) -> bool:
    """Return True if the snapshot-relative ``path`` matches ``pattern``."""
    if fnmatch.fnmatchcase(path, pattern):
        return True
    if pattern.startswith("**/") and fnmatch.fnmatchcase(path, pattern[3:]):
        return True
    if "/" not in pattern and fnmatch.fnmatchcase(posixpath.basename(path), pattern):
        return True
    return False


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(path_matches(path, p) for p in patterns)


def as_patterns(value: Union[str, Iterable[str], None]) -> list[str]:
    """Normalize a glob parameter that may be a single string or a list."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def chart_root(rel_path: str, roots: Iterable[Path]) -> Optional[str]:
    """Find the nearest ancestor directory that holds a chart marker.

    Args:
        rel_path: Snapshot-relative file path.
        roots: Snapshot roots to look in (head and base).

    Returns:
        The chart directory relative to the snapshot root (``""`` for the
        root itself), or None when no ancestor is a chart.
    """
    marker = config.get_str("filenames.chart_marker")
    roots = list(roots)
    directory = posixpath.dirname(rel_path)
    while True:
        for root in roots:
            if (root / directory / marker).is_file():
                return directory
        if not directory:
            return None
        directory = posixpath.dirname(directory)


def is_within(rel_path: str, directory: str) -> bool:
    """Return True if ``rel_path`` lies inside ``directory`` ("" is the root)."""
    if not directory:
        return True
    return rel_path == directory or rel_path.startswith(directory + "/")
