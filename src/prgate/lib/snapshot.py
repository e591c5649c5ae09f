"""snapshot — compute the diff artifact between two repository snapshots.

Both snapshots are already-materialized directories (the orchestrator checks
them out).  Files are compared by content digest; paths that exist on only
one side count as changed.  Directories listed in
``defaults.snapshot_ignore`` (``.git``) are not walked.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from prgate.lib import config
from prgate.lib.models import DiffArtifact

PathLike = Union[str, Path]


def _file_digests(root: Path) -> dict[str, str]:
    ignore = set(config.get_list("defaults.snapshot_ignore"))
    digests: dict[str, str] = {}
    if not root.is_dir():
        return digests
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore)
        for name in filenames:
            full = Path(dirpath) / name
            rel = full.relative_to(root).as_posix()
            digests[rel] = hashlib.sha256(full.read_bytes()).hexdigest()
    return digests


def changed_files(head_root: PathLike, base_root: PathLike) -> list[str]:
    """Return sorted paths added, modified or deleted between the snapshots."""
    head = _file_digests(Path(head_root))
    base = _file_digests(Path(base_root))
    changed = {p for p in head.keys() | base.keys() if head.get(p) != base.get(p)}
    return sorted(changed)


def build_diff(
    head_root: PathLike,
    base_root: PathLike,
    changed: Optional[Iterable[str]] = None,
) -> DiffArtifact:
    """Build the diff artifact for one pull request.

    Args:
        head_root: Directory holding the PR head snapshot.
        base_root: Directory holding the base snapshot.
        changed: Explicit changed paths (e.g. from the CI platform); when
            omitted they are computed by comparing the snapshots.

    Returns:
        The diff artifact with de-duplicated, sorted POSIX paths.
    """
    if changed is None:
        paths = changed_files(head_root, base_root)
    else:
        paths = sorted({Path(p).as_posix().lstrip("/") for p in changed if p})
    return DiffArtifact(
        head_root=Path(head_root),
        base_root=Path(base_root),
        changed_paths=tuple(paths),
    )
