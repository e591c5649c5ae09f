"""theme — ANSI colour roles for the prgate terminal summary.

Colour definitions are read lazily from ``cli/theme.yaml`` and cached for
the process lifetime.  Codes are only emitted when the target stream is a
TTY, so reports piped into a CI log or a PR comment stay plain.
"""

from __future__ import annotations

import sys
from typing import Any, Optional

from prgate._paths import theme_path
from prgate.lib.yaml_loader import load_yaml

_PLAIN_ROLES = ("bold", "dim", "reset")


class Theme:
    """Role-to-ANSI mapping loaded on first use."""

    def __init__(self) -> None:
        self._resolved: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        path = theme_path()
        raw = load_yaml(path) if path.is_file() else None
        if not isinstance(raw, dict):
            return {}
        ansi: dict[str, str] = raw.get("ansi", {})
        resolved = {role: ansi.get(colour, "") for role, colour in raw.get("roles", {}).items()}
        for name in _PLAIN_ROLES:
            resolved[name] = ansi.get(name, "")
        return resolved

    @property
    def resolved(self) -> dict[str, str]:
        if self._resolved is None:
            self._resolved = self._load()
        return self._resolved

    def code(self, role: str, *, stream: Any = None) -> str:
        """Return the escape code for ``role``, or "" when not on a TTY."""
        target = stream or sys.stderr
        if not hasattr(target, "isatty") or not target.isatty():
            return ""
        return self.resolved.get(role, "")


_theme = Theme()


def code(role: str, *, stream: Any = None) -> str:
    """Return a role's escape code from the shared theme."""
    return _theme.code(role, stream=stream)
