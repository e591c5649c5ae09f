"""config — lazy-loaded, typed accessor for prgate engine defaults.

Reads ``config/defaults.yaml`` on first access and caches the result for the
lifetime of the process.  Typed accessor helpers (``get_str``, ``get_int``,
``get_list``, ``get_bool``, ``get_mapping``) enforce expected types at the
call-site so that a broken defaults file fails loudly at the first lookup
instead of deep inside an evaluator.

Design notes:
    Defaults are engine constants, not policy.  Repository policy (global
    switches, the rule catalog, override documents) is loaded per evaluation
    by ``prgate.lib.loader`` and never cached here.  ``reset()`` exists
    solely for test isolation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

_DEFAULTS: dict[str, Any] | None = None

_CONFIG_FILE = Path(__file__).resolve().parent.parent / "config" / "defaults.yaml"


def load_defaults() -> dict[str, Any]:
    """Load and cache ``defaults.yaml``.

    Raises:
        FileNotFoundError: If defaults.yaml is missing.
        yaml.YAMLError: If defaults.yaml contains invalid YAML.
        TypeError: If the top level is not a mapping.
    """
    global _DEFAULTS  # noqa: PLW0603
    if _DEFAULTS is None:
        with open(_CONFIG_FILE, encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            msg = f"defaults.yaml must be a YAML mapping, got {type(data).__name__}"
            raise TypeError(msg)
        _DEFAULTS = data
    return _DEFAULTS


def get(dotted_key: str) -> Any:
    """Access a nested config value using dot notation.

    Args:
        dotted_key: A dot-separated path like ``"exit_codes.failed"``.

    Returns:
        The value at the specified path.

    Raises:
        KeyError: If any segment of the path is missing.
    """
    node: Any = load_defaults()
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            msg = f"Config key not found: {dotted_key!r} (missing segment: {part!r})"
            raise KeyError(msg)
        node = node[part]
    return node


def _typed(dotted_key: str, expected: type, label: str) -> Any:
    value = get(dotted_key)
    # bool is a subclass of int; an int lookup must not accept True/False.
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        msg = f"Expected {label} for {dotted_key!r}, got {type(value).__name__}"
        raise TypeError(msg)
    return value


def get_str(dotted_key: str) -> str:
    """Return a config value as a string, raising TypeError otherwise."""
    return _typed(dotted_key, str, "str")


def get_int(dotted_key: str) -> int:
    """Return a config value as an integer, raising TypeError otherwise."""
    return _typed(dotted_key, int, "int")


def get_bool(dotted_key: str) -> bool:
    """Return a config value as a boolean, raising TypeError otherwise."""
    return _typed(dotted_key, bool, "bool")


def get_list(dotted_key: str) -> list[Any]:
    """Return a config value as a list, raising TypeError otherwise."""
    return _typed(dotted_key, list, "list")


def get_mapping(dotted_key: str) -> dict[str, Any]:
    """Return a config value as a mapping, raising TypeError otherwise."""
    return _typed(dotted_key, dict, "mapping")


def reset() -> None:
    """Clear the cached config (used by tests)."""
    global _DEFAULTS  # noqa: PLW0603
    _DEFAULTS = None
