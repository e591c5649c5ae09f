"""loader — parse and validate policy and override documents.

Turns the raw text of the global config, the shared rule catalog and an
optional repository override document into typed models.  Each document is
first checked by a ``validate_*`` function that returns every problem it
finds as a human-readable string; ``parse_*`` raises ``ConfigMalformed``
with that list when it is non-empty.  Parsing is pure: nothing is cached
and nothing is written.

Document shapes (YAML or JSON)::

    # global
    validation_enabled_globally: true
    exclude_all_repos: false
    excluded_repos: [legacy-service]
    logging: {enabled: false, directory: ""}

    # rules
    rules:
      - id: yaml_lint
        type: lint
        params: {paths: ["**/*.yaml"]}

    # override (in the target repository)
    repo_enabled: true
    disable_rules: [yaml_lint]
    override_rules:
      helm_diff: {chart_glob: "deploy/**"}
    reason: "Emergency maintenance"
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from prgate import _paths
from prgate.exceptions import ConfigMalformed, UnknownRuleId
from prgate.lib import config
from prgate.lib.evaluators import get_evaluator, registered_types
from prgate.lib.models import (
    GlobalConfig,
    PolicySnapshot,
    RepoOverrideDoc,
    RuleDefinition,
    RuleOverride,
)
from prgate.lib.resolver import merge_rule
from prgate.lib.yaml_loader import load_yaml_string

Text = Union[str, bytes]

_GLOBAL = "global"
_RULES = "rules"
_OVERRIDE = "override"

_PARAM_KEYS = ("params", "parameters")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _type_name(value: Any) -> str:
    return type(value).__name__


def _wrong_type(document: str, key: str, expected: str, value: Any) -> str:
    return config.get_str("messages.wrong_type").format(
        document=document, key=key, expected=expected, type=_type_name(value)
    )


def _not_mapping(document: str, value: Any) -> str:
    return config.get_str("messages.config_not_mapping").format(
        document=document, type=_type_name(value)
    )


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _parse_text(document: str, text: Text) -> Any:
    try:
        return load_yaml_string(text)
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        msg = config.get_str("messages.unreadable_document")
        raise ConfigMalformed(document, [msg.format(document=document, error=exc)]) from exc


def _rule_entries(data: Any) -> list[tuple[str, Any]]:
    """Normalize the catalog to (label, entry) pairs in declaration order.

    The ``rules`` key may hold a list of entries carrying ``id``, or a
    mapping from rule id to entry.
    """
    rules = data.get("rules") if isinstance(data, dict) else data
    if isinstance(rules, dict):
        pairs = []
        for rule_id, entry in rules.items():
            if isinstance(entry, dict) and "id" not in entry:
                entry = {"id": rule_id, **entry}
            pairs.append((f"rules.{rule_id}", entry))
        return pairs
    if isinstance(rules, list):
        return [(f"rules[{i}]", entry) for i, entry in enumerate(rules)]
    return []


def _entry_params(entry: dict[str, Any]) -> Any:
    for key in _PARAM_KEYS:
        if key in entry:
            return entry[key]
    return {}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_global_config(data: Any) -> list[str]:
    """Validate the structure of a global config document.

    Args:
        data: The parsed document.

    Returns:
        List of validation error messages. Empty if valid.
    """
    if not isinstance(data, dict):
        return [_not_mapping(_GLOBAL, data)]

    errors: list[str] = []
    if "validation_enabled_globally" not in data:
        errors.append(
            config.get_str("messages.missing_key").format(
                document=_GLOBAL, key="validation_enabled_globally"
            )
        )
    elif not isinstance(data["validation_enabled_globally"], bool):
        # Required: null is rejected like any other non-boolean.
        master = data["validation_enabled_globally"]
        errors.append(_wrong_type(_GLOBAL, "validation_enabled_globally", "a boolean", master))
    exclude_all = data.get("exclude_all_repos")
    if exclude_all is not None and not isinstance(exclude_all, bool):
        errors.append(_wrong_type(_GLOBAL, "exclude_all_repos", "a boolean", exclude_all))

    excluded = data.get("excluded_repos")
    if excluded is not None and not _is_str_list(excluded):
        errors.append(_wrong_type(_GLOBAL, "excluded_repos", "a list of strings", excluded))

    logging_cfg = data.get("logging")
    if logging_cfg is not None:
        if not isinstance(logging_cfg, dict):
            errors.append(_wrong_type(_GLOBAL, "logging", "a mapping", logging_cfg))
        else:
            enabled = logging_cfg.get("enabled")
            if enabled is not None and not isinstance(enabled, bool):
                errors.append(_wrong_type(_GLOBAL, "logging.enabled", "a boolean", enabled))
            directory = logging_cfg.get("directory")
            if directory is not None and not isinstance(directory, str):
                errors.append(
                    _wrong_type(_GLOBAL, "logging.directory", "a string", directory)
                )
    return errors


def validate_rule_catalog(data: Any) -> list[str]:
    """Validate the structure of a rule catalog document.

    Unknown rule types are rejected here so that evaluation never meets a
    rule it cannot dispatch.  Type-specific parameters are checked by the
    evaluator registered for the type.

    Args:
        data: The parsed document.

    Returns:
        List of validation error messages. Empty if valid.
    """
    if isinstance(data, dict):
        if "rules" not in data:
            return [config.get_str("messages.missing_key").format(document=_RULES, key="rules")]
        rules = data["rules"]
    else:
        rules = data
    if not isinstance(rules, (list, dict)):
        return [_wrong_type(_RULES, "rules", "a list or mapping", rules)]

    errors: list[str] = []
    seen: set[str] = set()
    known = registered_types()
    for label, entry in _rule_entries(data):
        if not isinstance(entry, dict):
            errors.append(_not_mapping(label, entry))
            continue
        rule_id = entry.get("id")
        if not isinstance(rule_id, str) or not rule_id:
            errors.append(
                config.get_str("messages.missing_key").format(document=label, key="id")
            )
            continue
        if rule_id in seen:
            errors.append(config.get_str("messages.duplicate_rule").format(rule_id=rule_id))
        seen.add(rule_id)

        rule_type = entry.get("type")
        if not isinstance(rule_type, str) or not rule_type:
            errors.append(
                config.get_str("messages.missing_key").format(document=label, key="type")
            )
        elif rule_type not in known:
            errors.append(
                config.get_str("messages.unknown_rule_type").format(
                    rule_id=rule_id, rule_type=rule_type, known=", ".join(known)
                )
            )

        enabled = entry.get("enabled", True)
        if not isinstance(enabled, bool):
            errors.append(_wrong_type(label, "enabled", "a boolean", enabled))
        description = entry.get("description", "")
        if not isinstance(description, str):
            errors.append(_wrong_type(label, "description", "a string", description))

        params = _entry_params(entry)
        if params is None:
            params = {}
        if not isinstance(params, dict):
            errors.append(_wrong_type(label, "params", "a mapping", params))
        elif isinstance(rule_type, str) and rule_type in known:
            rule = RuleDefinition(rule_id=rule_id, rule_type=rule_type, params=params)
            errors.extend(get_evaluator(rule_type).validate_params(rule))
    return errors


def validate_override_doc(data: Any) -> list[str]:
    """Validate the structure of a repository override document.

    Rule id references are checked against the catalog separately, in
    ``parse_override_doc``, because they raise ``UnknownRuleId``.

    Args:
        data: The parsed document.

    Returns:
        List of validation error messages. Empty if valid.
    """
    if not isinstance(data, dict):
        return [_not_mapping(_OVERRIDE, data)]

    errors: list[str] = []
    repo_enabled = data.get("repo_enabled")
    if repo_enabled is not None and not isinstance(repo_enabled, bool):
        errors.append(_wrong_type(_OVERRIDE, "repo_enabled", "a boolean", repo_enabled))

    disabled = data.get("disable_rules")
    if disabled is not None and not _is_str_list(disabled):
        errors.append(_wrong_type(_OVERRIDE, "disable_rules", "a list of strings", disabled))

    reason = data.get("reason")
    if reason is not None and not isinstance(reason, str):
        errors.append(_wrong_type(_OVERRIDE, "reason", "a string", reason))

    overrides = data.get("override_rules")
    if overrides is not None:
        if not isinstance(overrides, dict):
            errors.append(_wrong_type(_OVERRIDE, "override_rules", "a mapping", overrides))
        else:
            for rule_id, entry in overrides.items():
                label = f"override_rules.{rule_id}"
                if not isinstance(entry, dict):
                    errors.append(_not_mapping(label, entry))
                    continue
                if "type" in entry:
                    errors.append(
                        config.get_str("messages.type_override_forbidden").format(
                            rule_id=rule_id
                        )
                    )
                enabled = entry.get("enabled")
                if enabled is not None and not isinstance(enabled, bool):
                    errors.append(_wrong_type(label, "enabled", "a boolean", enabled))
                params = _entry_params(entry)
                if params is not None and not isinstance(params, dict):
                    errors.append(_wrong_type(label, "params", "a mapping", params))
    return errors


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_global_config(text: Text) -> GlobalConfig:
    """Parse the global config document.

    Raises:
        ConfigMalformed: If the document is unreadable or invalid.
    """
    data = _parse_text(_GLOBAL, text)
    errors = validate_global_config(data)
    if errors:
        raise ConfigMalformed(_GLOBAL, errors)

    logging_cfg = data.get("logging") or {}
    return GlobalConfig(
        validation_enabled_globally=data["validation_enabled_globally"],
        exclude_all_repos=data.get("exclude_all_repos", False),
        excluded_repos=frozenset(data.get("excluded_repos") or ()),
        log_enabled=logging_cfg.get("enabled", False),
        log_directory=logging_cfg.get("directory") or "",
    )


def parse_rule_catalog(text: Text) -> tuple[RuleDefinition, ...]:
    """Parse the shared rule catalog, preserving declaration order.

    Raises:
        ConfigMalformed: If the document is unreadable or invalid.
    """
    data = _parse_text(_RULES, text)
    errors = validate_rule_catalog(data)
    if errors:
        raise ConfigMalformed(_RULES, errors)

    catalog: list[RuleDefinition] = []
    for _label, entry in _rule_entries(data):
        catalog.append(
            RuleDefinition(
                rule_id=entry["id"],
                rule_type=entry["type"],
                enabled=entry.get("enabled", True),
                params=dict(_entry_params(entry) or {}),
                description=entry.get("description", ""),
            )
        )
    return tuple(catalog)


def parse_override_doc(
    text: Optional[Text],
    catalog: tuple[RuleDefinition, ...],
) -> RepoOverrideDoc:
    """Parse a repository override document against the catalog.

    Args:
        text: Raw document, or None when the repository has none.
        catalog: The parsed rule catalog.

    Returns:
        The override document; defaults when ``text`` is None or empty.

    Raises:
        ConfigMalformed: If the document is invalid.
        UnknownRuleId: If it references a rule id absent from the catalog.
    """
    if text is None:
        return RepoOverrideDoc()
    data = _parse_text(_OVERRIDE, text)
    if data is None:
        return RepoOverrideDoc()
    errors = validate_override_doc(data)
    if errors:
        raise ConfigMalformed(_OVERRIDE, errors)

    known_ids = {r.rule_id for r in catalog}
    disabled = data.get("disable_rules") or []
    raw_overrides: dict[str, Any] = data.get("override_rules") or {}
    for rule_id in [*disabled, *raw_overrides]:
        if rule_id not in known_ids:
            raise UnknownRuleId(rule_id)

    overrides: dict[str, RuleOverride] = {}
    for rule_id, entry in raw_overrides.items():
        params = dict(_entry_params(entry) or {})
        # Keys outside enabled/params are shorthand for single parameters.
        for key, value in entry.items():
            if key not in ("enabled", *_PARAM_KEYS):
                params[key] = value
        overrides[rule_id] = RuleOverride(enabled=entry.get("enabled"), params=params)

    # Merged parameters must satisfy the same checks as catalog parameters.
    catalog_by_id = {r.rule_id: r for r in catalog}
    param_errors: list[str] = []
    for rule_id, entry in overrides.items():
        merged = merge_rule(catalog_by_id[rule_id], entry)
        param_errors.extend(get_evaluator(merged.rule_type).validate_params(merged))
    if param_errors:
        raise ConfigMalformed(_OVERRIDE, param_errors)

    repo_enabled = data.get("repo_enabled")
    return RepoOverrideDoc(
        repo_enabled=True if repo_enabled is None else repo_enabled,
        disabled_rule_ids=frozenset(disabled),
        override_rules=overrides,
        reason=data.get("reason"),
    )


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def policy_version(*texts: Text) -> str:
    """Return a short content digest identifying a set of policy documents."""
    digest = hashlib.sha256()
    for text in texts:
        digest.update(text.encode("utf-8") if isinstance(text, str) else text)
        digest.update(b"\0")
    trunc = config.get_int("defaults.hash_truncation_length")
    return config.get_str("formatting.hash_prefix") + digest.hexdigest()[:trunc]


def _read_policy_file(policy_dir: Path, document: str, names: list[str]) -> bytes:
    path = _paths.find_first(policy_dir, names)
    if path is None:
        msg = config.get_str("messages.policy_file_missing")
        raise ConfigMalformed(
            document,
            [msg.format(path=policy_dir, document=document, names=", ".join(names))],
        )
    return path.read_bytes()


def load_policy(policy_dir: Union[str, Path]) -> PolicySnapshot:
    """Load the global config and rule catalog from a policy directory.

    Args:
        policy_dir: Directory holding ``global.*`` and ``rules.*``.

    Returns:
        An immutable snapshot, versioned by the documents' content.

    Raises:
        ConfigMalformed: If a document is missing, unreadable or invalid.
    """
    root = Path(policy_dir)
    global_raw = _read_policy_file(root, _GLOBAL, _paths.global_config_candidates())
    rules_raw = _read_policy_file(root, _RULES, _paths.rule_catalog_candidates())
    return PolicySnapshot(
        global_config=parse_global_config(global_raw),
        catalog=parse_rule_catalog(rules_raw),
        version=policy_version(global_raw, rules_raw),
    )


def load_override(
    path: Optional[Union[str, Path]],
    catalog: tuple[RuleDefinition, ...],
) -> RepoOverrideDoc:
    """Load an override document from disk; a missing file means defaults."""
    if path is None:
        return RepoOverrideDoc()
    p = Path(path)
    if not p.is_file():
        return RepoOverrideDoc()
    return parse_override_doc(p.read_bytes(), catalog)
