"""evaluators — rule types and the registry that dispatches to them.

Each rule type is an ``Evaluator`` subclass registered under its ``rule_type``
with ``@register_evaluator``.  The loader consults the registry to reject
unknown types and to validate type-specific parameters when the catalog is
parsed, so evaluation never meets a rule it cannot handle.  Adding a check
means adding a subclass here; the resolver and aggregator are unaware of
rule types.

Evaluator contract:
    evaluate(diff, rule, classifier) -> list[Finding]

Evaluators hold no state between calls and may run concurrently.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import libcst
import yaml

from prgate.exceptions import EvaluatorRenderError
from prgate.lib import config
from prgate.lib.classifier import EnvironmentClassifier
from prgate.lib.models import DiffArtifact, Finding, RuleDefinition, Severity
from prgate.lib.render import describe_error, get_renderer, known_renderers, semantic_diff
from prgate.lib.scope import as_patterns, chart_root, is_within, matches_any
from prgate.lib.yaml_loader import load_documents


class Evaluator:
    """Base class for rule types."""

    rule_type: str = ""

    def validate_params(self, rule: RuleDefinition) -> list[str]:
        """Return problems with the rule's parameters (empty = valid)."""
        return []

    def evaluate(
        self,
        diff: DiffArtifact,
        rule: RuleDefinition,
        classifier: EnvironmentClassifier,
    ) -> list[Finding]:
        raise NotImplementedError


_REGISTRY: dict[str, Evaluator] = {}

E = TypeVar("E", bound=type)


def register_evaluator(cls: E) -> E:
    """Class decorator registering an evaluator under its ``rule_type``."""
    if not cls.rule_type:
        raise ValueError(f"{cls.__name__} has no rule_type")
    _REGISTRY[cls.rule_type] = cls()
    return cls


def get_evaluator(rule_type: str) -> Evaluator:
    """Return the evaluator for ``rule_type``.

    Raises:
        KeyError: If no evaluator is registered for the type.
    """
    return _REGISTRY[rule_type]


def registered_types() -> list[str]:
    return sorted(_REGISTRY)


# ---------------------------------------------------------------------------
# Parameter validation helpers
# ---------------------------------------------------------------------------


def _bad_param(rule: RuleDefinition, key: str, expected: str, value: Any) -> str:
    return config.get_str("messages.bad_param").format(
        rule_id=rule.rule_id, key=key, expected=expected, type=type(value).__name__
    )


def _check_globs(rule: RuleDefinition, key: str) -> list[str]:
    value = rule.param(key)
    if value is None or isinstance(value, str):
        return []
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return []
    return [_bad_param(rule, key, "a glob or list of globs", value)]


def _check_bools(rule: RuleDefinition, keys: list[str]) -> list[str]:
    errors = []
    for key in keys:
        value = rule.param(key)
        if value is not None and not isinstance(value, bool):
            errors.append(_bad_param(rule, key, "a boolean", value))
    return errors


# ---------------------------------------------------------------------------
# structured_render
# ---------------------------------------------------------------------------

_FLAG_KEYS = [
    "fail_on_render_error_prod",
    "fail_on_render_error_nonprod",
    "fail_on_diff_prod",
    "fail_on_diff_nonprod",
]


@register_evaluator
class StructuredRenderEvaluator(Evaluator):
    """Render changed values files at head and base and report differences.

    Severity depends on the file's environment tier: each of the four
    ``fail_on_*`` flags turns the matching condition into ``fail``;
    otherwise it is reported as ``warn``.  Render errors and render diffs
    are checked independently for every file.
    """

    rule_type = "structured_render"

    def validate_params(self, rule: RuleDefinition) -> list[str]:
        errors = _check_globs(rule, "chart_glob") + _check_globs(rule, "values_glob")
        errors += _check_bools(rule, _FLAG_KEYS)

        pattern = rule.param("env_regex")
        if pattern is not None:
            if not isinstance(pattern, str):
                errors.append(_bad_param(rule, "env_regex", "a string", pattern))
            else:
                group = config.get_str("defaults.env_group")
                try:
                    compiled = re.compile(pattern)
                except re.error as exc:
                    errors.append(
                        config.get_str("messages.bad_env_regex").format(
                            rule_id=rule.rule_id, pattern=pattern, error=exc
                        )
                    )
                else:
                    if group not in compiled.groupindex:
                        errors.append(
                            config.get_str("messages.env_group_missing").format(
                                rule_id=rule.rule_id, pattern=pattern, group=group
                            )
                        )

        tiers = rule.param("prod_envs")
        if tiers is not None and not (
            isinstance(tiers, list) and all(isinstance(t, str) for t in tiers)
        ):
            errors.append(_bad_param(rule, "prod_envs", "a list of strings", tiers))

        renderer = rule.param("renderer")
        if renderer is not None and renderer not in known_renderers():
            errors.append(
                _bad_param(rule, "renderer", " or ".join(known_renderers()), renderer)
            )
        for key in ("helm_binary", "helm_release_name"):
            value = rule.param(key)
            if value is not None and not isinstance(value, str):
                errors.append(_bad_param(rule, key, "a string", value))
        timeout = rule.param("helm_timeout_seconds")
        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0
        ):
            errors.append(_bad_param(rule, "helm_timeout_seconds", "a positive integer", timeout))
        return errors

    def _flag(self, rule: RuleDefinition, key: str) -> bool:
        value = rule.param(key)
        if value is None:
            return config.get_bool(f"defaults.{key}")
        return bool(value)

    def candidates(self, diff: DiffArtifact, rule: RuleDefinition) -> list[str]:
        """Values files to render for this diff.

        Changed values files are always candidates.  A changed chart file
        (``chart_glob``) pulls in every values file of its chart, at head or
        base.
        """
        values_globs = as_patterns(rule.param("values_glob", config.get_str("defaults.values_glob")))
        chart_globs = as_patterns(rule.param("chart_glob", config.get_str("defaults.chart_glob")))
        roots = [diff.head_root, diff.base_root]

        selected = {p for p in diff.changed_paths if matches_any(p, values_globs)}
        chart_dirs: set[str] = set()
        for path in diff.changed_paths:
            if path in selected or not matches_any(path, chart_globs):
                continue
            chart = chart_root(path, roots)
            if chart is not None:
                chart_dirs.add(chart)

        for chart in sorted(chart_dirs):
            for root in roots:
                base = root / chart if chart else root
                if not base.is_dir():
                    continue
                for file in base.rglob("*"):
                    if not file.is_file():
                        continue
                    rel = file.relative_to(root).as_posix()
                    if is_within(rel, chart) and matches_any(rel, values_globs):
                        selected.add(rel)
        return sorted(selected)

    def evaluate(
        self,
        diff: DiffArtifact,
        rule: RuleDefinition,
        classifier: EnvironmentClassifier,
    ) -> list[Finding]:
        renderer = get_renderer(rule)
        findings: list[Finding] = []

        for rel in self.candidates(diff, rule):
            env = classifier.classify(rel)
            if env is None:
                findings.append(
                    Finding(
                        rule_id=rule.rule_id,
                        severity=Severity.WARN,
                        path=rel,
                        message=config.get_str("messages.unclassified").format(path=rel),
                    )
                )
            tier = "prod" if env is not None and env.is_prod_tier else "nonprod"

            renders: dict[str, Optional[list[Any]]] = {}
            for side, root in (("base", diff.base_root), ("head", diff.head_root)):
                try:
                    renders[side] = renderer.render(root, rel, side)
                except EvaluatorRenderError as exc:
                    renders[side] = None
                    severity = (
                        Severity.FAIL
                        if self._flag(rule, f"fail_on_render_error_{tier}")
                        else Severity.WARN
                    )
                    findings.append(
                        Finding(rule_id=rule.rule_id, severity=severity, path=rel, message=str(exc))
                    )

            base_docs, head_docs = renders["base"], renders["head"]
            if base_docs is None or head_docs is None:
                continue
            lines = semantic_diff(base_docs, head_docs, rel)
            if not lines:
                continue
            severity = (
                Severity.FAIL if self._flag(rule, f"fail_on_diff_{tier}") else Severity.WARN
            )
            findings.append(
                Finding(
                    rule_id=rule.rule_id,
                    severity=severity,
                    path=rel,
                    message=_diff_message(classifier.label(env), lines),
                )
            )
        return findings


def _diff_message(env_label: str, lines: list[str]) -> str:
    header = config.get_str("messages.render_diff").format(env_label=env_label)
    limit = config.get_int("defaults.diff_preview_lines")
    body = [ln for ln in lines if not ln.startswith(("---", "+++"))]
    preview = body[:limit]
    if len(body) > limit:
        preview.append(config.get_str("messages.diff_truncated").format(count=len(body) - limit))
    return "\n".join([header, *preview])


# ---------------------------------------------------------------------------
# lint
# ---------------------------------------------------------------------------


def _lint_yaml(text: str) -> None:
    load_documents(text)


def _lint_json(text: str) -> None:
    json.loads(text)


def _lint_python(text: str) -> None:
    libcst.parse_module(text)


# kind -> (label, checker, syntax errors it raises)
_LINTERS: dict[str, tuple[str, Callable[[str], None], tuple[type[BaseException], ...]]] = {
    "yaml": ("YAML", _lint_yaml, (yaml.YAMLError,)),
    "json": ("JSON", _lint_json, (json.JSONDecodeError,)),
    "python": ("Python", _lint_python, (libcst.ParserSyntaxError,)),
}


def lint_kind(path: str) -> Optional[str]:
    """Return the syntax kind for a path by suffix, or None if unsupported."""
    suffix = Path(path).suffix.lower()
    for kind, suffixes in config.get_mapping("lint_kinds").items():
        if suffix in suffixes:
            return kind
    return None


@register_evaluator
class LintEvaluator(Evaluator):
    """Syntax-check changed files selected by ``paths`` globs.

    YAML, JSON and Python files are supported; other matches are ignored.
    Deleted files are not checked.  Every syntax error is a ``fail``.
    """

    rule_type = "lint"

    def validate_params(self, rule: RuleDefinition) -> list[str]:
        return _check_globs(rule, "paths")

    def evaluate(
        self,
        diff: DiffArtifact,
        rule: RuleDefinition,
        classifier: EnvironmentClassifier,
    ) -> list[Finding]:
        patterns = as_patterns(rule.param("paths", config.get_list("defaults.lint_paths")))
        findings: list[Finding] = []
        for rel in diff.changed_paths:
            if not matches_any(rel, patterns) or not diff.exists_at_head(rel):
                continue
            kind = lint_kind(rel)
            if kind is None:
                continue
            label, check, errors = _LINTERS[kind]
            try:
                check(diff.head_path(rel).read_text(encoding="utf-8"))
            except errors + (UnicodeDecodeError,) as exc:
                findings.append(
                    Finding(
                        rule_id=rule.rule_id,
                        severity=Severity.FAIL,
                        path=rel,
                        message=config.get_str("messages.lint_error").format(
                            kind=label,
                            error=describe_error(exc),
                        ),
                    )
                )
        return findings
