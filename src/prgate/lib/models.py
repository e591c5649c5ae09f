"""Data models for prgate policy, rules, findings and reports.

Typed, frozen dataclasses that carry policy and evaluation state between
the loader, resolver, evaluators and report aggregator.  Policy objects are
immutable snapshots: merging an override always builds new objects, so one
repository's overrides can never leak into another evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Union


class Severity(str, Enum):
    """Severity of a single finding."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.PASS: 0, Severity.WARN: 1, Severity.FAIL: 2}


class Verdict(str, Enum):
    """Overall outcome of one evaluation."""

    PASS = "pass"
    FAIL = "fail"


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GlobalConfig:
    """Organization-wide switches from the shared policy directory.

    Attributes:
        validation_enabled_globally: Master switch for all evaluations.
        exclude_all_repos: Skip every repository when true.
        excluded_repos: Repository ids that are never evaluated.
        log_enabled: Append a JSONL entry per evaluation.
        log_directory: Directory for the evaluation log.
    """

    validation_enabled_globally: bool = True
    exclude_all_repos: bool = False
    excluded_repos: frozenset[str] = frozenset()
    log_enabled: bool = False
    log_directory: str = ""

    def excludes(self, repo_id: str) -> bool:
        """Return True when no evaluation may run for ``repo_id``."""
        return (
            not self.validation_enabled_globally
            or self.exclude_all_repos
            or repo_id in self.excluded_repos
        )


@dataclass(frozen=True)
class RuleDefinition:
    """A single rule from the shared catalog.

    Attributes:
        rule_id: Unique identifier, used in reports and override documents.
        rule_type: Registered evaluator type (e.g. ``structured_render``).
        enabled: Whether the rule is active before overrides.
        params: Type-specific parameters.
        description: Optional human-readable summary.
    """

    rule_id: str
    rule_type: str
    enabled: bool = True
    params: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""

    def param(self, key: str, default: Any = None) -> Any:
        """Return a parameter value, or ``default`` when unset."""
        return self.params.get(key, default)


@dataclass(frozen=True)
class RuleOverride:
    """Partial rule definition from a repository override document.

    ``enabled`` is None when the document does not mention it; ``params``
    only holds the keys the document sets.
    """

    enabled: Optional[bool] = None
    params: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RepoOverrideDoc:
    """Per-repository exceptions to the shared policy.

    Attributes:
        repo_enabled: False skips the whole evaluation.
        disabled_rule_ids: Rules removed from the effective set.
        override_rules: Partial definitions shallow-merged over catalog rules.
        reason: Audit annotation, also used as the skip reason.
    """

    repo_enabled: bool = True
    disabled_rule_ids: frozenset[str] = frozenset()
    override_rules: Mapping[str, RuleOverride] = field(default_factory=dict)
    reason: Optional[str] = None


@dataclass(frozen=True)
class PolicySnapshot:
    """Global config and rule catalog loaded together for one run.

    Attributes:
        global_config: Organization-wide switches.
        catalog: Rules in declaration order.
        version: Content digest of the raw policy documents.
    """

    global_config: GlobalConfig
    catalog: tuple[RuleDefinition, ...]
    version: str = ""

    def rule_ids(self) -> list[str]:
        return [r.rule_id for r in self.catalog]


@dataclass(frozen=True)
class EffectiveRuleSet:
    """Rules active for one repository, in catalog declaration order."""

    rules: tuple[RuleDefinition, ...] = ()

    def __iter__(self) -> Iterator[RuleDefinition]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    def __contains__(self, rule_id: object) -> bool:
        return any(r.rule_id == rule_id for r in self.rules)

    def get(self, rule_id: str) -> Optional[RuleDefinition]:
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None

    def rule_ids(self) -> list[str]:
        return [r.rule_id for r in self.rules]


@dataclass(frozen=True)
class SkipEvaluation:
    """A recognized no-op outcome: no rule runs for this pull request."""

    reason: str


ResolveResult = Union[EffectiveRuleSet, SkipEvaluation]


# ---------------------------------------------------------------------------
# Evaluation inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Environment:
    """Deployment environment derived from a file path."""

    name: str
    is_prod_tier: bool


@dataclass(frozen=True)
class DiffArtifact:
    """Files changed between the base and head snapshots of a pull request.

    Attributes:
        head_root: Root directory of the head snapshot.
        base_root: Root directory of the base snapshot.
        changed_paths: Sorted POSIX paths, relative to the snapshot roots,
            that were added, modified or deleted.
    """

    head_root: Path
    base_root: Path
    changed_paths: tuple[str, ...] = ()

    def head_path(self, rel: str) -> Path:
        return self.head_root / rel

    def base_path(self, rel: str) -> Path:
        return self.base_root / rel

    def exists_at_head(self, rel: str) -> bool:
        return self.head_path(rel).is_file()


# ---------------------------------------------------------------------------
# Evaluation outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Finding:
    """One evaluator's verdict on one checked item."""

    rule_id: str
    severity: Severity
    message: str
    path: Optional[str] = None

    def sort_key(self) -> tuple[str, int, str]:
        """Order by path (pathless first), then severity, then message."""
        return (self.path or "", -self.severity.rank, self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule_id,
            "severity": self.severity.value,
            "path": self.path,
            "message": self.message,
        }


@dataclass(frozen=True)
class ReportSection:
    """Findings of one rule, already sorted."""

    rule_id: str
    rule_type: str
    findings: tuple[Finding, ...] = ()

    @property
    def status(self) -> Severity:
        """Worst severity among the findings; PASS when there are none."""
        worst = Severity.PASS
        for f in self.findings:
            if f.severity.rank > worst.rank:
                worst = f.severity
        return worst


@dataclass(frozen=True)
class Report:
    """Aggregated result of one pull request evaluation."""

    verdict: Verdict
    sections: tuple[ReportSection, ...] = ()
    repo_id: str = ""
    policy_version: str = ""

    @property
    def findings(self) -> list[Finding]:
        return [f for s in self.sections for f in s.findings]

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity is severity)
