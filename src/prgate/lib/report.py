"""report — aggregate findings into a deterministic report and verdict.

Sections follow the effective rule order; findings inside a section are
sorted by path, then severity (worst first), then message.  The verdict is
``fail`` iff any finding is ``fail``.  Aggregation is pure.
"""

from __future__ import annotations

from typing import Iterable

from prgate.exceptions import AggregationFailure
from prgate.lib import config
from prgate.lib.models import (
    EffectiveRuleSet,
    Finding,
    Report,
    ReportSection,
    Severity,
    Verdict,
)


def verdict_for(findings: Iterable[Finding]) -> Verdict:
    """Return FAIL if any finding fails, else PASS."""
    if any(f.severity is Severity.FAIL for f in findings):
        return Verdict.FAIL
    return Verdict.PASS


def aggregate(
    findings: Iterable[Finding],
    rules: EffectiveRuleSet,
    *,
    repo_id: str = "",
    policy_version: str = "",
) -> Report:
    """Group findings by rule into an ordered report.

    Args:
        findings: Findings from every evaluator, in any order.
        rules: The effective rule set; defines section order.
        repo_id: Repository identifier carried into the report.
        policy_version: Policy digest carried into the report.

    Returns:
        The report, with one section per effective rule.

    Raises:
        AggregationFailure: If a finding names a rule outside ``rules``.
    """
    grouped: dict[str, list[Finding]] = {rule_id: [] for rule_id in rules.rule_ids()}
    for finding in findings:
        bucket = grouped.get(finding.rule_id)
        if bucket is None:
            msg = config.get_str("messages.aggregation_unknown_rule")
            raise AggregationFailure(finding.rule_id, msg.format(rule_id=finding.rule_id))
        bucket.append(finding)

    sections = tuple(
        ReportSection(
            rule_id=rule.rule_id,
            rule_type=rule.rule_type,
            findings=tuple(sorted(grouped[rule.rule_id], key=Finding.sort_key)),
        )
        for rule in rules
    )
    all_findings = [f for s in sections for f in s.findings]
    return Report(
        verdict=verdict_for(all_findings),
        sections=sections,
        repo_id=repo_id,
        policy_version=policy_version,
    )
