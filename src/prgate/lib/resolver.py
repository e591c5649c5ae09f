"""resolver — combine global switches, the catalog and a repository override.

Produces the effective rule set for one repository's evaluation, or a
``SkipEvaluation`` when global switches or the repository itself turn
validation off.

Design notes:
    Override entries are shallow-merged: ``enabled`` replaces the catalog
    flag and each parameter key present in the entry replaces that one
    parameter.  Everything else keeps its catalog value.  Merging always
    builds new ``RuleDefinition`` objects, so the catalog snapshot is never
    modified and can be shared by concurrent evaluations.
"""

from __future__ import annotations

from dataclasses import replace

from prgate.lib import config
from prgate.lib.models import (
    EffectiveRuleSet,
    GlobalConfig,
    RepoOverrideDoc,
    ResolveResult,
    RuleDefinition,
    RuleOverride,
    SkipEvaluation,
)


def merge_rule(rule: RuleDefinition, override: RuleOverride) -> RuleDefinition:
    """Shallow-merge one override entry over a catalog rule.

    Args:
        rule: The catalog rule.
        override: Partial definition from the override document.

    Returns:
        A new rule; ``rule`` is left untouched.
    """
    params = dict(rule.params)
    params.update(override.params)
    enabled = rule.enabled if override.enabled is None else override.enabled
    return replace(rule, enabled=enabled, params=params)


def resolve(
    global_config: GlobalConfig,
    catalog: tuple[RuleDefinition, ...],
    override: RepoOverrideDoc,
    repo_id: str,
) -> ResolveResult:
    """Resolve the effective rule set for ``repo_id``.

    Args:
        global_config: Organization-wide switches.
        catalog: Rules in declaration order.
        override: The repository's override document (defaults if absent).
        repo_id: Identifier of the repository under evaluation.

    Returns:
        ``SkipEvaluation`` when validation is off for this repository,
        otherwise the ``EffectiveRuleSet`` in catalog order.
    """
    if global_config.excludes(repo_id):
        return SkipEvaluation(reason=config.get_str("skip_reasons.global_disabled"))

    if not override.repo_enabled:
        return SkipEvaluation(
            reason=override.reason or config.get_str("skip_reasons.repo_disabled")
        )

    effective: list[RuleDefinition] = []
    for rule in catalog:
        if rule.rule_id in override.disabled_rule_ids:
            continue
        entry = override.override_rules.get(rule.rule_id)
        merged = merge_rule(rule, entry) if entry is not None else rule
        if merged.enabled:
            effective.append(merged)

    return EffectiveRuleSet(rules=tuple(effective))
