"""prgate engine — orchestrates one pull request evaluation.

Composes the library modules: load the policy snapshot and the repository
override, resolve the effective rule set, fan the rules out to their
evaluators, and aggregate the findings into a report.  This is the main
entry point for programmatic usage.

Design notes:
    Each evaluation loads its own policy snapshot and shares no mutable
    state with other evaluations.  Within one evaluation, rules run on a
    thread pool and are joined before aggregation.  A caller-supplied
    ``threading.Event`` cancels the fan-out; partial findings are dropped
    and ``EvaluationCancelled`` is raised instead of returning a partial
    report.
"""

from __future__ import annotations

import sys
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from prgate import _paths
from prgate.exceptions import EvaluationCancelled
from prgate.lib import config
from prgate.lib.classifier import EnvironmentClassifier
from prgate.lib.evaluators import get_evaluator
from prgate.lib.loader import load_override, load_policy
from prgate.lib.logger import log_evaluation
from prgate.lib.models import (
    DiffArtifact,
    EffectiveRuleSet,
    Finding,
    PolicySnapshot,
    RepoOverrideDoc,
    Report,
    RuleDefinition,
    Severity,
    SkipEvaluation,
    Verdict,
)
from prgate.lib.report import aggregate
from prgate.lib.resolver import resolve
from prgate.lib.snapshot import build_diff

PathLike = Union[str, Path]

_POLL_SECONDS = 0.05


@dataclass
class EvaluationOutcome:
    """Result of one pull request evaluation."""

    status: str
    repo_id: str
    policy_version: str = ""
    report: Optional[Report] = None
    skip: Optional[SkipEvaluation] = None
    rules: Optional[EffectiveRuleSet] = None
    elapsed_ms: int = 0

    @property
    def skipped(self) -> bool:
        return self.skip is not None

    @property
    def exit_code(self) -> int:
        if self.report is not None and self.report.verdict is Verdict.FAIL:
            return config.get_int("exit_codes.failed")
        return config.get_int("exit_codes.ok")


def evaluate_rule(rule: RuleDefinition, diff: DiffArtifact) -> list[Finding]:
    """Run one rule's evaluator, turning unexpected errors into a finding.

    A crashing evaluator must not hide the other rules' results, so any
    exception becomes a single ``fail`` finding for that rule.
    """
    try:
        evaluator = get_evaluator(rule.rule_type)
        classifier = EnvironmentClassifier.for_rule(rule)
        return evaluator.evaluate(diff, rule, classifier)
    except Exception as exc:
        msg = config.get_str("messages.rule_exception")
        sys.stderr.write(
            msg.format(rule_id=rule.rule_id, error=type(exc).__name__, detail=exc) + "\n"
        )
        internal = config.get_str("messages.internal_evaluator_error")
        return [
            Finding(
                rule_id=rule.rule_id,
                severity=Severity.FAIL,
                message=internal.format(rule_id=rule.rule_id, error=type(exc).__name__),
            )
        ]


def run_evaluators(
    diff: DiffArtifact,
    rules: EffectiveRuleSet,
    *,
    jobs: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> list[Finding]:
    """Evaluate every rule concurrently and join before returning.

    Args:
        diff: Changed files of the pull request.
        rules: Effective rule set.
        jobs: Worker threads; defaults to ``defaults.jobs``.
        cancel: Set to abort; pending evaluators are cancelled.

    Returns:
        All findings, grouped in rule order.

    Raises:
        EvaluationCancelled: If ``cancel`` is set before all rules finish.
    """
    if cancel is not None and cancel.is_set():
        raise EvaluationCancelled()
    if not len(rules):
        return []

    workers = max(1, jobs or config.get_int("defaults.jobs"))
    results: dict[str, list[Finding]] = {}
    with ThreadPoolExecutor(max_workers=min(workers, len(rules))) as pool:
        futures: dict[Future[list[Finding]], str] = {
            pool.submit(evaluate_rule, rule, diff): rule.rule_id for rule in rules
        }
        pending = set(futures)
        while pending:
            if cancel is not None and cancel.is_set():
                for fut in pending:
                    fut.cancel()
                raise EvaluationCancelled()
            done, pending = wait(pending, timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED)
            for fut in done:
                results[futures[fut]] = fut.result()

    if cancel is not None and cancel.is_set():
        raise EvaluationCancelled()
    return [f for rule_id in rules.rule_ids() for f in results[rule_id]]


def evaluate(
    policy: PolicySnapshot,
    override: RepoOverrideDoc,
    repo_id: str,
    head: PathLike,
    base: PathLike,
    *,
    changed: Optional[Iterable[str]] = None,
    jobs: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> EvaluationOutcome:
    """Evaluate one pull request against an already-loaded policy.

    Args:
        policy: Global config and rule catalog.
        override: The repository's override document.
        repo_id: Repository identifier (matched against ``excluded_repos``).
        head: PR head snapshot directory.
        base: Base snapshot directory.
        changed: Explicit changed paths; computed from the snapshots if None.
        jobs: Evaluator worker threads.
        cancel: Cancellation event.

    Returns:
        The outcome: a report, or a skip with its reason.
    """
    start = time.time()
    g = policy.global_config
    log_dir = g.log_directory if g.log_enabled else ""

    resolved = resolve(g, policy.catalog, override, repo_id)
    if isinstance(resolved, SkipEvaluation):
        elapsed = int((time.time() - start) * 1000)
        status = config.get_str("statuses.skipped")
        log_evaluation(log_dir, repo_id, policy.version, status, elapsed, reason=resolved.reason)
        return EvaluationOutcome(
            status=status,
            repo_id=repo_id,
            policy_version=policy.version,
            skip=resolved,
            elapsed_ms=elapsed,
        )

    diff = build_diff(head, base, changed)
    findings = run_evaluators(diff, resolved, jobs=jobs, cancel=cancel)
    report = aggregate(findings, resolved, repo_id=repo_id, policy_version=policy.version)

    elapsed = int((time.time() - start) * 1000)
    status_key = "statuses.passed" if report.verdict is Verdict.PASS else "statuses.failed"
    status = config.get_str(status_key)
    log_evaluation(log_dir, repo_id, policy.version, status, elapsed, report=report)
    return EvaluationOutcome(
        status=status,
        repo_id=repo_id,
        policy_version=policy.version,
        report=report,
        rules=resolved,
        elapsed_ms=elapsed,
    )


def evaluate_pull_request(
    policy_dir: PathLike,
    head: PathLike,
    base: PathLike,
    repo_id: str,
    *,
    override_path: Optional[PathLike] = None,
    changed: Optional[Iterable[str]] = None,
    jobs: Optional[int] = None,
    cancel: Optional[threading.Event] = None,
) -> EvaluationOutcome:
    """Load policy and override from disk, then evaluate.

    The override document is taken from ``override_path`` or, when omitted,
    discovered at the root of the base snapshot.  It is not read at all for
    repositories the global config excludes.

    Raises:
        ConfigMalformed: If a policy or override document is invalid.
        UnknownRuleId: If the override names a rule the catalog lacks.
        EvaluationCancelled: If ``cancel`` is set during evaluation.
    """
    policy = load_policy(policy_dir)
    if policy.global_config.excludes(repo_id):
        override = RepoOverrideDoc()
    else:
        if override_path is None:
            override_path = _paths.find_override(Path(base))
        override = load_override(override_path, policy.catalog)
    return evaluate(
        policy,
        override,
        repo_id,
        head,
        base,
        changed=changed,
        jobs=jobs,
        cancel=cancel,
    )
