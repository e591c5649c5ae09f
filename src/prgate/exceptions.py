"""Custom exceptions for prgate.

Defines the exception hierarchy used across the loader, evaluators, report
aggregator and engine.  All exceptions are importable from the top-level
``prgate`` package.

Exceptions:
    PrgateError — Base class for every error raised by prgate.
    ConfigMalformed — A policy or override document is missing required
        fields, has mistyped values, or names an unknown rule type. Fatal.
    UnknownRuleId — An override document references a rule id absent from
        the catalog. Fatal.
    EvaluatorRenderError — A structured file could not be rendered at one
        revision. Recoverable: evaluators convert it into a finding.
    AggregationFailure — A finding does not belong to the effective rule
        set. Internal invariant violation, fatal.
    EvaluationCancelled — The caller signalled cancellation while
        evaluators were running. Partial results are discarded.

Skipping an evaluation is not an error; see ``prgate.lib.models.SkipEvaluation``.
"""

from __future__ import annotations

from typing import Optional

from prgate.lib import config


class PrgateError(Exception):
    """Base class for prgate errors."""


class ConfigMalformed(PrgateError):
    """Raised when a policy or override document fails validation.

    Carries the name of the offending document and every problem found,
    so a single run reports all of them at once.
    """

    def __init__(self, document: str, problems: list[str]) -> None:
        """Initialize with the document name and its problems.

        Args:
            document: Logical document name (e.g. ``"rules"``).
            problems: Human-readable problem descriptions.
        """
        self.document = document
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or document)


class UnknownRuleId(ConfigMalformed):
    """Raised when an override document names a rule the catalog lacks."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        msg = config.get_str("messages.unknown_rule_id").format(rule_id=rule_id)
        super().__init__("override", [msg])


class EvaluatorRenderError(PrgateError):
    """Raised when a structured file cannot be rendered at one revision.

    Evaluators catch this per file and turn it into a finding according
    to the rule's tier policy, so it never aborts the run.
    """

    def __init__(self, path: str, side: str, detail: str) -> None:
        """Initialize with render failure details.

        Args:
            path: Snapshot-relative path of the file being rendered.
            side: ``"head"`` or ``"base"``.
            detail: Short description of the underlying failure.
        """
        self.path = path
        self.side = side
        self.detail = detail
        msg = config.get_str("messages.render_error")
        super().__init__(msg.format(side=side, error=detail))


class AggregationFailure(PrgateError):
    """Raised when findings cannot be placed into the report."""

    def __init__(self, rule_id: Optional[str], message: str) -> None:
        self.rule_id = rule_id
        super().__init__(message)


class EvaluationCancelled(PrgateError):
    """Raised when an evaluation is aborted through its cancel event."""

    def __init__(self) -> None:
        super().__init__(config.get_str("messages.cancelled"))
