"""prgate — Centralized policy-driven pull request validation.

Evaluates a pull request's head and base snapshots against a shared rule
catalog, with per-repository override documents and prod/non-prod aware
enforcement.

Stable public API:
    evaluate_pull_request: Load policy from disk and evaluate one PR.
    evaluate: Evaluate one PR against an already-loaded policy.
    EvaluationOutcome: Dataclass returned by both.
    Report, Finding, Severity, Verdict, SkipEvaluation: Result models.
    ConfigMalformed, UnknownRuleId, EvaluationCancelled: Exceptions.
"""

__version__ = "0.1.0"

from prgate.engine import EvaluationOutcome, evaluate, evaluate_pull_request
from prgate.exceptions import (
    AggregationFailure,
    ConfigMalformed,
    EvaluationCancelled,
    EvaluatorRenderError,
    PrgateError,
    UnknownRuleId,
)
from prgate.lib.models import Finding, Report, Severity, SkipEvaluation, Verdict

__all__ = [
    "__version__",
    "evaluate_pull_request",
    "evaluate",
    "EvaluationOutcome",
    "Report",
    "Finding",
    "Severity",
    "Verdict",
    "SkipEvaluation",
    "PrgateError",
    "ConfigMalformed",
    "UnknownRuleId",
    "EvaluatorRenderError",
    "AggregationFailure",
    "EvaluationCancelled",
]
