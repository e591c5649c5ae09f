"""formatter — report output as a Markdown comment, JSON, or stderr summary.

Provides the Markdown text posted as a single PR comment, a JSON-compatible
dict for machine consumers, and a coloured summary bar for the terminal.
Skips and fatal configuration errors have their own short renderings so the
user always sees a clear reason and never a traceback.

Every rendering is a pure function of its inputs: no timestamps or timings,
so identical evaluations produce byte-identical output.
"""

from __future__ import annotations

from typing import Any

from prgate.exceptions import ConfigMalformed, PrgateError
from prgate.lib import config
from prgate.lib.models import (
    EffectiveRuleSet,
    Finding,
    Report,
    ReportSection,
    Severity,
    SkipEvaluation,
    Verdict,
)
from prgate.lib.theme import code as _c


def _icon(severity: Severity) -> str:
    return config.get_str(f"icons.{severity.value}")


def _verdict_label(verdict: Verdict) -> str:
    key = "labels.passed_line" if verdict is Verdict.PASS else "labels.failed_line"
    return config.get_str(key)


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def _format_finding(finding: Finding) -> list[str]:
    first, *rest = finding.message.splitlines() or [""]
    location = f"`{finding.path}`: " if finding.path else ""
    lines = [f"- {_icon(finding.severity)} {location}{first}"]
    if rest:
        lines.append("  ```diff")
        lines.extend(f"  {ln}" for ln in rest)
        lines.append("  ```")
    return lines


def _section_result(section: ReportSection) -> str:
    status = section.status
    label = f"{_icon(status)} {status.value}"
    if section.findings:
        label += f" ({len(section.findings)} {config.get_str('labels.findings')})"
    return label


def format_report_text(report: Report) -> str:
    """Render the report as Markdown for a single PR comment."""
    parts: list[str] = [config.get_str("labels.report_title"), ""]
    if report.repo_id:
        parts.append(f"{config.get_str('labels.repo')} `{report.repo_id}`  ")
    if report.policy_version:
        parts.append(f"{config.get_str('labels.policy')} `{report.policy_version}`")
    if report.repo_id or report.policy_version:
        parts.append("")

    if not report.sections:
        parts.append(config.get_str("labels.no_rules"))
        parts.append("")
    else:
        rule_h = config.get_str("labels.rule")
        type_h = config.get_str("labels.type")
        result_h = config.get_str("labels.result")
        parts.append(f"| {rule_h} | {type_h} | {result_h} |")
        parts.append("| --- | --- | --- |")
        for section in report.sections:
            parts.append(
                f"| `{section.rule_id}` | {section.rule_type} | {_section_result(section)} |"
            )
        parts.append("")
        for section in report.sections:
            if not section.findings:
                continue
            parts.append(f"### {_icon(section.status)} `{section.rule_id}`")
            parts.append("")
            for finding in section.findings:
                parts.extend(_format_finding(finding))
            parts.append("")

    parts.append(
        f"**{config.get_str('labels.verdict')} {_verdict_label(report.verdict)}**"
    )
    return "\n".join(parts) + "\n"


def format_skip_text(repo_id: str, skip: SkipEvaluation) -> str:
    """Render the notice shown when validation is skipped."""
    notice = config.get_str("messages.skip_notice").format(
        repo_id=repo_id or "repository", reason=skip.reason
    )
    return f"{config.get_str('labels.skipped_title')}\n\n{notice}\n"


def format_error_text(exc: PrgateError) -> str:
    """Render a fatal error as a short Markdown block, one line per problem."""
    problems = exc.problems if isinstance(exc, ConfigMalformed) else [str(exc)]
    lines = [config.get_str("labels.error_title"), ""]
    lines.extend(f"- {p}" for p in problems)
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def format_report_json(report: Report) -> dict[str, Any]:
    """Format the report as a JSON-compatible dict."""
    status_key = "statuses.passed" if report.verdict is Verdict.PASS else "statuses.failed"
    return {
        "status": config.get_str(status_key),
        "verdict": report.verdict.value,
        "repo": report.repo_id,
        "policy_version": report.policy_version,
        "rules": [
            {
                "rule": s.rule_id,
                "type": s.rule_type,
                "status": s.status.value,
                "findings": [f.to_dict() for f in s.findings],
            }
            for s in report.sections
        ],
        "summary": {
            "fail": report.count(Severity.FAIL),
            "warn": report.count(Severity.WARN),
            "total_rules": len(report.sections),
        },
    }


def format_skip_json(repo_id: str, skip: SkipEvaluation) -> dict[str, Any]:
    return {
        "status": config.get_str("statuses.skipped"),
        "repo": repo_id,
        "reason": skip.reason,
    }


def format_error_json(exc: PrgateError) -> dict[str, Any]:
    problems = exc.problems if isinstance(exc, ConfigMalformed) else [str(exc)]
    return {
        "status": config.get_str("statuses.error"),
        "error": type(exc).__name__,
        "problems": problems,
    }


def format_rules_json(rules: EffectiveRuleSet) -> list[dict[str, Any]]:
    """Describe an effective rule set (used by ``prgate resolve``)."""
    return [
        {
            "id": r.rule_id,
            "type": r.rule_type,
            "params": {k: r.params[k] for k in sorted(r.params)},
        }
        for r in rules
    ]


# ---------------------------------------------------------------------------
# Stderr summary
# ---------------------------------------------------------------------------


def format_summary_stderr(report: Report) -> str:
    """Format the coloured summary bar printed after an evaluation."""
    bar_width = config.get_int("formatting.summary_bar_width")
    bar_char = config.get_str("formatting.summary_bar_char")
    fails = report.count(Severity.FAIL)
    warns = report.count(Severity.WARN)

    bar = f"{_c('summary_bar')}{bar_char * bar_width}{_c('reset')}"
    parts: list[str] = [bar]
    if report.repo_id:
        parts.append(
            f"  {_c('bold')}{config.get_str('labels.repo')}{_c('reset')} "
            f"{_c('info')}{report.repo_id}{_c('reset')} "
            f"{_c('dim')}({report.policy_version}){_c('reset')}"
        )
    parts.append(
        f"  {_c('error')}{fails} fail{_c('reset')}, "
        f"{_c('warning')}{warns} warn{_c('reset')} "
        f"across {len(report.sections)} rules"
    )
    role = "allowed" if report.verdict is Verdict.PASS else "blocked"
    parts.append(f"  {_c(role)}{_c('bold')}{_verdict_label(report.verdict)}{_c('reset')}")
    parts.append(bar)
    return "\n".join(parts)
