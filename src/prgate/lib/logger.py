"""logger — JSONL telemetry for PR evaluations.

Each evaluation appends a single JSON line to ``evaluations.jsonl`` inside
the directory named by the global config's ``logging.directory``.  Entries
record the repository, policy version, outcome, per-severity counts, the
rules that ran and which of them produced findings, and the elapsed time.
The report itself stays free of timestamps; only this log carries them.
"""

from __future__ import annotations

import datetime
import json
import os
from typing import Any, Optional

from prgate.lib import config
from prgate.lib.models import Report, Severity


def log_evaluation(
    log_dir: str,
    repo_id: str,
    policy_version: str,
    status: str,
    elapsed_ms: int,
    report: Optional[Report] = None,
    reason: str = "",
) -> None:
    """Append a JSONL entry for one evaluation.

    Args:
        log_dir: Directory to write the log file in; nothing is written
            when empty.
        repo_id: Repository identifier.
        policy_version: Digest of the policy documents used.
        status: 'passed', 'failed' or 'skipped'.
        elapsed_ms: Evaluation duration in milliseconds.
        report: The report, when rules ran.
        reason: Skip reason, when skipped.
    """
    if not log_dir:
        return
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, config.get_str("filenames.evaluation_log"))

    utc_src = config.get_str("formatting.utc_offset_source")
    utc_rep = config.get_str("formatting.utc_offset_replacement")
    separators = tuple(config.get_list("formatting.json_separators"))

    entry: dict[str, Any] = {
        "timestamp": (
            datetime.datetime.now(datetime.timezone.utc)
            .isoformat()
            .replace(utc_src, utc_rep)
        ),
        "event": "evaluation",
        "repo": repo_id,
        "policy_version": policy_version,
        "status": status,
        "elapsed_ms": elapsed_ms,
    }
    if reason:
        entry["reason"] = reason
    if report is not None:
        entry["rules"] = [s.rule_id for s in report.sections]
        entry["rules_with_findings"] = [s.rule_id for s in report.sections if s.findings]
        entry["fail"] = report.count(Severity.FAIL)
        entry["warn"] = report.count(Severity.WARN)

    with open(log_path, "a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, separators=separators) + "\n")
