"""commands — handlers for the prgate CLI subcommands.

Each ``cmd_*`` function receives the parsed ``argparse.Namespace`` and
returns the process exit code.  Handlers never let a prgate error escape as
a traceback: configuration problems are printed as a single error report
and mapped to the ``exit_codes.error`` status.
"""

from __future__ import annotations

import argparse
import json
import re
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Optional

from prgate import _paths
from prgate.engine import evaluate_pull_request
from prgate.exceptions import ConfigMalformed, PrgateError
from prgate.lib import config
from prgate.lib.classifier import EnvironmentClassifier
from prgate.lib.formatter import (
    format_error_json,
    format_error_text,
    format_report_json,
    format_report_text,
    format_rules_json,
    format_skip_json,
    format_skip_text,
    format_summary_stderr,
)
from prgate.lib.loader import load_override, load_policy
from prgate.lib.models import RepoOverrideDoc, RuleDefinition, SkipEvaluation
from prgate.lib.resolver import resolve


def _emit(args: argparse.Namespace, text: str) -> None:
    """Write output to --output if given, else stdout."""
    output = getattr(args, "output", None)
    if output:
        Path(output).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)


def _dump_json(data: Any) -> str:
    return json.dumps(data, indent=config.get_int("formatting.json_indent"), ensure_ascii=False) + "\n"


def _is_json(args: argparse.Namespace) -> bool:
    return getattr(args, "format", "") == config.get_str("formats.json")


def _fail(args: argparse.Namespace, exc: PrgateError) -> int:
    fatal = config.get_str("messages.fatal_prefix")
    sys.stderr.write(f"{fatal}{exc}\n")
    _emit(args, _dump_json(format_error_json(exc)) if _is_json(args) else format_error_text(exc))
    return config.get_int("exit_codes.error")


def _policy_dir(args: argparse.Namespace) -> Optional[Path]:
    if args.policy:
        return Path(args.policy)
    return _paths.default_policy_dir()


def _require_policy(parser_error: Any, args: argparse.Namespace) -> Path:
    policy = _policy_dir(args)
    if policy is None:
        env = config.get_str("env_vars.policy_dir")
        parser_error(f"--policy is required (or set ${env})")
    return policy


def _changed_files(args: argparse.Namespace) -> Optional[list[str]]:
    changed: list[str] = list(args.changed_file or [])
    if args.changed_files_from:
        try:
            text = Path(args.changed_files_from).read_text(encoding="utf-8")
        except OSError as exc:
            msg = config.get_str("messages.changed_files_unreadable")
            raise ConfigMalformed(
                "changed-files",
                [msg.format(path=args.changed_files_from, error=exc.strerror or exc)],
            ) from exc
        changed.extend(line.strip() for line in text.splitlines() if line.strip())
    if not changed and not args.changed_files_from:
        return None
    return changed


# ---------------------------------------------------------------------------
# evaluate
# ---------------------------------------------------------------------------


def cmd_evaluate(args: argparse.Namespace) -> int:
    """Evaluate one pull request and print its report."""
    policy_dir = _require_policy(args.parser_error, args)
    cancel = threading.Event()
    # SIGTERM from the orchestrator (a newer run superseding this one)
    # cancels the evaluator fan-out.
    previous = signal.signal(signal.SIGTERM, lambda _signum, _frame: cancel.set())
    try:
        outcome = evaluate_pull_request(
            policy_dir,
            args.head,
            args.base,
            args.repo,
            override_path=args.override,
            changed=_changed_files(args),
            jobs=args.jobs,
            cancel=cancel,
        )
    except PrgateError as exc:
        return _fail(args, exc)
    except OSError as exc:
        fatal = config.get_str("messages.fatal_prefix")
        msg = config.get_str("messages.io_error")
        sys.stderr.write(fatal + msg.format(path=exc.filename or args.head, error=exc.strerror or exc) + "\n")
        return config.get_int("exit_codes.error")
    finally:
        signal.signal(signal.SIGTERM, previous)

    if outcome.skip is not None:
        if _is_json(args):
            _emit(args, _dump_json(format_skip_json(outcome.repo_id, outcome.skip)))
        else:
            _emit(args, format_skip_text(outcome.repo_id, outcome.skip))
        sys.stderr.write(
            config.get_str("messages.skip_notice").format(
                repo_id=outcome.repo_id, reason=outcome.skip.reason
            )
            + "\n"
        )
        return outcome.exit_code

    report = outcome.report
    if report is None:
        return outcome.exit_code
    if _is_json(args):
        _emit(args, _dump_json(format_report_json(report)))
    else:
        _emit(args, format_report_text(report))
    sys.stderr.write(format_summary_stderr(report) + "\n")
    return outcome.exit_code


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


def cmd_resolve(args: argparse.Namespace) -> int:
    """Print the effective rule set for a repository."""
    policy_dir = _require_policy(args.parser_error, args)
    try:
        policy = load_policy(policy_dir)
        override_path = args.override
        if override_path is None and args.base:
            override_path = _paths.find_override(Path(args.base))
        override = load_override(override_path, policy.catalog)
    except PrgateError as exc:
        return _fail(args, exc)

    result = resolve(policy.global_config, policy.catalog, override, args.repo)
    if isinstance(result, SkipEvaluation):
        _emit(args, _dump_json(format_skip_json(args.repo, result)))
    else:
        _emit(
            args,
            _dump_json({
                "repo": args.repo,
                "policy_version": policy.version,
                "rules": format_rules_json(result),
            }),
        )
    return config.get_int("exit_codes.ok")


# ---------------------------------------------------------------------------
# lint-policy
# ---------------------------------------------------------------------------


def cmd_lint_policy(args: argparse.Namespace) -> int:
    """Validate the policy directory and, optionally, an override document."""
    policy_dir = _require_policy(args.parser_error, args)
    try:
        policy = load_policy(policy_dir)
        override = load_override(args.override, policy.catalog) if args.override else RepoOverrideDoc()
    except PrgateError as exc:
        return _fail(args, exc)

    lines = [
        f"policy {policy.version}: {len(policy.catalog)} rules OK",
    ]
    for rule in policy.catalog:
        state = "enabled" if rule.enabled else "disabled"
        lines.append(f"  {rule.rule_id} ({rule.rule_type}, {state})")
    if args.override:
        lines.append(
            f"override {args.override}: OK "
            f"({len(override.disabled_rule_ids)} disabled, "
            f"{len(override.override_rules)} overridden)"
        )
    _emit(args, "\n".join(lines) + "\n")
    return config.get_int("exit_codes.ok")


# ---------------------------------------------------------------------------
# classify
# ---------------------------------------------------------------------------


def cmd_classify(args: argparse.Namespace) -> int:
    """Show how a rule's environment pattern classifies the given paths."""
    rule: Optional[RuleDefinition] = None
    if args.rule:
        policy_dir = _require_policy(args.parser_error, args)
        try:
            policy = load_policy(policy_dir)
        except PrgateError as exc:
            return _fail(args, exc)
        rule = next((r for r in policy.catalog if r.rule_id == args.rule), None)
        if rule is None:
            args.parser_error(f"unknown rule id {args.rule!r}")
    else:
        params: dict[str, Any] = {}
        if args.env_regex:
            params["env_regex"] = args.env_regex
        if args.prod_env:
            params["prod_envs"] = list(args.prod_env)
        rule = RuleDefinition(rule_id="classify", rule_type="structured_render", params=params)

    try:
        classifier = EnvironmentClassifier.for_rule(rule)
    except re.error as exc:
        args.parser_error(f"invalid --env-regex: {exc}")
    for path in args.paths:
        env = classifier.classify(path)
        sys.stdout.write(f"{path}\t{classifier.label(env)}\n")
    return config.get_int("exit_codes.ok")
