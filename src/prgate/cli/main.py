"""prgate CLI entry point — argument parsing and command dispatch.

Builds the argparse parser tree and dispatches each subcommand to its
handler in :mod:`prgate.cli.commands`.  The program name, description and
format choices come from the central config module.

Usage::

    prgate evaluate --policy <dir> --head <dir> --base <dir> --repo <id>
                    [--override <file>] [--changed-file <path> ...]
                    [--format text|json] [--output <file>] [--jobs N]
    prgate resolve --policy <dir> --repo <id> [--override <file> | --base <dir>]
    prgate lint-policy --policy <dir> [--override <file>]
    prgate classify [--policy <dir> --rule <id> | --env-regex <re>] <path>...

Exit status: 0 for pass or skip, 1 for fail, 2 for a configuration error.
"""

from __future__ import annotations

import argparse
import sys

from prgate import __version__
from prgate.cli.commands import cmd_classify, cmd_evaluate, cmd_lint_policy, cmd_resolve
from prgate.lib import config


def build_parser() -> argparse.ArgumentParser:
    """Build the full parser tree, one sub-parser per subcommand."""
    prog = config.get_str("cli.prog_name")
    fmt_text = config.get_str("formats.text")
    fmt_json = config.get_str("formats.json")
    fmt_default = config.get_str("formats.default")
    env_policy = config.get_str("env_vars.policy_dir")

    parser = argparse.ArgumentParser(prog=prog, description=config.get_str("cli.description"))
    parser.add_argument("--version", action="version", version=f"{prog} {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    def add_policy(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--policy",
            help=f"Shared policy directory (default: ${env_policy})",
        )

    sub_eval = subparsers.add_parser("evaluate", help="Evaluate a pull request")
    add_policy(sub_eval)
    sub_eval.add_argument("--head", required=True, help="PR head snapshot directory")
    sub_eval.add_argument("--base", required=True, help="Base snapshot directory")
    sub_eval.add_argument("--repo", required=True, help="Repository identifier")
    sub_eval.add_argument(
        "--override",
        help="Override document (default: discovered in the base snapshot)",
    )
    sub_eval.add_argument(
        "--changed-file",
        action="append",
        help="Changed path, relative to the repository root (repeatable)",
    )
    sub_eval.add_argument(
        "--changed-files-from",
        help="File listing changed paths, one per line",
    )
    sub_eval.add_argument(
        "--format",
        choices=[fmt_text, fmt_json],
        default=fmt_default,
        help=f"Report format (default: {fmt_default})",
    )
    sub_eval.add_argument("--output", help="Write the report to a file instead of stdout")
    sub_eval.add_argument("--jobs", type=int, help="Evaluator worker threads")

    sub_resolve = subparsers.add_parser(
        "resolve", help="Show the effective rule set for a repository"
    )
    add_policy(sub_resolve)
    sub_resolve.add_argument("--repo", required=True, help="Repository identifier")
    sub_resolve.add_argument("--override", help="Override document")
    sub_resolve.add_argument("--base", help="Snapshot to discover the override document in")

    sub_lint = subparsers.add_parser(
        "lint-policy", help="Validate policy documents and an override document"
    )
    add_policy(sub_lint)
    sub_lint.add_argument("--override", help="Override document to validate")

    sub_classify = subparsers.add_parser(
        "classify", help="Show the environment tier derived from paths"
    )
    add_policy(sub_classify)
    sub_classify.add_argument("--rule", help="Use this catalog rule's env_regex/prod_envs")
    sub_classify.add_argument("--env-regex", help="Pattern with a named 'env' group")
    sub_classify.add_argument(
        "--prod-env", action="append", help="Prod-tier environment name (repeatable)"
    )
    sub_classify.add_argument("paths", nargs="+", help="Paths to classify")

    return parser


def main() -> None:
    """Parse arguments and dispatch to the matching command handler.

    Print help text when no subcommand is given.
    """
    parser = build_parser()
    args = parser.parse_args()

    dispatch = {
        "evaluate": cmd_evaluate,
        "resolve": cmd_resolve,
        "lint-policy": cmd_lint_policy,
        "classify": cmd_classify,
    }

    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return
    args.parser_error = parser.error
    sys.exit(handler(args))


if __name__ == "__main__":
    main()
