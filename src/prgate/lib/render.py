"""render — produce comparable structured renders of values files.

A renderer turns one values file at one revision into a list of parsed YAML
documents.  Two renderers exist:

    values — parses the values file itself with PyYAML.
    helm   — runs ``helm template`` for the enclosing chart with the values
             file, and parses the manifests it prints.

A file that does not exist at a revision renders as an empty document list,
so additions and deletions show up as diffs rather than errors.  Any other
failure raises ``EvaluatorRenderError``.

``semantic_diff`` compares two renders by their canonical YAML dump (sorted
keys), so key order and formatting changes never count as differences.
"""

from __future__ import annotations

import difflib
import subprocess
from pathlib import Path
from typing import Any

import yaml

from prgate.exceptions import EvaluatorRenderError
from prgate.lib import config
from prgate.lib.models import RuleDefinition
from prgate.lib.scope import chart_root
from prgate.lib.yaml_loader import dump_canonical, load_documents


class Renderer:
    """Base renderer. Subclasses implement ``_render_existing``."""

    def render(self, snapshot_root: Path, rel_path: str, side: str) -> list[Any]:
        """Render ``rel_path`` as it exists under ``snapshot_root``.

        Args:
            snapshot_root: Head or base snapshot directory.
            rel_path: Snapshot-relative path of the values file.
            side: ``"head"`` or ``"base"``, used in error messages.

        Returns:
            Parsed documents; empty when the file is absent at this side.

        Raises:
            EvaluatorRenderError: If rendering fails.
        """
        if not (snapshot_root / rel_path).is_file():
            return []
        return self._render_existing(snapshot_root, rel_path, side)

    def _render_existing(self, snapshot_root: Path, rel_path: str, side: str) -> list[Any]:
        raise NotImplementedError


class ValuesRenderer(Renderer):
    """Render a values file by parsing it."""

    def _render_existing(self, snapshot_root: Path, rel_path: str, side: str) -> list[Any]:
        try:
            text = (snapshot_root / rel_path).read_text(encoding="utf-8")
            return load_documents(text)
        except (yaml.YAMLError, UnicodeDecodeError) as exc:
            raise EvaluatorRenderError(rel_path, side, describe_error(exc)) from exc


class HelmTemplateRenderer(Renderer):
    """Render the enclosing chart with ``helm template``.

    The chart is the nearest ancestor directory holding ``Chart.yaml``;
    without one, the values file's own directory is used.
    """

    def __init__(self, binary: str, release: str, timeout: int) -> None:
        self.binary = binary
        self.release = release
        self.timeout = timeout

    def command(self, snapshot_root: Path, rel_path: str) -> list[str]:
        chart = chart_root(rel_path, [snapshot_root])
        if chart is None:
            chart = str(Path(rel_path).parent.as_posix())
        return [
            self.binary,
            "template",
            self.release,
            str(snapshot_root / chart),
            "--values",
            str(snapshot_root / rel_path),
        ]

    def _render_existing(self, snapshot_root: Path, rel_path: str, side: str) -> list[Any]:
        cmd = self.command(snapshot_root, rel_path)
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            msg = config.get_str("messages.helm_missing").format(binary=self.binary)
            raise EvaluatorRenderError(rel_path, side, msg) from exc
        except subprocess.TimeoutExpired as exc:
            msg = config.get_str("messages.helm_timeout").format(seconds=self.timeout)
            raise EvaluatorRenderError(rel_path, side, msg) from exc

        if proc.returncode != 0:
            msg = config.get_str("messages.helm_failed").format(
                code=proc.returncode, stderr=_first_line(proc.stderr)
            )
            raise EvaluatorRenderError(rel_path, side, msg)
        try:
            return load_documents(proc.stdout)
        except yaml.YAMLError as exc:
            raise EvaluatorRenderError(rel_path, side, describe_error(exc)) from exc


def known_renderers() -> list[str]:
    return list(config.get_mapping("renderers").values())


def get_renderer(rule: RuleDefinition) -> Renderer:
    """Build the renderer selected by the rule's ``renderer`` parameter."""
    name = rule.param("renderer") or config.get_str("defaults.renderer")
    if name == config.get_str("renderers.helm"):
        return HelmTemplateRenderer(
            binary=rule.param("helm_binary") or config.get_str("defaults.helm_binary"),
            release=rule.param("helm_release_name")
            or config.get_str("defaults.helm_release_name"),
            timeout=rule.param("helm_timeout_seconds")
            or config.get_int("defaults.helm_timeout_seconds"),
        )
    return ValuesRenderer()


def semantic_diff(base_docs: list[Any], head_docs: list[Any], rel_path: str) -> list[str]:
    """Return unified diff lines between two renders; empty when equal."""
    if base_docs == head_docs:
        return []
    before = dump_canonical(base_docs).splitlines()
    after = dump_canonical(head_docs).splitlines()
    return list(
        difflib.unified_diff(
            before,
            after,
            fromfile=f"base/{rel_path}",
            tofile=f"head/{rel_path}",
            n=config.get_int("defaults.diff_context_lines"),
            lineterm="",
        )
    )


def _first_line(value: object) -> str:
    text = str(value).strip()
    return text.splitlines()[0] if text else ""


def describe_error(exc: BaseException) -> str:
    """One-line description of a YAML, JSON or Python syntax error.

    Marked YAML errors, ``json.JSONDecodeError`` and LibCST's
    ``ParserSyntaxError`` each keep the position under different names.
    """
    problem = getattr(exc, "problem", None)
    mark = getattr(exc, "problem_mark", None)
    if problem and mark is not None:
        return f"{problem} (line {mark.line + 1}, column {mark.column + 1})"
    if hasattr(exc, "lineno") and hasattr(exc, "colno"):
        return f"{exc.msg} (line {exc.lineno}, column {exc.colno})"
    if hasattr(exc, "editor_line") and hasattr(exc, "editor_column"):
        message = getattr(exc, "message", "") or _first_line(exc)
        return f"{message} (line {exc.editor_line}, column {exc.editor_column})"
    return _first_line(exc) or type(exc).__name__
