"""Shared fixtures for the prgate test suite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
import yaml

from prgate.lib.models import DiffArtifact, RuleDefinition

FIXTURES_DIR = Path(__file__).parent / "fixtures"
POLICY_DIR = FIXTURES_DIR / "policy"
REPO_DIR = FIXTURES_DIR / "repo"

BROKEN_YAML = "service:\n  ports: [80, 443\n  name: api\n"


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Write ``files`` (relative path -> text) under ``root``."""
    root.mkdir(parents=True, exist_ok=True)
    for rel, text in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
    return root


def dump(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False)


@pytest.fixture()
def make_policy(tmp_path: Path) -> Callable[..., Path]:
    """Return a factory writing ``global.json`` and ``rules.yaml``."""

    def _make(
        rules: list[dict[str, Any]],
        global_config: Optional[dict[str, Any]] = None,
        name: str = "policy",
    ) -> Path:
        policy_dir = tmp_path / name
        policy_dir.mkdir()
        if global_config is None:
            global_config = {
                "validation_enabled_globally": True,
                "exclude_all_repos": False,
                "excluded_repos": [],
            }
        (policy_dir / "global.json").write_text(json.dumps(global_config), encoding="utf-8")
        (policy_dir / "rules.yaml").write_text(dump({"rules": rules}), encoding="utf-8")
        return policy_dir

    return _make


@pytest.fixture()
def make_snapshots(tmp_path: Path) -> Callable[..., tuple[Path, Path]]:
    """Return a factory writing head and base snapshot directories."""

    def _make(head: dict[str, str], base: dict[str, str]) -> tuple[Path, Path]:
        head_root = write_tree(tmp_path / "head", head)
        base_root = write_tree(tmp_path / "base", base)
        return head_root, base_root

    return _make


@pytest.fixture()
def make_diff(make_snapshots: Callable[..., tuple[Path, Path]]) -> Callable[..., DiffArtifact]:
    """Return a factory building a ``DiffArtifact`` from file maps.

    Every path present on either side is treated as changed unless
    ``changed`` is given.
    """

    def _make(
        head: dict[str, str],
        base: dict[str, str],
        changed: Optional[list[str]] = None,
    ) -> DiffArtifact:
        head_root, base_root = make_snapshots(head, base)
        paths = changed if changed is not None else sorted(set(head) | set(base))
        return DiffArtifact(head_root=head_root, base_root=base_root, changed_paths=tuple(paths))

    return _make


@pytest.fixture()
def lint_rule() -> RuleDefinition:
    return RuleDefinition(
        rule_id="yaml_lint",
        rule_type="lint",
        params={"paths": ["**/*.yaml", "**/*.yml", "**/*.json"]},
    )


@pytest.fixture()
def render_rule() -> RuleDefinition:
    """A structured_render rule that fails prod diffs and warns elsewhere."""
    return RuleDefinition(
        rule_id="helm_diff",
        rule_type="structured_render",
        params={
            "chart_glob": "charts/**",
            "values_glob": "**/values*.yaml",
            "env_regex": r"values-(?P<env>[^/.]+)\.ya?ml$",
            "prod_envs": ["prod", "production"],
            "fail_on_render_error_prod": True,
            "fail_on_render_error_nonprod": False,
            "fail_on_diff_prod": True,
            "fail_on_diff_nonprod": False,
        },
    )
