"""Tests for prgate.lib.loader: validation, parsing and policy loading."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest

from prgate.exceptions import ConfigMalformed, UnknownRuleId
from prgate.lib.loader import (
    load_override,
    load_policy,
    parse_global_config,
    parse_override_doc,
    parse_rule_catalog,
    policy_version,
    validate_global_config,
    validate_override_doc,
    validate_rule_catalog,
)
from prgate.lib.models import RepoOverrideDoc, RuleDefinition

from conftest import POLICY_DIR

CATALOG = (
    RuleDefinition("yaml_lint", "lint", params={"paths": ["**/*.yaml"]}),
    RuleDefinition("helm_diff", "structured_render", params={"chart_glob": "charts/**"}),
)


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestValidateGlobalConfig:
    """validate_global_config returns every problem as a string."""

    def test_minimal_valid(self) -> None:
        assert validate_global_config({"validation_enabled_globally": True}) == []

    def test_not_a_mapping(self) -> None:
        errors = validate_global_config(["a"])
        assert len(errors) == 1
        assert "mapping" in errors[0]

    def test_master_switch_required(self) -> None:
        errors = validate_global_config({"exclude_all_repos": False})
        assert any("validation_enabled_globally" in e for e in errors)

    def test_wrong_types_all_reported(self) -> None:
        errors = validate_global_config(
            {
                "validation_enabled_globally": "yes",
                "exclude_all_repos": 1,
                "excluded_repos": "legacy",
                "logging": {"enabled": "on", "directory": 3},
            }
        )
        assert len(errors) == 5

    def test_logging_must_be_mapping(self) -> None:
        errors = validate_global_config({"validation_enabled_globally": True, "logging": True})
        assert any("logging" in e for e in errors)

    def test_master_switch_null_rejected(self) -> None:
        errors = validate_global_config({"validation_enabled_globally": None})
        assert len(errors) == 1
        assert "validation_enabled_globally" in errors[0]
        assert "NoneType" in errors[0]


class TestParseGlobalConfig:
    def test_json_document(self) -> None:
        cfg = parse_global_config(
            '{"validation_enabled_globally": true, "exclude_all_repos": false,'
            ' "excluded_repos": ["legacy"]}'
        )
        assert cfg.validation_enabled_globally is True
        assert cfg.excluded_repos == frozenset({"legacy"})
        assert cfg.log_enabled is False

    def test_logging_section(self) -> None:
        cfg = parse_global_config(
            "validation_enabled_globally: true\nlogging:\n  enabled: true\n  directory: /tmp/x\n"
        )
        assert cfg.log_enabled is True
        assert cfg.log_directory == "/tmp/x"

    def test_invalid_raises_with_problems(self) -> None:
        with pytest.raises(ConfigMalformed) as info:
            parse_global_config("exclude_all_repos: maybe\n")
        assert info.value.document == "global"
        assert len(info.value.problems) == 2

    def test_unparsable_text(self) -> None:
        with pytest.raises(ConfigMalformed, match="cannot be parsed"):
            parse_global_config("{not json")


# ---------------------------------------------------------------------------
# Rule catalog
# ---------------------------------------------------------------------------


class TestValidateRuleCatalog:
    """Structural and type-specific checks on the catalog."""

    def test_valid_list(self) -> None:
        data = {"rules": [{"id": "a", "type": "lint"}, {"id": "b", "type": "structured_render"}]}
        assert validate_rule_catalog(data) == []

    def test_missing_rules_key(self) -> None:
        errors = validate_rule_catalog({"rule": []})
        assert errors and "'rules'" in errors[0]

    def test_unknown_type(self) -> None:
        errors = validate_rule_catalog({"rules": [{"id": "a", "type": "spellcheck"}]})
        assert len(errors) == 1
        assert "spellcheck" in errors[0]
        assert "lint" in errors[0]

    def test_duplicate_id(self) -> None:
        data = {"rules": [{"id": "a", "type": "lint"}, {"id": "a", "type": "lint"}]}
        assert any("duplicate" in e for e in validate_rule_catalog(data))

    def test_missing_id_and_type(self) -> None:
        errors = validate_rule_catalog({"rules": [{"type": "lint"}, {"id": "b"}]})
        assert len(errors) == 2

    def test_entry_not_mapping(self) -> None:
        errors = validate_rule_catalog({"rules": ["lint"]})
        assert "rules[0]" in errors[0]

    def test_bad_params_delegated_to_evaluator(self) -> None:
        data = {
            "rules": [
                {
                    "id": "helm_diff",
                    "type": "structured_render",
                    "params": {"env_regex": "values-(.*)\\.yaml", "fail_on_diff_prod": "yes"},
                }
            ]
        }
        errors = validate_rule_catalog(data)
        assert any("named group" in e for e in errors)
        assert any("fail_on_diff_prod" in e for e in errors)

    def test_invalid_regex(self) -> None:
        data = {
            "rules": [
                {"id": "h", "type": "structured_render", "params": {"env_regex": "values-(?P<env>"}}
            ]
        }
        assert any("invalid" in e for e in validate_rule_catalog(data))

    def test_params_not_mapping(self) -> None:
        errors = validate_rule_catalog({"rules": [{"id": "a", "type": "lint", "params": [1]}]})
        assert any("params" in e for e in errors)


class TestParseRuleCatalog:
    def test_declaration_order_preserved(self) -> None:
        text = "rules:\n  - {id: z, type: lint}\n  - {id: a, type: lint}\n  - {id: m, type: lint}\n"
        assert [r.rule_id for r in parse_rule_catalog(text)] == ["z", "a", "m"]

    def test_mapping_form(self) -> None:
        text = "rules:\n  yaml_lint:\n    type: lint\n    parameters:\n      paths: ['*.yml']\n"
        (rule,) = parse_rule_catalog(text)
        assert rule.rule_id == "yaml_lint"
        assert rule.params == {"paths": ["*.yml"]}

    def test_top_level_list(self) -> None:
        (rule,) = parse_rule_catalog('[{"id": "a", "type": "lint", "enabled": false}]')
        assert rule.enabled is False

    def test_invalid_raises(self) -> None:
        with pytest.raises(ConfigMalformed) as info:
            parse_rule_catalog("rules:\n  - {id: a, type: nope}\n")
        assert info.value.document == "rules"


# ---------------------------------------------------------------------------
# Override documents
# ---------------------------------------------------------------------------


class TestValidateOverrideDoc:
    def test_empty_mapping_valid(self) -> None:
        assert validate_override_doc({}) == []

    def test_type_override_forbidden(self) -> None:
        errors = validate_override_doc({"override_rules": {"a": {"type": "lint"}}})
        assert any("type cannot be overridden" in e for e in errors)

    def test_wrong_types(self) -> None:
        errors = validate_override_doc(
            {
                "repo_enabled": "no",
                "disable_rules": "yaml_lint",
                "reason": 5,
                "override_rules": {"a": {"enabled": "off", "params": []}, "b": 1},
            }
        )
        assert len(errors) == 6

    def test_not_mapping(self) -> None:
        assert validate_override_doc("disable everything")


class TestParseOverrideDoc:
    """Parsing override documents against the catalog."""

    def test_none_means_defaults(self) -> None:
        assert parse_override_doc(None, CATALOG) == RepoOverrideDoc()

    def test_empty_document_means_defaults(self) -> None:
        assert parse_override_doc("", CATALOG) == RepoOverrideDoc()

    def test_full_document(self) -> None:
        doc = parse_override_doc(
            json.dumps(
                {
                    "repo_enabled": True,
                    "disable_rules": ["yaml_lint"],
                    "override_rules": {"helm_diff": {"params": {"chart_glob": "deploy/**"}}},
                    "reason": "migrating charts",
                }
            ),
            CATALOG,
        )
        assert doc.disabled_rule_ids == frozenset({"yaml_lint"})
        assert doc.override_rules["helm_diff"].params == {"chart_glob": "deploy/**"}
        assert doc.override_rules["helm_diff"].enabled is None
        assert doc.reason == "migrating charts"

    def test_flat_entry_keys_are_params(self) -> None:
        doc = parse_override_doc(
            "override_rules:\n  helm_diff:\n    enabled: false\n    fail_on_diff_prod: false\n",
            CATALOG,
        )
        entry = doc.override_rules["helm_diff"]
        assert entry.enabled is False
        assert entry.params == {"fail_on_diff_prod": False}

    def test_unknown_disabled_rule(self) -> None:
        with pytest.raises(UnknownRuleId) as info:
            parse_override_doc('{"disable_rules": ["ghost"]}', CATALOG)
        assert info.value.rule_id == "ghost"

    def test_unknown_overridden_rule(self) -> None:
        with pytest.raises(UnknownRuleId):
            parse_override_doc('{"override_rules": {"ghost": {"enabled": false}}}', CATALOG)

    def test_invalid_document(self) -> None:
        with pytest.raises(ConfigMalformed) as info:
            parse_override_doc('{"repo_enabled": "nope"}', CATALOG)
        assert not isinstance(info.value, UnknownRuleId)

    @pytest.mark.parametrize(
        "entry, key",
        [
            ({"fail_on_diff_nonprod": "false"}, "fail_on_diff_nonprod"),
            ({"params": {"prod_envs": "prod"}}, "prod_envs"),
            ({"env_regex": "("}, "env_regex"),
            ({"env_regex": "values-(.+)\\.yaml"}, "env_regex"),
            ({"chart_glob": 7}, "chart_glob"),
        ],
    )
    def test_override_params_checked_like_catalog(self, entry: dict[str, Any], key: str) -> None:
        with pytest.raises(ConfigMalformed) as info:
            parse_override_doc(json.dumps({"override_rules": {"helm_diff": entry}}), CATALOG)
        assert not isinstance(info.value, UnknownRuleId)
        assert info.value.document == "override"
        assert any(key in p for p in info.value.problems)

    def test_override_params_for_lint_rule(self) -> None:
        with pytest.raises(ConfigMalformed) as info:
            parse_override_doc('{"override_rules": {"yaml_lint": {"paths": 3}}}', CATALOG)
        assert any("paths" in p for p in info.value.problems)

    def test_valid_override_params_accepted(self) -> None:
        doc = parse_override_doc(
            json.dumps(
                {
                    "override_rules": {
                        "helm_diff": {"prod_envs": ["live"], "env_regex": "(?P<env>[a-z]+)\\.yaml$"}
                    }
                }
            ),
            CATALOG,
        )
        assert doc.override_rules["helm_diff"].params["prod_envs"] == ["live"]


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestLoadPolicy:
    def test_fixture_policy(self) -> None:
        snapshot = load_policy(POLICY_DIR)
        assert snapshot.rule_ids() == ["yaml_lint", "helm_diff"]
        assert snapshot.global_config.excluded_repos == frozenset({"legacy-monolith"})
        assert snapshot.version.startswith("sha256:")

    def test_version_is_content_digest(self, make_policy: Callable[..., Path]) -> None:
        rules: list[dict[str, Any]] = [{"id": "a", "type": "lint"}]
        first = load_policy(make_policy(rules, name="one"))
        second = load_policy(make_policy(rules, name="two"))
        changed = load_policy(make_policy([{"id": "b", "type": "lint"}], name="three"))
        assert first.version == second.version
        assert first.version != changed.version

    def test_missing_catalog(self, tmp_path: Path) -> None:
        (tmp_path / "global.yaml").write_text("validation_enabled_globally: true\n", encoding="utf-8")
        with pytest.raises(ConfigMalformed, match="rules"):
            load_policy(tmp_path)

    def test_policy_version_format(self) -> None:
        version = policy_version("a", b"b")
        assert version.startswith("sha256:")
        assert len(version) == len("sha256:") + 12


class TestLoadOverride:
    def test_none_path(self) -> None:
        assert load_override(None, CATALOG) == RepoOverrideDoc()

    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_override(tmp_path / ".pr-validation.json", CATALOG) == RepoOverrideDoc()

    def test_reads_file(self, tmp_path: Path) -> None:
        path = tmp_path / ".pr-validation.yaml"
        path.write_text("repo_enabled: false\nreason: frozen\n", encoding="utf-8")
        doc = load_override(path, CATALOG)
        assert doc.repo_enabled is False
        assert doc.reason == "frozen"
