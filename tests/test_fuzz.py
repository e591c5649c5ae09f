"""Fuzz tests for prgate robustness under random input."""

from __future__ import annotations

from typing import Any

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from prgate.lib import config
from prgate.lib.classifier import classify
from prgate.lib.loader import validate_global_config, validate_override_doc, validate_rule_catalog
from prgate.lib.models import (
    EffectiveRuleSet,
    GlobalConfig,
    RepoOverrideDoc,
    RuleDefinition,
    RuleOverride,
    SkipEvaluation,
)
from prgate.lib.resolver import resolve
from prgate.lib.scope import path_matches

_scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=20),
)
_documents = st.recursive(
    _scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=4),
        st.dictionaries(st.text(max_size=12), children, max_size=4),
    ),
    max_leaves=20,
)
_rule_ids = st.text(alphabet="abcdefgh_", min_size=1, max_size=6)


class TestConfigGetFuzz:
    """Fuzz the config.get() accessor with arbitrary key paths."""

    @given(st.text(min_size=0, max_size=200))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_get_never_crashes(self, key: str) -> None:
        """config.get() raises KeyError for invalid keys, never crashes."""
        try:
            config.get(key)
        except KeyError:
            pass

    @given(st.text(min_size=0, max_size=200))
    @settings(max_examples=100, suppress_health_check=[HealthCheck.too_slow])
    def test_get_str_never_crashes(self, key: str) -> None:
        try:
            assert isinstance(config.get_str(key), str)
        except (KeyError, TypeError):
            pass


class TestValidatorsFuzz:
    """validate_* always return a list of strings."""

    @given(_documents)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_global_config(self, data: Any) -> None:
        errors = validate_global_config(data)
        assert all(isinstance(e, str) for e in errors)

    @given(_documents)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_rule_catalog(self, data: Any) -> None:
        errors = validate_rule_catalog(data)
        assert all(isinstance(e, str) for e in errors)

    @given(_documents)
    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    def test_override_doc(self, data: Any) -> None:
        errors = validate_override_doc(data)
        assert all(isinstance(e, str) for e in errors)


class TestResolverProperties:
    """Properties that hold for every catalog and override."""

    @given(
        catalog_ids=st.lists(_rule_ids, unique=True, max_size=6),
        disabled=st.sets(_rule_ids, max_size=4),
        repo_enabled=st.booleans(),
    )
    @settings(max_examples=150)
    def test_exclude_all_always_skips(
        self, catalog_ids: list[str], disabled: set[str], repo_enabled: bool
    ) -> None:
        catalog = tuple(RuleDefinition(r, "lint") for r in catalog_ids)
        override = RepoOverrideDoc(repo_enabled=repo_enabled, disabled_rule_ids=frozenset(disabled))
        result = resolve(GlobalConfig(exclude_all_repos=True), catalog, override, "any")
        assert isinstance(result, SkipEvaluation)

    @given(
        catalog_ids=st.lists(_rule_ids, unique=True, max_size=6),
        disabled=st.sets(_rule_ids, max_size=4),
        enabled_flags=st.dictionaries(_rule_ids, st.booleans(), max_size=4),
    )
    @settings(max_examples=150)
    def test_disabled_rules_absent_and_order_kept(
        self,
        catalog_ids: list[str],
        disabled: set[str],
        enabled_flags: dict[str, bool],
    ) -> None:
        catalog = tuple(RuleDefinition(r, "lint") for r in catalog_ids)
        override = RepoOverrideDoc(
            disabled_rule_ids=frozenset(disabled),
            override_rules={r: RuleOverride(enabled=flag) for r, flag in enabled_flags.items()},
        )
        result = resolve(GlobalConfig(), catalog, override, "any")
        assert isinstance(result, EffectiveRuleSet)
        ids = result.rule_ids()
        assert not set(ids) & disabled
        assert ids == [r for r in catalog_ids if r in ids]
        for rule_id, flag in enabled_flags.items():
            if rule_id in catalog_ids and rule_id not in disabled:
                assert (rule_id in ids) is flag


class TestClassifierFuzz:
    @given(st.text(alphabet="abcdefgPRODprod", min_size=1, max_size=10))
    @settings(max_examples=100)
    def test_tier_ignores_case(self, name: str) -> None:
        pattern = r"values-(?P<env>[^/.]+)\.yaml$"
        lower = classify(f"values-{name.lower()}.yaml", pattern, ["prod"])
        upper = classify(f"values-{name.upper()}.yaml", pattern, ["prod"])
        assert lower is not None and upper is not None
        assert lower.is_prod_tier == upper.is_prod_tier


class TestScopeFuzz:
    @given(st.text(max_size=60), st.text(max_size=30))
    @settings(max_examples=150)
    def test_path_matches_never_crashes(self, path: str, pattern: str) -> None:
        assert isinstance(path_matches(path, pattern), bool)
