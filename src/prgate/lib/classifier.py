"""classifier — derive a deployment environment from a file path.

A rule's ``env_regex`` must contain a named group (``env`` by default).  The
captured text is the environment name, with its case preserved; a file is
prod-tier when the lower-cased name is one of the rule's ``prod_envs``.
Paths the pattern does not match are unclassified, and evaluators treat
them as non-prod.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional, Pattern, Union

from prgate.lib import config
from prgate.lib.models import Environment, RuleDefinition

#: Result of ``classify`` for a path the pattern does not match.
UNCLASSIFIED: Optional[Environment] = None


def classify(
    path: str,
    pattern: Union[str, Pattern[str]],
    tiers: Iterable[str],
) -> Optional[Environment]:
    """Classify ``path`` into an environment.

    Args:
        path: Snapshot-relative file path.
        pattern: Regex containing the environment named group.
        tiers: Environment names considered prod; compared case-insensitively.

    Returns:
        The environment, or ``UNCLASSIFIED`` (None) when nothing matches.
    """
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    match = regex.search(path)
    if match is None:
        return UNCLASSIFIED
    group = config.get_str("defaults.env_group")
    name = match.groupdict().get(group)
    if not name:
        return UNCLASSIFIED
    prod = {t.lower() for t in tiers}
    return Environment(name=name, is_prod_tier=name.lower() in prod)


class EnvironmentClassifier:
    """Classifier bound to one rule's ``env_regex`` and ``prod_envs``.

    Evaluators receive one of these so they never parse the parameters
    themselves.
    """

    def __init__(self, pattern: str, tiers: Iterable[str]) -> None:
        self.pattern = pattern
        self.tiers = tuple(tiers)
        self._regex = re.compile(pattern)

    @classmethod
    def for_rule(cls, rule: RuleDefinition) -> "EnvironmentClassifier":
        """Build a classifier from a rule's parameters or the defaults."""
        pattern = rule.param("env_regex") or config.get_str("defaults.env_regex")
        tiers = rule.param("prod_envs")
        if tiers is None:
            tiers = config.get_list("defaults.prod_envs")
        return cls(pattern, tiers)

    def classify(self, path: str) -> Optional[Environment]:
        return classify(path, self._regex, self.tiers)

    def label(self, env: Optional[Environment]) -> str:
        """Human-readable tier label for report messages."""
        if env is None:
            return config.get_str("env_labels.unclassified")
        key = "env_labels.prod" if env.is_prod_tier else "env_labels.nonprod"
        return config.get_str(key).format(name=env.name)
