"""
Rule data models.

Defines the modern rule dialect and the tagged union that holds a rule of
either dialect behind a single execute() method.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from labeler.features.models import DomainFeatures
from labeler.rules.errors import ConfigError, DialectError
from labeler.rules.legacy import LegacyRule
from labeler.rules.matcher import FeatureMatcher, MatchAnyElem, MatchedFeatures
from labeler.rules.template import LabelTemplate


logger = logging.getLogger(__name__)


@dataclass
class Rule:
    """
    Rule of the modern dialect.

    Labels come from the optional template, executed against whatever
    matched, and from the static labels, which always win.
    """

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    labels_template: str = ""
    match_features: FeatureMatcher = field(default_factory=FeatureMatcher)
    match_any: list[MatchAnyElem] = field(default_factory=list)
    _template: LabelTemplate | None = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        # Compiled once here; rendering is read-only afterwards
        if self.labels_template:
            self._template = LabelTemplate(self.labels_template)

    @property
    def template(self) -> LabelTemplate | None:
        """Compiled label template, if any."""
        return self._template

    def execute(self, features: Mapping[str, DomainFeatures]) -> dict[str, str] | None:
        """
        Execute the rule against a feature snapshot.

        Args:
            features: Mapping of domain name to its features

        Returns:
            Labels, or None if the rule did not match

        Raises:
            RuleError: If a term or the template fails
        """
        labels: dict[str, str] = {}

        if self.match_any:
            # Logical OR over the matchAny alternatives
            matched = False
            for alternative in self.match_any:
                result = alternative.match(features)
                if result is None:
                    continue
                matched = True
                logger.debug("Matches for matchAny %s: %s", self.name, result)

                if self._template is None:
                    # Further matches would produce the same labels
                    break
                self._expand_template(result, labels)

            if not matched:
                return None

        if self.match_features:
            result = self.match_features.match(features)
            if result is None:
                return None
            logger.debug("Matches for matchFeatures %s: %s", self.name, result)
            self._expand_template(result, labels)

        labels.update(self.labels)
        return labels

    def _expand_template(self, matched: MatchedFeatures, out: dict[str, str]) -> None:
        if self._template is None:
            return
        out.update(self._template.expand(matched))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"name": self.name}
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.labels_template:
            result["labelsTemplate"] = self.labels_template
        if self.match_features:
            result["matchFeatures"] = self.match_features.to_list()
        if self.match_any:
            result["matchAny"] = [elem.to_dict() for elem in self.match_any]
        return result


@dataclass
class CustomRule:
    """
    A rule of either dialect.

    Exactly one of legacy_rule and rule is set.
    """

    legacy_rule: LegacyRule | None = None
    rule: Rule | None = None

    def __post_init__(self) -> None:
        if self.legacy_rule is not None and self.rule is not None:
            raise DialectError("Rule cannot be both a legacy and a modern rule")

    @property
    def name(self) -> str:
        if self.legacy_rule is not None:
            return self.legacy_rule.name
        if self.rule is not None:
            return self.rule.name
        return ""

    @property
    def is_legacy(self) -> bool:
        return self.legacy_rule is not None

    def execute(self, features: Mapping[str, DomainFeatures]) -> dict[str, str] | None:
        """Execute whichever variant is set."""
        if self.legacy_rule is not None:
            return self.legacy_rule.execute(features)
        if self.rule is not None:
            return self.rule.execute(features)
        raise ConfigError("Empty rule: neither legacy nor modern rule set")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for serialization.

        Raises:
            ConfigError: If neither variant is set
        """
        if self.legacy_rule is not None:
            return self.legacy_rule.to_dict()
        if self.rule is not None:
            return self.rule.to_dict()
        raise ConfigError("Cannot encode an empty rule")
