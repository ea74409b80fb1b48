"""
Feature matcher.

Resolves <domain>.<feature> references against a feature snapshot and
evaluates terms with AND logic, collecting what matched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from labeler.features.models import (
    DomainFeatures,
    FeatureKind,
    FeatureSet,
)
from labeler.rules.errors import (
    MalformedReferenceError,
    RuleParseError,
    UnknownDomainError,
    UnknownFeatureError,
)
from labeler.rules.expression import MatchExpressionSet


logger = logging.getLogger(__name__)


# domain -> feature -> matched keys / values / instances
MatchedFeatures = dict[str, dict[str, list]]


_EVALUATORS: dict[FeatureKind, Callable[[MatchExpressionSet, Any], list]] = {
    FeatureKind.KEYS: lambda exprs, fs: exprs.match_keys(fs.elements),
    FeatureKind.VALUES: lambda exprs, fs: exprs.match_values(fs.elements),
    FeatureKind.INSTANCES: lambda exprs, fs: exprs.match_instances(fs.elements),
}


def split_feature_ref(ref: str) -> tuple[str, str]:
    """
    Split a feature reference into domain and (lowercased) feature name.

    Raises:
        MalformedReferenceError: If the reference has no "." separator
    """
    domain, sep, name = ref.partition(".")
    if not sep:
        raise MalformedReferenceError(
            f"invalid feature {ref!r}: must be <domain>.<feature>"
        )
    return domain, name.lower()


def resolve_feature(
    features: Mapping[str, DomainFeatures],
    domain: str,
    name: str,
) -> tuple[FeatureKind, FeatureSet]:
    """
    Look up a feature set in the snapshot.

    Raises:
        UnknownDomainError: If the domain is not in the snapshot
        UnknownFeatureError: If the feature is in none of the domain's sets
    """
    domain_features = features.get(domain)
    if domain_features is None:
        raise UnknownDomainError(f"unknown feature source/domain {domain!r}")
    resolved = domain_features.resolve(name)
    if resolved is None:
        raise UnknownFeatureError(
            f"{name!r} feature of source/domain {domain!r} not available"
        )
    return resolved


@dataclass
class FeatureMatcherTerm:
    """One <domain>.<feature> reference with the expressions to evaluate."""

    feature: str
    match_expressions: MatchExpressionSet = field(default_factory=MatchExpressionSet)

    def evaluate(self, features: Mapping[str, DomainFeatures]) -> tuple[str, str, list]:
        """
        Evaluate the term.

        Returns:
            Tuple of domain, feature name and the matched subset
        """
        domain, name = split_feature_ref(self.feature)
        kind, feature_set = resolve_feature(features, domain, name)
        return domain, name, _EVALUATORS[kind](self.match_expressions, feature_set)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "feature": self.feature,
            "matchExpressions": self.match_expressions.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeatureMatcherTerm:
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise RuleParseError("Feature matcher term must be a dictionary")
        feature = data.get("feature")
        if not isinstance(feature, str) or not feature:
            raise RuleParseError("Feature matcher term must have 'feature' field")
        return cls(
            feature=feature,
            match_expressions=MatchExpressionSet.from_data(data.get("matchExpressions")),
        )


@dataclass
class FeatureMatcher:
    """
    Ordered list of terms combined with AND logic.

    Evaluation stops at the first term that matches nothing.
    """

    terms: list[FeatureMatcherTerm] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.terms)

    def __iter__(self):
        return iter(self.terms)

    def match(self, features: Mapping[str, DomainFeatures]) -> MatchedFeatures | None:
        """
        Match the terms against a feature snapshot.

        Args:
            features: Mapping of domain name to its features

        Returns:
            Matched features, or None if any term did not match

        Raises:
            RuleError: On malformed references, unknown domains/features or
                expression evaluation errors
        """
        matched: MatchedFeatures = {}

        for term in self.terms:
            domain, name, subset = term.evaluate(features)
            matched.setdefault(domain, {})[name] = subset
            if not subset:
                logger.debug("Term %s did not match", term.feature)
                return None

        return matched

    def to_list(self) -> list[dict[str, Any]]:
        """Convert to list for serialization."""
        return [term.to_dict() for term in self.terms]

    @classmethod
    def from_data(cls, data: Any) -> FeatureMatcher:
        """Create from a list of term dictionaries."""
        if data is None:
            return cls()
        if not isinstance(data, list):
            raise RuleParseError("'matchFeatures' must be a list")
        return cls([FeatureMatcherTerm.from_dict(term) for term in data])


@dataclass
class MatchAnyElem:
    """One alternative of a matchAny list."""

    match_features: FeatureMatcher = field(default_factory=FeatureMatcher)

    def match(self, features: Mapping[str, DomainFeatures]) -> MatchedFeatures | None:
        return self.match_features.match(features)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"matchFeatures": self.match_features.to_list()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchAnyElem:
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise RuleParseError("matchAny element must be a dictionary")
        return cls(FeatureMatcher.from_data(data.get("matchFeatures")))
