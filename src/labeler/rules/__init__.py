"""
Rule Engine.

Decides which labels a rule set produces from a feature snapshot.
Supports the modern expression dialect and the legacy boolean dialect.
"""

from labeler.rules.engine import LabelEngine, LabelingResult, RuleResult
from labeler.rules.errors import (
    ConfigError,
    DialectError,
    ExpressionError,
    LabelerError,
    MalformedReferenceError,
    RuleError,
    RuleParseError,
    TemplateError,
    UnknownDomainError,
    UnknownFeatureError,
)
from labeler.rules.expression import (
    MatchedKey,
    MatchedValue,
    MatchExpression,
    MatchExpressionSet,
    MatchOp,
)
from labeler.rules.legacy import LegacyMatcher, LegacyRule
from labeler.rules.matcher import FeatureMatcher, FeatureMatcherTerm, MatchAnyElem
from labeler.rules.models import CustomRule, Rule
from labeler.rules.parser import (
    decode_rule,
    encode_rule,
    load_rules,
    load_rules_dir,
    parse_rules,
    validate_rules,
)
from labeler.rules.template import LabelTemplate, parse_label_lines

__all__ = [
    # Engine
    "LabelEngine",
    "LabelingResult",
    "RuleResult",
    # Errors
    "ConfigError",
    "DialectError",
    "ExpressionError",
    "LabelerError",
    "MalformedReferenceError",
    "RuleError",
    "RuleParseError",
    "TemplateError",
    "UnknownDomainError",
    "UnknownFeatureError",
    # Expressions
    "MatchedKey",
    "MatchedValue",
    "MatchExpression",
    "MatchExpressionSet",
    "MatchOp",
    # Rules
    "CustomRule",
    "FeatureMatcher",
    "FeatureMatcherTerm",
    "LegacyMatcher",
    "LegacyRule",
    "MatchAnyElem",
    "Rule",
    # Parser
    "decode_rule",
    "encode_rule",
    "load_rules",
    "load_rules_dir",
    "parse_rules",
    "validate_rules",
    # Templates
    "LabelTemplate",
    "parse_label_lines",
]
