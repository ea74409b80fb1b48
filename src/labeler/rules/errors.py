"""
Rule engine errors.

Evaluation errors abort a single rule; configuration errors are raised
while rules are decoded or loaded.
"""

from __future__ import annotations


class LabelerError(Exception):
    """Base class for all labeler errors."""

    pass


class RuleError(LabelerError):
    """Error raised while evaluating a rule."""

    pass


class UnknownDomainError(RuleError):
    """Term references a domain absent from the feature snapshot."""

    pass


class UnknownFeatureError(RuleError):
    """Feature name not found in any feature set of its domain."""

    pass


class MalformedReferenceError(RuleError):
    """Feature reference is not of the form <domain>.<feature>."""

    pass


class ExpressionError(RuleError):
    """Invalid match expression, or an operand/value that cannot be parsed."""

    pass


class TemplateError(RuleError):
    """Label template failed to compile or to execute."""

    pass


class ConfigError(LabelerError):
    """Invalid rule configuration."""

    pass


class DialectError(ConfigError):
    """Rule decodes to neither dialect, or to both."""

    pass


class RuleParseError(ConfigError):
    """Error parsing a rule or rule file."""

    pass
