"""
Rule file parser.

Decodes rules of either dialect from YAML/JSON data and loads rule files
and rule directories.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from labeler.features.models import to_str
from labeler.rules.errors import (
    ConfigError,
    DialectError,
    ExpressionError,
    LabelerError,
    RuleParseError,
)
from labeler.rules.expression import NUMERIC_OPS, MatchOp, is_integer
from labeler.rules.legacy import LegacyRule
from labeler.rules.matcher import FeatureMatcher, MatchAnyElem
from labeler.rules.models import CustomRule, Rule


logger = logging.getLogger(__name__)


LEGACY_DISCRIMINATOR = "matchon"
MODERN_ONLY_FIELDS = ("labels", "labelsTemplate", "matchFeatures", "matchAny")
RULE_FILE_SUFFIXES = (".yaml", ".yml", ".json")


def decode_rule(data: Any) -> CustomRule:
    """
    Decode a rule of either dialect.

    A rule with a "matchOn" key (in any letter case) is a legacy rule,
    anything else is a modern rule.

    Args:
        data: Rule dictionary

    Returns:
        CustomRule with one variant set

    Raises:
        DialectError: If data is not a rule of exactly one dialect
        RuleParseError: If the rule is malformed
    """
    if not isinstance(data, dict):
        raise DialectError("Rule must be a dictionary")

    match_on_key = next(
        (k for k in data if str(k).lower() == LEGACY_DISCRIMINATOR), None
    )
    if match_on_key is not None:
        modern_fields = {f.lower() for f in MODERN_ONLY_FIELDS}
        mixed = [str(k) for k in data if str(k).lower() in modern_fields]
        if mixed:
            raise DialectError(
                f"Legacy rule cannot have {', '.join(mixed)} field(s)"
            )
        return CustomRule(legacy_rule=LegacyRule.from_dict(data, match_on_key))

    return CustomRule(rule=parse_modern_rule(data))


def parse_modern_rule(data: dict[str, Any]) -> Rule:
    """
    Parse a modern-dialect rule from dictionary.

    Raises:
        RuleParseError: If the rule is malformed
    """
    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise RuleParseError("Rule must have 'name' field")

    labels = data.get("labels") or {}
    if not isinstance(labels, dict):
        raise RuleParseError("'labels' must be a dictionary")

    template = data.get("labelsTemplate") or ""
    if not isinstance(template, str):
        raise RuleParseError("'labelsTemplate' must be a string")

    match_any = data.get("matchAny") or []
    if not isinstance(match_any, list):
        raise RuleParseError("'matchAny' must be a list")

    return Rule(
        name=name,
        labels={str(k): to_str(v) for k, v in labels.items()},
        labels_template=template,
        match_features=FeatureMatcher.from_data(data.get("matchFeatures")),
        match_any=[MatchAnyElem.from_dict(elem) for elem in match_any],
    )


def encode_rule(rule: CustomRule) -> dict[str, Any]:
    """
    Encode a rule to a dictionary.

    Raises:
        ConfigError: If neither variant is set
    """
    return rule.to_dict()


def parse_rules(data: Any, skip_invalid: bool = False) -> list[CustomRule]:
    """
    Parse a list of rules.

    Args:
        data: List of rule dictionaries, or a dictionary with a "rules" list
        skip_invalid: Log and drop invalid rules instead of failing

    Returns:
        Rules in declaration order

    Raises:
        RuleParseError: If the data or (unless skipped) any rule is invalid
    """
    if data is None:
        return []
    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise RuleParseError("Rules must be a list")

    rules = []
    for i, rule_data in enumerate(data):
        try:
            rules.append(decode_rule(rule_data))
        except LabelerError as e:
            if not skip_invalid:
                raise RuleParseError(f"Error parsing rule {i}: {e}") from e
            logger.error("Skipping invalid rule %d: %s", i, e)

    return rules


def load_rules(path: str | Path, skip_invalid: bool = False) -> list[CustomRule]:
    """
    Load rules from a YAML (or JSON) file.

    Raises:
        FileNotFoundError: If file doesn't exist
        RuleParseError: If file contains invalid rules
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found: {path}")

    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RuleParseError(f"Invalid YAML in {path}: {e}") from e

    return parse_rules(data, skip_invalid=skip_invalid)


def _rule_files(directory: Path) -> list[Path]:
    """Rule files in a directory and its immediate subdirectories."""
    files = []
    for entry in sorted(directory.iterdir()):
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            files.extend(
                sub for sub in sorted(entry.iterdir())
                if sub.is_file()
                and not sub.name.startswith(".")
                and sub.suffix in RULE_FILE_SUFFIXES
            )
        elif entry.is_file() and entry.suffix in RULE_FILE_SUFFIXES:
            files.append(entry)
    return files


def load_rules_dir(path: str | Path, skip_invalid: bool = False) -> list[CustomRule]:
    """
    Load rules from every rule file in a directory.

    With skip_invalid, files that fail to load are logged and skipped;
    otherwise the first failure is raised.

    Returns:
        Rules of all files, in path order
    """
    directory = Path(path)
    if not directory.is_dir():
        logger.debug("Rules directory %s not present", directory)
        return []

    rules: list[CustomRule] = []
    for rule_file in _rule_files(directory):
        try:
            loaded = load_rules(rule_file, skip_invalid=skip_invalid)
        except (OSError, ConfigError) as e:
            if not skip_invalid:
                raise RuleParseError(f"Failed to load rules from {rule_file}: {e}") from e
            logger.error("Failed to load rules from %s: %s", rule_file, e)
            continue
        logger.debug("Loaded %d rules from %s", len(loaded), rule_file)
        rules.extend(loaded)
    return rules


def _modern_matchers(rule: Rule) -> list[FeatureMatcher]:
    matchers = [elem.match_features for elem in rule.match_any]
    if rule.match_features:
        matchers.append(rule.match_features)
    return matchers


def validate_rules(rules: list[CustomRule]) -> list[str]:
    """
    Validate rules and return a list of warnings.

    Checks for problems that would only surface when a rule is executed.

    Args:
        rules: Rules to validate

    Returns:
        List of warning messages
    """
    errors: list[str] = []

    if not rules:
        errors.append("Warning: Rule set has no rules")
        return errors

    # Duplicate names
    seen: dict[str, int] = {}
    for i, rule in enumerate(rules):
        if rule.name in seen:
            errors.append(
                f"Warning: Rule {i} has same name as rule {seen[rule.name]}: {rule.name}"
            )
        seen.setdefault(rule.name, i)

    for i, rule in enumerate(rules):
        if rule.legacy_rule is not None:
            for matcher in rule.legacy_rule.match_on:
                if matcher.nodename is None:
                    continue
                for pattern in matcher.nodename.patterns:
                    try:
                        re.compile(pattern)
                    except re.error as e:
                        errors.append(f"Rule {i}: Invalid nodename regex {pattern!r}: {e}")
            continue

        if rule.rule is None:
            errors.append(f"Rule {i}: Empty rule")
            continue

        for matcher in _modern_matchers(rule.rule):
            for term in matcher:
                if "." not in term.feature:
                    errors.append(
                        f"Rule {i}: Invalid feature {term.feature!r}, "
                        "must be <domain>.<feature>"
                    )
                for name, expr in term.match_expressions:
                    if expr.op == MatchOp.IN_REGEXP:
                        try:
                            expr.regexps()
                        except ExpressionError as e:
                            errors.append(f"Rule {i}: Invalid regex for {name!r}: {e}")
                    elif expr.op in NUMERIC_OPS:
                        for operand in expr.value:
                            if not is_integer(operand):
                                errors.append(
                                    f"Rule {i}: Invalid number {operand!r} for {name!r}"
                                )

    return errors
