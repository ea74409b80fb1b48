"""
Label Engine.

Evaluates a rule set against a feature snapshot and merges the labels of
all rules into a single label map.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Mapping

from labeler.features.models import DomainFeatures
from labeler.features.registry import SourceRegistry
from labeler.rules.builtin import get_builtin_rules
from labeler.rules.errors import LabelerError
from labeler.rules.models import CustomRule
from labeler.rules.parser import load_rules, load_rules_dir, validate_rules

if TYPE_CHECKING:
    from labeler.config import LabelerConfig


logger = logging.getLogger(__name__)


@dataclass
class RuleResult:
    """Outcome of executing a single rule."""

    name: str
    labels: dict[str, str] | None = None
    error: LabelerError | None = None

    @property
    def matched(self) -> bool:
        """Check if the rule produced labels."""
        return self.labels is not None

    @property
    def failed(self) -> bool:
        """Check if the rule raised an error."""
        return self.error is not None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "labels": self.labels,
            "error": str(self.error) if self.error else None,
        }


@dataclass
class LabelingResult:
    """
    Result of one labeling pass.

    Contains the merged labels and the outcome of each rule.
    """

    labels: dict[str, str] = field(default_factory=dict)
    rule_results: list[RuleResult] = field(default_factory=list)
    evaluation_time_ms: float = 0.0

    @property
    def errors(self) -> list[RuleResult]:
        """Rules that failed."""
        return [r for r in self.rule_results if r.failed]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "labels": dict(self.labels),
            "rules": [r.to_dict() for r in self.rule_results],
            "evaluation_time_ms": self.evaluation_time_ms,
        }


def execute_rule(rule: CustomRule, features: Mapping[str, DomainFeatures]) -> RuleResult:
    """
    Execute one rule, capturing any error.

    A failing rule is logged and yields no labels.
    """
    try:
        labels = rule.execute(features)
    except LabelerError as e:
        logger.error("Failed to execute rule %s: %s", rule.name, e)
        return RuleResult(name=rule.name, error=e)
    return RuleResult(name=rule.name, labels=labels)


class LabelEngine:
    """
    Main label derivation engine.

    Rules are independent of each other; their outputs are merged in
    declaration order so later rules override earlier ones.
    """

    def __init__(
        self,
        rules: list[CustomRule] | None = None,
        max_workers: int = 1,
    ) -> None:
        """
        Initialize the engine.

        Args:
            rules: Rules to evaluate, in order
            max_workers: Number of threads used to evaluate rules
        """
        self.rules = list(rules or [])
        self.max_workers = max(1, max_workers)

        # Statistics
        self._evaluations = 0
        self._rules_matched = 0
        self._rules_failed = 0

    @classmethod
    def from_file(
        cls,
        rules_path: str | Path,
        skip_invalid: bool = True,
        builtin_rules: bool = False,
        max_workers: int = 1,
    ) -> LabelEngine:
        """
        Create engine from a rules file.

        Args:
            rules_path: Path to rules YAML file
            skip_invalid: Drop invalid rules instead of failing
            builtin_rules: Evaluate the built-in rules first
            max_workers: Number of threads used to evaluate rules

        Returns:
            Configured LabelEngine
        """
        rules = get_builtin_rules() if builtin_rules else []
        rules.extend(load_rules(rules_path, skip_invalid=skip_invalid))
        for error in validate_rules(rules):
            logger.warning("Rule validation: %s", error)
        return cls(rules=rules, max_workers=max_workers)

    @classmethod
    def from_config(cls, config: LabelerConfig) -> LabelEngine:
        """
        Create engine from configuration.

        Built-in rules come first, then the rules file, then the rules
        directory. A missing rules file is not an error.
        """
        engine = cls(max_workers=config.rules.max_workers)
        engine.rules = load_configured_rules(config)
        for error in validate_rules(engine.rules):
            logger.warning("Rule validation: %s", error)
        return engine

    def evaluate(self, features: Mapping[str, DomainFeatures]) -> LabelingResult:
        """
        Evaluate all rules against a feature snapshot.

        Args:
            features: Mapping of domain name to its features

        Returns:
            LabelingResult with merged labels and per-rule outcomes
        """
        start_time = datetime.now(timezone.utc)

        if self.max_workers > 1 and len(self.rules) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                # map() yields in submission order
                rule_results = list(
                    executor.map(lambda r: execute_rule(r, features), self.rules)
                )
        else:
            rule_results = [execute_rule(rule, features) for rule in self.rules]

        labels: dict[str, str] = {}
        for rule_result in rule_results:
            if rule_result.labels:
                labels.update(rule_result.labels)

        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
        result = LabelingResult(
            labels=labels,
            rule_results=rule_results,
            evaluation_time_ms=elapsed,
        )
        self._update_stats(result)

        logger.debug(
            "Evaluated %d rules: %d labels, %d errors",
            len(self.rules), len(labels), len(result.errors),
        )
        return result

    def evaluate_registry(
        self,
        registry: SourceRegistry,
        disabled: Iterable[str] = (),
    ) -> LabelingResult:
        """
        Snapshot all registered feature sources and evaluate the rules.

        Args:
            registry: Feature sources to read
            disabled: Names of sources to leave out

        Returns:
            LabelingResult of the snapshot
        """
        return self.evaluate(registry.snapshot(disabled=disabled))

    def get_labels(self, features: Mapping[str, DomainFeatures]) -> dict[str, str]:
        """Evaluate all rules and return the merged labels."""
        return self.evaluate(features).labels

    def _update_stats(self, result: LabelingResult) -> None:
        """Update evaluation statistics."""
        self._evaluations += 1
        for rule_result in result.rule_results:
            if rule_result.failed:
                self._rules_failed += 1
            elif rule_result.matched:
                self._rules_matched += 1

    def reload_rules(self, config: LabelerConfig) -> list[str]:
        """
        Reload rules from configuration.

        Args:
            config: Configuration naming the rule sources

        Returns:
            List of validation warnings
        """
        rules = load_configured_rules(config)
        errors = validate_rules(rules)
        self.rules = rules
        logger.info("Rules reloaded: %d rules", len(rules))
        return errors

    def get_statistics(self) -> dict:
        """Get evaluation statistics."""
        return {
            "total_evaluations": self._evaluations,
            "rules_matched": self._rules_matched,
            "rules_failed": self._rules_failed,
            "rule_count": len(self.rules),
        }

    def reset_statistics(self) -> None:
        """Reset evaluation statistics."""
        self._evaluations = 0
        self._rules_matched = 0
        self._rules_failed = 0


def load_configured_rules(config: LabelerConfig) -> list[CustomRule]:
    """
    Load all rules named by the configuration.

    Returns:
        Built-in rules, rules file rules and rules directory rules, in order
    """
    rules: list[CustomRule] = []
    if config.rules.builtin_rules:
        rules.extend(get_builtin_rules())

    rules_file = Path(config.rules.rules_file) if config.rules.rules_file else None
    if rules_file is not None:
        if rules_file.exists():
            rules.extend(load_rules(rules_file, skip_invalid=config.rules.skip_invalid))
        else:
            logger.info("Rules file %s not found", rules_file)

    if config.rules.rules_dir:
        rules.extend(load_rules_dir(config.rules.rules_dir, skip_invalid=config.rules.skip_invalid))

    logger.info("Loaded %d rules", len(rules))
    return rules
