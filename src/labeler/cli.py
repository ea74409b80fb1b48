"""
Feature Labeler Command Line Interface.

Provides commands for working with label rules:
- labels: Evaluate the rule set against a feature snapshot
- rules show: Show the loaded rule set
- rules validate: Validate the rule set
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml

from labeler import __version__
from labeler.config import LabelerConfig, load_config, validate_config
from labeler.features.registry import load_snapshot, registry_from_snapshot
from labeler.rules.engine import LabelEngine, load_configured_rules
from labeler.rules.errors import ConfigError
from labeler.rules.parser import encode_rule, validate_rules


logger = logging.getLogger("labeler")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="feature-labeler",
        description="Rule-based node feature labeling",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="FILE",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # labels command
    labels_parser = subparsers.add_parser(
        "labels", help="Evaluate rules against a feature snapshot"
    )
    labels_parser.add_argument(
        "-f", "--features",
        metavar="FILE",
        help="Feature snapshot YAML file",
    )
    labels_parser.add_argument(
        "-r", "--rules",
        metavar="FILE",
        help="Rules file (overrides configuration)",
    )
    labels_parser.set_defaults(func=cmd_labels)

    # rules command
    rules_parser = subparsers.add_parser("rules", help="Manage label rules")
    rules_sub = rules_parser.add_subparsers(dest="rules_cmd")

    for name, help_text in (
        ("show", "Show loaded rules"),
        ("validate", "Validate rules"),
    ):
        sub = rules_sub.add_parser(name, help=help_text)
        sub.add_argument(
            "-r", "--rules",
            metavar="FILE",
            help="Rules file (overrides configuration)",
        )

    rules_parser.set_defaults(func=cmd_rules)

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    # Execute command
    return args.func(args)


def setup_logging(config: LabelerConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.logging.level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        filename=config.logging.file,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_config(args: argparse.Namespace) -> LabelerConfig:
    """Load configuration, applying command line overrides."""
    config = load_config(args.config)
    for error in validate_config(config):
        logger.warning("Configuration: %s", error)

    rules_file = getattr(args, "rules", None)
    if rules_file:
        if not Path(rules_file).exists():
            raise FileNotFoundError(f"Rules file not found: {rules_file}")
        # An explicit rules file replaces all configured rule sources
        config.rules.rules_file = rules_file
        config.rules.rules_dir = None
        config.rules.builtin_rules = False

    features_file = getattr(args, "features", None)
    if features_file:
        config.sources.snapshot_file = features_file

    setup_logging(config)
    return config


def output(data: Any, args: argparse.Namespace) -> None:
    """Output data in requested format."""
    if getattr(args, "json", False):
        print(json.dumps(data, indent=2, default=str))
    elif isinstance(data, dict):
        for key, value in sorted(data.items()):
            print(f"{key}={value}")
    else:
        print(data)


def cmd_labels(args: argparse.Namespace) -> int:
    """Evaluate the rule set against a feature snapshot."""
    try:
        config = get_config(args)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    if not config.sources.snapshot_file:
        print("No feature snapshot given (use --features)")
        return 1

    try:
        snapshot = load_snapshot(config.sources.snapshot_file)
        engine = LabelEngine.from_config(config)
    except (OSError, ValueError, ConfigError, yaml.YAMLError) as e:
        print(f"Error: {e}")
        return 1

    registry = registry_from_snapshot(snapshot)
    result = engine.evaluate_registry(registry, disabled=config.sources.disabled)

    output(result.labels, args)
    return 0


def cmd_rules(args: argparse.Namespace) -> int:
    """Manage label rules."""
    try:
        config = get_config(args)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1
    config.rules.skip_invalid = False

    try:
        rules = load_configured_rules(config)
    except (OSError, ConfigError, yaml.YAMLError) as e:
        print(f"Rule validation failed: {e}")
        return 1

    if args.rules_cmd == "show":
        encoded = [encode_rule(rule) for rule in rules]
        if getattr(args, "json", False):
            output(encoded, args)
        else:
            print(yaml.safe_dump(encoded, sort_keys=False), end="")
        return 0

    if args.rules_cmd == "validate":
        print(f"Rules valid: {len(rules)} rules loaded")
        warnings = validate_rules(rules)
        if warnings:
            print("\nWarnings:")
            for w in warnings:
                print(f"  - {w}")
        return 0

    print("Usage: feature-labeler rules {show,validate}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
