"""
Configuration management for the feature labeler.

Handles loading, validation, and access to labeler configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/feature-labeler/labeler.yaml")
DEFAULT_RULES_PATH = Path("/etc/feature-labeler/rules.yaml")
DEFAULT_RULES_DIR = Path("/etc/feature-labeler/rules.d")


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    file: str | None = None


@dataclass
class RulesConfig:
    """Rule set settings."""

    rules_file: str | None = str(DEFAULT_RULES_PATH)
    rules_dir: str | None = str(DEFAULT_RULES_DIR)
    builtin_rules: bool = True
    skip_invalid: bool = True
    max_workers: int = 1


@dataclass
class SourcesConfig:
    """Feature source settings."""

    snapshot_file: str | None = None
    disabled: list[str] = field(default_factory=list)


@dataclass
class LabelerConfig:
    """Main configuration container."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    rules: RulesConfig = field(default_factory=RulesConfig)
    sources: SourcesConfig = field(default_factory=SourcesConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LabelerConfig:
        """Create configuration from dictionary."""
        return cls(
            logging=LoggingConfig(**(data.get("logging") or {})),
            rules=RulesConfig(**(data.get("rules") or {})),
            sources=SourcesConfig(**(data.get("sources") or {})),
        )


def load_config(path: str | Path | None = None) -> LabelerConfig:
    """
    Load configuration from YAML file.

    Args:
        path: Path to configuration file. If None, uses default paths.

    Returns:
        LabelerConfig instance with loaded settings.

    Raises:
        FileNotFoundError: If an explicit config file is not found.
        yaml.YAMLError: If config file is invalid YAML.
    """
    if path is None:
        # Try default locations
        candidates = [
            DEFAULT_CONFIG_PATH,
            Path("config/labeler.yaml"),
            Path("labeler.yaml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is None:
        # Return default configuration
        return LabelerConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return LabelerConfig.from_dict(data)


def validate_config(config: LabelerConfig) -> list[str]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate.

    Returns:
        List of error messages. Empty list if valid.
    """
    errors: list[str] = []

    valid_log_levels = {"debug", "info", "warning", "error"}
    if config.logging.level not in valid_log_levels:
        errors.append(f"Invalid log level: {config.logging.level}")

    if config.rules.max_workers < 1:
        errors.append(f"Invalid max_workers: {config.rules.max_workers}")

    if not isinstance(config.sources.disabled, list):
        errors.append("sources.disabled must be a list")

    if config.sources.snapshot_file and not Path(config.sources.snapshot_file).exists():
        errors.append(f"Snapshot file not found: {config.sources.snapshot_file}")

    return errors
