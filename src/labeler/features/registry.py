"""
Feature source registry.

Sources are registered once at start-up; each labeling pass takes a
read-only snapshot of all of their feature domains.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Iterator

import yaml

from labeler.features.models import DomainFeatures


logger = logging.getLogger(__name__)


class FeatureSource(ABC):
    """A source that discovers the features of one domain."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Domain name of the source."""

    def discover(self) -> None:
        """Refresh the discovered features. No-op by default."""

    @abstractmethod
    def get_features(self) -> DomainFeatures:
        """Return the most recently discovered features."""


class StaticFeatureSource(FeatureSource):
    """Source serving a fixed set of features, e.g. loaded from a file."""

    def __init__(self, name: str, features: DomainFeatures | None = None) -> None:
        self._name = name
        self._features = features or DomainFeatures()

    @property
    def name(self) -> str:
        return self._name

    def get_features(self) -> DomainFeatures:
        return self._features


class SourceRegistry:
    """
    Explicit registry of feature sources.

    Populated once at process start and never mutated by the engine.
    """

    def __init__(self, sources: Iterable[FeatureSource] = ()) -> None:
        self._sources: dict[str, FeatureSource] = {}
        for source in sources:
            self.register(source)

    def register(self, source: FeatureSource) -> None:
        """
        Register a feature source.

        Raises:
            ValueError: If a source with the same name is already registered
        """
        if source.name in self._sources:
            raise ValueError(f"Feature source already registered: {source.name}")
        self._sources[source.name] = source
        logger.debug("Registered feature source %s", source.name)

    def get(self, name: str) -> FeatureSource | None:
        """Get a source by name."""
        return self._sources.get(name)

    def names(self) -> list[str]:
        """Names of all registered sources, in registration order."""
        return list(self._sources)

    def __contains__(self, name: object) -> bool:
        return name in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[FeatureSource]:
        return iter(self._sources.values())

    def snapshot(
        self,
        discover: bool = True,
        disabled: Iterable[str] = (),
    ) -> dict[str, DomainFeatures]:
        """
        Build the feature snapshot for one labeling pass.

        Args:
            discover: Run discovery on each source before reading it
            disabled: Names of sources to leave out

        Returns:
            Mapping of domain name to its features
        """
        skip = set(disabled)
        snapshot: dict[str, DomainFeatures] = {}
        for name, source in self._sources.items():
            if name in skip:
                logger.debug("Feature source %s disabled", name)
                continue
            if discover:
                try:
                    source.discover()
                except Exception as e:
                    logger.error("Feature discovery failed for %s: %s", name, e)
                    continue
            features = source.get_features()
            for conflict in features.conflicts():
                logger.warning(
                    "Feature %s.%s present in more than one feature set",
                    name, conflict,
                )
            snapshot[name] = features
        return snapshot


def parse_snapshot(data: dict[str, Any] | None) -> dict[str, DomainFeatures]:
    """
    Parse a feature snapshot from dictionary.

    Args:
        data: Mapping of domain name to keys/values/instances

    Returns:
        Mapping of domain name to DomainFeatures
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Feature snapshot must be a dictionary")
    return {
        str(domain): DomainFeatures.from_dict(features)
        for domain, features in data.items()
    }


def load_snapshot(path: str | Path) -> dict[str, DomainFeatures]:
    """
    Load a feature snapshot from a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Feature snapshot not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return parse_snapshot(data)


def registry_from_snapshot(snapshot: dict[str, DomainFeatures]) -> SourceRegistry:
    """Create a registry with one static source per domain."""
    return SourceRegistry(
        StaticFeatureSource(name, features) for name, features in snapshot.items()
    )
