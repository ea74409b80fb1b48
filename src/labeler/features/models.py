"""
Feature domain data models.

A feature domain holds everything one source discovered, split into three
differently shaped feature sets: presence-only keys, scalar values and
repeated instances.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class FeatureKind(Enum):
    """Shape of a resolved feature set."""

    KEYS = "keys"
    VALUES = "values"
    INSTANCES = "instances"

    def __str__(self) -> str:
        return self.value


def to_str(value: Any) -> str:
    """Coerce a scalar read from YAML/JSON into a feature string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


@dataclass
class KeyFeatureSet:
    """Set of element names; presence is the fact."""

    elements: set[str] = field(default_factory=set)


@dataclass
class ValueFeatureSet:
    """Mapping from attribute name to a single string value."""

    elements: dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceFeature:
    """One discovered object, e.g. a single PCI device."""

    attributes: dict[str, str] = field(default_factory=dict)


@dataclass
class InstanceFeatureSet:
    """Ordered list of instances."""

    elements: list[InstanceFeature] = field(default_factory=list)


FeatureSet = KeyFeatureSet | ValueFeatureSet | InstanceFeatureSet


def _lookup(mapping: Mapping[str, Any], name: str) -> Any:
    """Case-insensitive lookup of a feature name."""
    lowered = name.lower()
    if lowered in mapping:
        return mapping[lowered]
    for key, value in mapping.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass
class DomainFeatures:
    """
    All features of one domain (e.g. "cpu", "kernel", "pci").

    A feature name is expected to appear in only one of the three sets.
    """

    keys: dict[str, KeyFeatureSet] = field(default_factory=dict)
    values: dict[str, ValueFeatureSet] = field(default_factory=dict)
    instances: dict[str, InstanceFeatureSet] = field(default_factory=dict)

    def resolve(self, name: str) -> tuple[FeatureKind, FeatureSet] | None:
        """
        Resolve a feature name, checking keys, then values, then instances.

        Args:
            name: Feature name (case-insensitive)

        Returns:
            Tuple of feature kind and feature set, or None if not found
        """
        for kind, mapping in (
            (FeatureKind.KEYS, self.keys),
            (FeatureKind.VALUES, self.values),
            (FeatureKind.INSTANCES, self.instances),
        ):
            found = _lookup(mapping, name)
            if found is not None:
                return kind, found
        return None

    def conflicts(self) -> list[str]:
        """Return feature names present in more than one feature set."""
        seen: dict[str, int] = {}
        for mapping in (self.keys, self.values, self.instances):
            for name in {n.lower() for n in mapping}:
                seen[name] = seen.get(name, 0) + 1
        return sorted(name for name, count in seen.items() if count > 1)

    def is_empty(self) -> bool:
        """Check if the domain has no features at all."""
        return not (self.keys or self.values or self.instances)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {}
        if self.keys:
            result["keys"] = {
                name: sorted(fs.elements) for name, fs in self.keys.items()
            }
        if self.values:
            result["values"] = {
                name: dict(fs.elements) for name, fs in self.values.items()
            }
        if self.instances:
            result["instances"] = {
                name: [dict(i.attributes) for i in fs.elements]
                for name, fs in self.instances.items()
            }
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> DomainFeatures:
        """Create from dictionary."""
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("Domain features must be a dictionary")

        keys = {
            str(name).lower(): KeyFeatureSet({to_str(e) for e in (elements or [])})
            for name, elements in (data.get("keys") or {}).items()
        }
        values = {
            str(name).lower(): ValueFeatureSet(
                {str(k): to_str(v) for k, v in (elements or {}).items()}
            )
            for name, elements in (data.get("values") or {}).items()
        }
        instances = {
            str(name).lower(): InstanceFeatureSet([
                InstanceFeature({str(k): to_str(v) for k, v in (attrs or {}).items()})
                for attrs in (elements or [])
            ])
            for name, elements in (data.get("instances") or {}).items()
        }
        return cls(keys=keys, values=values, instances=instances)
