"""
Feature Domain Model.

In-memory representation of discovered features, organised per domain,
and the registry of sources that supply them.
"""

from labeler.features.models import (
    DomainFeatures,
    FeatureKind,
    InstanceFeature,
    InstanceFeatureSet,
    KeyFeatureSet,
    ValueFeatureSet,
)
from labeler.features.registry import (
    FeatureSource,
    SourceRegistry,
    StaticFeatureSource,
    load_snapshot,
    parse_snapshot,
    registry_from_snapshot,
)

__all__ = [
    # Models
    "DomainFeatures",
    "FeatureKind",
    "InstanceFeature",
    "InstanceFeatureSet",
    "KeyFeatureSet",
    "ValueFeatureSet",
    # Registry
    "FeatureSource",
    "SourceRegistry",
    "StaticFeatureSource",
    "load_snapshot",
    "parse_snapshot",
    "registry_from_snapshot",
]
