"""
Legacy rule dialect.

A legacy rule produces a single label when any of its matchers succeeds.
Each matcher is a fixed set of optional typed sub-rules, all of which
must match.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping

from labeler.features.models import DomainFeatures, FeatureKind, FeatureSet, to_str
from labeler.rules.errors import RuleParseError, UnknownFeatureError
from labeler.rules.expression import MatchExpression, MatchExpressionSet, MatchOp
from labeler.rules.matcher import resolve_feature, split_feature_ref


logger = logging.getLogger(__name__)


# Raw features consulted by the legacy sub-rules
PCI_DEVICE_FEATURE = "pci.device"
USB_DEVICE_FEATURE = "usb.device"
KERNEL_MODULE_FEATURE = "kernel.loadedmodule"
KERNEL_CONFIG_FEATURE = "kernel.config"
CPUID_FEATURE = "cpu.cpuid"
NODENAME_FEATURE = "system.name"
NODENAME_ATTRIBUTE = "nodename"


def _feature_set(
    features: Mapping[str, DomainFeatures],
    ref: str,
    kind: FeatureKind,
) -> FeatureSet:
    """Resolve a raw feature and check it has the expected shape."""
    domain, name = split_feature_ref(ref)
    found_kind, feature_set = resolve_feature(features, domain, name)
    if found_kind != kind:
        raise UnknownFeatureError(
            f"{ref} is a {found_kind} feature, expected {kind}"
        )
    return feature_set


def _string_list(data: Any, what: str) -> list[str]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise RuleParseError(f"'{what}' must be a list")
    return [to_str(item) for item in data]


@dataclass
class DeviceIdRule:
    """
    Matches if any device instance has every listed attribute set to one
    of the given values.
    """

    FEATURE: ClassVar[str] = ""
    ATTRIBUTES: ClassVar[tuple[str, ...]] = ()

    attributes: dict[str, list[str]] = field(default_factory=dict)

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        # A rule without any attributes never matches
        if not any(self.attributes.values()):
            return False

        devices = _feature_set(features, self.FEATURE, FeatureKind.INSTANCES)
        expressions = MatchExpressionSet({
            name: MatchExpression(MatchOp.IN, values)
            for name, values in self.attributes.items()
            if values
        })
        return bool(expressions.match_instances(devices.elements))

    def to_data(self) -> dict[str, list[str]]:
        return {name: list(values) for name, values in self.attributes.items() if values}

    @classmethod
    def from_data(cls, data: Any) -> DeviceIdRule:
        if not isinstance(data, dict):
            raise RuleParseError(f"{cls.__name__} must be a dictionary")
        unknown = set(data) - set(cls.ATTRIBUTES)
        if unknown:
            raise RuleParseError(
                f"Unknown {cls.__name__} attribute(s): {', '.join(sorted(unknown))}"
            )
        return cls({name: _string_list(values, name) for name, values in data.items()})


@dataclass
class PciIdRule(DeviceIdRule):
    """Match PCI devices by class/vendor/device/subsystem IDs."""

    FEATURE: ClassVar[str] = PCI_DEVICE_FEATURE
    ATTRIBUTES: ClassVar[tuple[str, ...]] = (
        "class", "vendor", "device", "subsystem_vendor", "subsystem_device",
    )


@dataclass
class UsbIdRule(DeviceIdRule):
    """Match USB devices by class/vendor/device/serial."""

    FEATURE: ClassVar[str] = USB_DEVICE_FEATURE
    ATTRIBUTES: ClassVar[tuple[str, ...]] = ("class", "vendor", "device", "serial")


@dataclass
class LoadedKModRule:
    """Matches if all listed kernel modules are loaded."""

    modules: list[str] = field(default_factory=list)

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        loaded = _feature_set(features, KERNEL_MODULE_FEATURE, FeatureKind.KEYS).elements
        for module in self.modules:
            if module not in loaded:
                logger.debug("Kernel module %s not loaded", module)
                return False
        return True

    def to_data(self) -> list[str]:
        return list(self.modules)

    @classmethod
    def from_data(cls, data: Any) -> LoadedKModRule:
        return cls(_string_list(data, "loadedKMod"))


@dataclass
class CpuIdRule:
    """Matches if all listed CPUID flags are present."""

    flags: list[str] = field(default_factory=list)

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        present = _feature_set(features, CPUID_FEATURE, FeatureKind.KEYS).elements
        return all(flag in present for flag in self.flags)

    def to_data(self) -> list[str]:
        return list(self.flags)

    @classmethod
    def from_data(cls, data: Any) -> CpuIdRule:
        return cls(_string_list(data, "cpuId"))


@dataclass
class KconfigOption:
    """A kernel config option with its expected value."""

    name: str
    value: str = "true"

    def __str__(self) -> str:
        return f"{self.name}={self.value}"

    @classmethod
    def parse(cls, raw: str) -> KconfigOption:
        """Parse "NAME" or "NAME=VALUE"."""
        name, sep, value = raw.partition("=")
        return cls(name, value if sep else "true")


@dataclass
class KconfigRule:
    """Matches if all listed kernel config options have the expected value."""

    options: list[KconfigOption] = field(default_factory=list)

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        config = _feature_set(features, KERNEL_CONFIG_FEATURE, FeatureKind.VALUES).elements
        for option in self.options:
            if config.get(option.name) != option.value:
                return False
        return True

    def to_data(self) -> list[str]:
        return [str(option) for option in self.options]

    @classmethod
    def from_data(cls, data: Any) -> KconfigRule:
        return cls([KconfigOption.parse(raw) for raw in _string_list(data, "kConfig")])


@dataclass
class NodenameRule:
    """Matches if any pattern matches the node name (regexp search)."""

    patterns: list[str] = field(default_factory=list)

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        system = _feature_set(features, NODENAME_FEATURE, FeatureKind.VALUES).elements
        if NODENAME_ATTRIBUTE not in system:
            raise UnknownFeatureError("node name not available")
        node_name = system[NODENAME_ATTRIBUTE]

        for pattern in self.patterns:
            try:
                matched = re.search(pattern, node_name)
            except re.error as e:
                logger.error("nodename rule: invalid nodename regexp %r: %s", pattern, e)
                continue
            if matched:
                logger.debug("nodename rule: match for pattern %r with node %r", pattern, node_name)
                return True
            logger.debug("nodename rule: no match for pattern %r with node %r", pattern, node_name)
        return False

    def to_data(self) -> list[str]:
        return list(self.patterns)

    @classmethod
    def from_data(cls, data: Any) -> NodenameRule:
        return cls(_string_list(data, "nodename"))


# YAML key -> (attribute name, sub-rule type), in evaluation order
LEGACY_SLOTS: dict[str, tuple[str, type]] = {
    "pciId": ("pci_id", PciIdRule),
    "usbId": ("usb_id", UsbIdRule),
    "loadedKMod": ("loaded_kmod", LoadedKModRule),
    "cpuId": ("cpu_id", CpuIdRule),
    "kConfig": ("kconfig", KconfigRule),
    "nodename": ("nodename", NodenameRule),
}


@dataclass
class LegacyMatcher:
    """
    Up to six optional sub-rules, combined with AND logic.

    Unset sub-rules are skipped.
    """

    pci_id: PciIdRule | None = None
    usb_id: UsbIdRule | None = None
    loaded_kmod: LoadedKModRule | None = None
    cpu_id: CpuIdRule | None = None
    kconfig: KconfigRule | None = None
    nodename: NodenameRule | None = None

    def match(self, features: Mapping[str, DomainFeatures]) -> bool:
        for attr, _ in LEGACY_SLOTS.values():
            rule = getattr(self, attr)
            if rule is None:
                continue
            if not rule.match(features):
                return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding unset sub-rules."""
        result = {}
        for key, (attr, _) in LEGACY_SLOTS.items():
            rule = getattr(self, attr)
            if rule is not None:
                result[key] = rule.to_data()
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LegacyMatcher:
        """Create from dictionary."""
        if not isinstance(data, dict):
            raise RuleParseError("matchOn element must be a dictionary")
        unknown = set(data) - set(LEGACY_SLOTS)
        if unknown:
            raise RuleParseError(f"Unknown legacy matcher(s): {', '.join(sorted(unknown))}")
        kwargs = {
            attr: rule_type.from_data(data[key])
            for key, (attr, rule_type) in LEGACY_SLOTS.items()
            if data.get(key) is not None
        }
        return cls(**kwargs)


@dataclass
class LegacyRule:
    """
    Rule of the legacy dialect.

    Produces {name: value} when any matcher in match_on succeeds. A rule
    without matchers always matches.
    """

    name: str
    value: str | None = None
    match_on: list[LegacyMatcher] = field(default_factory=list)

    def execute(self, features: Mapping[str, DomainFeatures]) -> dict[str, str] | None:
        """
        Execute the rule against a feature snapshot.

        Returns:
            Single-label dictionary, or None if no matcher matched
        """
        if self.match_on:
            # Logical OR over the matchers
            if not any(matcher.match(features) for matcher in self.match_on):
                return None

        return {self.name: self.value if self.value is not None else "true"}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        result: dict[str, Any] = {"name": self.name}
        if self.value is not None:
            result["value"] = self.value
        result["matchOn"] = [matcher.to_dict() for matcher in self.match_on]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any], match_on_key: str = "matchOn") -> LegacyRule:
        """
        Create from dictionary.

        Args:
            data: Rule data
            match_on_key: Actual spelling of the matchOn key in data
        """
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise RuleParseError("Rule must have 'name' field")

        match_on = data.get(match_on_key)
        if match_on is None:
            match_on = []
        if not isinstance(match_on, list):
            raise RuleParseError("'matchOn' must be a list")

        value = data.get("value")
        return cls(
            name=name,
            value=to_str(value) if value is not None else None,
            match_on=[LegacyMatcher.from_dict(m) for m in match_on],
        )
