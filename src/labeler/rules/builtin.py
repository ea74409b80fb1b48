"""
Built-in rules.

Evaluated before any user-configured rules.
"""

from __future__ import annotations

from labeler.rules.legacy import LegacyMatcher, LegacyRule, LoadedKModRule, PciIdRule
from labeler.rules.models import CustomRule


# Mellanox Technologies
RDMA_VENDOR_IDS = ["15b3"]
RDMA_KERNEL_MODULES = ["ib_uverbs", "rdma_ucm"]


def get_builtin_rules() -> list[CustomRule]:
    """
    Create the built-in rules.

    Returns:
        New rule objects on every call
    """
    return [
        CustomRule(legacy_rule=LegacyRule(
            name="rdma.capable",
            match_on=[LegacyMatcher(pci_id=PciIdRule({"vendor": list(RDMA_VENDOR_IDS)}))],
        )),
        CustomRule(legacy_rule=LegacyRule(
            name="rdma.available",
            match_on=[LegacyMatcher(loaded_kmod=LoadedKModRule(list(RDMA_KERNEL_MODULES)))],
        )),
    ]
