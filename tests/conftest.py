"""
Pytest configuration and shared fixtures for feature labeler tests.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
import yaml

from labeler.features.models import (
    DomainFeatures,
    InstanceFeature,
    InstanceFeatureSet,
    KeyFeatureSet,
    ValueFeatureSet,
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def template_features() -> dict[str, DomainFeatures]:
    """Feature snapshot with one feature set of each kind."""
    return {
        "domain_1": DomainFeatures(
            keys={"kf_1": KeyFeatureSet({"key-a", "key-b", "key-c"})},
            values={
                "vf_1": ValueFeatureSet({
                    "key-1": "val-1",
                    "keu-2": "val-2",
                    "key-3": "val-3",
                }),
            },
            instances={
                "if_1": InstanceFeatureSet([
                    InstanceFeature({"attr-1": "1", "attr-2": "val-2"}),
                    InstanceFeature({"attr-1": "10", "attr-2": "val-20"}),
                    InstanceFeature({"attr-1": "100", "attr-2": "val-200"}),
                ]),
            },
        ),
    }


@pytest.fixture
def node_features() -> dict[str, DomainFeatures]:
    """Feature snapshot shaped like real discovery output."""
    return {
        "cpu": DomainFeatures(
            keys={"cpuid": KeyFeatureSet({"AVX", "AVX2", "SSE4"})},
        ),
        "kernel": DomainFeatures(
            keys={"loadedmodule": KeyFeatureSet({"e1000e", "ib_uverbs", "rdma_ucm"})},
            values={
                "config": ValueFeatureSet({"NO_HZ": "true", "PREEMPT": "m"}),
                "version": ValueFeatureSet({"major": "5", "minor": "15"}),
            },
        ),
        "pci": DomainFeatures(
            instances={
                "device": InstanceFeatureSet([
                    InstanceFeature({"class": "0200", "vendor": "8086", "device": "1533"}),
                    InstanceFeature({"class": "0300", "vendor": "10de", "device": "1db6"}),
                ]),
            },
        ),
        "usb": DomainFeatures(
            instances={
                "device": InstanceFeatureSet([
                    InstanceFeature({
                        "class": "ff", "vendor": "1a6e", "device": "089a", "serial": "abc",
                    }),
                ]),
            },
        ),
        "system": DomainFeatures(
            values={"name": ValueFeatureSet({"nodename": "worker-1"})},
        ),
    }


@pytest.fixture
def snapshot_data() -> dict:
    """Feature snapshot in its file format."""
    return {
        "cpu": {"keys": {"cpuid": ["AVX", "AVX2"]}},
        "kernel": {
            "values": {"config": {"NO_HZ": "true"}},
            "keys": {"loadedmodule": ["e1000e"]},
        },
        "pci": {
            "instances": {
                "device": [{"class": "0200", "vendor": "8086", "device": "1533"}],
            },
        },
    }


@pytest.fixture
def sample_snapshot(temp_dir: Path, snapshot_data: dict) -> Path:
    """Create a sample feature snapshot file."""
    path = temp_dir / "features.yaml"
    with open(path, "w") as f:
        yaml.dump(snapshot_data, f)
    return path


@pytest.fixture
def sample_rules(temp_dir: Path) -> Path:
    """Create a sample rules file."""
    rules_path = temp_dir / "rules.yaml"
    rules_data = [
        {
            "name": "avx2",
            "labels": {"cpu-avx2": "true"},
            "matchFeatures": [
                {"feature": "cpu.cpuid", "matchExpressions": {"AVX2": {"op": "Exists"}}},
            ],
        },
        {
            "name": "intel-nic",
            "matchOn": [{"pciId": {"vendor": ["8086"], "class": ["0200"]}}],
        },
        {
            "name": "nic-devices",
            "labelsTemplate": (
                "{% for d in pci.device %}nic-{{ d.device }}=present\n{% endfor %}"
            ),
            "matchFeatures": [
                {"feature": "pci.device", "matchExpressions": {"class": ["0200"]}},
            ],
        },
    ]
    with open(rules_path, "w") as f:
        yaml.dump(rules_data, f)
    return rules_path


@pytest.fixture
def sample_config(temp_dir: Path, sample_rules: Path, sample_snapshot: Path) -> Path:
    """Create a sample configuration file."""
    config_path = temp_dir / "labeler.yaml"
    config_data = {
        "logging": {"level": "debug"},
        "rules": {
            "rules_file": str(sample_rules),
            "rules_dir": str(temp_dir / "rules.d"),
            "builtin_rules": False,
        },
        "sources": {"snapshot_file": str(sample_snapshot)},
    }
    with open(config_path, "w") as f:
        yaml.dump(config_data, f)
    return config_path
