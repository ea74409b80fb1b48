"""
Feature Labeler - rule-based node feature labeling.

Turns discovered hardware and software features of a machine into a flat
set of string labels, driven by a user-authored rule set.
"""

__version__ = "0.1.0"
__author__ = "Feature Labeler Contributors"

from labeler.config import LabelerConfig, load_config

__all__ = ["LabelerConfig", "load_config", "__version__"]
