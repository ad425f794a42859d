"""
Analysis Module
===============

Per-reading classification and per-sensor alert tracking.

Components:
    - AnomalyClassifier: min/max/average and the in/out-of-range decision
    - AlertStateMachine: edge-triggered alert and recovery events
    - AlertStateStore: explicit per-sensor alert state
"""

from thermal_relay.analysis.classifier import AnomalyClassifier, RangeThresholds
from thermal_relay.analysis.alerts import (
    RECOVERY_REASON,
    AlertStateMachine,
    AlertStateStore,
)

__all__ = [
    "AnomalyClassifier",
    "RangeThresholds",
    "AlertStateMachine",
    "AlertStateStore",
    "RECOVERY_REASON",
]
