"""
Data Models
===========

Typed models for the ThermalRelay pipeline.

Models:
    Readings:
        - DecodedFrame: Temperatures recovered from a raw frame
        - Reading: One full thermal sample with identity and time
        - Analysis: Range classification of a reading

    Records:
        - AlertStatus: Wire status label (normal / abnormal)
        - TemperatureRecord: Per-reading summary for the collector
        - AlertRecord: Transition event for the collector
        - OutboundRecord: Either record kind
"""

from thermal_relay.models.reading import N_PIXEL, Analysis, DecodedFrame, Reading
from thermal_relay.models.records import (
    AlertRecord,
    AlertStatus,
    OutboundRecord,
    TemperatureRecord,
)

__all__ = [
    "N_PIXEL",
    # Readings
    "DecodedFrame",
    "Reading",
    "Analysis",
    # Records
    "AlertStatus",
    "TemperatureRecord",
    "AlertRecord",
    "OutboundRecord",
]
