"""
Reading Models
==============

Typed data passed between the decoding and analysis stages.

These models are internal to the pipeline: a Reading is created once per
frame (or per decoded line), analyzed once, and then discarded.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Tuple


# Thermopile geometry: 4x4 pixels plus one PTAT reference channel
N_PIXEL = 16


@dataclass(frozen=True, slots=True)
class DecodedFrame:
    """
    Temperatures recovered from one raw sensor frame.

    Attributes:
        reference_temperature: PTAT channel (degC)
        pixel_temperatures: 16 pixel temperatures (degC), row-major
        checksum_ok: False when the trailing CRC did not match
    """

    reference_temperature: float
    pixel_temperatures: Tuple[float, ...]
    checksum_ok: bool = True

    def to_reading(self, sensor_id: str, timestamp: datetime) -> "Reading":
        """Attach identity and capture time to the decoded values."""
        return Reading(
            sensor_id=sensor_id,
            timestamp=timestamp,
            reference_temperature=self.reference_temperature,
            pixel_temperatures=self.pixel_temperatures,
        )


@dataclass(frozen=True, slots=True)
class Reading:
    """
    One full thermal sample from a sensor.

    Attributes:
        sensor_id: Identifier of the producing sensor
        timestamp: Capture time (millisecond precision)
        reference_temperature: PTAT channel (degC)
        pixel_temperatures: Exactly 16 pixel temperatures (degC)
    """

    sensor_id: str
    timestamp: datetime
    reference_temperature: float
    pixel_temperatures: Tuple[float, ...]

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.sensor_id:
            raise ValueError("sensor_id must be non-empty")
        if len(self.pixel_temperatures) != N_PIXEL:
            raise ValueError(
                f"expected {N_PIXEL} pixel temperatures, "
                f"got {len(self.pixel_temperatures)}"
            )
        if not all(math.isfinite(v) for v in (self.reference_temperature, *self.pixel_temperatures)):
            raise ValueError("temperatures must be finite numbers")

    @property
    def date_str(self) -> str:
        """Capture date as YYYY-MM-DD."""
        return self.timestamp.strftime("%Y-%m-%d")

    @property
    def time_str(self) -> str:
        """Capture time as HH:MM:SS:mmm."""
        return (
            f"{self.timestamp.strftime('%H:%M:%S')}:"
            f"{self.timestamp.microsecond // 1000:03d}"
        )

    def __repr__(self) -> str:
        return (
            f"Reading(sensor_id={self.sensor_id!r}, "
            f"time={self.date_str} {self.time_str}, "
            f"ptat={self.reference_temperature:.1f})"
        )


@dataclass(frozen=True, slots=True)
class Analysis:
    """
    Range classification of a reading's pixel temperatures.

    Attributes:
        min: Lowest pixel temperature
        max: Highest pixel temperature
        average: Mean pixel temperature
        is_abnormal: True when outside the configured range
        reason: Human-readable cause ("" when normal)
    """

    min: float
    max: float
    average: float
    is_abnormal: bool
    reason: str = ""

    def to_dict(self) -> dict:
        """Export as dictionary for logging/serialization."""
        return {
            "min": round(self.min, 2),
            "max": round(self.max, 2),
            "average": round(self.average, 2),
            "is_abnormal": self.is_abnormal,
            "reason": self.reason,
        }
