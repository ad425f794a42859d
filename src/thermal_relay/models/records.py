"""
Outbound Record Schema
======================

Pydantic models for the records delivered to the remote collector.

Two record kinds exist, each posted to its own collector route:

Temperature record (one per reading):
    {
        "sensor_id": "sensor_1",
        "date": "2025-04-08",
        "time": "14:25:23:171",
        "temperature_data": [22.0, 23.0, ...],
        "average_temp": 22.4,
        "status": "0:normal"
    }

Alert record (one per state transition):
    {
        "sensor_id": "sensor_1",
        "date": "2025-04-08",
        "time": "14:25:23:171",
        "alert_reason": "Temperature exceeded 70.0°C",
        "status": "1:abnormal"
    }

The ``kind`` tag routes the record inside the relay and is not part of the
posted body.
"""

from enum import Enum
from typing import List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from thermal_relay.models.reading import Analysis, Reading


class AlertStatus(str, Enum):
    """
    Wire status label for a sensor's range state.

    Attributes:
        NORMAL: All pixels within the configured range
        ABNORMAL: At least one pixel outside the configured range
    """

    NORMAL = "0:normal"
    ABNORMAL = "1:abnormal"

    @classmethod
    def from_flag(cls, is_abnormal: bool) -> "AlertStatus":
        return cls.ABNORMAL if is_abnormal else cls.NORMAL


class _RecordBase(BaseModel):
    """Fields shared by every outbound record."""

    model_config = ConfigDict(allow_inf_nan=False)

    sensor_id: str = Field(..., min_length=1, description="Producing sensor")
    date: str = Field(..., description="Capture date (YYYY-MM-DD)")
    time: str = Field(..., description="Capture time (HH:MM:SS:mmm)")
    status: AlertStatus = Field(..., description="Range state label")

    def to_payload(self) -> dict:
        """JSON body for the collector (routing tag excluded)."""
        return self.model_dump(mode="json", exclude={"kind"})


class TemperatureRecord(_RecordBase):
    """Per-reading temperature summary."""

    kind: Literal["temperature"] = "temperature"
    temperature_data: List[float] = Field(..., description="Pixel temperatures (degC)")
    average_temp: float = Field(..., description="Mean pixel temperature (degC)")

    @classmethod
    def from_reading(cls, reading: Reading, analysis: Analysis) -> "TemperatureRecord":
        return cls(
            sensor_id=reading.sensor_id,
            date=reading.date_str,
            time=reading.time_str,
            temperature_data=list(reading.pixel_temperatures),
            average_temp=analysis.average,
            status=AlertStatus.from_flag(analysis.is_abnormal),
        )


class AlertRecord(_RecordBase):
    """Alert or recovery event emitted on a state transition."""

    kind: Literal["alert"] = "alert"
    alert_reason: str = Field(..., description="Cause of the transition")


OutboundRecord = Union[TemperatureRecord, AlertRecord]
