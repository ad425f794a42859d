"""
Sensor Module
=============

Producer side of the relay: frame sources, frame decoding and the loop
that publishes readings to the named pipe.

Components:
    - FrameCodec: PEC validation and temperature decoding
    - I2CBus / MockSensor: Frame sources
    - SensorProducer: Read → decode → encode → write loop
"""

from thermal_relay.sensor.codec import (
    N_READ,
    ChecksumError,
    FrameCodec,
    compute_crc,
    crc_step,
)
from thermal_relay.sensor.bus import I2CBus, MockSensor, SensorBus, SensorReadError

__all__ = [
    "N_READ",
    "ChecksumError",
    "FrameCodec",
    "compute_crc",
    "crc_step",
    "SensorBus",
    "I2CBus",
    "MockSensor",
    "SensorReadError",
]
