"""
Sensor Bus
==========

Frame sources for the producer.

Components:
    - SensorBus: Protocol for a register read primitive
    - I2CBus: Linux i2c-dev implementation
    - MockSensor: Deterministic simulated thermopile

Design Rules:
    - Returns raw frame bytes only (decoding lives in the codec)
    - Any bus failure raises SensorReadError
"""

import fcntl
import logging
import math
import os
import time
from typing import Protocol

from thermal_relay.sensor.codec import DEFAULT_BUS_ADDRESS, N_READ, FrameCodec


logger = logging.getLogger(__name__)


# From linux/i2c-dev.h
I2C_SLAVE = 0x0703


class SensorReadError(Exception):
    """Raised when a frame cannot be read from the sensor."""
    pass


class SensorBus(Protocol):
    """
    Protocol for frame sources.

    Implemented by:
        - I2CBus (hardware)
        - MockSensor (testing and demos)
    """

    def read_register(self, address: int, register: int, length: int) -> bytes:
        """
        Read `length` bytes after writing `register` to device `address`.

        Raises:
            SensorReadError: On any bus failure or short read
        """
        ...


class I2CBus:
    """
    i2c-dev register reader.

    The device node is opened per read and closed afterwards.
    """

    def __init__(self, device: str = "/dev/i2c-0", settle_ms: float = 1.0) -> None:
        self.device = device
        self.settle_ms = settle_ms
        logger.info(f"I2CBus initialized: device={device}")

    def read_register(self, address: int, register: int, length: int) -> bytes:
        try:
            fd = os.open(self.device, os.O_RDWR)
        except OSError as e:
            raise SensorReadError(f"Failed to open device {self.device}: {e}") from e

        try:
            fcntl.ioctl(fd, I2C_SLAVE, address)
            if os.write(fd, bytes([register])) != 1:
                raise SensorReadError(f"Failed to write register 0x{register:02X}")
            time.sleep(self.settle_ms / 1000.0)
            data = os.read(fd, length)
        except OSError as e:
            raise SensorReadError(f"I2C transfer with 0x{address:02X} failed: {e}") from e
        finally:
            os.close(fd)

        if len(data) != length:
            raise SensorReadError(
                f"Short read from device, expected {length}, got {len(data)}"
            )
        return data


class MockSensor:
    """
    Deterministic mock thermopile for testing.

    Generates stable, predictable frames using a read counter as the seed:
        - Base temperature around the configured value
        - Slow sinusoidal drift (period in reads)
        - A fixed per-pixel gradient across the 4x4 array
        - Optional hot spot on pixel 0 every `spike_every` reads

    Attributes:
        base_temperature: Mean pixel temperature (degC)
        ambient_temperature: PTAT value (degC)
        variation_amplitude: Amplitude of the drift (degC)
        variation_period: Reads per drift cycle
        spike_every: Reads between hot spots (0 disables)
        spike_temperature: Hot-spot temperature (degC)
    """

    def __init__(
        self,
        base_temperature: float = 25.0,
        ambient_temperature: float = 26.5,
        variation_amplitude: float = 2.0,
        variation_period: int = 200,
        spike_every: int = 0,
        spike_length: int = 5,
        spike_temperature: float = 85.0,
        bus_address: int = DEFAULT_BUS_ADDRESS,
    ) -> None:
        self.base_temperature = base_temperature
        self.ambient_temperature = ambient_temperature
        self.variation_amplitude = variation_amplitude
        self.variation_period = variation_period
        self.spike_every = spike_every
        self.spike_length = spike_length
        self.spike_temperature = spike_temperature

        self._codec = FrameCodec(bus_address=bus_address)
        self._reads: int = 0

        logger.info(
            f"MockSensor initialized: base={base_temperature}°C, "
            f"period={variation_period} reads, spike_every={spike_every or 'never'}"
        )

    def read_register(self, address: int, register: int, length: int) -> bytes:
        if length != N_READ:
            raise SensorReadError(f"MockSensor only serves {N_READ}-byte frames")

        n = self._reads
        self._reads += 1

        phase = (2 * math.pi * n) / self.variation_period
        drift = self.variation_amplitude * math.sin(phase)
        pixels = [
            self.base_temperature + drift + 0.1 * (i % 4) + 0.2 * (i // 4)
            for i in range(self._codec.n_pixel)
        ]

        if self.spike_every and n % self.spike_every < self.spike_length and n >= self.spike_every:
            pixels[0] = self.spike_temperature

        return self._codec.build_frame(self.ambient_temperature, pixels)
