"""
Sensor Producer
===============

Producer-side loop: sensor frame → decoded reading → line → named pipe.

This process:
    1. Creates the pipe if needed
    2. Reads one frame per interval from the sensor bus
    3. Decodes it (checksum mismatches are logged, data still forwarded)
    4. Writes one line to the pipe when a reader is attached

Usage:
    thermal-relay-producer --backend mock
    thermal-relay-producer --config /etc/thermal-relay/config.yaml --count 10
"""

import argparse
import errno
import logging
import os
import signal
import threading
from datetime import datetime
from typing import Callable, Optional

from thermal_relay.sensor.bus import I2CBus, MockSensor, SensorBus, SensorReadError
from thermal_relay.sensor.codec import DEFAULT_BUS_ADDRESS, FrameCodec
from thermal_relay.stream.line_protocol import encode_line
from thermal_relay.stream.transport import PipeReader


logger = logging.getLogger(__name__)


class SensorProducer:
    """
    Polls the sensor and publishes lines to the pipe.

    Attributes:
        sensor_id: Identifier written into every line
        pipe_path: FIFO path shared with the relay
        read_interval: Seconds between reads
        startup_delay: Seconds to wait before the first read

    Example:
        producer = SensorProducer(MockSensor(), "sensor_1", "/tmp/sensor_data_pipe")
        producer.run(max_reads=10)
    """

    def __init__(
        self,
        bus: SensorBus,
        sensor_id: str,
        pipe_path: str,
        address: int = 0x0A,
        register: int = 0x4C,
        read_interval: float = 0.3,
        startup_delay: float = 0.62,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.bus = bus
        self.sensor_id = sensor_id
        self.pipe_path = pipe_path
        self.address = address
        self.register = register
        self.read_interval = read_interval
        self.startup_delay = startup_delay

        self._codec = FrameCodec(bus_address=address)
        self._clock = clock
        self._stop_event = threading.Event()

        self.reads = 0
        self.read_errors = 0
        self.lines_written = 0
        self.lines_skipped = 0

        logger.info(
            f"SensorProducer initialized: sensor_id={sensor_id}, pipe={pipe_path}, "
            f"interval={read_interval}s"
        )

    def poll_once(self) -> Optional[str]:
        """
        Read and encode one frame.

        Returns:
            Encoded line, or None when the bus read failed
        """
        self.reads += 1
        try:
            raw = self.bus.read_register(self.address, self.register, self._codec.frame_length)
        except SensorReadError as e:
            self.read_errors += 1
            logger.error(f"Sensor read failed: {e}")
            return None

        decoded = self._codec.decode(raw)
        reading = decoded.to_reading(self.sensor_id, self._clock())
        return encode_line(reading)

    def publish(self, line: str) -> bool:
        """
        Write one line to the pipe if a reader is attached.

        Returns:
            True if written, False if skipped
        """
        try:
            fd = os.open(self.pipe_path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            self.lines_skipped += 1
            if e.errno == errno.ENXIO:
                logger.debug("No reader on pipe, skipping write")
            else:
                logger.error(f"Cannot open pipe {self.pipe_path}: {e}")
            return False

        try:
            os.write(fd, line.encode("utf-8"))
        except OSError as e:
            self.lines_skipped += 1
            logger.warning(f"Pipe write failed: {e}")
            return False
        finally:
            os.close(fd)

        self.lines_written += 1
        return True

    def run(self, max_reads: int = 0) -> None:
        """
        Poll until stopped or `max_reads` reads were made (0 = forever).
        """
        self._stop_event.clear()
        if self._stop_event.wait(self.startup_delay):
            return

        logger.info("SensorProducer started")
        while not self._stop_event.is_set():
            line = self.poll_once()
            if line is not None:
                self.publish(line)

            if max_reads and self.reads >= max_reads:
                break
            self._stop_event.wait(self.read_interval)

        logger.info(
            f"SensorProducer stopped: reads={self.reads}, written={self.lines_written}, "
            f"skipped={self.lines_skipped}, read_errors={self.read_errors}"
        )

    def stop(self) -> None:
        self._stop_event.set()


def create_bus(
    backend: str,
    device: str,
    address: int = DEFAULT_BUS_ADDRESS,
) -> SensorBus:
    """Create the sensor bus for the configured backend."""
    if backend == "mock":
        logger.info("Using MockSensor")
        return MockSensor(spike_every=100, bus_address=address)
    if backend == "i2c":
        return I2CBus(device=device)
    raise ValueError(f"Unknown sensor backend: {backend}")


def main(argv: Optional[list] = None) -> int:
    """Entry point for the producer process."""
    parser = argparse.ArgumentParser(description="Thermal sensor producer")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--backend", choices=["mock", "i2c"], default=None)
    parser.add_argument("--count", type=int, default=0, help="Stop after N reads (0 = forever)")
    args = parser.parse_args(argv)

    from thermal_relay.config import load_config, setup_logging

    settings = load_config(args.config)
    setup_logging(settings)
    sensor = settings.sensor

    reader = PipeReader(settings.transport.pipe_path)
    reader.ensure_pipe()

    producer = SensorProducer(
        bus=create_bus(args.backend or sensor.backend, sensor.device, sensor.address),
        sensor_id=sensor.sensor_id,
        pipe_path=settings.transport.pipe_path,
        address=sensor.address,
        register=sensor.command_register,
        read_interval=sensor.read_interval_ms / 1000.0,
        startup_delay=sensor.startup_delay_ms / 1000.0,
    )

    def _handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, stopping producer...")
        producer.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    producer.run(max_reads=args.count)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
