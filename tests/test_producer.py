"""
Producer Tests
==============

Sensor frame sources and the producer's poll/publish loop.
"""

import os
from datetime import datetime

import pytest

from thermal_relay.sensor.bus import I2CBus, MockSensor, SensorReadError
from thermal_relay.sensor.codec import N_READ, FrameCodec
from thermal_relay.sensor.producer import SensorProducer, create_bus
from thermal_relay.stream.line_protocol import decode_line


FIXED_TIME = datetime(2025, 4, 8, 14, 25, 23, 171000)


class FailingBus:
    def read_register(self, address, register, length):
        raise SensorReadError("bus timeout")


class CorruptingBus:
    """Serves valid frames with the PEC byte inverted."""

    def __init__(self):
        self._mock = MockSensor()

    def read_register(self, address, register, length):
        frame = bytearray(self._mock.read_register(address, register, length))
        frame[-1] ^= 0xFF
        return bytes(frame)


@pytest.fixture
def fifo_path(tmp_path):
    path = str(tmp_path / "sensor_pipe")
    os.mkfifo(path)
    return path


def _producer(bus, pipe_path="/nonexistent/pipe"):
    return SensorProducer(
        bus=bus,
        sensor_id="sensor_1",
        pipe_path=pipe_path,
        read_interval=0,
        startup_delay=0,
        clock=lambda: FIXED_TIME,
    )


class TestMockSensor:
    """Tests for the simulated thermopile."""

    def test_frames_pass_checksum(self):
        sensor = MockSensor()
        codec = FrameCodec()
        for _ in range(5):
            decoded = codec.decode(sensor.read_register(0x0A, 0x4C, N_READ))
            assert decoded.checksum_ok

    def test_first_frame_values(self):
        decoded = FrameCodec().decode(MockSensor().read_register(0x0A, 0x4C, N_READ))

        assert decoded.reference_temperature == 26.5
        assert decoded.pixel_temperatures[0] == 25.0
        assert decoded.pixel_temperatures[15] == 25.9

    def test_spike(self):
        sensor = MockSensor(spike_every=3, spike_length=1)
        codec = FrameCodec()
        hot = [
            codec.decode(sensor.read_register(0x0A, 0x4C, N_READ)).pixel_temperatures[0]
            for _ in range(5)
        ]
        assert hot[3] == 85.0
        assert max(hot[:3]) < 30.0
        assert hot[4] < 30.0

    def test_wrong_length_rejected(self):
        with pytest.raises(SensorReadError):
            MockSensor().read_register(0x0A, 0x4C, 10)


class TestI2CBus:
    def test_missing_device(self, tmp_path):
        bus = I2CBus(device=str(tmp_path / "i2c-missing"))
        with pytest.raises(SensorReadError):
            bus.read_register(0x0A, 0x4C, N_READ)


class TestPollOnce:
    """Tests for SensorProducer.poll_once."""

    def test_line_decodes(self):
        line = _producer(MockSensor()).poll_once()
        reading = decode_line(line)

        assert line.endswith(" [degC]\n")
        assert reading.sensor_id == "sensor_1"
        assert reading.timestamp == FIXED_TIME
        assert reading.reference_temperature == 26.5
        assert len(reading.pixel_temperatures) == 16

    def test_read_error_skips_reading(self):
        producer = _producer(FailingBus())

        assert producer.poll_once() is None
        assert producer.read_errors == 1
        assert producer.reads == 1

    def test_checksum_mismatch_still_forwarded(self):
        producer = _producer(CorruptingBus())

        line = producer.poll_once()

        assert line is not None
        assert decode_line(line).pixel_temperatures[0] == 25.0


class TestPublish:
    """Tests for SensorProducer.publish."""

    def test_no_reader_skips(self, fifo_path):
        producer = _producer(MockSensor(), fifo_path)

        assert producer.publish("line\n") is False
        assert producer.lines_skipped == 1

    def test_missing_pipe_skips(self, tmp_path):
        producer = _producer(MockSensor(), str(tmp_path / "missing"))
        assert producer.publish("line\n") is False

    def test_writes_to_attached_reader(self, fifo_path):
        producer = _producer(MockSensor(), fifo_path)
        read_fd = os.open(fifo_path, os.O_RDONLY | os.O_NONBLOCK)
        try:
            assert producer.publish("hello\n") is True
            assert os.read(read_fd, 64) == b"hello\n"
        finally:
            os.close(read_fd)
        assert producer.lines_written == 1


class TestRun:
    def test_max_reads(self, fifo_path):
        producer = _producer(MockSensor(), fifo_path)

        producer.run(max_reads=3)

        assert producer.reads == 3
        assert producer.lines_skipped == 3


class TestCreateBus:
    def test_mock(self):
        assert isinstance(create_bus("mock", "/dev/i2c-0"), MockSensor)

    def test_mock_uses_configured_address(self):
        """Mock frames carry a PEC matching a non-default bus address."""
        producer = SensorProducer(
            bus=create_bus("mock", "/dev/i2c-0", address=0x0B),
            sensor_id="sensor_1",
            pipe_path="/nonexistent/pipe",
            address=0x0B,
        )

        assert producer.poll_once() is not None
        assert producer._codec.checksum_failures == 0

    def test_i2c(self):
        assert isinstance(create_bus("i2c", "/dev/i2c-1"), I2CBus)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_bus("spi", "/dev/spidev0.0")
