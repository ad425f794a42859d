"""
Pipeline Tests
==============

Line handling, record ordering and alert emission through the pipeline.
"""

import asyncio

import pytest

from thermal_relay.analysis import AlertStateMachine, AnomalyClassifier, RangeThresholds
from thermal_relay.delivery import DeliveryQueue
from thermal_relay.pipeline import Pipeline


class RecordingDelivery:
    """In-memory stand-in for DeliveryQueue."""

    def __init__(self):
        self.records = []
        self.closed = False

    @property
    def buffered_count(self):
        return 0

    def submit(self, record):
        self.records.append(record)

    def status(self):
        return {"buffered_count": 0, "in_flight": False}

    async def close(self):
        self.closed = True


class ScriptedReader:
    """Line source yielding a fixed list, then stopping."""

    def __init__(self, lines):
        self._lines = list(lines)
        self.stopped = False

    async def lines(self):
        for line in self._lines:
            yield line

    async def stop(self):
        self.stopped = True


def _pipeline(delivery, reader=None):
    return Pipeline(
        reader=reader,
        classifier=AnomalyClassifier(RangeThresholds(20.0, 70.0)),
        alert_machine=AlertStateMachine(),
        delivery=delivery,
    )


@pytest.fixture
def delivery():
    return RecordingDelivery()


class TestHandleLine:
    """Tests for Pipeline.handle_line."""

    def test_decodes_and_submits_temperature(self, delivery, sample_line, sample_pixels):
        pipeline = _pipeline(delivery)

        reading = pipeline.handle_line(sample_line)

        assert reading.sensor_id == "sensor_1"
        assert reading.reference_temperature == 26.5
        assert reading.pixel_temperatures == sample_pixels
        assert [r.kind for r in delivery.records] == ["temperature"]
        assert delivery.records[0].status == "0:normal"

    def test_malformed_line_dropped(self, delivery):
        pipeline = _pipeline(delivery)

        assert pipeline.handle_line("Data sent to pipe") is None
        assert delivery.records == []
        assert pipeline.metrics.parse_errors == 1
        assert pipeline.metrics.lines_received == 1


class TestProcessReading:
    """Tests for Pipeline.process_reading."""

    def test_temperature_precedes_alert(self, delivery, make_reading):
        pipeline = _pipeline(delivery)

        analysis = pipeline.process_reading(make_reading(pixels=[71.0, 20.0] + [25.0] * 14))

        assert analysis.is_abnormal is True
        assert [r.kind for r in delivery.records] == ["temperature", "alert"]
        assert delivery.records[0].status == "1:abnormal"
        assert delivery.records[1].alert_reason == "Temperature exceeded 70.0°C"
        assert pipeline.status()["active_alerts"] == ["sensor_1"]

    def test_sustained_breach_alerts_once(self, delivery, make_reading):
        pipeline = _pipeline(delivery)
        hot = [90.0] + [25.0] * 15

        for second in range(3):
            pipeline.process_reading(make_reading(pixels=hot, second=second))
        pipeline.process_reading(make_reading(second=3))

        kinds = [r.kind for r in delivery.records]
        assert kinds.count("temperature") == 4
        assert kinds.count("alert") == 2
        assert pipeline.metrics.alerts_emitted == 2
        assert pipeline.status()["active_alerts"] == []


class TestRun:
    """Tests for the transport loop."""

    def test_run_consumes_all_lines(self, delivery, sample_line):
        reader = ScriptedReader([sample_line, "garbage", sample_line])
        pipeline = _pipeline(delivery, reader)

        asyncio.run(pipeline.run())

        assert pipeline.metrics.lines_received == 3
        assert pipeline.metrics.readings_processed == 2
        assert pipeline.metrics.parse_errors == 1
        assert pipeline.running is False

    def test_run_without_reader(self, delivery):
        with pytest.raises(RuntimeError):
            asyncio.run(_pipeline(delivery).run())

    def test_stop_closes_reader_and_delivery(self, delivery):
        reader = ScriptedReader([])
        pipeline = _pipeline(delivery, reader)

        asyncio.run(pipeline.stop())

        assert reader.stopped is True
        assert delivery.closed is True

    def test_end_to_end_delivery(self, fake_collector, sample_line):
        """A pipe line reaches the collector as a temperature record."""
        client, handler = fake_collector()
        queue = DeliveryQueue(client, retry_limit=0, retry_delay=0)
        pipeline = _pipeline(queue, ScriptedReader([sample_line]))

        async def scenario():
            await pipeline.run()
            await queue.join()
            await pipeline.stop()

        asyncio.run(scenario())

        assert handler.paths == ["/temperature-data"]
        body = handler.bodies[0]
        assert body["sensor_id"] == "sensor_1"
        assert body["date"] == "2025-04-08"
        assert body["time"] == "14:25:23:171"
        assert len(body["temperature_data"]) == 16
