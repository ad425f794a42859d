"""
Relay Pipeline
==============

Consumer-side driver wiring the stages together:

    PipeReader → decode_line → AnomalyClassifier → AlertStateMachine → DeliveryQueue

The pipeline owns the per-sensor alert state. Nothing raised while handling
a single line stops the loop: malformed lines are logged and dropped,
delivery failures are absorbed by the queue.
"""

import logging
from typing import Optional

from thermal_relay.analysis import AlertStateMachine, AlertStateStore, AnomalyClassifier
from thermal_relay.delivery import DeliveryQueue
from thermal_relay.models.reading import Analysis, Reading
from thermal_relay.models.records import TemperatureRecord
from thermal_relay.stream import ParseError, PipeReader, decode_line


logger = logging.getLogger(__name__)


class PipelineMetrics:
    """Metrics for Pipeline observability."""

    __slots__ = (
        "lines_received",
        "parse_errors",
        "readings_processed",
        "alerts_emitted",
        "processing_errors",
        "last_sensor_id",
    )

    def __init__(self) -> None:
        self.lines_received: int = 0
        self.parse_errors: int = 0
        self.readings_processed: int = 0
        self.alerts_emitted: int = 0
        self.processing_errors: int = 0
        self.last_sensor_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "lines_received": self.lines_received,
            "parse_errors": self.parse_errors,
            "readings_processed": self.readings_processed,
            "alerts_emitted": self.alerts_emitted,
            "processing_errors": self.processing_errors,
            "last_sensor_id": self.last_sensor_id,
        }


class Pipeline:
    """
    Top-level relay driver.

    Attributes:
        reader: Line source (None when only fed through process_reading)
        classifier: Range classifier
        alert_machine: Edge-triggered alert detector
        alert_state: Per-sensor alert state owned by this pipeline
        delivery: Outbound delivery queue
        metrics: Operational counters

    Example:
        pipeline = Pipeline(reader, classifier, AlertStateMachine(), delivery)
        task = asyncio.create_task(pipeline.run())
        ...
        await pipeline.stop()
        await task
    """

    def __init__(
        self,
        reader: Optional[PipeReader],
        classifier: AnomalyClassifier,
        alert_machine: AlertStateMachine,
        delivery: DeliveryQueue,
        alert_state: Optional[AlertStateStore] = None,
        log_every_n_readings: int = 100,
    ) -> None:
        self.reader = reader
        self.classifier = classifier
        self.alert_machine = alert_machine
        self.delivery = delivery
        self.alert_state = alert_state if alert_state is not None else AlertStateStore()
        self.log_every_n_readings = log_every_n_readings

        self.metrics = PipelineMetrics()
        self._running: bool = False

    @property
    def running(self) -> bool:
        """Whether run() is consuming the transport."""
        return self._running

    def handle_line(self, line: str) -> Optional[Reading]:
        """
        Decode and process one transport line.

        Returns:
            The processed Reading, or None if the line was dropped
        """
        self.metrics.lines_received += 1
        try:
            reading = decode_line(line)
        except ParseError as e:
            self.metrics.parse_errors += 1
            logger.warning(f"Dropping malformed line ({e}): {line[:120]!r}")
            return None

        self.process_reading(reading)
        return reading

    def process_reading(self, reading: Reading) -> Analysis:
        """
        Classify a reading and queue its outbound records.

        The temperature record is submitted before any alert record.
        """
        analysis = self.classifier.analyze(reading.pixel_temperatures)

        self.delivery.submit(TemperatureRecord.from_reading(reading, analysis))

        alert = self.alert_machine.evaluate(self.alert_state, reading, analysis)
        if alert is not None:
            self.metrics.alerts_emitted += 1
            self.delivery.submit(alert)

        self.metrics.readings_processed += 1
        self.metrics.last_sensor_id = reading.sensor_id

        if self.metrics.readings_processed % self.log_every_n_readings == 0:
            logger.info(
                f"Processed {self.metrics.readings_processed} readings "
                f"[{reading.sensor_id}: avg={analysis.average:.1f}°C, "
                f"max={analysis.max:.1f}°C, buffered={self.delivery.buffered_count}]"
            )
        return analysis

    async def run(self) -> None:
        """Consume the transport until stop() is called."""
        if self.reader is None:
            raise RuntimeError("Pipeline has no reader to run")

        self._running = True
        logger.info("Relay pipeline started")
        try:
            async for line in self.reader.lines():
                try:
                    self.handle_line(line)
                except Exception as e:
                    self.metrics.processing_errors += 1
                    logger.error(f"Pipeline error: {e}")
        finally:
            self._running = False
            logger.info("Relay pipeline stopped")

    async def stop(self) -> None:
        """Stop reading and shut down delivery."""
        if self.reader is not None:
            await self.reader.stop()
        await self.delivery.close()

    def status(self) -> dict:
        """State for the status surface."""
        delivery = self.delivery.status()
        return {
            "buffered_count": delivery["buffered_count"],
            "in_flight": delivery["in_flight"],
            "active_alerts": self.alert_state.active_alerts(),
        }
