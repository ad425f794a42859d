"""
Alert State Machine
===================

Edge-triggered alert detection, one independent state per sensor.

States:
    NORMAL ⇄ ABNORMAL   (initial: NORMAL for any unseen sensor)

Transition Rules:
    - Same classification as the stored state: no event, no change
    - Different classification: exactly one AlertRecord, state updated

A sensor that stays abnormal for many readings produces one alert at the
transition and one recovery when it returns to range, never one per reading.

The per-sensor state lives in an AlertStateStore owned by the caller and
passed into every evaluate() call.
"""

import logging
from typing import Dict, List, Optional

from thermal_relay.models.reading import Analysis, Reading
from thermal_relay.models.records import AlertRecord, AlertStatus


logger = logging.getLogger(__name__)


RECOVERY_REASON = "Temperature returned to normal range"


class AlertStateStore:
    """
    Alert state per sensor id (True = abnormal).

    Entries are never evicted.
    """

    def __init__(self) -> None:
        self._states: Dict[str, bool] = {}

    def is_abnormal(self, sensor_id: str) -> bool:
        return self._states.get(sensor_id, False)

    def set(self, sensor_id: str, is_abnormal: bool) -> None:
        self._states[sensor_id] = is_abnormal

    def active_alerts(self) -> List[str]:
        """Sensor ids currently in the abnormal state."""
        return [sensor_id for sensor_id, abnormal in self._states.items() if abnormal]

    def snapshot(self) -> Dict[str, bool]:
        return dict(self._states)

    def __len__(self) -> int:
        return len(self._states)


class AlertStateMachine:
    """
    Emits alert and recovery records on per-sensor state transitions.

    Example:
        store = AlertStateStore()
        machine = AlertStateMachine()

        record = machine.evaluate(store, reading, analysis)
        if record is not None:
            delivery.submit(record)
    """

    def __init__(self, recovery_reason: str = RECOVERY_REASON) -> None:
        self.recovery_reason = recovery_reason
        self.transitions = 0

    def evaluate(
        self,
        store: AlertStateStore,
        reading: Reading,
        analysis: Analysis,
    ) -> Optional[AlertRecord]:
        """
        Compare the new classification against the stored state.

        Args:
            store: Alert state to read and update
            reading: Reading the analysis was computed from
            analysis: Classification of the reading

        Returns:
            AlertRecord on a transition, None otherwise
        """
        sensor_id = reading.sensor_id
        if store.is_abnormal(sensor_id) == analysis.is_abnormal:
            return None

        reason = analysis.reason if analysis.is_abnormal else self.recovery_reason
        record = AlertRecord(
            sensor_id=sensor_id,
            date=reading.date_str,
            time=reading.time_str,
            alert_reason=reason,
            status=AlertStatus.from_flag(analysis.is_abnormal),
        )
        store.set(sensor_id, analysis.is_abnormal)
        self.transitions += 1

        if analysis.is_abnormal:
            logger.warning(f"ALERT: {reason} for sensor {sensor_id}")
        else:
            logger.info(f"RECOVERY: temperature returned to normal for sensor {sensor_id}")

        return record
