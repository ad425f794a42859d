"""
Anomaly Classifier
==================

Range classification of a reading's pixel temperatures.

Rules:
    abnormal = max > max_threshold OR min < min_threshold

    The high-temperature check is evaluated first, so when both bounds are
    breached the reported reason is the high-temperature one.
"""

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from thermal_relay.models.reading import Analysis


logger = logging.getLogger(__name__)


@dataclass
class RangeThresholds:
    """
    Normal temperature range (degC).

    Loaded from configuration file.
    """

    min_threshold: float = 20.0
    max_threshold: float = 70.0

    def __post_init__(self) -> None:
        if self.min_threshold > self.max_threshold:
            raise ValueError("min_threshold must not exceed max_threshold")


class AnomalyClassifier:
    """
    Stateless min/max/average classifier.

    Example:
        classifier = AnomalyClassifier(RangeThresholds(20.0, 70.0))
        analysis = classifier.analyze(reading.pixel_temperatures)
        if analysis.is_abnormal:
            print(analysis.reason)
    """

    def __init__(self, thresholds: RangeThresholds) -> None:
        self.thresholds = thresholds
        logger.info(
            f"AnomalyClassifier initialized: "
            f"normal range {thresholds.min_threshold}°C - {thresholds.max_threshold}°C"
        )

    def analyze(self, values: Sequence[float]) -> Analysis:
        """
        Classify a sequence of temperatures.

        Args:
            values: Pixel temperatures (non-empty)

        Returns:
            Analysis with min, max, average and the range decision

        Raises:
            ValueError: If values is empty
        """
        data = np.asarray(values, dtype=float)
        if data.size == 0:
            raise ValueError("cannot analyze an empty reading")

        low = float(data.min())
        high = float(data.max())
        average = float(data.mean())

        th = self.thresholds
        if high > th.max_threshold:
            logger.debug(
                f"Abnormal temperature: {high}°C exceeds maximum {th.max_threshold}°C"
            )
            return Analysis(low, high, average, True, f"Temperature exceeded {th.max_threshold}°C")
        if low < th.min_threshold:
            logger.debug(
                f"Abnormal temperature: {low}°C below minimum {th.min_threshold}°C"
            )
            return Analysis(low, high, average, True, f"Temperature fell below {th.min_threshold}°C")

        return Analysis(low, high, average, False, "")
