"""
Test Configuration
==================

Pytest fixtures and test configuration for ThermalRelay.
"""

from datetime import datetime

import httpx
import pytest


SAMPLE_PIXELS = (
    22.0, 23.0, 22.5, 24.1,
    25.0, 26.3, 21.9, 22.2,
    23.3, 24.4, 25.5, 26.6,
    20.1, 20.0, 27.7, 21.0,
)


@pytest.fixture
def sample_pixels():
    """Sixteen in-range one-decimal pixel temperatures."""
    return SAMPLE_PIXELS


@pytest.fixture
def sample_line():
    """A well-formed pipe line as written by the producer."""
    temps = ", ".join(f"{v:.1f}" for v in SAMPLE_PIXELS)
    return (
        "id: sensor_1, date: 2025-04-08, time: 14:25:23:171, "
        f"PTAT: 26.5 [degC], Temperature: {temps} [degC]"
    )


@pytest.fixture
def sample_reading():
    """Provide a Reading matching sample_line."""
    from thermal_relay.models.reading import Reading

    return Reading(
        sensor_id="sensor_1",
        timestamp=datetime(2025, 4, 8, 14, 25, 23, 171000),
        reference_temperature=26.5,
        pixel_temperatures=SAMPLE_PIXELS,
    )


@pytest.fixture
def make_reading():
    """Factory for readings with a given sensor id and pixel values."""
    from thermal_relay.models.reading import Reading

    def _make(sensor_id="sensor_1", pixels=SAMPLE_PIXELS, second=0):
        return Reading(
            sensor_id=sensor_id,
            timestamp=datetime(2025, 4, 8, 14, 25, second, 0),
            reference_temperature=26.5,
            pixel_temperatures=tuple(pixels),
        )

    return _make


class FakeCollector:
    """
    Scriptable httpx MockTransport handler.

    `outcomes` is consumed one entry per request: an int is returned as the
    status code, the string "down" raises a connection error. Once exhausted,
    every request gets 201.
    """

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if self.outcomes else 201
        if outcome == "down":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(outcome, json={"ok": outcome < 400})

    @property
    def paths(self):
        return [r.url.path for r in self.requests]

    @property
    def bodies(self):
        import json

        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def fake_collector():
    """Factory for a CollectorClient backed by a FakeCollector."""
    from thermal_relay.delivery.client import CollectorClient

    def _make(outcomes=()):
        handler = FakeCollector(outcomes)
        client = CollectorClient(
            "http://collector.test",
            transport=httpx.MockTransport(handler),
        )
        return client, handler

    return _make
