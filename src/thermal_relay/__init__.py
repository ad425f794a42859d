"""
ThermalRelay
============

Relay for a 4x4 thermopile sensor: streams readings over a named pipe,
classifies them against a normal temperature range, detects alert edges per
sensor and forwards everything to a remote collector with retry and
buffering.

Components:
    - sensor: Frame sources, PEC validation, producer loop
    - stream: Line protocol and named pipe transport
    - analysis: Range classifier and alert state machine
    - delivery: Collector client and retrying delivery queue
    - pipeline: Consumer-side driver
    - main: FastAPI status service hosting the pipeline

Example:
    # Producer process
    thermal-relay-producer --backend mock

    # Relay process
    thermal-relay
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
