"""
Delivery Module
===============

Reliable forwarding of outbound records to the remote collector.

Components:
    - CollectorClient: httpx-based client for the collector routes
    - DeliveryError: Classified delivery failure
    - DeliveryQueue: Single-flight retry + FIFO replay buffer

Example:
    from thermal_relay.delivery import CollectorClient, DeliveryQueue

    client = CollectorClient("http://collector:8000")
    queue = DeliveryQueue(client, retry_limit=5, retry_delay=3.0)

    queue.submit(record)
"""

from thermal_relay.delivery.client import CollectorClient, DeliveryError
from thermal_relay.delivery.queue import DeliveryQueue, RecordSender


__all__ = [
    "CollectorClient",
    "DeliveryError",
    "DeliveryQueue",
    "RecordSender",
]
