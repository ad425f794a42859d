"""
Stream Module
=============

Named pipe transport and the line protocol carried over it.

This module provides the ingestion layer for ThermalRelay:
    - encode_line / decode_line: Single-line text records
    - PipeReader: Async FIFO reader with reopen handling

Example:
    from thermal_relay.stream import PipeReader, decode_line

    reader = PipeReader("/tmp/sensor_data_pipe")
    reader.ensure_pipe()

    async for line in reader.lines():
        reading = decode_line(line)
"""

from thermal_relay.stream.line_protocol import ParseError, decode_line, encode_line
from thermal_relay.stream.transport import PipeReader, TransportError, TransportMetrics


__all__ = [
    "ParseError",
    "decode_line",
    "encode_line",
    "PipeReader",
    "TransportError",
    "TransportMetrics",
]
