"""
Line Protocol
=============

Single-line text records exchanged over the named pipe.

Line Format:
    id: sensor_1, date: 2025-04-08, time: 14:25:23:171, PTAT: 26.5 [degC], Temperature: 22.0, 23.0, ..., 21.0 [degC]

Design Rules:
    - Exactly one record per line, terminated by a single newline
    - All temperatures carry one decimal place
    - Decoding is a fixed-grammar tokenizer (no regular expressions)
    - Any malformed line raises ParseError; it is never partially accepted
"""

import math
from datetime import datetime
from typing import List, Tuple

from thermal_relay.models.reading import N_PIXEL, Reading


UNIT_SUFFIX = "[degC]"
FIELD_MARKERS = ("id:", "date:", "time:", "PTAT:", "Temperature:")

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S:%f"


class ParseError(Exception):
    """Raised when a line does not match the record grammar."""
    pass


def encode_line(reading: Reading) -> str:
    """
    Serialize a reading into one newline-terminated record.

    Args:
        reading: Reading to serialize

    Returns:
        Line including the trailing newline
    """
    pixels = ", ".join(f"{value:.1f}" for value in reading.pixel_temperatures)
    return (
        f"id: {reading.sensor_id}, "
        f"date: {reading.date_str}, "
        f"time: {reading.time_str}, "
        f"PTAT: {reading.reference_temperature:.1f} {UNIT_SUFFIX}, "
        f"Temperature: {pixels} {UNIT_SUFFIX}\n"
    )


def decode_line(line: str, expected_pixels: int = N_PIXEL) -> Reading:
    """
    Parse one record line back into a Reading.

    Args:
        line: Raw line (trailing newline optional)
        expected_pixels: Required number of pixel values

    Returns:
        Parsed Reading

    Raises:
        ParseError: On missing markers, missing unit suffix, bad numbers,
            bad timestamp or wrong pixel count
    """
    text = line.strip()
    sensor_id, date_text, time_text, ptat_text, temps_text = _split_fields(text)

    if not sensor_id or any(c.isspace() for c in sensor_id):
        raise ParseError(f"invalid sensor id: {sensor_id!r}")

    reference = _parse_number(_strip_unit(ptat_text, "PTAT"), "PTAT")
    pixels = _parse_values(_strip_unit(temps_text, "Temperature"))
    if len(pixels) != expected_pixels:
        raise ParseError(
            f"expected {expected_pixels} temperature values, got {len(pixels)}"
        )

    try:
        timestamp = datetime.strptime(f"{date_text} {time_text}", _TIMESTAMP_FORMAT)
    except ValueError as e:
        raise ParseError(f"invalid date/time {date_text!r} {time_text!r}: {e}") from e

    return Reading(
        sensor_id=sensor_id,
        timestamp=timestamp,
        reference_temperature=reference,
        pixel_temperatures=tuple(pixels),
    )


def _split_fields(text: str) -> Tuple[str, ...]:
    """Cut the line at each field marker, in order."""
    positions = []
    cursor = 0
    for marker in FIELD_MARKERS:
        index = text.find(marker, cursor)
        if index < 0:
            raise ParseError(f"missing field marker {marker!r}")
        positions.append((index, index + len(marker)))
        cursor = index + len(marker)

    if positions[0][0] != 0:
        raise ParseError("line must start with 'id:'")

    fields = []
    for i, (_, value_start) in enumerate(positions):
        value_end = positions[i + 1][0] if i + 1 < len(positions) else len(text)
        value = text[value_start:value_end].strip()
        if i + 1 < len(positions):
            # Every field but the last is closed by a comma separator
            if not value.endswith(","):
                raise ParseError(f"missing separator after {FIELD_MARKERS[i]!r}")
            value = value[:-1].strip()
        fields.append(value)
    return tuple(fields)


def _strip_unit(value: str, field: str) -> str:
    if not value.endswith(UNIT_SUFFIX):
        raise ParseError(f"{field} field missing {UNIT_SUFFIX} suffix")
    return value[: -len(UNIT_SUFFIX)].strip()


def _parse_values(text: str) -> List[float]:
    if not text:
        raise ParseError("empty temperature list")
    return [_parse_number(token, "Temperature") for token in text.split(",")]


def _parse_number(token: str, field: str) -> float:
    token = token.strip()
    try:
        value = float(token)
    except ValueError as e:
        raise ParseError(f"invalid {field} value {token!r}") from e
    if not math.isfinite(value):
        raise ParseError(f"non-finite {field} value {token!r}")
    return value
