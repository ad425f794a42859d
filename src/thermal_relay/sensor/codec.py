"""
Frame Codec
===========

Decoding and checksum validation of raw thermopile frames.

Frame layout (35 bytes for 16 pixels):
    offset 0       PTAT reference, int16 little-endian, tenths of degC
    offset 2+2*i   pixel i, int16 little-endian, tenths of degC
    offset 34      PEC byte (CRC-8, polynomial 0x07)

The PEC covers the I2C read address byte followed by every data byte, so
the bus address is an input of the checksum.

Design Rules:
    - A checksum mismatch is logged, NOT rejected (fail-open)
    - Wrong frame length is a caller error (ValueError)
    - This is the ONLY place that interprets raw frame bytes
"""

import logging
from typing import Iterable, Sequence

import numpy as np

from thermal_relay.models.reading import N_PIXEL, DecodedFrame


logger = logging.getLogger(__name__)


N_READ = 2 * (N_PIXEL + 1) + 1
DEFAULT_BUS_ADDRESS = 0x0A
CRC_POLYNOMIAL = 0x07

_FRAME_DTYPE = np.dtype("<i2")


class ChecksumError(Exception):
    """Raised when a frame's trailing PEC byte does not match its contents."""

    def __init__(self, computed: int, received: int) -> None:
        super().__init__(
            f"PEC check failed: {computed:02X}(cal)-{received:02X}(get)"
        )
        self.computed = computed
        self.received = received


def crc_step(value: int) -> int:
    """Run 8 rounds of shift-left with conditional XOR of the polynomial."""
    for _ in range(8):
        carry = value & 0x80
        value = (value << 1) & 0xFF
        if carry:
            value ^= CRC_POLYNOMIAL
    return value


def compute_crc(data: Iterable[int], bus_address: int = DEFAULT_BUS_ADDRESS) -> int:
    """
    Compute the PEC over the read address byte followed by `data`.

    Args:
        data: Frame bytes excluding the trailing PEC byte
        bus_address: 7-bit device address

    Returns:
        8-bit CRC
    """
    crc = 0
    for byte in bytes([((bus_address << 1) | 1) & 0xFF]) + bytes(data):
        crc = crc_step(byte ^ crc)
    return crc


class FrameCodec:
    """
    Decoder for fixed-layout thermopile frames.

    Attributes:
        bus_address: 7-bit I2C address used in the PEC calculation
        n_pixel: Number of pixel channels in a frame

    Example:
        codec = FrameCodec(bus_address=0x0A)
        decoded = codec.decode(raw)
        if not decoded.checksum_ok:
            ...  # data is still usable
    """

    def __init__(self, bus_address: int = DEFAULT_BUS_ADDRESS) -> None:
        self.bus_address = bus_address
        self.n_pixel = N_PIXEL
        self.frame_length = N_READ
        self.checksum_failures = 0

    def verify(self, raw: bytes) -> None:
        """
        Validate the trailing PEC byte.

        Raises:
            ValueError: If the frame has the wrong length
            ChecksumError: If the computed CRC differs from the PEC byte
        """
        self._check_length(raw)
        computed = compute_crc(raw[:-1], self.bus_address)
        if computed != raw[-1]:
            raise ChecksumError(computed, raw[-1])

    def decode(self, raw: bytes, strict: bool = False) -> DecodedFrame:
        """
        Decode a raw frame into reference and pixel temperatures.

        Args:
            raw: Exactly N_READ bytes from the sensor
            strict: Raise ChecksumError instead of failing open

        Returns:
            DecodedFrame; checksum_ok is False on PEC mismatch
        """
        checksum_ok = True
        try:
            self.verify(raw)
        except ChecksumError as e:
            if strict:
                raise
            self.checksum_failures += 1
            checksum_ok = False
            logger.warning(f"{e} (frame still forwarded)")

        values = np.frombuffer(raw, dtype=_FRAME_DTYPE, count=self.n_pixel + 1) / 10.0

        return DecodedFrame(
            reference_temperature=float(values[0]),
            pixel_temperatures=tuple(float(v) for v in values[1:]),
            checksum_ok=checksum_ok,
        )

    def build_frame(self, reference: float, pixels: Sequence[float]) -> bytes:
        """
        Encode temperatures into a frame with a valid PEC byte.

        Values are rounded to tenths of a degree.
        """
        if len(pixels) != self.n_pixel:
            raise ValueError(f"expected {self.n_pixel} pixels, got {len(pixels)}")

        tenths = np.rint(np.asarray([reference, *pixels], dtype=float) * 10.0)
        payload = tenths.astype(_FRAME_DTYPE).tobytes()
        return payload + bytes([compute_crc(payload, self.bus_address)])

    def _check_length(self, raw: bytes) -> None:
        if len(raw) != self.frame_length:
            raise ValueError(
                f"frame must be {self.frame_length} bytes, got {len(raw)}"
            )
