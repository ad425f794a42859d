"""
Pipe Transport
==============

Named pipe (FIFO) reader connecting the sensor producer to the relay.

This module provides the PipeReader class which:
    - Creates the FIFO if it does not exist yet, before every open (idempotent)
    - Opens it read-only, non-blocking, as an asyncio read pipe
    - Yields complete lines only (partial lines wait for their newline)
    - Reopens after the writer closes or a read error occurs

Design Rules:
    - Does NOT parse lines
    - Closing is idempotent and safe to call repeatedly
    - A session that ends without data (no writer yet) or a failed open
      waits reopen_delay before the next attempt
    - A session that delivered data is reopened immediately
"""

import asyncio
import logging
import os
import stat
from typing import AsyncIterator, Optional


logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the pipe endpoint cannot be created or read."""
    pass


class TransportMetrics:
    """Metrics for PipeReader observability."""

    __slots__ = (
        "sessions_opened",
        "reopen_count",
        "lines_read",
        "partial_lines_dropped",
        "read_errors",
    )

    def __init__(self) -> None:
        self.sessions_opened: int = 0
        self.reopen_count: int = 0
        self.lines_read: int = 0
        self.partial_lines_dropped: int = 0
        self.read_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "sessions_opened": self.sessions_opened,
            "reopen_count": self.reopen_count,
            "lines_read": self.lines_read,
            "partial_lines_dropped": self.partial_lines_dropped,
            "read_errors": self.read_errors,
        }


class PipeReader:
    """
    Async line reader over a named pipe.

    Attributes:
        path: Filesystem path of the FIFO
        reopen_delay: Seconds to wait before reopening an idle pipe
        connected: Whether a read session is currently open
        metrics: Operational metrics

    Example:
        reader = PipeReader("/tmp/sensor_data_pipe", reopen_delay=5.0)
        reader.ensure_pipe()

        async for line in reader.lines():
            handle(line)

        # From another task
        await reader.stop()
    """

    def __init__(
        self,
        path: str,
        reopen_delay: float = 5.0,
        max_line_bytes: int = 64 * 1024,
    ) -> None:
        """
        Initialize pipe reader.

        Args:
            path: FIFO path shared with the producer
            reopen_delay: Delay after an idle session or open failure
            max_line_bytes: Longest accepted line
        """
        self.path = path
        self.reopen_delay = reopen_delay
        self.max_line_bytes = max_line_bytes

        self._file = None
        self._transport: Optional[asyncio.ReadTransport] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._running: bool = False
        self._stop_event: asyncio.Event = asyncio.Event()

        self.metrics = TransportMetrics()

    @property
    def connected(self) -> bool:
        """Whether a read session is currently open."""
        return self._reader is not None

    def ensure_pipe(self) -> None:
        """
        Create the FIFO if it is missing.

        Raises:
            TransportError: If the path exists but is not a FIFO, or the
                FIFO cannot be created
        """
        try:
            os.mkfifo(self.path, 0o666)
            logger.info(f"Created named pipe at {self.path}")
        except FileExistsError:
            try:
                mode = os.stat(self.path).st_mode
            except OSError as e:
                raise TransportError(f"Cannot stat {self.path}: {e}") from e
            if not stat.S_ISFIFO(mode):
                raise TransportError(f"{self.path} exists and is not a named pipe")
        except OSError as e:
            raise TransportError(f"Cannot create named pipe {self.path}: {e}") from e

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield complete lines until stop() is called.

        Reopens the pipe whenever the writer goes away or a read fails.
        """
        self._running = True
        self._stop_event.clear()

        logger.info(f"PipeReader starting on {self.path}")

        while self._running:
            received = 0
            try:
                await self._open()
                async for line in self._read_session():
                    received += 1
                    yield line
            except TransportError as e:
                self.metrics.read_errors += 1
                logger.error(f"Pipe error: {e}")
            finally:
                self.close()

            if not self._running:
                break

            self.metrics.reopen_count += 1
            if received:
                logger.info("Pipe writer closed, reopening")
                continue

            # Nothing arrived: no writer yet, wait before trying again
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.reopen_delay)
                break
            except asyncio.TimeoutError:
                pass

        logger.info("PipeReader stopped")

    async def stop(self) -> None:
        """Signal the line iterator to exit and release the pipe."""
        logger.info("PipeReader stopping...")
        self._running = False
        self._stop_event.set()
        self.close()

    def close(self) -> None:
        """Release every handle held by the current session."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                logger.warning(f"Error closing pipe: {e}")
            self._file = None
        self._reader = None

    async def _open(self) -> None:
        """Open the FIFO (recreating it if removed) and attach it to the loop."""
        loop = asyncio.get_running_loop()
        self.ensure_pipe()
        try:
            fd = os.open(self.path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as e:
            raise TransportError(f"Cannot open {self.path}: {e}") from e

        self._file = os.fdopen(fd, "rb", buffering=0)
        reader = asyncio.StreamReader(limit=self.max_line_bytes)
        protocol = asyncio.StreamReaderProtocol(reader)
        try:
            self._transport, _ = await loop.connect_read_pipe(lambda: protocol, self._file)
        except (OSError, ValueError) as e:
            raise TransportError(f"Cannot attach {self.path}: {e}") from e

        self._reader = reader
        self.metrics.sessions_opened += 1
        logger.debug(f"Pipe session opened on {self.path}")

    async def _read_session(self) -> AsyncIterator[str]:
        """Yield lines from the open session until EOF."""
        reader = self._reader
        while self._running and reader is not None:
            try:
                raw = await reader.readline()
            except ValueError as e:
                # Line longer than the stream limit
                self.metrics.read_errors += 1
                logger.warning(f"Discarding oversized line: {e}")
                continue
            except OSError as e:
                raise TransportError(f"Read failed on {self.path}: {e}") from e

            if not raw:
                return
            if not raw.endswith(b"\n"):
                self.metrics.partial_lines_dropped += 1
                logger.debug(f"Dropping partial line at EOF ({len(raw)} bytes)")
                return

            self.metrics.lines_read += 1
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
