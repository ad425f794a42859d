"""
Delivery Queue
==============

At-least-once delivery of outbound records with retry and buffering.

Algorithm:
    submit(record):
        - If a live delivery is in flight, the record goes to the buffer tail
        - Otherwise a live delivery task starts for it

    live delivery:
        1. Attempt delivery; on failure retry up to retry_limit times with a
           fixed retry_delay between attempts (bounded loop)
        2. On success, drain the buffer in FIFO order, one attempt per
           record; the first failure goes back to the front and draining stops
        3. If every attempt fails, the record joins the buffer ahead of any
           record deferred while it was in flight

Ordering:
    The buffer is strictly FIFO in production order. A live record may be
    delivered before older buffered records (its immediate attempt runs
    first); global ordering across the live/buffered split is not
    guaranteed.

Design Rules:
    - At most one outbound request at a time
    - Connection failures and error responses are both retried
    - A record the sender reports as not retryable (or that raises an
      unexpected exception) is discarded, never buffered
    - Buffer is in-memory; shutdown abandons in-flight retries
    - Optional max_buffer_size drops the oldest record when full
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional, Protocol

from thermal_relay.delivery.client import DeliveryError
from thermal_relay.models.records import OutboundRecord


logger = logging.getLogger(__name__)


class RecordSender(Protocol):
    """
    Protocol for delivery backends.

    Implemented by CollectorClient. `send` must raise DeliveryError on
    failure and return normally on acknowledgement.
    """

    async def send(self, record: OutboundRecord) -> None:
        ...


class DeliveryQueue:
    """
    Single-flight delivery queue with retry and FIFO replay buffer.

    Attributes:
        retry_limit: Retries after the first failed live attempt
        retry_delay: Seconds between attempts
        max_buffer_size: Buffer cap (0 = unbounded)

    Example:
        queue = DeliveryQueue(CollectorClient(url), retry_limit=5, retry_delay=3.0)

        queue.submit(record)          # returns immediately
        await queue.join()            # wait for the current delivery (tests)
        await queue.close()           # shutdown
    """

    def __init__(
        self,
        sender: RecordSender,
        retry_limit: int = 5,
        retry_delay: float = 3.0,
        max_buffer_size: int = 0,
    ) -> None:
        """
        Initialize delivery queue.

        Args:
            sender: Backend that performs one delivery attempt
            retry_limit: Retries after the first failed attempt (>= 0)
            retry_delay: Fixed delay between attempts in seconds
            max_buffer_size: Maximum buffered records, 0 for unbounded
        """
        if retry_limit < 0:
            raise ValueError("retry_limit must be >= 0")
        if max_buffer_size < 0:
            raise ValueError("max_buffer_size must be >= 0")

        self.sender = sender
        self.retry_limit = retry_limit
        self.retry_delay = retry_delay
        self.max_buffer_size = max_buffer_size

        self._buffer: Deque[OutboundRecord] = deque()
        self._in_flight: bool = False
        self._deferred: int = 0
        self._task: Optional[asyncio.Task] = None
        self._closed: bool = False

        # Metrics
        self._delivered_count: int = 0
        self._failed_attempts: int = 0
        self._dropped_count: int = 0
        self._rejected_count: int = 0

        logger.info(
            f"DeliveryQueue initialized: retry_limit={retry_limit}, "
            f"retry_delay={retry_delay}s, "
            f"max_buffer_size={max_buffer_size or 'unbounded'}"
        )

    @property
    def in_flight(self) -> bool:
        """Whether a live delivery (or its drain) is running."""
        return self._in_flight

    @property
    def buffered_count(self) -> int:
        """Number of records waiting in the buffer."""
        return len(self._buffer)

    def buffered(self) -> list:
        """Copy of the buffer, oldest first."""
        return list(self._buffer)

    def submit(self, record: OutboundRecord) -> None:
        """
        Queue a record for delivery without waiting for the outcome.

        Must be called from within a running event loop.
        """
        if self._closed:
            logger.warning(f"DeliveryQueue closed, dropping {record.kind} record for {record.sensor_id}")
            return

        if self._in_flight:
            self._deferred += 1
            self._append(record)
            return

        self._in_flight = True
        self._deferred = 0
        self._task = asyncio.create_task(self._run_live(record), name="delivery_live")

    async def join(self) -> None:
        """Wait until the current live delivery and drain finish."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def close(self) -> None:
        """
        Abandon in-flight retries and release the sender.

        Buffered records are lost (no persistence).
        """
        self._closed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._buffer:
            logger.warning(f"DeliveryQueue closing with {len(self._buffer)} undelivered records")

        aclose = getattr(self.sender, "aclose", None)
        if aclose is not None:
            await aclose()

    def status(self) -> dict:
        """
        Get queue state for the status surface.

        Returns:
            Dict with buffered_count, in_flight and delivery counters
        """
        return {
            "buffered_count": len(self._buffer),
            "in_flight": self._in_flight,
            "delivered_count": self._delivered_count,
            "failed_attempts": self._failed_attempts,
            "dropped_count": self._dropped_count,
            "rejected_count": self._rejected_count,
        }

    async def _run_live(self, record: OutboundRecord) -> None:
        """Deliver a live record with retries, then replay the buffer."""
        try:
            if await self._deliver_with_retry(record):
                await self._drain()
            else:
                logger.error(
                    f"Max retry attempts reached, buffering {record.kind} record "
                    f"for sensor {record.sensor_id}"
                )
                # Ahead of records submitted while this one was in flight
                self._buffer.insert(max(0, len(self._buffer) - self._deferred), record)
                self._enforce_cap()
        finally:
            self._in_flight = False
            self._deferred = 0

    async def _deliver_with_retry(self, record: OutboundRecord) -> bool:
        attempts = self.retry_limit + 1
        for attempt in range(1, attempts + 1):
            if await self._attempt(record, f"attempt {attempt}/{attempts}"):
                return True
            if attempt < attempts:
                logger.info(f"Retrying in {self.retry_delay}s...")
                await asyncio.sleep(self.retry_delay)
        return False

    async def _drain(self) -> None:
        """Replay buffered records in FIFO order until empty or a failure."""
        if not self._buffer:
            return

        logger.info(f"Processing buffered records. Items in buffer: {len(self._buffer)}")
        while self._buffer:
            record = self._buffer.popleft()
            if not await self._attempt(record, "buffered"):
                self._buffer.appendleft(record)
                logger.warning(f"Buffer replay stopped, {len(self._buffer)} records remain")
                return

        logger.info("Buffer empty.")

    async def _attempt(self, record: OutboundRecord, label: str) -> bool:
        """
        Make one delivery attempt.

        Returns:
            True once the record is settled (delivered, or rejected as
            undeliverable), False when it should be tried again
        """
        try:
            await self.sender.send(record)
        except DeliveryError as e:
            self._failed_attempts += 1
            if not e.retryable:
                self._reject(record, e)
                return True
            kind = "connection failure" if e.is_connection_error else "error response"
            logger.error(f"Error sending {record.kind} record ({label}, {kind}): {e}")
            return False
        except Exception as e:
            self._failed_attempts += 1
            self._reject(record, e)
            return True

        self._delivered_count += 1
        logger.debug(f"Delivered {record.kind} record for sensor {record.sensor_id} ({label})")
        return True

    def _reject(self, record: OutboundRecord, error: Exception) -> None:
        self._rejected_count += 1
        logger.error(
            f"Discarding undeliverable {record.kind} record for sensor "
            f"{record.sensor_id}: {error}. Total rejected: {self._rejected_count}"
        )

    def _append(self, record: OutboundRecord) -> None:
        self._buffer.append(record)
        self._enforce_cap()

    def _enforce_cap(self) -> None:
        if not self.max_buffer_size:
            return
        while len(self._buffer) > self.max_buffer_size:
            dropped = self._buffer.popleft()
            self._dropped_count += 1
            logger.warning(
                f"Buffer full, dropped oldest {dropped.kind} record for sensor "
                f"{dropped.sensor_id}. Total dropped: {self._dropped_count}"
            )
