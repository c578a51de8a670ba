"""Batched, retried event delivery.

The worker is the single owner of the event queue. Tracked events are
appended to the pending queue and mirrored to durable storage after every
change. A flush moves the whole pending queue into one in-flight batch,
hands it to a delivery task, and settles the task's DeliveryOutcome:

- success: the batch is discarded
- failure: the batch goes back in front of anything tracked meanwhile and
  is retried on the next interval tick

States:
- IDLE: Nothing queued
- BATCHING: Events waiting for the next flush
- FLUSHING: A batch is in flight

The durable mirror holds the in-flight batch followed by the pending
events, so nothing is removed from storage before the collector confirms
it. Events mirrored by a previous process are restored ahead of new ones.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog
from pydantic import ValidationError as PydanticValidationError

from pulsetrack.execution.collector import CollectorClient
from pulsetrack.models.base import now_ms
from pulsetrack.models.event import Event
from pulsetrack.storage.base import KeyValueStore, resilient
from pulsetrack.utils.exceptions import DeliveryError

logger = structlog.get_logger()

QUEUE_KEY = "queue.events"


class WorkerState(str, Enum):
    """Delivery worker states."""

    IDLE = "idle"
    BATCHING = "batching"
    FLUSHING = "flushing"


class FlushReason(str, Enum):
    """Why a flush was started."""

    BATCH_FULL = "batch_full"
    INTERVAL = "interval"
    PAGE_HIDE = "page_hide"
    SHUTDOWN = "shutdown"
    MANUAL = "manual"


@dataclass
class DeliveryOutcome:
    """Completion message from a delivery task back to the worker."""

    batch: list[Event]
    success: bool
    reason: FlushReason
    status_code: int | None = None
    error: DeliveryError | None = None
    attempt: int = 1


@dataclass
class DeliveryStats:
    """Delivery counters."""

    batches_delivered: int = 0
    batches_failed: int = 0
    events_delivered: int = 0
    events_restored: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None
    last_flush_at: int | None = None
    delivered_event_ids: list[str] = field(default_factory=list)


class DeliveryWorker:
    """Owns the event queue and drains it to the collector in batches."""

    def __init__(
        self,
        store: KeyValueStore,
        client: CollectorClient,
        batch_size: int = 10,
        flush_interval: float = 5.0,
    ):
        """Initialize the worker and reconcile with the durable mirror.

        Args:
            store: Durable store owning the queue key.
            client: Collector client used for delivery.
            batch_size: Queue length that triggers a flush.
            flush_interval: Seconds between interval flushes and retries.
        """
        self.store = resilient(store, "queue")
        self.client = client
        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.stats = DeliveryStats()

        self._pending: list[Event] = []
        self._in_flight: list[Event] | None = None
        self._tasks: set[asyncio.Task] = set()
        self._timer: asyncio.Task | None = None
        self.logger = logger.bind(service="delivery_worker")

        self._restore()

    @property
    def state(self) -> WorkerState:
        if self._in_flight is not None:
            return WorkerState.FLUSHING
        if self._pending:
            return WorkerState.BATCHING
        return WorkerState.IDLE

    @property
    def pending(self) -> list[Event]:
        """Snapshot of events waiting for a flush."""
        return list(self._pending)

    @property
    def in_flight(self) -> list[Event]:
        """Snapshot of the batch currently being delivered."""
        return list(self._in_flight or [])

    def _restore(self) -> None:
        items = self.store.get(QUEUE_KEY) or []
        if not isinstance(items, list):
            self.logger.warning("Discarding malformed event queue", value_type=type(items).__name__)
            items = []
        restored = []
        for item in items:
            try:
                restored.append(Event.from_storage(item))
            except PydanticValidationError as e:
                self.logger.warning("Dropping unreadable queued event", error=str(e))

        if restored:
            self._pending = restored + self._pending
            self.stats.events_restored += len(restored)
            self.logger.info("Restored queued events from previous session", events=len(restored))

    def _mirror(self) -> None:
        events = (self._in_flight or []) + self._pending
        self.store.set(QUEUE_KEY, [event.to_storage() for event in events])

    def enqueue(self, event: Event) -> None:
        """Append an event and flush when the batch threshold is reached."""
        self._pending.append(event)
        self._mirror()

        if len(self._pending) >= self.batch_size:
            self._schedule_flush(FlushReason.BATCH_FULL)

    def _take_batch(self) -> list[Event] | None:
        if self._in_flight is not None or not self._pending:
            return None

        batch, self._pending = self._pending, []
        self._in_flight = batch
        self._mirror()
        return batch

    def _schedule_flush(self, reason: FlushReason) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.debug("No running event loop, flush deferred", reason=reason.value)
            return

        batch = self._take_batch()
        if batch is None:
            return

        task = loop.create_task(self._deliver(batch, reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def flush(self, reason: FlushReason = FlushReason.MANUAL) -> DeliveryOutcome | None:
        """Deliver everything pending as one batch.

        Returns:
            The outcome, or None when there was nothing to send or a batch
            was already in flight.
        """
        batch = self._take_batch()
        if batch is None:
            return None
        return await self._deliver(batch, reason)

    async def _deliver(self, batch: list[Event], reason: FlushReason) -> DeliveryOutcome:
        attempt = self.stats.consecutive_failures + 1
        try:
            status_code = await self.client.send(batch)
            outcome = DeliveryOutcome(
                batch=batch,
                success=True,
                reason=reason,
                status_code=status_code,
                attempt=attempt,
            )
        except DeliveryError as e:
            outcome = DeliveryOutcome(
                batch=batch,
                success=False,
                reason=reason,
                status_code=e.status_code,
                error=e,
                attempt=attempt,
            )
        except asyncio.CancelledError:
            self._settle(
                DeliveryOutcome(
                    batch=batch,
                    success=False,
                    reason=reason,
                    error=DeliveryError(self.client.endpoint, message="Delivery cancelled"),
                    attempt=attempt,
                )
            )
            raise
        except Exception as e:
            outcome = DeliveryOutcome(
                batch=batch,
                success=False,
                reason=reason,
                error=DeliveryError(self.client.endpoint, message="Unexpected delivery error", original_error=str(e)),
                attempt=attempt,
            )

        self._settle(outcome)
        return outcome

    def _settle(self, outcome: DeliveryOutcome) -> None:
        self._in_flight = None
        self.stats.last_flush_at = now_ms()

        if outcome.success:
            self.stats.batches_delivered += 1
            self.stats.events_delivered += len(outcome.batch)
            self.stats.consecutive_failures = 0
            self.stats.delivered_event_ids.extend(event.event_id for event in outcome.batch)
            del self.stats.delivered_event_ids[:-1000]
            self.logger.info(
                "Batch delivered",
                events=len(outcome.batch),
                reason=outcome.reason.value,
                attempt=outcome.attempt,
                status_code=outcome.status_code,
            )
        else:
            self._pending = outcome.batch + self._pending
            self.stats.batches_failed += 1
            self.stats.consecutive_failures += 1
            self.stats.last_error = outcome.error.message if outcome.error else None
            self.logger.warning(
                "Batch delivery failed, requeued",
                events=len(outcome.batch),
                reason=outcome.reason.value,
                attempt=outcome.attempt,
                status_code=outcome.status_code,
                error=self.stats.last_error,
                retryable=outcome.error.retryable if outcome.error else True,
            )

        self._mirror()

        if outcome.success and len(self._pending) >= self.batch_size:
            self._schedule_flush(FlushReason.BATCH_FULL)

    def start(self) -> None:
        """Arm the interval flush timer on the running loop."""
        if self._timer is not None and not self._timer.done():
            return
        self._timer = asyncio.get_running_loop().create_task(self._run_timer())

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            try:
                self._schedule_flush(FlushReason.INTERVAL)
            except Exception as e:
                self.logger.exception("Interval flush failed", error=str(e))

    async def wait_idle(self) -> None:
        """Wait for every scheduled delivery task to settle."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    async def page_hide(self) -> DeliveryOutcome | None:
        """Best-effort flush when the page is being hidden."""
        await self.wait_idle()
        return await self.flush(FlushReason.PAGE_HIDE)

    async def shutdown(self) -> DeliveryOutcome | None:
        """Stop the timer and make one final delivery attempt with no retry.

        A failed final batch stays in the durable mirror for the next
        process lifetime.
        """
        if self._timer is not None:
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
            self._timer = None

        await self.wait_idle()
        return await self.flush(FlushReason.SHUTDOWN)
