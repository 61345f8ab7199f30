"""Bounded worker-pool dispatch of delivery requests to push clients."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Literal

from relay.config import Settings
from relay.jobs.progress import DeliveryReporter
from relay.notifications.apns import PushClientRegistry
from relay.notifications.contracts import DeliveryRequest, DispatchOutcome, DispatchQueueFullError

DispatchMode = Literal["queued", "sync"]
OverflowPolicy = Literal["reject", "block"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatchPolicy:
  """Fixed dispatch configuration; the pool is never resized at runtime."""

  mode: DispatchMode = "queued"
  overflow: OverflowPolicy = "reject"
  worker_count: int = 4
  queue_capacity: int = 1000

  def __post_init__(self) -> None:
    if self.mode not in ("queued", "sync"):
      raise ValueError(f"Unsupported dispatch mode: {self.mode}")
    if self.overflow not in ("reject", "block"):
      raise ValueError(f"Unsupported overflow policy: {self.overflow}")
    if self.worker_count < 1:
      raise ValueError("worker_count must be at least 1")
    if self.queue_capacity < 1:
      raise ValueError("queue_capacity must be at least 1")

  @classmethod
  def from_settings(cls, settings: Settings) -> DispatchPolicy:
    return cls(mode=settings.dispatch_mode, overflow=settings.queue_overflow, worker_count=settings.worker_count, queue_capacity=settings.queue_capacity)  # type: ignore[arg-type]


@dataclass(frozen=True)
class DispatcherStats:
  """Point-in-time view of the dispatcher for health reporting."""

  mode: str
  overflow: str
  worker_count: int
  running_workers: int
  queue_capacity: int
  queue_depth: int
  delivered: int
  rejected: int
  failed: int
  dropped: int


class DeliveryDispatcher:
  """Hand delivery requests to push clients, inline or through a shared FIFO queue.

  In queued mode a fixed pool of worker tasks pulls from one bounded `asyncio.Queue`; each request is
  taken by exactly one worker. Failures are reported and never stop a worker.
  """

  def __init__(self, *, registry: PushClientRegistry, policy: DispatchPolicy, reporter: DeliveryReporter | None = None) -> None:
    self._registry = registry
    self._policy = policy
    self._reporter = reporter or DeliveryReporter()
    self._queue: asyncio.Queue[DeliveryRequest] = asyncio.Queue(maxsize=policy.queue_capacity)
    self._workers: list[asyncio.Task[None]] = []

  @property
  def policy(self) -> DispatchPolicy:
    return self._policy

  @property
  def reporter(self) -> DeliveryReporter:
    return self._reporter

  def start(self) -> None:
    """Spawn the worker pool; a no-op in sync mode or when already running."""
    if self._policy.mode == "sync" or self._workers:
      return
    self._workers = [asyncio.create_task(self._run_worker(index), name=f"relay-worker-{index}") for index in range(self._policy.worker_count)]
    logger.info("Started %d dispatch worker(s) queue_capacity=%d overflow=%s", len(self._workers), self._policy.queue_capacity, self._policy.overflow)

  async def stop(self) -> None:
    """Cancel workers and drop whatever is still queued; delivery is best-effort."""
    workers, self._workers = self._workers, []
    for task in workers:
      task.cancel()
    for task in workers:
      with contextlib.suppress(asyncio.CancelledError):
        await task

    dropped = 0
    while True:
      try:
        self._queue.get_nowait()
      except asyncio.QueueEmpty:
        break
      self._queue.task_done()
      dropped += 1
    self._reporter.report_dropped(dropped)

  async def submit(self, request: DeliveryRequest) -> DispatchOutcome | None:
    """Deliver inline (sync mode) or enqueue for a worker (queued mode, returns None)."""
    if self._policy.mode == "sync":
      return await self.deliver(request)

    await self.enqueue(request)
    return None

  async def enqueue(self, request: DeliveryRequest) -> None:
    """Add a request to the queue honouring the overflow policy."""
    if self._policy.overflow == "block":
      # Backpressure: the HTTP handler waits until a worker frees a slot.
      await self._queue.put(request)
      return

    try:
      self._queue.put_nowait(request)
    except asyncio.QueueFull as exc:
      logger.warning("Dispatch queue full capacity=%d; rejecting delivery_id=%s", self._policy.queue_capacity, request.delivery_id)
      raise DispatchQueueFullError(f"Dispatch queue is full (capacity {self._policy.queue_capacity})") from exc

  async def deliver(self, request: DeliveryRequest) -> DispatchOutcome:
    """Push one request through the client for its environment and report the outcome."""
    try:
      client = self._registry.resolve(request.environment)
      outcome = await client.push(request)
    except Exception as exc:
      self._reporter.report_failure(request, exc)
      raise

    self._reporter.report(request, outcome)
    return outcome

  async def join(self) -> None:
    """Wait until every queued request has been processed."""
    await self._queue.join()

  async def _run_worker(self, index: int) -> None:
    logger.debug("Dispatch worker %d ready", index)
    while True:
      request = await self._queue.get()
      try:
        await self.deliver(request)
      except Exception:  # noqa: BLE001
        # Already reported by deliver(); the worker moves on to the next request.
        pass
      finally:
        self._queue.task_done()

  def stats(self) -> DispatcherStats:
    counters = self._reporter.counters
    return DispatcherStats(
      mode=self._policy.mode,
      overflow=self._policy.overflow,
      worker_count=self._policy.worker_count if self._policy.mode == "queued" else 0,
      running_workers=sum(1 for task in self._workers if not task.done()),
      queue_capacity=self._policy.queue_capacity,
      queue_depth=self._queue.qsize(),
      delivered=counters.delivered,
      rejected=counters.rejected,
      failed=counters.failed,
      dropped=counters.dropped,
    )
