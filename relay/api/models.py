from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from relay.jobs.dispatch import DispatcherStats


class DispatcherStatsResponse(BaseModel):
  """Dispatcher counters exposed on the health endpoint."""

  mode: Literal["queued", "sync"]
  overflow: Literal["reject", "block"]
  worker_count: int = Field(ge=0)
  running_workers: int = Field(ge=0)
  queue_capacity: int = Field(ge=1)
  queue_depth: int = Field(ge=0)
  delivered: int = Field(ge=0)
  rejected: int = Field(ge=0)
  failed: int = Field(ge=0)
  dropped: int = Field(ge=0)
  model_config = ConfigDict(frozen=True)

  @classmethod
  def from_stats(cls, stats: DispatcherStats) -> DispatcherStatsResponse:
    return cls(
      mode=stats.mode,  # type: ignore[arg-type]
      overflow=stats.overflow,  # type: ignore[arg-type]
      worker_count=stats.worker_count,
      running_workers=stats.running_workers,
      queue_capacity=stats.queue_capacity,
      queue_depth=stats.queue_depth,
      delivered=stats.delivered,
      rejected=stats.rejected,
      failed=stats.failed,
      dropped=stats.dropped,
    )


class HealthResponse(BaseModel):
  """Liveness payload."""

  status: Literal["ok"] = "ok"
  version: str
  dispatcher: DispatcherStatsResponse
