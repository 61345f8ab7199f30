"""Delivery outcome reporting for the dispatcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from relay.notifications.apns import short_token
from relay.notifications.contracts import DeliveryRequest, DispatchOutcome


@dataclass
class DeliveryCounters:
  """Running totals since process start; never persisted."""

  delivered: int = 0
  rejected: int = 0
  failed: int = 0
  dropped: int = 0


class DeliveryReporter:
  """Log every delivery outcome and keep process-local counters."""

  def __init__(self, logger: logging.Logger | None = None) -> None:
    self._logger = logger or logging.getLogger(__name__)
    self.counters = DeliveryCounters()

  def report(self, request: DeliveryRequest, outcome: DispatchOutcome) -> None:
    """Record a response from the push service."""
    if outcome.accepted:
      self.counters.delivered += 1
      self._logger.info(
        "Sent notification delivery_id=%s token=%s environment=%s status=%s apns_id=%s expiration=%s priority=%s collapse_id=%s",
        request.delivery_id,
        short_token(request.device_token),
        request.environment.value,
        outcome.status_code,
        outcome.downstream_id,
        request.expiration,
        request.priority.value,
        request.collapse_key,
      )
      return

    self.counters.rejected += 1
    self._logger.warning("Failed to send delivery_id=%s token=%s status=%s apns_id=%s reason=%s", request.delivery_id, short_token(request.device_token), outcome.status_code, outcome.downstream_id, outcome.reason)

  def report_failure(self, request: DeliveryRequest, exc: BaseException) -> None:
    """Record a transport or unexpected failure; the request is not retried."""
    self.counters.failed += 1
    self._logger.error("Push error delivery_id=%s token=%s environment=%s error_type=%s: %s", request.delivery_id, short_token(request.device_token), request.environment.value, type(exc).__name__, exc)

  def report_dropped(self, count: int) -> None:
    """Record queued requests discarded at shutdown."""
    if count <= 0:
      return
    self.counters.dropped += count
    self._logger.warning("Dropping %d queued notification(s) at shutdown", count)
