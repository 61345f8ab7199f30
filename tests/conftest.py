"""Shared fixtures: settings builders and in-memory push clients."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from relay.config import Settings
from relay.main import create_app
from relay.notifications.apns import PushClientRegistry
from relay.notifications.contracts import DeliveryRequest, DispatchOutcome, Environment


class FakePushClient:
  """Push client that records calls and replays scripted outcomes or exceptions."""

  def __init__(self, *script: DispatchOutcome | Exception, delay: float = 0.0) -> None:
    self.calls: list[DeliveryRequest] = []
    self.closed = False
    self._script = list(script)
    self._delay = delay

  async def push(self, request: DeliveryRequest) -> DispatchOutcome:
    self.calls.append(request)
    if self._delay:
      await asyncio.sleep(self._delay)
    if self._script:
      step = self._script.pop(0)
      if isinstance(step, Exception):
        raise step
      return step
    return DispatchOutcome(accepted=True, status_code=200, downstream_id=request.delivery_id)

  async def aclose(self) -> None:
    self.closed = True


def make_settings(**overrides: object) -> Settings:
  base = Settings(
    cert_path="toot-relay.p12",
    cert_base64=None,
    cert_password=None,
    topic="org.example.toot",
    trust_roots_path=None,
    host="127.0.0.1",
    port=42069,
    tls_cert_path="missing.crt",
    tls_key_path="missing.key",
    environment_in_path=True,
    default_environment=Environment.DEVELOPMENT,
    dispatch_mode="queued",
    queue_overflow="reject",
    worker_count=2,
    queue_capacity=10,
    push_timeout_seconds=5.0,
    location_base_url="https://not-supported",
    log_dir="./logs",
    log_level="INFO",
    log_max_bytes=1024,
    log_backup_count=1,
    debug=False,
  )
  return replace(base, **overrides)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def push_clients():
  return {Environment.DEVELOPMENT: FakePushClient(), Environment.PRODUCTION: FakePushClient()}


@pytest.fixture
def relay_client_factory(push_clients) -> Callable[..., TestClient]:
  """Build a TestClient around a fresh app; use it as a context manager to run the lifespan."""

  def _build(**overrides: object) -> TestClient:
    settings = make_settings(**overrides)
    app = create_app(settings, push_clients_factory=lambda _: PushClientRegistry(push_clients), configure_logging=False)
    return TestClient(app)

  return _build
