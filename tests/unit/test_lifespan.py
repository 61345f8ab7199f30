from __future__ import annotations

import pytest
from fastapi import FastAPI

from relay.core.lifespan import build_default_push_clients, build_lifespan
from relay.jobs.dispatch import DeliveryDispatcher
from relay.notifications.apns import PushClientRegistry
from relay.notifications.contracts import Environment, StartupConfigurationError
from tests.conftest import FakePushClient, make_settings


@pytest.mark.anyio
async def test_missing_certificate_prevents_startup(tmp_path):
  settings = make_settings(cert_path=str(tmp_path / "toot-relay.p12"))
  lifespan = build_lifespan(settings, push_clients_factory=build_default_push_clients, configure_logging=False)

  with pytest.raises(StartupConfigurationError):
    async with lifespan(FastAPI()):
      pass


@pytest.mark.anyio
async def test_lifespan_owns_dispatcher_and_clients():
  client = FakePushClient()
  app = FastAPI()
  lifespan = build_lifespan(make_settings(), push_clients_factory=lambda _: PushClientRegistry({Environment.DEVELOPMENT: client}), configure_logging=False)

  async with lifespan(app):
    dispatcher = app.state.dispatcher
    assert isinstance(dispatcher, DeliveryDispatcher)
    assert dispatcher.stats().running_workers == 2
    assert app.state.translator_policy.environment_in_path is True

  assert dispatcher.stats().running_workers == 0
  assert client.closed is True
