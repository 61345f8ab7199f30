import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from fastapi import FastAPI

from relay.config import Settings
from relay.core.certificates import load_ssl_context
from relay.core.logging import initialize_logging
from relay.jobs.dispatch import DeliveryDispatcher, DispatchPolicy
from relay.notifications.apns import PushClientRegistry, build_push_clients
from relay.notifications.contracts import StartupConfigurationError
from relay.notifications.translator import TranslatorPolicy

PushClientsFactory = Callable[[Settings], PushClientRegistry]


def build_default_push_clients(settings: Settings) -> PushClientRegistry:
  """Load the APNs identity and build one client per environment."""
  return build_push_clients(settings, load_ssl_context(settings))


def build_lifespan(settings: Settings, *, push_clients_factory: PushClientsFactory = build_default_push_clients, configure_logging: bool = True) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
  """Return a lifespan that owns the push clients and the dispatcher for the process lifetime."""

  @asynccontextmanager
  async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger = logging.getLogger("relay.core.lifespan")
    if configure_logging:
      initialize_logging(settings)

    try:
      registry = push_clients_factory(settings)
    except StartupConfigurationError:
      # Fail-fast: running without a usable client certificate would reject every notification.
      logger.error("Push client configuration failed; refusing to start the service.", exc_info=True)
      raise

    dispatcher = DeliveryDispatcher(registry=registry, policy=DispatchPolicy.from_settings(settings))
    dispatcher.start()

    app.state.settings = settings
    app.state.translator_policy = TranslatorPolicy(environment_in_path=settings.environment_in_path, default_environment=settings.default_environment)
    app.state.dispatcher = dispatcher
    logger.info("Relay ready mode=%s environments=%s topic=%s", settings.dispatch_mode, ",".join(env.value for env in registry.environments()), settings.topic or "<unset>")

    try:
      yield
    finally:
      await dispatcher.stop()
      await registry.aclose()
      logger.info("Relay shut down")

  return lifespan
