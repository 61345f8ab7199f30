from __future__ import annotations

from fastapi import Depends, FastAPI

from relay.api.deps import get_dispatcher
from relay.api.models import DispatcherStatsResponse, HealthResponse
from relay.api.routes import relay
from relay.config import Settings, get_settings
from relay.core.exceptions import global_exception_handler, push_transport_exception_handler, queue_full_exception_handler, relay_request_exception_handler
from relay.core.lifespan import PushClientsFactory, build_default_push_clients, build_lifespan
from relay.core.middleware import RequestLoggingMiddleware
from relay.jobs.dispatch import DeliveryDispatcher
from relay.notifications.contracts import DispatchQueueFullError, PushTransportError, RelayRequestError

VERSION = "0.1.0"


def create_app(settings: Settings | None = None, *, push_clients_factory: PushClientsFactory = build_default_push_clients, configure_logging: bool = True) -> FastAPI:
  """Build the relay application; tests pass their own settings and push clients."""
  settings = settings or get_settings()
  app = FastAPI(title="toot-relay", version=VERSION, lifespan=build_lifespan(settings, push_clients_factory=push_clients_factory, configure_logging=configure_logging), docs_url=None, redoc_url=None, openapi_url=None)

  # Add exception handlers
  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(RelayRequestError, relay_request_exception_handler)
  app.add_exception_handler(PushTransportError, push_transport_exception_handler)
  app.add_exception_handler(DispatchQueueFullError, queue_full_exception_handler)

  # Add middleware
  app.add_middleware(RequestLoggingMiddleware)

  @app.get("/health", include_in_schema=False)
  async def health_check(dispatcher: DeliveryDispatcher = Depends(get_dispatcher)) -> HealthResponse:  # noqa: B008
    """Return liveness plus dispatcher counters."""
    return HealthResponse(version=VERSION, dispatcher=DispatcherStatsResponse.from_stats(dispatcher.stats()))

  app.include_router(relay.router, tags=["relay"])
  return app


app = create_app()
