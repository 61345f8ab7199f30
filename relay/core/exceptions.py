import logging
from http import HTTPStatus

from fastapi import Request, status
from fastapi.responses import PlainTextResponse

from relay.core.middleware import request_id_from_state
from relay.notifications.contracts import DispatchQueueFullError, PushTransportError, RelayRequestError

logger = logging.getLogger("uvicorn.error")

QUEUE_FULL_RETRY_AFTER_SECONDS = 1


def _plain_text(status_code: int, message: str, headers: dict[str, str] | None = None) -> PlainTextResponse:
  # Senders are push services, not browsers; a one-line text reason is what they surface to operators.
  return PlainTextResponse(f"{message}\n", status_code=int(status_code), headers=headers)


async def relay_request_exception_handler(request: Request, exc: RelayRequestError) -> PlainTextResponse:
  """Report translation failures with their classified status and reason."""
  request_id = request_id_from_state(request.state)
  if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
    logger.error("Relay request failed request_id=%s path=%s status_code=%s: %s", request_id, request.url.path, int(exc.status_code), exc)
  else:
    logger.warning("Relay request rejected request_id=%s path=%s status_code=%s: %s", request_id, request.url.path, int(exc.status_code), exc)
  return _plain_text(exc.status_code, str(exc))


async def push_transport_exception_handler(request: Request, exc: PushTransportError) -> PlainTextResponse:
  """Surface downstream transport failures in sync mode."""
  logger.error("Push error request_id=%s path=%s: %s", request_id_from_state(request.state), request.url.path, exc)
  return _plain_text(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Push error: {exc}")


async def queue_full_exception_handler(request: Request, exc: DispatchQueueFullError) -> PlainTextResponse:
  """Shed load when the dispatch queue rejects new work."""
  return _plain_text(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), headers={"Retry-After": str(QUEUE_FULL_RETRY_AFTER_SECONDS)})


async def global_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
  """Global exception handler to catch unhandled errors."""
  request_id = request_id_from_state(request.state)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return _plain_text(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")
