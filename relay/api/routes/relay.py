"""Web Push ingress: translate an inbound push message and hand it to the dispatcher."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse

from relay.api.deps import get_app_settings, get_dispatcher, get_translator_policy
from relay.config import Settings
from relay.jobs.dispatch import DeliveryDispatcher
from relay.notifications.translator import TranslatorPolicy, translate_request

logger = logging.getLogger(__name__)

router = APIRouter()


def _location(settings: Settings, message_id: str) -> str:
  return f"{settings.location_base_url}/{message_id}"


@router.post("/relay-to/{relay_path:path}", status_code=status.HTTP_201_CREATED)
async def relay_notification(
  relay_path: str,
  request: Request,
  dispatcher: DeliveryDispatcher = Depends(get_dispatcher),  # noqa: B008
  policy: TranslatorPolicy = Depends(get_translator_policy),  # noqa: B008
  settings: Settings = Depends(get_app_settings),  # noqa: B008
) -> Response:
  """Relay one push message to APNs.

  Queued mode answers 201 as soon as the request is enqueued. Sync mode waits for APNs and passes
  its rejection status and reason through to the sender.
  """
  body = await request.body()
  delivery = translate_request(request.url.path, request.headers, body, policy)
  outcome = await dispatcher.submit(delivery)

  # Queued mode: the APNs apns-id is our delivery id, so the Location is known before delivery.
  if outcome is None:
    return Response(status_code=status.HTTP_201_CREATED, headers={"Location": _location(settings, delivery.delivery_id)})

  if outcome.accepted:
    return Response(status_code=status.HTTP_201_CREATED, headers={"Location": _location(settings, outcome.downstream_id or delivery.delivery_id)})

  return PlainTextResponse(f"{outcome.reason or ''}\n", status_code=outcome.status_code)
