"""APNs HTTP/2 push client and notification construction."""

from __future__ import annotations

import json
import logging
import ssl
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any

import httpx

from relay.config import Settings
from relay.notifications.contracts import DeliveryRequest, DispatchOutcome, Environment, PushClient, PushTransportError

logger = logging.getLogger(__name__)

APNS_HOSTS = {Environment.DEVELOPMENT: "https://api.sandbox.push.apple.com", Environment.PRODUCTION: "https://api.push.apple.com"}
APNS_DEVICE_PATH = "/3/device/{device_token}"
NOTIFICATION_ALERT = "\N{TRUMPET}"


def build_apns_payload(request: DeliveryRequest) -> dict[str, Any]:
  """Build the APNs JSON body; the notification service extension decrypts `p` on device."""
  payload: dict[str, Any] = {"aps": {"alert": NOTIFICATION_ALERT, "mutable-content": 1}, "p": request.encoded_payload}
  if request.auxiliary_data is not None:
    payload["x"] = request.auxiliary_data
  if request.encryption_public_key is not None:
    payload["k"] = request.encryption_public_key
  if request.encryption_salt is not None:
    payload["s"] = request.encryption_salt
  return payload


def build_apns_headers(request: DeliveryRequest, topic: str | None) -> dict[str, str]:
  """Build APNs request headers from delivery metadata."""
  headers = {"apns-id": request.delivery_id, "apns-push-type": "alert", "apns-priority": str(request.priority.value)}
  if topic:
    headers["apns-topic"] = topic
  expiration = request.expiration
  if expiration is not None:
    headers["apns-expiration"] = str(expiration)
  if request.collapse_key:
    headers["apns-collapse-id"] = request.collapse_key
  return headers


def _rejection_reason(response: httpx.Response) -> str:
  """Extract the APNs `reason` field, falling back to the raw body or HTTP phrase."""
  try:
    body = response.json()
  except (json.JSONDecodeError, UnicodeDecodeError):
    body = None

  if isinstance(body, dict) and body.get("reason"):
    return str(body["reason"])

  text = response.text.strip()
  if text:
    return text

  try:
    return HTTPStatus(response.status_code).phrase
  except ValueError:
    return "Unknown"


def short_token(device_token: str) -> str:
  """Shorten a device token for log lines."""
  if len(device_token) <= 12:
    return device_token
  return f"{device_token[:6]}...{device_token[-6:]}"


class ApnsClient(PushClient):
  """HTTP/2 APNs client bound to one environment; safe to share between workers."""

  def __init__(self, *, environment: Environment, ssl_context: ssl.SSLContext | None = None, topic: str | None = None, timeout_seconds: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self.environment = environment
    self._topic = topic
    # Tests inject a mock transport; production uses the client certificate context over HTTP/2.
    if transport is not None:
      self._client = httpx.AsyncClient(base_url=APNS_HOSTS[environment], transport=transport, timeout=timeout_seconds)
    else:
      self._client = httpx.AsyncClient(base_url=APNS_HOSTS[environment], http2=True, verify=ssl_context if ssl_context is not None else True, timeout=timeout_seconds)

  async def push(self, request: DeliveryRequest) -> DispatchOutcome:
    """Deliver one notification and translate the APNs response."""
    url = APNS_DEVICE_PATH.format(device_token=request.device_token)
    content = json.dumps(build_apns_payload(request), ensure_ascii=False, separators=(",", ":")).encode("utf-8")

    try:
      response = await self._client.post(url, content=content, headers=build_apns_headers(request, self._topic))
    except httpx.HTTPError as exc:
      raise PushTransportError(f"APNs {self.environment.value} request failed: {exc}") from exc

    downstream_id = response.headers.get("apns-id")
    if response.status_code == HTTPStatus.OK:
      return DispatchOutcome(accepted=True, status_code=response.status_code, downstream_id=downstream_id or request.delivery_id)

    return DispatchOutcome(accepted=False, status_code=response.status_code, downstream_id=downstream_id, reason=_rejection_reason(response))

  async def aclose(self) -> None:
    """Close the underlying HTTP/2 connection pool."""
    await self._client.aclose()


class PushClientRegistry:
  """Immutable environment to push-client mapping built once at startup."""

  def __init__(self, clients: Mapping[Environment, PushClient]) -> None:
    self._clients = dict(clients)

  def resolve(self, environment: Environment) -> PushClient:
    """Resolve the client for an environment."""
    client = self._clients.get(environment)
    if client is None:
      raise LookupError(f"No push client configured for environment: {environment.value}")
    return client

  def environments(self) -> tuple[Environment, ...]:
    return tuple(self._clients)

  async def aclose(self) -> None:
    """Close every client, logging but not propagating individual failures."""
    for environment, client in self._clients.items():
      try:
        await client.aclose()
      except Exception:  # noqa: BLE001
        logger.warning("Failed to close push client environment=%s", environment.value, exc_info=True)


def build_push_clients(settings: Settings, ssl_context: ssl.SSLContext) -> PushClientRegistry:
  """Construct one APNs client per environment sharing the same client identity."""
  clients = {environment: ApnsClient(environment=environment, ssl_context=ssl_context, topic=settings.topic, timeout_seconds=settings.push_timeout_seconds) for environment in Environment}
  return PushClientRegistry(clients)
