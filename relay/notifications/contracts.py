"""Contracts shared by the request translator, the dispatcher and push clients."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Protocol


class Environment(str, Enum):
  """APNs delivery endpoint selector."""

  DEVELOPMENT = "development"
  PRODUCTION = "production"

  @classmethod
  def from_selector(cls, selector: str | None) -> Environment:
    """Map a path or config selector; only `production` selects the production endpoint."""
    if selector is not None and selector.strip().lower() == cls.PRODUCTION.value:
      return cls.PRODUCTION
    return cls.DEVELOPMENT


class Priority(int, Enum):
  """APNs priority values."""

  LOW = 5
  HIGH = 10


@dataclass(frozen=True)
class DeliveryRequest:
  """Normalized delivery request built once per inbound relay call."""

  delivery_id: str
  device_token: str
  environment: Environment
  encoded_payload: str
  received_at: float
  auxiliary_data: str | None = None
  encryption_public_key: str | None = None
  encryption_salt: str | None = None
  ttl_seconds: int | None = None
  collapse_key: str | None = None
  priority: Priority = Priority.HIGH

  @property
  def expiration(self) -> int | None:
    """Return the absolute expiry as epoch seconds when a TTL was supplied."""
    if self.ttl_seconds is None:
      return None
    return int(self.received_at + self.ttl_seconds)


@dataclass(frozen=True)
class DispatchOutcome:
  """Result of a single push-client call."""

  accepted: bool
  status_code: int
  downstream_id: str | None = None
  reason: str | None = None


class PushClient(Protocol):
  """Delivery contract for one downstream environment."""

  async def push(self, request: DeliveryRequest) -> DispatchOutcome:
    """Deliver one request and return the downstream outcome."""

  async def aclose(self) -> None:
    """Release network resources held by the client."""


class RelayError(Exception):
  """Base class for all relay failures."""


class RelayRequestError(RelayError):
  """Client-request failure surfaced synchronously to the caller."""

  status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    if status_code is not None:
      self.status_code = status_code


class InvalidRelayRequestError(RelayRequestError):
  """Raised when the relay path does not carry a device token."""

  status_code = HTTPStatus.BAD_REQUEST


class UnsupportedEncodingError(RelayRequestError):
  """Raised for any Content-Encoding other than `aesgcm`."""

  status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE

  def __init__(self, encoding: str) -> None:
    super().__init__(f"Unsupported Content-Encoding: {encoding}")
    self.encoding = encoding


class MissingCryptoParamError(RelayRequestError):
  """Raised when an `aesgcm` request lacks its key or salt."""

  status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class MalformedHeaderError(RelayError):
  """Raised when a `key=value` header list contains an entry without `=`."""


class PushTransportError(RelayError):
  """Raised when the downstream push service cannot be reached."""


class DispatchQueueFullError(RelayError):
  """Raised when the dispatch queue is at capacity under the reject policy."""


class StartupConfigurationError(RelayError):
  """Raised when credentials or configuration make the service unable to start."""
