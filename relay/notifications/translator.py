"""Translate inbound Web Push requests into delivery requests."""

from __future__ import annotations

import base64
import binascii
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from relay.notifications.contracts import DeliveryRequest, Environment, InvalidRelayRequestError, MalformedHeaderError, MissingCryptoParamError, Priority, UnsupportedEncodingError
from relay.utils.base85 import encode85

SUPPORTED_CONTENT_ENCODING = "aesgcm"
LOW_URGENCIES = frozenset({"very-low", "low"})


@dataclass(frozen=True)
class TranslatorPolicy:
  """Deployment choices that shape how relay paths are read."""

  environment_in_path: bool = True
  default_environment: Environment = Environment.DEVELOPMENT
  path_prefix: str = "relay-to"
  clock: Callable[[], float] = field(default=time.time, compare=False)
  id_factory: Callable[[], str] = field(default=lambda: str(uuid.uuid4()), compare=False)


@dataclass(frozen=True)
class RelayPath:
  """Routing fields carried by the relay URL."""

  device_token: str
  environment: Environment
  auxiliary_data: str | None


def parse_relay_path(path: str, policy: TranslatorPolicy) -> RelayPath:
  """Split `/relay-to/[environment/]token[/aux...]` into its routing fields."""
  segments = path.lstrip("/").split("/")
  if not segments or segments[0] != policy.path_prefix:
    raise InvalidRelayRequestError(f"Path must start with /{policy.path_prefix}/")

  remainder = segments[1:]
  environment = policy.default_environment
  # The environment segment only exists when a token follows it; a lone segment is the legacy token-only form.
  if policy.environment_in_path and len(remainder) >= 2:
    environment = Environment.from_selector(remainder[0])
    remainder = remainder[1:]

  if not remainder or remainder[0] == "":
    raise InvalidRelayRequestError("Missing device token in relay path")

  auxiliary = "/".join(remainder[1:])
  return RelayPath(device_token=remainder[0], environment=environment, auxiliary_data=auxiliary or None)


def parse_key_values(raw: str | None) -> dict[str, str]:
  """Parse a `;`-delimited `key=value` header list such as Crypto-Key or Encryption."""
  values: dict[str, str] = {}
  if not raw:
    return values

  # Senders join several Crypto-Key entries with commas; treat them as the same list.
  for entry in raw.replace(",", ";").split(";"):
    entry = entry.strip()
    if not entry:
      continue
    key, separator, value = entry.partition("=")
    if not separator:
      raise MalformedHeaderError(f"Malformed header entry {entry!r}")
    values[key.strip()] = value.strip().strip('"')

  return values


def _decode_base64url(value: str) -> bytes:
  normalized = value.replace("+", "-").replace("/", "_")
  padded = normalized + "=" * (-len(normalized) % 4)
  return base64.b64decode(padded, altchars=b"-_", validate=True)


def encoded_header_value(headers: Mapping[str, str], name: str, key: str) -> str:
  """Return the Base85 form of a base64url value stored under `key` in header `name`."""
  try:
    entries = parse_key_values(headers.get(name))
  except MalformedHeaderError as exc:
    raise MissingCryptoParamError(f"Header {name} is malformed: {exc}") from exc

  value = entries.get(key)
  if value is None:
    raise MissingCryptoParamError(f"Value {key} not found in header {name}")

  try:
    raw = _decode_base64url(value)
  except (binascii.Error, ValueError) as exc:
    raise MissingCryptoParamError(f"Value {key} in header {name} is not valid base64: {exc}") from exc

  return encode85(raw)


def _parse_ttl(raw: str | None) -> int | None:
  # TTL is advisory; anything unparseable leaves the request without an expiry.
  if raw is None:
    return None
  try:
    ttl = int(raw.strip())
  except ValueError:
    return None
  return ttl if ttl >= 0 else None


def _parse_priority(raw: str | None) -> Priority:
  if raw is not None and raw.strip().lower() in LOW_URGENCIES:
    return Priority.LOW
  return Priority.HIGH


def translate_request(path: str, headers: Mapping[str, str], body: bytes, policy: TranslatorPolicy) -> DeliveryRequest:
  """Build a delivery request or raise a classified `RelayRequestError`.

  `headers` must be case-insensitive (Starlette's `Headers` is).
  """
  relay_path = parse_relay_path(path, policy)

  content_encoding = headers.get("content-encoding") or ""
  if content_encoding.strip().lower() != SUPPORTED_CONTENT_ENCODING:
    raise UnsupportedEncodingError(content_encoding)

  try:
    public_key = encoded_header_value(headers, "crypto-key", "dh")
  except MissingCryptoParamError as exc:
    raise MissingCryptoParamError(f"Error retrieving public key: {exc}") from exc

  try:
    salt = encoded_header_value(headers, "encryption", "salt")
  except MissingCryptoParamError as exc:
    raise MissingCryptoParamError(f"Error retrieving salt: {exc}") from exc

  return DeliveryRequest(
    delivery_id=policy.id_factory(),
    device_token=relay_path.device_token,
    environment=relay_path.environment,
    encoded_payload=encode85(body),
    received_at=policy.clock(),
    auxiliary_data=relay_path.auxiliary_data,
    encryption_public_key=public_key,
    encryption_salt=salt,
    ttl_seconds=_parse_ttl(headers.get("ttl")),
    collapse_key=headers.get("topic") or None,
    priority=_parse_priority(headers.get("urgency")),
  )
