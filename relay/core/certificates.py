"""APNs client certificate loading.

The identity ships as a PKCS#12 bundle, either as a file next to the service or embedded in the
environment as base64 for container deployments. Any failure here is fatal: the relay must not start
without a usable client certificate.
"""

from __future__ import annotations

import base64
import binascii
import logging
import ssl
import tempfile
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, pkcs12

from relay.config import Settings
from relay.notifications.contracts import StartupConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientIdentity:
  """PEM-encoded client certificate chain and private key."""

  certificate_pem: bytes
  private_key_pem: bytes
  subject: str
  not_valid_after: datetime


def read_pkcs12_bytes(settings: Settings) -> bytes:
  """Return raw PKCS#12 bytes from the embedded blob or the configured file."""
  # Embedded material wins so container deployments can ignore the filesystem entirely.
  if settings.cert_base64:
    try:
      return base64.b64decode("".join(settings.cert_base64.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
      raise StartupConfigurationError(f"RELAY_CERT_BASE64 is not valid base64: {exc}") from exc

  path = Path(settings.cert_path)
  try:
    return path.read_bytes()
  except OSError as exc:
    raise StartupConfigurationError(f"Failed to read certificate bundle at {path}: {exc}") from exc


def load_client_identity(data: bytes, password: str | None) -> ClientIdentity:
  """Parse a PKCS#12 bundle into PEM material."""
  try:
    private_key, certificate, additional = pkcs12.load_key_and_certificates(data, password.encode("utf-8") if password else None)
  except (ValueError, TypeError) as exc:
    raise StartupConfigurationError(f"Certificate bundle could not be decoded: {exc}") from exc

  if private_key is None or certificate is None:
    raise StartupConfigurationError("Certificate bundle must contain both a certificate and a private key.")

  chain = [certificate, *(additional or [])]
  certificate_pem = b"".join(item.public_bytes(Encoding.PEM) for item in chain)
  private_key_pem = private_key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption())
  identity = ClientIdentity(certificate_pem=certificate_pem, private_key_pem=private_key_pem, subject=certificate.subject.rfc4514_string(), not_valid_after=certificate.not_valid_after_utc)

  if identity.not_valid_after <= datetime.now(UTC):
    logger.warning("APNs client certificate subject=%s expired at %s", identity.subject, identity.not_valid_after.isoformat())
  return identity


def build_ssl_context(identity: ClientIdentity, trust_roots_path: str | None = None) -> ssl.SSLContext:
  """Create a client TLS context presenting `identity` and trusting system or custom roots."""
  try:
    context = ssl.create_default_context(cafile=trust_roots_path)
  except (OSError, ssl.SSLError) as exc:
    raise StartupConfigurationError(f"Failed to load trust roots from {trust_roots_path}: {exc}") from exc

  # The ssl module only loads key material from files; keep them in a private directory for the call.
  with tempfile.TemporaryDirectory(prefix="relay-cert-") as workdir:
    certfile = Path(workdir) / "client.crt"
    keyfile = Path(workdir) / "client.key"
    certfile.write_bytes(identity.certificate_pem)
    keyfile.write_bytes(identity.private_key_pem)
    keyfile.chmod(0o600)
    try:
      context.load_cert_chain(certfile=str(certfile), keyfile=str(keyfile))
    except ssl.SSLError as exc:
      raise StartupConfigurationError(f"Client certificate rejected by TLS layer: {exc}") from exc

  return context


def load_ssl_context(settings: Settings) -> ssl.SSLContext:
  """Load the configured identity and return the downstream TLS context."""
  identity = load_client_identity(read_pkcs12_bytes(settings), settings.cert_password)
  logger.info("Loaded APNs client certificate subject=%s not_valid_after=%s", identity.subject, identity.not_valid_after.isoformat())
  return build_ssl_context(identity, settings.trust_roots_path)
