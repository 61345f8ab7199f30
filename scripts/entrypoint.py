import logging
import os
from pathlib import Path

from relay.config import Settings, get_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def build_uvicorn_args(settings: Settings) -> list[str]:
  """Build the uvicorn command line; TLS is enabled only when the server certificate file exists."""
  args = ["uvicorn", "relay.main:app", "--host", settings.host, "--port", str(settings.port), "--no-server-header"]
  if Path(settings.tls_cert_path).is_file():
    args += ["--ssl-certfile", settings.tls_cert_path, "--ssl-keyfile", settings.tls_key_path]
  return args


def main() -> None:
  """Launch the relay under uvicorn."""
  settings = get_settings()
  args = build_uvicorn_args(settings)
  if "--ssl-certfile" in args:
    logger.info("Serving HTTPS on %s:%s with %s", settings.host, settings.port, settings.tls_cert_path)
  else:
    logger.info("No TLS certificate at %s; serving plain HTTP on %s:%s", settings.tls_cert_path, settings.host, settings.port)
  # Replace the current process so uvicorn receives SIGTERM directly.
  os.execvp("uvicorn", args)


if __name__ == "__main__":
  main()
