from __future__ import annotations

from scripts.entrypoint import build_uvicorn_args
from tests.conftest import make_settings


def test_plain_http_when_server_certificate_is_missing(tmp_path):
  args = build_uvicorn_args(make_settings(host="0.0.0.0", port=42069, tls_cert_path=str(tmp_path / "toot-relay.crt")))
  assert args[:2] == ["uvicorn", "relay.main:app"]
  assert args[args.index("--port") + 1] == "42069"
  assert "--ssl-certfile" not in args


def test_https_when_server_certificate_exists(tmp_path):
  certfile = tmp_path / "toot-relay.crt"
  certfile.write_text("placeholder")
  keyfile = tmp_path / "toot-relay.key"
  args = build_uvicorn_args(make_settings(tls_cert_path=str(certfile), tls_key_path=str(keyfile)))
  assert args[args.index("--ssl-certfile") + 1] == str(certfile)
  assert args[args.index("--ssl-keyfile") + 1] == str(keyfile)
