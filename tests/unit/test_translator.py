from __future__ import annotations

import pytest
from starlette.datastructures import Headers

from relay.notifications.contracts import Environment, InvalidRelayRequestError, MalformedHeaderError, MissingCryptoParamError, Priority, UnsupportedEncodingError
from relay.notifications.translator import TranslatorPolicy, parse_key_values, parse_relay_path, translate_request
from relay.utils.base85 import decode85, encode85

POLICY = TranslatorPolicy(clock=lambda: 1_700_000_000.0, id_factory=lambda: "delivery-1")


def _headers(**extra: str) -> Headers:
  values = {"Content-Encoding": "aesgcm", "Crypto-Key": "dh=AAECAw", "Encryption": "salt=BAUGBw"}
  values.update({key.replace("_", "-"): value for key, value in extra.items()})
  return Headers(values)


def test_path_with_environment_token_and_auxiliary_data():
  parsed = parse_relay_path("/relay-to/production/TOKEN123/foo/bar", POLICY)
  assert parsed.environment is Environment.PRODUCTION
  assert parsed.device_token == "TOKEN123"
  assert parsed.auxiliary_data == "foo/bar"


def test_legacy_token_only_path_uses_default_environment():
  parsed = parse_relay_path("/relay-to/TOKEN123", POLICY)
  assert parsed.device_token == "TOKEN123"
  assert parsed.environment is Environment.DEVELOPMENT
  assert parsed.auxiliary_data is None


def test_non_production_selector_means_development():
  parsed = parse_relay_path("/relay-to/sandbox/TOKEN123", POLICY)
  assert parsed.environment is Environment.DEVELOPMENT
  assert parsed.device_token == "TOKEN123"
  assert parsed.auxiliary_data is None


def test_single_environment_deployment_treats_first_segment_as_token():
  policy = TranslatorPolicy(environment_in_path=False, default_environment=Environment.PRODUCTION)
  parsed = parse_relay_path("/relay-to/TOKEN123/foo/bar", policy)
  assert parsed.device_token == "TOKEN123"
  assert parsed.environment is Environment.PRODUCTION
  assert parsed.auxiliary_data == "foo/bar"


@pytest.mark.parametrize("path", ["/relay-to", "/relay-to/", "/relay-to/production/", "/elsewhere/TOKEN"])
def test_paths_without_token_are_invalid(path):
  with pytest.raises(InvalidRelayRequestError) as excinfo:
    parse_relay_path(path, POLICY)
  assert excinfo.value.status_code == 400


def test_parse_key_values_splits_on_first_equals_and_commas():
  values = parse_key_values('dh=abc==; p256ecdsa="xyz" , keyid=p256dh')
  assert values == {"dh": "abc==", "p256ecdsa": "xyz", "keyid": "p256dh"}


def test_parse_key_values_raises_on_entry_without_equals():
  with pytest.raises(MalformedHeaderError):
    parse_key_values("dh")


def test_translate_builds_full_delivery_request():
  body = b"\x00\x01\x02\x03\x04"
  request = translate_request("/relay-to/production/TOKEN123/foo/bar", _headers(TTL="60", Topic="thread-1", Urgency="low"), body, POLICY)

  assert request.delivery_id == "delivery-1"
  assert request.device_token == "TOKEN123"
  assert request.environment is Environment.PRODUCTION
  assert request.auxiliary_data == "foo/bar"
  assert request.encoded_payload == encode85(body)
  assert request.ttl_seconds == 60
  assert request.expiration == 1_700_000_060
  assert request.collapse_key == "thread-1"
  assert request.priority is Priority.LOW


def test_crypto_headers_are_base85_reencoded():
  request = translate_request("/relay-to/TOKEN123", _headers(), b"", POLICY)
  assert request.encryption_public_key
  assert request.encryption_salt
  assert decode85(request.encryption_public_key) == bytes([0, 1, 2, 3])
  assert decode85(request.encryption_salt) == bytes([4, 5, 6, 7])


@pytest.mark.parametrize("encoding", ["aes128gcm", ""])
def test_unsupported_content_encoding_is_415_naming_the_value(encoding):
  headers = Headers({"Content-Encoding": encoding}) if encoding else Headers({})
  with pytest.raises(UnsupportedEncodingError) as excinfo:
    translate_request("/relay-to/TOKEN123", headers, b"", POLICY)
  assert excinfo.value.status_code == 415
  assert str(excinfo.value) == f"Unsupported Content-Encoding: {encoding}"


def test_missing_public_key_is_missing_crypto_param():
  headers = Headers({"Content-Encoding": "aesgcm", "Encryption": "salt=BAUGBw"})
  with pytest.raises(MissingCryptoParamError) as excinfo:
    translate_request("/relay-to/TOKEN123", headers, b"", POLICY)
  assert excinfo.value.status_code == 500
  assert "public key" in str(excinfo.value)


def test_missing_salt_is_missing_crypto_param():
  headers = Headers({"Content-Encoding": "aesgcm", "Crypto-Key": "dh=AAECAw"})
  with pytest.raises(MissingCryptoParamError) as excinfo:
    translate_request("/relay-to/TOKEN123", headers, b"", POLICY)
  assert "salt" in str(excinfo.value)


def test_malformed_crypto_header_does_not_crash():
  with pytest.raises(MissingCryptoParamError):
    translate_request("/relay-to/TOKEN123", _headers(Crypto_Key="dh"), b"", POLICY)


def test_invalid_base64_value_is_missing_crypto_param():
  with pytest.raises(MissingCryptoParamError):
    translate_request("/relay-to/TOKEN123", _headers(Encryption="salt=!!!!"), b"", POLICY)


def test_padded_and_standard_alphabet_base64_is_accepted():
  request = translate_request("/relay-to/TOKEN123", _headers(Crypto_Key="dh=+/8=", Encryption="salt=BAUGBw=="), b"", POLICY)
  assert decode85(request.encryption_public_key) == b"\xfb\xff"
  assert decode85(request.encryption_salt) == bytes([4, 5, 6, 7])


@pytest.mark.parametrize("ttl", ["notanumber", "-5", "1.5", ""])
def test_invalid_ttl_is_ignored(ttl):
  request = translate_request("/relay-to/TOKEN123", _headers(TTL=ttl), b"", POLICY)
  assert request.ttl_seconds is None
  assert request.expiration is None


def test_zero_ttl_is_kept():
  request = translate_request("/relay-to/TOKEN123", _headers(TTL="0"), b"", POLICY)
  assert request.ttl_seconds == 0


@pytest.mark.parametrize(("urgency", "expected"), [("very-low", Priority.LOW), ("LOW", Priority.LOW), ("normal", Priority.HIGH), ("high", Priority.HIGH), (None, Priority.HIGH)])
def test_urgency_maps_to_priority(urgency, expected):
  headers = _headers(Urgency=urgency) if urgency else _headers()
  assert translate_request("/relay-to/TOKEN123", headers, b"", POLICY).priority is expected


def test_topic_absent_leaves_collapse_key_unset():
  assert translate_request("/relay-to/TOKEN123", _headers(), b"", POLICY).collapse_key is None
