"""Base85 (Z85 alphabet) transcoding for APNs payload fields.

APNs custom payload values must be JSON strings and the whole payload is capped at 4KB,
so ciphertext is packed four bytes to five printable symbols instead of base64's three to four.
"""

from __future__ import annotations

Z85_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ.-:+=^!/*?&<>()[]{}@%$#"
_Z85_INDEX = {symbol: index for index, symbol in enumerate(Z85_ALPHABET)}
_BLOCK_BYTES = 4
_BLOCK_SYMBOLS = 5


def encoded_length(byte_count: int) -> int:
  """Return the number of symbols produced for `byte_count` input bytes."""
  full_blocks, suffix = divmod(byte_count, _BLOCK_BYTES)
  return full_blocks * _BLOCK_SYMBOLS + (suffix + 1 if suffix else 0)


def _encode_value(value: int, width: int) -> list[str]:
  symbols = [""] * width
  # Fill from the least significant end so the output reads most significant first.
  for position in range(width - 1, -1, -1):
    value, remainder = divmod(value, 85)
    symbols[position] = Z85_ALPHABET[remainder]
  return symbols


def encode85(data: bytes) -> str:
  """Encode bytes with the Z85 alphabet without padding the trailing block."""
  view = memoryview(bytes(data))
  full_blocks, suffix = divmod(len(view), _BLOCK_BYTES)
  symbols: list[str] = []

  for block in range(full_blocks):
    start = block * _BLOCK_BYTES
    symbols.extend(_encode_value(int.from_bytes(view[start : start + _BLOCK_BYTES], "big"), _BLOCK_SYMBOLS))

  # A partial block of r bytes becomes r + 1 symbols.
  if suffix:
    tail = view[full_blocks * _BLOCK_BYTES :]
    symbols.extend(_encode_value(int.from_bytes(tail, "big"), suffix + 1))

  return "".join(symbols)


def _decode_group(group: str, byte_width: int) -> bytes:
  value = 0
  for symbol in group:
    index = _Z85_INDEX.get(symbol)
    if index is None:
      raise ValueError(f"Invalid Base85 symbol: {symbol!r}")
    value = value * 85 + index

  if value >= 1 << (8 * byte_width):
    raise ValueError(f"Base85 group {group!r} overflows {byte_width} bytes")

  return value.to_bytes(byte_width, "big")


def decode85(text: str) -> bytes:
  """Decode text produced by `encode85` back into the original bytes."""
  full_groups, suffix = divmod(len(text), _BLOCK_SYMBOLS)
  if suffix == 1:
    raise ValueError("Base85 text has a dangling single symbol")

  chunks: list[bytes] = []
  for group in range(full_groups):
    start = group * _BLOCK_SYMBOLS
    chunks.append(_decode_group(text[start : start + _BLOCK_SYMBOLS], _BLOCK_BYTES))

  if suffix:
    chunks.append(_decode_group(text[full_groups * _BLOCK_SYMBOLS :], suffix - 1))

  return b"".join(chunks)
