"""32-byte identifiers and their checksummed base58 text form."""

from __future__ import annotations

import hashlib

ID_LEN = 32
EMPTY_ID = bytes(ID_LEN)

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {char: value for value, char in enumerate(_ALPHABET)}
_CHECKSUM_LEN = 4


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()[-_CHECKSUM_LEN:]


def _b58encode(data: bytes) -> str:
    zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")
    chars = []
    while number:
        number, rem = divmod(number, 58)
        chars.append(_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(chars))


def _b58decode(text: str) -> bytes:
    number = 0
    for char in text:
        try:
            number = number * 58 + _INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    zeros = len(text) - len(text.lstrip("1"))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * zeros + body


def encode_id(raw: bytes) -> str:
    """Return the checksummed base58 form of a 32-byte identifier."""
    raw = bytes(raw)
    if len(raw) != ID_LEN:
        raise ValueError(f"identifier must be {ID_LEN} bytes, got {len(raw)}")
    return _b58encode(raw + _checksum(raw))


def decode_id(text: str) -> bytes:
    """Parse the checksummed base58 form of a 32-byte identifier."""
    data = _b58decode(text)
    if len(data) < _CHECKSUM_LEN:
        raise ValueError("input string is smaller than the checksum size")
    raw, check = data[:-_CHECKSUM_LEN], data[-_CHECKSUM_LEN:]
    if _checksum(raw) != check:
        raise ValueError("invalid input checksum")
    if len(raw) != ID_LEN:
        raise ValueError(f"identifier must be {ID_LEN} bytes, got {len(raw)}")
    return raw