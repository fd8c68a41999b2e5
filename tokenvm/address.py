"""Bech32 addresses for ed25519 public keys."""

from __future__ import annotations

PUBLIC_KEY_LEN = 32
EMPTY_PUBLIC_KEY = bytes(PUBLIC_KEY_LEN)

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_CHARSET_INDEX = {char: value for value, char in enumerate(_CHARSET)}
_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_MAX_LEN = 90


class AddressError(ValueError):
    """An address could not be parsed or formatted."""


def _polymod(values: list[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ value
        for bit, gen in enumerate(_GENERATORS):
            if (top >> bit) & 1:
                chk ^= gen
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _create_checksum(hrp: str, data: list[int]) -> list[int]:
    mod = _polymod(_hrp_expand(hrp) + data + [0] * 6) ^ 1
    return [(mod >> 5 * (5 - i)) & 31 for i in range(6)]


def _convert_bits(data: bytes | list[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    out: list[int] = []
    maxv = (1 << to_bits) - 1
    for value in data:
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            out.append((acc >> bits) & maxv)
    if pad:
        if bits:
            out.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or (acc << (to_bits - bits)) & maxv:
        raise AddressError("invalid padding when converting bits")
    return out


def _bech32_decode(text: str) -> tuple[str, bytes]:
    if len(text) < 8 or len(text) > _MAX_LEN:
        raise AddressError(f"invalid bech32 string length {len(text)}")
    if any(ord(c) < 33 or ord(c) > 126 for c in text):
        raise AddressError("invalid character in bech32 string")
    if text.lower() != text and text.upper() != text:
        raise AddressError("string not all lowercase or all uppercase")
    text = text.lower()
    sep = text.rfind("1")
    if sep < 1 or sep + 7 > len(text):
        raise AddressError("invalid separator index")
    hrp, rest = text[:sep], text[sep + 1 :]
    try:
        data = [_CHARSET_INDEX[c] for c in rest]
    except KeyError as exc:
        raise AddressError(f"invalid character not part of charset: {exc.args[0]!r}") from None
    if _polymod(_hrp_expand(hrp) + data) != 1:
        raise AddressError("invalid checksum")
    return hrp, bytes(_convert_bits(data[:-6], 5, 8, pad=False))


def address(public_key: bytes, hrp: str) -> str:
    """Format a public key as a bech32 address with the given prefix."""
    public_key = bytes(public_key)
    if len(public_key) != PUBLIC_KEY_LEN:
        raise AddressError(f"public key must be {PUBLIC_KEY_LEN} bytes")
    if not hrp:
        raise AddressError("empty hrp")
    data = _convert_bits(public_key, 8, 5, pad=True)
    combined = data + _create_checksum(hrp, data)
    return hrp + "1" + "".join(_CHARSET[d] for d in combined)


def parse_address(text: str, hrp: str) -> bytes:
    """Parse a bech32 address and return its public key."""
    parsed_hrp, payload = _bech32_decode(text)
    if parsed_hrp != hrp:
        raise AddressError("incorrect hrp")
    if len(payload) != PUBLIC_KEY_LEN:
        raise AddressError("invalid size")
    return payload