"""
base32.py — Lenient RFC 4648 Base32 decoder for OTP secrets.

Authenticator apps hand out secrets in many shapes: lower case, grouped with
spaces, with or without '=' padding. base64.b32decode() rejects most of them,
so decoding is done bit by bit:

- upper-case the text, drop '=' and whitespace
- every character contributes 5 bits (MSB first) to an accumulator
- whenever 8 or more bits are pending, emit the top byte
- leftover bits (< 8) at the end are discarded
"""

from otpvault.core.errors import InvalidEncoding

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_INDEX = {char: value for value, char in enumerate(ALPHABET)}


def clean(text: str) -> str:
    """Upper-case `text` and strip padding and whitespace."""
    return "".join(ch for ch in text.upper() if ch != "=" and not ch.isspace())


def decode_base32(text: str) -> bytes:
    """
    Decode Base32 text into raw key bytes.

    Arguments:
        text: Base32 secret, e.g. "JBSWY3DPEHPK3PXP" or "jbsw y3dp ehpk 3pxp"

    Returns:
        bytes: decoded secret

    Raises:
        InvalidEncoding: empty input, a character outside A-Z2-7, or too few
            characters to produce a single byte
    """
    cleaned = clean(text)
    if not cleaned:
        raise InvalidEncoding("empty Base32 string")

    bits = 0
    accumulator = 0
    output = bytearray()
    for char in cleaned:
        value = _INDEX.get(char)
        if value is None:
            raise InvalidEncoding(f"invalid Base32 character {char!r}")
        accumulator = ((accumulator << 5) | value) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            output.append((accumulator >> bits) & 0xFF)

    if not output:
        raise InvalidEncoding("Base32 string too short")
    return bytes(output)
