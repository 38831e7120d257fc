"""
otp.py — HOTP / TOTP engine (RFC 4226 & RFC 6238).

Pure functions only: no file access, no state between calls. TOTP reads the
wall clock only when no timestamp is given.

- HOTP: code = Truncate(HMAC-<alg>(key=secret, msg=counter)) mod 10^digits
- TOTP: HOTP with counter = floor(timestamp / period)
- Dynamic truncation: offset = last byte & 0x0F, take 4 bytes from offset,
  clear the MSB of the first one -> 31-bit integer.

SHA-256 and SHA-512 digests are longer than SHA-1's, but the offset is always
at most 15, so the 4-byte window stays inside every supported digest.
"""

import hmac
import struct
import time
from typing import Optional

from otpvault.config import DEFAULT_DIGITS, DEFAULT_PERIOD, MAX_DIGITS
from otpvault.core.models import MAX_COUNTER, Account, Algorithm, OTPType


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Convert the counter to the 8-byte big-endian message RFC 4226 requires.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'

    Raises:
        ValueError: counter outside 0 .. 2**64 - 1
    """
    if not 0 <= i <= MAX_COUNTER:
        raise ValueError(f"counter out of range: {i}")
    return struct.pack(">Q", i)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Apply RFC 4226 dynamic truncation and return the 31-bit integer.

    Arguments:
        hmac_digest: HMAC digest (20, 32 or 64 bytes)
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


def hotp(
    secret: bytes,
    counter: int,
    digits: int = DEFAULT_DIGITS,
    algorithm: Algorithm = Algorithm.SHA1,
) -> str:
    """
    Generate an HOTP code (RFC 4226).

    Steps:
    1. Message = 8-byte counter (big-endian)
    2. HMAC-<algorithm>(secret, message)
    3. Dynamic truncate -> dbc
    4. otp = dbc % 10^digits, zero-padded to `digits` characters

    Arguments:
        secret: raw key bytes (already Base32-decoded)
        counter: unsigned 64-bit counter
        digits: code length, usually 6 or 8
        algorithm: HMAC hash

    Raises:
        ValueError: digits outside 1..MAX_DIGITS or counter out of range
    """
    if not 0 < digits <= MAX_DIGITS:
        raise ValueError(f"digits must be between 1 and {MAX_DIGITS}, got {digits}")
    msg = int_to_bytes(counter)
    digest = hmac.new(secret, msg, algorithm.digestmod).digest()
    dbc = dynamic_truncate(digest)
    return str(dbc % (10 ** digits)).zfill(digits)


# --- time helpers ------------------------------------------------------------
def _now(timestamp: Optional[float]) -> int:
    if timestamp is None:
        timestamp = time.time()
    return int(timestamp)


def _check_period(period: int) -> None:
    if period <= 0:
        raise ValueError(f"period must be positive, got {period}")


def time_step(period: int = DEFAULT_PERIOD, timestamp: Optional[float] = None) -> int:
    """Counter value for TOTP: floor(now / period)."""
    _check_period(period)
    return _now(timestamp) // period


def seconds_remaining(period: int = DEFAULT_PERIOD, timestamp: Optional[float] = None) -> int:
    """Seconds left before the current code expires (1 .. period)."""
    _check_period(period)
    return period - (_now(timestamp) % period)


def progress(period: int = DEFAULT_PERIOD, timestamp: Optional[float] = None) -> float:
    """Fraction of the current period already elapsed (0.0 .. <1.0)."""
    _check_period(period)
    return (_now(timestamp) % period) / period


def totp(
    secret: bytes,
    period: int = DEFAULT_PERIOD,
    digits: int = DEFAULT_DIGITS,
    algorithm: Algorithm = Algorithm.SHA1,
    timestamp: Optional[float] = None,
) -> str:
    """
    Generate a TOTP code (RFC 6238) = HOTP(counter = floor(timestamp / period)).

    Arguments:
        secret: raw key bytes
        period: time step X in seconds, default 30
        digits: code length
        algorithm: HMAC hash
        timestamp: Unix seconds to compute for (None -> time.time())
    """
    return hotp(secret, time_step(period, timestamp), digits, algorithm)


def generate_code(account: Account, secret: bytes, timestamp: Optional[float] = None) -> str:
    """Current code for `account`; HOTP uses the account's stored counter."""
    if account.type is OTPType.HOTP:
        return hotp(secret, account.counter, account.digits, account.algorithm)
    return totp(secret, account.period, account.digits, account.algorithm, timestamp)
