"""
otpvault.core
=============

HOTP/TOTP generation (RFC 4226 & RFC 6238), Base32 secret decoding and
parsing of `otpauth://` / `otpauth-migration://` URIs.

Nothing in this package touches the disk; see otpvault.storage for the
encrypted secret store and the account list.

Quick example
-------------
>>> from otpvault.core import parse_uri, totp
>>> parsed = parse_uri("otpauth://totp/Example:alice?secret=JBSWY3DPEHPK3PXP")
>>> parsed.account.issuer, parsed.account.name
('Example', 'alice')
>>> code = totp(parsed.secret, parsed.account.period, parsed.account.digits,
...             parsed.account.algorithm)
"""
from otpvault.core.base32 import decode_base32
from otpvault.core.models import Account, Algorithm, OTPType
from otpvault.core.otp import (
    generate_code,
    hotp,
    progress,
    seconds_remaining,
    time_step,
    totp,
)
from otpvault.core.protobuf import MigrationRecord, decode_migration_payload
from otpvault.core.uri import (
    ParsedAccount,
    parse_any,
    parse_migration,
    parse_migration_uri,
    parse_otpauth,
    parse_uri,
)

__all__ = [
    "Account",
    "Algorithm",
    "MigrationRecord",
    "OTPType",
    "ParsedAccount",
    "decode_base32",
    "decode_migration_payload",
    "generate_code",
    "hotp",
    "parse_any",
    "parse_migration",
    "parse_migration_uri",
    "parse_otpauth",
    "parse_uri",
    "progress",
    "seconds_remaining",
    "time_step",
    "totp",
]
