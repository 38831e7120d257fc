"""
uri.py — Parse `otpauth://` and `otpauth-migration://` URIs.

    otpauth://totp/Issuer:alice?secret=BASE32&algorithm=SHA256&digits=8&period=30
    otpauth://hotp/Issuer:alice?secret=BASE32&counter=42
    otpauth-migration://offline?data=BASE64   (Google Authenticator export)

Each parser comes in two flavours:
- parse_otpauth / parse_migration raise an OTPVaultError subclass that says
  why the URI was rejected;
- parse_uri / parse_migration_uri return None instead, which is all the
  import pipeline needs.
"""

import base64
import logging
from typing import Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import SplitResult, unquote, urlsplit

from otpvault.config import DEFAULT_DIGITS, DEFAULT_PERIOD, MAX_DIGITS, MIGRATION_PERIOD
from otpvault.core.base32 import decode_base32
from otpvault.core.errors import (
    InvalidEncoding,
    InvalidField,
    MalformedPayload,
    MissingField,
    OTPVaultError,
    UnsupportedScheme,
)
from otpvault.core.models import MAX_COUNTER, Account, Algorithm, OTPType
from otpvault.core.protobuf import MigrationRecord, decode_migration_payload

logger = logging.getLogger(__name__)

OTPAUTH_SCHEME = "otpauth"
MIGRATION_SCHEME = "otpauth-migration"
MIGRATION_HOST = "offline"

_MIGRATION_ALGORITHMS = {2: Algorithm.SHA256, 3: Algorithm.SHA512}
_MIGRATION_DIGITS = {2: 8}


class ParsedAccount(NamedTuple):
    account: Account
    secret: bytes


# --- helpers -----------------------------------------------------------------
def _split(uri: str) -> SplitResult:
    try:
        return urlsplit(uri.strip())
    except ValueError as exc:
        # e.g. an unbalanced "[" in the host part
        raise UnsupportedScheme(f"unparsable URI: {exc}") from exc


def _query_params(query: str) -> Dict[str, str]:
    """
    Split a query string into a dict.

    Unlike urllib.parse.parse_qs, '+' is kept as-is: base64 payloads contain
    it and some exporters do not escape it. Later duplicates win; items
    without '=' are ignored.
    """
    params = {}
    for item in query.split("&"):
        if "=" not in item:
            continue
        name, value = item.split("=", 1)
        params[unquote(name)] = unquote(value)
    return params


def _int_param(params: Dict[str, str], name: str, default: int) -> int:
    try:
        return int(params[name])
    except (KeyError, ValueError):
        return default


def _split_label(label: str) -> Tuple[str, str]:
    """'Issuer: alice' -> ('Issuer', 'alice'); no colon -> ('', label)."""
    if ":" in label:
        issuer, name = label.split(":", 1)
        return issuer.strip(), name.strip()
    return "", label


# --- otpauth:// --------------------------------------------------------------
def parse_otpauth(uri: str) -> ParsedAccount:
    """
    Parse a single-account otpauth:// URI.

    Arguments:
        uri: the URI text, e.g. scanned from a QR code

    Returns:
        ParsedAccount(account, secret); the account gets a fresh id

    Raises:
        UnsupportedScheme: unparsable URI, scheme is not otpauth or host is
            not totp/hotp
        MissingField: no `secret` parameter
        InvalidEncoding: `secret` is not Base32
        InvalidField: digits outside 1..MAX_DIGITS, or a TOTP period that is
            not positive
    """
    parts = _split(uri)
    if parts.scheme.lower() != OTPAUTH_SCHEME:
        raise UnsupportedScheme(f"not an {OTPAUTH_SCHEME} URI: scheme {parts.scheme!r}")
    try:
        otp_type = OTPType(parts.netloc.lower())
    except ValueError:
        raise UnsupportedScheme(f"unknown OTP type {parts.netloc!r}") from None

    params = _query_params(parts.query)
    if "secret" not in params:
        raise MissingField("secret")
    secret = decode_base32(params["secret"])

    path = parts.path[1:] if parts.path.startswith("/") else parts.path
    issuer, name = _split_label(unquote(path))
    if "issuer" in params:
        issuer = params["issuer"]

    digits = _int_param(params, "digits", DEFAULT_DIGITS)
    period = _int_param(params, "period", DEFAULT_PERIOD)
    counter = _int_param(params, "counter", 0)
    if not 0 < digits <= MAX_DIGITS:
        raise InvalidField(f"digits must be between 1 and {MAX_DIGITS}, got {digits}")
    if period <= 0:
        if otp_type is OTPType.TOTP:
            raise InvalidField(f"period must be positive, got {period}")
        period = DEFAULT_PERIOD
    if not 0 <= counter <= MAX_COUNTER:
        counter = 0

    account = Account(
        name=name,
        issuer=issuer,
        type=otp_type,
        algorithm=Algorithm.from_name(params.get("algorithm")),
        digits=digits,
        period=period,
        counter=counter,
    )
    return ParsedAccount(account, secret)


def parse_uri(uri: str) -> Optional[ParsedAccount]:
    """Lenient parse_otpauth(): None when the URI is not usable."""
    try:
        return parse_otpauth(uri)
    except OTPVaultError as exc:
        logger.debug("otpauth URI rejected: %s: %s", type(exc).__name__, exc)
        return None


# --- otpauth-migration:// ----------------------------------------------------
def _migration_label(name: str, issuer: str) -> Tuple[str, str]:
    """
    Resolve (issuer, name) for a migration record.

    With an issuer field, an "Issuer:" prefix in the name is redundant and
    dropped. Without one, the name itself may carry "issuer:name".
    """
    if issuer:
        if ":" in name:
            name = name.split(":", 1)[1].strip()
        return issuer, name
    return _split_label(name)


def record_to_account(record: MigrationRecord) -> ParsedAccount:
    """Translate the raw enum codes of a MigrationRecord into an Account."""
    issuer, name = _migration_label(record.name, record.issuer)
    account = Account(
        name=name,
        issuer=issuer,
        type=OTPType.HOTP if record.type == 1 else OTPType.TOTP,
        algorithm=_MIGRATION_ALGORITHMS.get(record.algorithm, Algorithm.SHA1),
        digits=_MIGRATION_DIGITS.get(record.digits, DEFAULT_DIGITS),
        period=MIGRATION_PERIOD,
        counter=record.counter,
    )
    return ParsedAccount(account, record.secret)


def parse_migration(uri: str) -> List[ParsedAccount]:
    """
    Parse a Google Authenticator export URI.

    Raises:
        UnsupportedScheme: unparsable, or not otpauth-migration://offline
        MissingField: no `data` parameter
        InvalidEncoding: `data` is not standard base64
        MalformedPayload: the payload holds no usable account
    """
    parts = _split(uri)
    if parts.scheme.lower() != MIGRATION_SCHEME or parts.netloc.lower() != MIGRATION_HOST:
        raise UnsupportedScheme(f"not an {MIGRATION_SCHEME}://{MIGRATION_HOST} URI")

    params = _query_params(parts.query)
    if "data" not in params:
        raise MissingField("data")
    try:
        payload = base64.b64decode(params["data"], validate=True)
    except ValueError as exc:
        raise InvalidEncoding(f"migration data is not base64: {exc}") from exc

    records = decode_migration_payload(payload)
    if not records:
        raise MalformedPayload("migration payload contains no accounts")
    logger.debug("decoded %d account(s) from migration payload", len(records))
    return [record_to_account(record) for record in records]


def parse_migration_uri(uri: str) -> Optional[List[ParsedAccount]]:
    """Lenient parse_migration(): None when nothing could be decoded."""
    try:
        return parse_migration(uri)
    except OTPVaultError as exc:
        logger.debug("migration URI rejected: %s: %s", type(exc).__name__, exc)
        return None


def parse_any(uri: str) -> Optional[List[ParsedAccount]]:
    """Try otpauth:// first, then otpauth-migration://."""
    single = parse_uri(uri)
    if single is not None:
        return [single]
    return parse_migration_uri(uri)
