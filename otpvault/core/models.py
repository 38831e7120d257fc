"""
models.py — Account metadata model (no secret bytes).
"""

import hashlib
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict

from otpvault.config import DEFAULT_DIGITS, DEFAULT_PERIOD, MAX_DIGITS

MAX_COUNTER = 2 ** 64 - 1


class OTPType(Enum):
    TOTP = "totp"
    HOTP = "hotp"


class Algorithm(Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digestmod(self):
        """hashlib constructor used as the HMAC digest for this algorithm."""
        return _DIGESTS[self]

    @classmethod
    def from_name(cls, name: str) -> "Algorithm":
        """Case-insensitive lookup; anything unrecognised (or None) is SHA1."""
        try:
            return cls((name or "").upper())
        except ValueError:
            return cls.SHA1


_DIGESTS = {
    Algorithm.SHA1: hashlib.sha1,
    Algorithm.SHA256: hashlib.sha256,
    Algorithm.SHA512: hashlib.sha512,
}


def new_account_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Account:
    """
    One OTP account as shown to the user.

    The secret is not part of the record; it lives in the SecretStore under
    the same `id`. An Account whose secret cannot be loaded is kept around as
    "needs re-import".
    """

    name: str = ""
    issuer: str = ""
    type: OTPType = OTPType.TOTP
    algorithm: Algorithm = Algorithm.SHA1
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    counter: int = 0
    order: int = 0
    id: str = field(default_factory=new_account_id)

    def __post_init__(self):
        if not 0 < self.digits <= MAX_DIGITS:
            raise ValueError(f"digits must be between 1 and {MAX_DIGITS}, got {self.digits}")
        if self.type is OTPType.TOTP and self.period <= 0:
            raise ValueError(f"period must be positive, got {self.period}")
        if not 0 <= self.counter <= MAX_COUNTER:
            raise ValueError(f"counter out of range: {self.counter}")

    @property
    def label(self) -> str:
        return f"{self.issuer}:{self.name}" if self.issuer else self.name

    def same_identity(self, other: "Account") -> bool:
        """True when both records describe the same account (name, issuer, type)."""
        return (self.name, self.issuer, self.type) == (other.name, other.issuer, other.type)

    # --- (de)serialization ---------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["algorithm"] = self.algorithm.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        """
        Build an Account from its persisted mapping.

        `id`, `name` and `issuer` are required; the remaining fields fall back
        to their defaults when missing or of an unknown value.

        Raises:
            KeyError / TypeError / ValueError on a record that cannot be used.
        """
        account_id = data["id"]
        name = data["name"]
        issuer = data["issuer"]
        if not all(isinstance(v, str) for v in (account_id, name, issuer)) or not account_id:
            raise TypeError("id, name and issuer must be strings")
        try:
            otp_type = OTPType(data.get("type", "totp"))
        except ValueError:
            otp_type = OTPType.TOTP
        try:
            algorithm = Algorithm(data.get("algorithm", "SHA1"))
        except ValueError:
            algorithm = Algorithm.SHA1
        return cls(
            id=account_id,
            name=name,
            issuer=issuer,
            type=otp_type,
            algorithm=algorithm,
            digits=_int_or(data.get("digits"), DEFAULT_DIGITS),
            period=_int_or(data.get("period"), DEFAULT_PERIOD),
            counter=_int_or(data.get("counter"), 0),
            order=_int_or(data.get("order"), 0),
        )


def _int_or(value: Any, default: int) -> int:
    # bool is an int subclass; a stray true/false is not a number here
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return default
