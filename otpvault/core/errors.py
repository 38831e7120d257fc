"""
errors.py — Exception types shared by the otpvault core and storage layers.

Strict functions raise one of these; the lenient entry points
(`parse_uri`, `parse_migration_uri`, `SecretStore.load`, ...) catch them and
return None so the caller only has to test for an absent result.
"""


class OTPVaultError(Exception):
    """Base class for every error raised by otpvault."""


class InvalidEncoding(OTPVaultError, ValueError):
    """Malformed Base32 or base64 text."""


class UnsupportedScheme(OTPVaultError):
    """URI scheme or host is not one we understand."""


class MissingField(OTPVaultError):
    """A required query parameter is absent."""


class InvalidField(OTPVaultError, ValueError):
    """A query parameter is present but its value is unusable."""


class MalformedPayload(OTPVaultError):
    """Protobuf wire data ended early or used an unknown wire type."""


class CryptoFailure(OTPVaultError):
    """Encryption, decryption or key derivation failed."""


class NotFound(OTPVaultError, KeyError):
    """No secret or account exists for the given identifier."""

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return Exception.__str__(self)


class DuplicateAccount(OTPVaultError):
    """An account with the same name, issuer and type already has a secret."""

    def __init__(self, existing):
        self.existing = existing
        super().__init__(
            f"account {existing.issuer!r}:{existing.name!r} ({existing.type.value}) already exists"
        )
