"""
secret_store.py — Per-account secrets, encrypted at rest with a machine-bound key.

Layout:
    <secrets_dir>/            mode 700
    <secrets_dir>/<account>   mode 600, [16-byte IV][AES-256-CBC/PKCS7 ciphertext]

Key derivation:
    key = SHA-256("<hardware-id>:<KEY_SALT>")

The hardware id comes from the platform (machine-id, IOPlatformUUID,
MachineGuid). Copying the secret files to another machine makes them
undecryptable; that is the point. There is no passphrase and no export.

Security note:
    load() hands back plaintext bytes; callers keep them in memory only.
"""

import contextlib
import functools
import hashlib
import logging
import os
import re
import shutil
import subprocess
import sys
import tempfile
from typing import Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from otpvault.config import (
    DIR_MODE,
    FALLBACK_HARDWARE_ID,
    FILE_MODE,
    IV_SIZE,
    KEY_SALT,
    secrets_dir,
)
from otpvault.core.errors import CryptoFailure, NotFound, OTPVaultError

logger = logging.getLogger(__name__)

KEY_SIZE = 32               # AES-256
BLOCK_BITS = 128
_LINUX_MACHINE_ID_FILES = ("/etc/machine-id", "/var/lib/dbus/machine-id")
_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


# --- hardware id / key -------------------------------------------------------
def _darwin_platform_uuid() -> Optional[str]:
    if shutil.which("ioreg") is None:
        return None
    cmd = ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"]
    try:
        result = subprocess.run(cmd, check=True, capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("ioreg failed: %s", exc)
        return None
    match = _IOREG_UUID.search(result.stdout)
    return match.group(1) if match else None


def _windows_machine_guid() -> Optional[str]:
    import winreg

    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, r"SOFTWARE\Microsoft\Cryptography") as key:
            value, _ = winreg.QueryValueEx(key, "MachineGuid")
    except OSError as exc:
        logger.debug("MachineGuid lookup failed: %s", exc)
        return None
    return str(value)


def _linux_machine_id() -> Optional[str]:
    for path in _LINUX_MACHINE_ID_FILES:
        try:
            with open(path, "r", encoding="utf-8") as f:
                value = f.read().strip()
        except OSError:
            continue
        if value:
            return value
    return None


def hardware_id() -> str:
    """Stable identifier of this machine, or FALLBACK_HARDWARE_ID."""
    if sys.platform == "darwin":
        value = _darwin_platform_uuid()
    elif sys.platform == "win32":
        value = _windows_machine_guid()
    else:
        value = _linux_machine_id()
    if not value:
        logger.warning("no hardware id available, using fallback key material")
        return FALLBACK_HARDWARE_ID
    return value


def derive_key(hardware: str, salt: str = KEY_SALT) -> bytes:
    """SHA-256("<hardware>:<salt>") -> 32-byte AES key."""
    return hashlib.sha256(f"{hardware}:{salt}".encode("utf-8")).digest()


@functools.lru_cache(maxsize=None)
def machine_key() -> bytes:
    """Process-wide key for this machine, derived once."""
    return derive_key(hardware_id())


# --- AES-256-CBC -------------------------------------------------------------
def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Return IV || AES-256-CBC(PKCS7(plaintext)) with a fresh random IV."""
    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return iv + encryptor.update(padded) + encryptor.finalize()


def decrypt(blob: bytes, key: bytes) -> bytes:
    """
    Reverse encrypt().

    Raises:
        CryptoFailure: too short, not block-aligned, or bad padding (which is
            what a wrong key usually produces)
    """
    ciphertext = blob[IV_SIZE:]
    if not ciphertext or len(ciphertext) % (BLOCK_BITS // 8):
        raise CryptoFailure(f"ciphertext has invalid length {len(blob)}")
    decryptor = Cipher(algorithms.AES(key), modes.CBC(blob[:IV_SIZE])).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as exc:
        raise CryptoFailure("bad padding") from exc


# --- store ---------------------------------------------------------------------
class SecretStore:
    """
    Encrypted secret files keyed by account id.

    Arguments:
        directory: where the files live (default: config.secrets_dir())
        key: 32-byte AES key; None uses machine_key()

    Calls for the same account id are not synchronised; callers serialise them.
    """

    def __init__(self, directory: Optional[str] = None, key: Optional[bytes] = None):
        if key is not None and len(key) != KEY_SIZE:
            raise ValueError(f"key must be {KEY_SIZE} bytes")
        self.directory = directory or secrets_dir()
        self._key = key

    @property
    def key(self) -> bytes:
        return self._key if self._key is not None else machine_key()

    def _path(self, account_id: str) -> str:
        name = str(account_id)
        if name in ("", ".", "..") or os.path.basename(name) != name or "/" in name:
            raise NotFound(f"invalid account id {name!r}")
        return os.path.join(self.directory, name)

    def _ensure_directory(self) -> None:
        os.makedirs(self.directory, mode=DIR_MODE, exist_ok=True)
        os.chmod(self.directory, DIR_MODE)

    def save(self, secret: bytes, account_id: str) -> bool:
        """
        Encrypt `secret` and write it for `account_id`, replacing any old file.

        The file is written under a temporary name and renamed into place, so
        a failure never leaves a partial file behind.

        Returns:
            bool: True on success; failures are logged, not raised
        """
        try:
            path = self._path(account_id)
            blob = encrypt(bytes(secret), self.key)
            self._ensure_directory()
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(blob)
                os.chmod(tmp, FILE_MODE)
                os.replace(tmp, path)
            except OSError:
                with contextlib.suppress(OSError):
                    os.unlink(tmp)
                raise
        except (OTPVaultError, OSError, ValueError) as exc:
            logger.warning("could not save secret for %s: %s", account_id, exc)
            return False
        logger.debug("saved secret for %s", account_id)
        return True

    def read(self, account_id: str) -> bytes:
        """
        Strict load.

        Raises:
            NotFound: no (readable) file for this id
            CryptoFailure: the file does not decrypt with this machine's key
        """
        path = self._path(account_id)
        try:
            with open(path, "rb") as f:
                blob = f.read()
        except FileNotFoundError:
            raise NotFound(f"no secret for {account_id}") from None
        except OSError as exc:
            raise NotFound(f"secret for {account_id} unreadable: {exc}") from exc
        return decrypt(blob, self.key)

    def load(self, account_id: str) -> Optional[bytes]:
        """Decrypted secret, or None when missing or undecryptable (needs re-import)."""
        try:
            return self.read(account_id)
        except (NotFound, CryptoFailure) as exc:
            logger.debug("secret unavailable for %s: %s", account_id, exc)
            return None

    def exists(self, account_id: str) -> bool:
        try:
            return os.path.isfile(self._path(account_id))
        except NotFound:
            return False

    def delete(self, account_id: str) -> None:
        """Remove the secret file; a missing file is fine."""
        try:
            os.remove(self._path(account_id))
        except (FileNotFoundError, NotFound):
            return
        except OSError as exc:
            logger.warning("could not delete secret for %s: %s", account_id, exc)
            return
        logger.debug("deleted secret for %s", account_id)
