"""
config.py — Constants and data-directory resolution for otpvault.

Everything lives under one data directory:

    <home>/accounts.json     account metadata (no secret bytes)
    <home>/secrets/<id>      encrypted secret per account (mode 600)

The directory is, in order of precedence: the explicit argument, the
OTPVAULT_HOME environment variable, or ~/.config/otpvault.
"""

import os
from typing import Optional

# --- OTP defaults ------------------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
MAX_DIGITS = 10             # dynamic truncation yields 31 bits
DEFAULT_PERIOD = 30         # TOTP step (seconds)
MIGRATION_PERIOD = 30       # migration payloads carry no period

# --- Storage ---------------------------------------------------------------
HOME_ENV = "OTPVAULT_HOME"
DEFAULT_HOME = os.path.join("~", ".config", "otpvault")
ACCOUNTS_FILE = "accounts.json"
SECRETS_DIR = "secrets"
DIR_MODE = 0o700
FILE_MODE = 0o600

# --- Key derivation ----------------------------------------------------------
# Bumping the salt version makes every stored secret undecryptable.
KEY_SALT = "otpvault.v1"
FALLBACK_HARDWARE_ID = "fallback-otpvault-key"
IV_SIZE = 16


def data_dir(home: Optional[str] = None) -> str:
    """Return the absolute data directory (not created here)."""
    if home is None:
        home = os.environ.get(HOME_ENV) or DEFAULT_HOME
    return os.path.abspath(os.path.expanduser(home))


def secrets_dir(home: Optional[str] = None) -> str:
    return os.path.join(data_dir(home), SECRETS_DIR)


def accounts_file(home: Optional[str] = None) -> str:
    return os.path.join(data_dir(home), ACCOUNTS_FILE)
