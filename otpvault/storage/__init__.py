"""
otpvault.storage
================

On-disk state: the encrypted per-account secrets (SecretStore) and the
account metadata list (AccountRepository).
"""
from otpvault.storage.accounts import AccountRepository
from otpvault.storage.secret_store import SecretStore

__all__ = ["AccountRepository", "SecretStore"]
