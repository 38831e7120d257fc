"""
importer.py — Glue between URI parsing, the SecretStore and the account list.

    text / file / URI
        -> parse_any()                     (otpauth:// or otpauth-migration://)
        -> SecretStore.save(secret, id)
        -> AccountRepository.add(account)

Results are shaped so the caller can tell apart:
- nothing recognisable        -> import_* returns no accounts
- account gone                -> code_for() raises NotFound
- secret lost (needs import)  -> code_for() returns None
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from otpvault.core.errors import DuplicateAccount, NotFound
from otpvault.core.models import Account, OTPType
from otpvault.core.otp import generate_code
from otpvault.core.uri import parse_any
from otpvault.storage.accounts import AccountRepository
from otpvault.storage.secret_store import SecretStore

logger = logging.getLogger(__name__)


@dataclass
class ImportReport:
    accounts: List[Account] = field(default_factory=list)
    duplicates: int = 0
    failed_lines: int = 0

    @property
    def imported(self) -> int:
        return len(self.accounts)

    def __bool__(self) -> bool:
        return bool(self.accounts)


class Importer:
    def __init__(self, repository: AccountRepository, secret_store: Optional[SecretStore] = None):
        self.repository = repository
        self.secret_store = secret_store if secret_store is not None else repository.secret_store

    def _store(self, account: Account, secret: bytes, report: ImportReport) -> None:
        if not self.secret_store.save(secret, account.id):
            logger.error("secret for %s could not be stored, skipping", account.label)
            return
        try:
            self.repository.add(account)
        except DuplicateAccount as exc:
            # the secret saved above now belongs to nobody
            self.secret_store.delete(account.id)
            report.duplicates += 1
            logger.info("skipped duplicate: %s", exc)
            return
        report.accounts.append(account)
        logger.info("imported %s (%s)", account.label, account.type.value)

    def import_uri(self, uri: str, report: Optional[ImportReport] = None) -> List[Account]:
        """
        Import every account described by one URI.

        Returns:
            the accounts added; empty when the URI was not recognised or only
            held duplicates
        """
        if report is None:
            report = ImportReport()
        parsed = parse_any(uri)
        if not parsed:
            report.failed_lines += 1
            return []
        before = report.imported
        for account, secret in parsed:
            self._store(account, secret, report)
        return report.accounts[before:]

    def import_text(self, text: str) -> ImportReport:
        """One URI per non-blank line."""
        report = ImportReport()
        for line in text.splitlines():
            line = line.strip()
            if line:
                self.import_uri(line, report)
        logger.debug(
            "import finished: %d imported, %d duplicate(s), %d unrecognised line(s)",
            report.imported, report.duplicates, report.failed_lines,
        )
        return report

    def import_file(self, path: str) -> ImportReport:
        with open(path, "r", encoding="utf-8") as f:
            return self.import_text(f.read())

    # --- code display ----------------------------------------------------------
    def _account(self, account_id: str) -> Account:
        account = self.repository.get(account_id)
        if account is None:
            raise NotFound(f"no account {account_id}")
        return account

    def code_for(self, account_id: str, timestamp: Optional[float] = None) -> Optional[str]:
        """
        Current code for a stored account.

        Returns:
            the code, or None when the secret is unavailable (needs re-import)

        Raises:
            NotFound: no such account
        """
        account = self._account(account_id)
        secret = self.secret_store.load(account.id)
        if secret is None:
            return None
        return generate_code(account, secret, timestamp)

    def advance_counter(self, account_id: str) -> Account:
        """Move a HOTP account to its next counter value."""
        account = self._account(account_id)
        if account.type is not OTPType.HOTP:
            raise ValueError(f"account {account_id} is not HOTP")
        return self.repository.set_counter(account.id, account.counter + 1)
