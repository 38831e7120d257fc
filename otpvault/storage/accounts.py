"""
accounts.py — Ordered account list persisted as JSON.

File format (accounts.json):

    {
      "accounts": [
        {"algorithm": "SHA1", "counter": 0, "digits": 6, "id": "...",
         "issuer": "Example", "name": "alice", "order": 0, "period": 30,
         "type": "totp"}
      ]
    }

Every mutation rewrites the file before returning. Secrets are not stored
here; delete() removes the matching SecretStore entry as well.
"""

import contextlib
import json
import logging
import os
import tempfile
from typing import List, Optional, Union

from otpvault.config import FILE_MODE, accounts_file
from otpvault.core.errors import DuplicateAccount, NotFound
from otpvault.core.models import MAX_COUNTER, Account
from otpvault.storage.secret_store import SecretStore

logger = logging.getLogger(__name__)


class AccountRepository:
    """
    Account metadata keyed by id, listed by `order`.

    Arguments:
        path: JSON file (default: config.accounts_file())
        secret_store: used to check for lost secrets on re-import and to drop
            secrets on delete (default: SecretStore())
    """

    def __init__(self, path: Optional[str] = None, secret_store: Optional[SecretStore] = None):
        self.path = path or accounts_file()
        self.secret_store = secret_store if secret_store is not None else SecretStore()
        self._accounts: List[Account] = []
        self.load()

    # --- persistence -------------------------------------------------------
    def load(self) -> None:
        """(Re)read the JSON file; a missing file means no accounts."""
        self._accounts = []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as exc:
            logger.warning("could not read %s: %s", self.path, exc)
            return

        records = data.get("accounts", []) if isinstance(data, dict) else []
        for record in records:
            try:
                self._accounts.append(Account.from_dict(record))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("skipping malformed account record: %s", exc)
        logger.debug("loaded %d account(s) from %s", len(self._accounts), self.path)

    def save(self, accounts: Optional[List[Account]] = None) -> None:
        """
        Write `accounts` (default: the current list) atomically, via a
        temporary file and a rename.

        Mutations call this with the new list before adopting it, so a failed
        write leaves both the file and the in-memory state unchanged.
        """
        if accounts is None:
            accounts = self._accounts
        directory = os.path.dirname(self.path) or "."
        os.makedirs(directory, exist_ok=True)
        payload = {"accounts": [account.to_dict() for account in accounts]}
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=".accounts-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
                f.write("\n")
            os.chmod(tmp, FILE_MODE)
            os.replace(tmp, self.path)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp)
            raise

    # --- queries -------------------------------------------------------------
    def get(self, account_id: str) -> Optional[Account]:
        for account in self._accounts:
            if account.id == account_id:
                return account
        return None

    def list(self) -> List[Account]:
        return sorted(self._accounts, key=lambda account: account.order)

    def find(self, query: str) -> List[Account]:
        """Accounts whose name or issuer contains `query` (case-insensitive)."""
        query = query.strip().lower()
        if not query:
            return self.list()
        return [
            account
            for account in self.list()
            if query in account.name.lower() or query in account.issuer.lower()
        ]

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self):
        return iter(self.list())

    # --- mutations -----------------------------------------------------------
    def add(self, account: Account) -> Account:
        """
        Append `account` with order = current collection size.

        A record with the same (name, issuer, type) blocks the add, unless its
        secret can no longer be loaded: then the stale record and whatever is
        left of its secret are removed and the new one takes its place.

        Raises:
            DuplicateAccount: the existing record still has its secret
        """
        accounts = list(self._accounts)
        existing = next((a for a in accounts if a.same_identity(account)), None)
        if existing is not None:
            if self.secret_store.load(existing.id) is not None:
                raise DuplicateAccount(existing)
            accounts.remove(existing)

        account.order = len(accounts)
        accounts.append(account)
        self.save(accounts)
        self._accounts = accounts
        if existing is not None:
            logger.info("replaced account %s whose secret is unavailable", existing.id)
            self.secret_store.delete(existing.id)
        logger.debug("added account %s at order %d", account.id, account.order)
        return account

    def delete(self, account: Union[Account, str]) -> None:
        """
        Remove an account (by record or id) and its secret.

        Raises:
            NotFound: no account with that id
        """
        account_id = account.id if isinstance(account, Account) else account
        existing = self.get(account_id)
        if existing is None:
            raise NotFound(f"no account {account_id}")
        self.save([a for a in self._accounts if a is not existing])
        self._accounts.remove(existing)
        self.secret_store.delete(account_id)
        logger.debug("deleted account %s", account_id)

    def set_counter(self, account_id: str, counter: int) -> Account:
        """
        Persist a new HOTP counter.

        Raises:
            NotFound: unknown id
            ValueError: counter outside the unsigned 64-bit range
        """
        account = self.get(account_id)
        if account is None:
            raise NotFound(f"no account {account_id}")
        if not 0 <= counter <= MAX_COUNTER:
            raise ValueError(f"counter out of range: {counter}")
        previous, account.counter = account.counter, counter
        try:
            self.save()
        except OSError:
            account.counter = previous
            raise
        return account
