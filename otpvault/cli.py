#!/usr/bin/env python3
"""
cli.py — Command-line front end for otpvault.

Subcommands:
- import : read otpauth:// / otpauth-migration:// URIs (args, --file or stdin)
- list   : show stored accounts
- code   : print the current code of an account (--watch to keep refreshing)
- delete : remove an account and its secret

eg..:
    otpvault import "otpauth://totp/Example:alice?secret=JBSWY3DPEHPK3PXP"
    otpvault import --file export.txt --dry-run
    otpvault list --search example
    otpvault code 3f2a --watch
    otpvault code 9c1e --next        # HOTP: advance counter after printing
    otpvault --home /tmp/vault delete 3f2a
"""

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from otpvault import __version__
from otpvault.config import accounts_file, secrets_dir
from otpvault.core.errors import NotFound
from otpvault.core.models import Account, OTPType
from otpvault.core.otp import seconds_remaining
from otpvault.core.uri import parse_any
from otpvault.importer import Importer
from otpvault.storage.accounts import AccountRepository
from otpvault.storage.secret_store import SecretStore

logger = logging.getLogger("otpvault")

EXIT_OK = 0
EXIT_FAILURE = 1


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def open_importer(args) -> Importer:
    store = SecretStore(secrets_dir(args.home))
    repository = AccountRepository(accounts_file(args.home), store)
    return Importer(repository, store)


def resolve_account(repository: AccountRepository, ident: str) -> Account:
    """Find an account by full id or by a unique id prefix."""
    account = repository.get(ident)
    if account is not None:
        return account
    matches = [a for a in repository.list() if a.id.startswith(ident)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise NotFound(f"id prefix {ident!r} is ambiguous ({len(matches)} accounts)")
    raise NotFound(f"no account matches {ident!r}")


def _describe(account: Account) -> str:
    extra = f"counter={account.counter}" if account.type is OTPType.HOTP else f"period={account.period}s"
    return f"{account.label}  [{account.type.value}, {account.algorithm.value}, {account.digits}d, {extra}]"


def _read_input(args) -> str:
    if args.uris:
        return "\n".join(args.uris)
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            return f.read()
    return sys.stdin.read()


# --- CLI command handlers ---
def cmd_import(args) -> int:
    text = _read_input(args)

    if args.dry_run:
        found = 0
        for line in filter(None, (line.strip() for line in text.splitlines())):
            for account, _secret in parse_any(line) or []:
                print(f"  {_describe(account)}")
                found += 1
        if not found:
            print("[!] No valid otpauth data found")
            return EXIT_FAILURE
        print(f"[*] {found} account(s) recognised (dry run, nothing stored)")
        return EXIT_OK

    report = open_importer(args).import_text(text)
    for account in report.accounts:
        print(f"[+] {account.id[:8]}  {_describe(account)}")
    if report.duplicates:
        print(f"[-] {report.duplicates} duplicate(s) skipped")
    if not report and not report.duplicates:
        print("[!] No valid otpauth data found")
        return EXIT_FAILURE
    return EXIT_OK


def cmd_list(args) -> int:
    importer = open_importer(args)
    repository = importer.repository
    accounts = repository.find(args.search) if args.search else repository.list()
    if not accounts:
        print("No accounts.")
        return EXIT_OK
    for account in accounts:
        marker = "  (needs re-import)" if importer.secret_store.load(account.id) is None else ""
        print(f"{account.id[:8]}  {_describe(account)}{marker}")
    return EXIT_OK


def cmd_code(args) -> int:
    importer = open_importer(args)
    account = resolve_account(importer.repository, args.id)

    code = importer.code_for(account.id)
    if code is None:
        print(f"[!] Secret for {account.label} is unavailable; re-import the account.")
        return EXIT_FAILURE

    if account.type is OTPType.HOTP:
        print(f"{account.label} HOTP(counter={account.counter}): {code}")
        if args.next:
            account = importer.advance_counter(account.id)
            logger.debug("counter advanced to %d", account.counter)
        return EXIT_OK

    if not args.watch:
        print(f"{account.label}: {code}  (valid ~{seconds_remaining(account.period):2d}s)")
        return EXIT_OK

    print("Press Ctrl+C to quit.\n")
    last_code = None
    try:
        while True:
            code = importer.code_for(account.id)
            remaining = seconds_remaining(account.period)
            if code != last_code:
                print(f"{account.label}: {code}  (valid ~{remaining:2d}s)")
                last_code = code
            else:
                print(f".. {remaining:2d}s left", end="\r", flush=True)
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nBye.")
    return EXIT_OK


def cmd_delete(args) -> int:
    importer = open_importer(args)
    account = resolve_account(importer.repository, args.id)
    importer.repository.delete(account)
    print(f"[-] Deleted {account.label}")
    return EXIT_OK


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="otpvault", description="TOTP/HOTP authenticator with machine-bound secret storage")
    p.add_argument("--home", help="Data directory (default: $OTPVAULT_HOME or ~/.config/otpvault)")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="cmd")

    # import
    pi = sub.add_parser("import", help="Import otpauth:// or otpauth-migration:// URIs")
    pi.add_argument("uris", nargs="*", help="URIs to import (default: read --file or stdin)")
    pi.add_argument("--file", help="Text file with one URI per line")
    pi.add_argument("--dry-run", action="store_true", help="Only show what would be imported")
    pi.set_defaults(func=cmd_import)

    # list
    pl = sub.add_parser("list", help="List stored accounts")
    pl.add_argument("--search", help="Filter by name or issuer")
    pl.set_defaults(func=cmd_list)

    # code
    pc = sub.add_parser("code", help="Show the current code for an account")
    pc.add_argument("id", help="Account id or unique id prefix")
    pc.add_argument("--watch", action="store_true", help="Refresh TOTP codes until Ctrl+C")
    pc.add_argument("--next", action="store_true", help="HOTP: advance the counter after printing")
    pc.set_defaults(func=cmd_code)

    # delete
    pd = sub.add_parser("delete", help="Delete an account and its secret")
    pd.add_argument("id", help="Account id or unique id prefix")
    pd.set_defaults(func=cmd_delete)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    if not hasattr(args, "func"):
        parser.print_help()
        return 2
    try:
        return args.func(args)
    except NotFound as exc:
        print(f"[!] {exc}")
        return EXIT_FAILURE
    except OSError as exc:
        print(f"[!] {exc}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
