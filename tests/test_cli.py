import io

import pytest

from otpvault import __version__
from otpvault.cli import main
from otpvault.storage import secret_store as secret_store_module
from otpvault.storage.accounts import AccountRepository
from otpvault.storage.secret_store import SecretStore, derive_key

RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
TOTP_URI = f"otpauth://totp/ACME:alice?secret={RFC_SECRET_B32}"
HOTP_URI = f"otpauth://hotp/Bank:bob?secret={RFC_SECRET_B32}&counter=3"


@pytest.fixture(autouse=True)
def fixed_machine_key(monkeypatch):
    monkeypatch.setattr(secret_store_module, "machine_key", lambda: derive_key("cli-test"))


@pytest.fixture
def home(tmp_path):
    return str(tmp_path / "vault")


def run(home, *argv):
    return main(["--home", home, *argv])


def stored(home):
    return AccountRepository(f"{home}/accounts.json", SecretStore(f"{home}/secrets"))


def test_import_and_list(home, capsys):
    assert run(home, "import", TOTP_URI, HOTP_URI) == 0
    out = capsys.readouterr().out
    assert out.count("[+] ") == 2
    assert "ACME:alice  [totp, SHA1, 6d, period=30s]" in out
    assert "Bank:bob  [hotp, SHA1, 6d, counter=3]" in out

    assert run(home, "list") == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split("  ", 1)[1] for line in lines] == [
        "ACME:alice  [totp, SHA1, 6d, period=30s]",
        "Bank:bob  [hotp, SHA1, 6d, counter=3]",
    ]


def test_import_reports_duplicates(home, capsys):
    run(home, "import", TOTP_URI)
    capsys.readouterr()
    assert run(home, "import", TOTP_URI) == 0
    assert "[-] 1 duplicate(s) skipped" in capsys.readouterr().out


def test_import_nothing_valid(home, capsys):
    assert run(home, "import", "hello", "otpauth://totp/x") == 1
    assert "No valid otpauth data found" in capsys.readouterr().out


def test_import_from_file_and_stdin(home, tmp_path, monkeypatch, capsys):
    export = tmp_path / "export.txt"
    export.write_text(TOTP_URI + "\n", encoding="utf-8")
    assert run(home, "import", "--file", str(export)) == 0

    monkeypatch.setattr("sys.stdin", io.StringIO(HOTP_URI + "\n"))
    assert run(home, "import") == 0
    assert len(stored(home)) == 2


def test_dry_run_stores_nothing(home, capsys):
    assert run(home, "import", "--dry-run", TOTP_URI) == 0
    out = capsys.readouterr().out
    assert "ACME:alice" in out
    assert "dry run" in out
    assert len(stored(home)) == 0


def test_list_empty_and_search(home, capsys):
    assert run(home, "list") == 0
    assert capsys.readouterr().out.strip() == "No accounts."

    run(home, "import", TOTP_URI, HOTP_URI)
    capsys.readouterr()
    run(home, "list", "--search", "bank")
    out = capsys.readouterr().out
    assert "Bank:bob" in out
    assert "alice" not in out


def test_list_marks_lost_secret(home, capsys):
    run(home, "import", TOTP_URI)
    (account,) = stored(home).list()
    SecretStore(f"{home}/secrets").delete(account.id)
    capsys.readouterr()
    run(home, "list")
    assert "(needs re-import)" in capsys.readouterr().out


def test_list_marks_undecryptable_secret(home, capsys):
    run(home, "import", TOTP_URI)
    (account,) = stored(home).list()
    with open(f"{home}/secrets/{account.id}", "wb") as f:
        # present but not a whole number of AES blocks
        f.write(b"\x00" * 20)
    capsys.readouterr()
    run(home, "list")
    assert "(needs re-import)" in capsys.readouterr().out


def test_import_unparsable_uri(home, capsys):
    assert run(home, "import", "otpauth://[x") == 1
    assert "No valid otpauth data found" in capsys.readouterr().out


def test_code_hotp_and_next(home, capsys):
    run(home, "import", HOTP_URI)
    (account,) = stored(home).list()
    capsys.readouterr()

    assert run(home, "code", account.id[:6], "--next") == 0
    assert capsys.readouterr().out.strip() == "Bank:bob HOTP(counter=3): 969429"
    assert run(home, "code", account.id) == 0
    assert capsys.readouterr().out.strip() == "Bank:bob HOTP(counter=4): 338314"


def test_code_totp(home, capsys):
    run(home, "import", TOTP_URI)
    (account,) = stored(home).list()
    capsys.readouterr()
    assert run(home, "code", account.id) == 0
    out = capsys.readouterr().out
    assert out.startswith("ACME:alice: ")
    assert "valid ~" in out


def test_code_without_secret(home, capsys):
    run(home, "import", TOTP_URI)
    (account,) = stored(home).list()
    SecretStore(f"{home}/secrets").delete(account.id)
    capsys.readouterr()
    assert run(home, "code", account.id) == 1
    assert "re-import" in capsys.readouterr().out


def test_unknown_id(home, capsys):
    assert run(home, "code", "zzzz") == 1
    assert capsys.readouterr().out.startswith("[!] no account matches")
    assert run(home, "delete", "zzzz") == 1


def test_delete(home, capsys):
    run(home, "import", TOTP_URI)
    (account,) = stored(home).list()
    capsys.readouterr()
    assert run(home, "delete", account.id) == 0
    assert capsys.readouterr().out.strip() == "[-] Deleted ACME:alice"
    assert len(stored(home)) == 0
    assert not SecretStore(f"{home}/secrets").exists(account.id)


def test_no_command_prints_help(capsys):
    assert main([]) == 2
    assert "usage:" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(["--version"])
    assert __version__ in capsys.readouterr().out
