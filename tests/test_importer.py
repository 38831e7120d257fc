import os

import pytest

from otpvault.core.errors import NotFound
from otpvault.core.models import OTPType
from otpvault.importer import ImportReport

from payloads import TYPE_HOTP, migration_payload, migration_uri, otp_parameters

# base32 of b"12345678901234567890"
RFC_SECRET_B32 = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
TOTP_URI = f"otpauth://totp/ACME:alice?secret={RFC_SECRET_B32}&digits=8"
HOTP_URI = f"otpauth://hotp/ACME:counter?secret={RFC_SECRET_B32}&counter=3"


def test_import_single_uri(importer, repository, store):
    (account,) = importer.import_uri(TOTP_URI)
    assert repository.get(account.id) is account
    assert store.load(account.id) == b"12345678901234567890"
    assert importer.code_for(account.id, timestamp=59) == "94287082"


def test_import_migration_uri(importer, repository, store):
    payload = migration_payload(
        otp_parameters(secret=b"one", name="a"),
        otp_parameters(secret=b"two", name="b", otp_type=TYPE_HOTP, counter=4),
    )
    first, second = importer.import_uri(migration_uri(payload))
    assert [a.name for a in repository.list()] == ["a", "b"]
    assert (first.order, second.order) == (0, 1)
    assert second.type is OTPType.HOTP
    assert store.load(second.id) == b"two"


def test_unrecognised_uri(importer, repository):
    report = ImportReport()
    assert importer.import_uri("otpauth://totp/x?issuer=nosecret", report) == []
    assert report.failed_lines == 1
    assert not report
    assert len(repository) == 0


def test_import_text_skips_blank_and_garbage(importer):
    text = f"\n  {TOTP_URI}  \n\nnot a uri\n{HOTP_URI}\n"
    report = importer.import_text(text)
    assert [a.name for a in report.accounts] == ["alice", "counter"]
    assert (report.imported, report.duplicates, report.failed_lines) == (2, 0, 1)
    assert report


def test_unparsable_line_does_not_stop_the_batch(importer):
    report = importer.import_text(f"otpauth://[bad\n{TOTP_URI}\notpauth-migration://[offline?data=AAAA")
    assert [a.name for a in report.accounts] == ["alice"]
    assert report.failed_lines == 2


def test_duplicates_are_counted_and_leave_no_orphan(importer, store, secrets_path):
    importer.import_uri(TOTP_URI)
    report = importer.import_text(f"{TOTP_URI}\n{TOTP_URI}")
    assert (report.imported, report.duplicates) == (0, 2)
    assert not report
    assert len(os.listdir(secrets_path)) == 1


def test_reimport_restores_lost_secret(importer, repository, store):
    (lost,) = importer.import_uri(TOTP_URI)
    store.delete(lost.id)
    assert importer.code_for(lost.id) is None

    (restored,) = importer.import_uri(TOTP_URI)
    assert restored.id != lost.id
    assert [a.id for a in repository.list()] == [restored.id]
    assert importer.code_for(restored.id, timestamp=59) == "94287082"


def test_import_file(importer, tmp_path):
    path = tmp_path / "export.txt"
    path.write_text(f"{TOTP_URI}\n{HOTP_URI}\n", encoding="utf-8")
    assert importer.import_file(str(path)).imported == 2


def test_import_missing_file(importer, tmp_path):
    with pytest.raises(OSError):
        importer.import_file(str(tmp_path / "missing.txt"))


def test_code_for_unknown_account(importer):
    with pytest.raises(NotFound):
        importer.code_for("nope")


def test_advance_counter(importer, repository):
    (account,) = importer.import_uri(HOTP_URI)
    # RFC 4226 vectors for counters 3 and 4
    assert importer.code_for(account.id) == "969429"
    importer.advance_counter(account.id)
    assert repository.get(account.id).counter == 4
    assert importer.code_for(account.id) == "338314"


def test_advance_counter_rejects_totp(importer):
    (account,) = importer.import_uri(TOTP_URI)
    with pytest.raises(ValueError):
        importer.advance_counter(account.id)
    with pytest.raises(NotFound):
        importer.advance_counter("nope")


def test_failed_secret_save_skips_account(importer, repository, monkeypatch):
    monkeypatch.setattr(importer.secret_store, "save", lambda secret, account_id: False)
    report = importer.import_text(TOTP_URI)
    assert report.imported == 0
    assert len(repository) == 0
