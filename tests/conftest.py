import pytest

from otpvault.importer import Importer
from otpvault.storage.accounts import AccountRepository
from otpvault.storage.secret_store import SecretStore, derive_key


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep the default data directory inside the test's tmp_path."""
    home = tmp_path / "home"
    monkeypatch.setenv("OTPVAULT_HOME", str(home))
    return home


@pytest.fixture
def key():
    """Fixed key so tests never depend on this machine's hardware id."""
    return derive_key("test-machine")


@pytest.fixture
def secrets_path(tmp_path):
    return str(tmp_path / "secrets")


@pytest.fixture
def store(secrets_path, key):
    return SecretStore(secrets_path, key=key)


@pytest.fixture
def accounts_path(tmp_path):
    return str(tmp_path / "accounts.json")


@pytest.fixture
def repository(accounts_path, store):
    return AccountRepository(accounts_path, store)


@pytest.fixture
def importer(repository, store):
    return Importer(repository, store)
