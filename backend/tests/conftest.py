"""Shared fixtures: throwaway SQLite databases, a fake oracle, and an API client."""

import os
import sys
import tempfile
import threading

# Configure before any shutter_otc module reads settings
_TMP_DIR = tempfile.mkdtemp(prefix="shutter_otc_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/app.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STATIC_DIR"] = os.path.join(_TMP_DIR, "no_static")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from sqlalchemy.orm import sessionmaker

from shutter_otc.database import Base, build_engine
from shutter_otc.errors import DecryptionFailure, EncryptionFailure
import shutter_otc.models  # noqa: F401


class FakeOracle:
    """In-memory stand-in for the time-lock oracle.

    Ciphertexts look like ``sealed:<unlock>:<plaintext>``. Calls are counted
    per ciphertext so tests can assert how often each bid was decrypted.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.encrypt_calls = 0
        self.decrypt_calls: dict[str, int] = {}
        self.fail_encrypt = False
        self.fail_decrypt_for: set[str] = set()
        self.plaintext_override: dict[str, str] = {}
        self.decrypt_delay = None  # threading.Event to wait on
        self.hold_decrypt_for: set[str] = set()
        self.release_held = threading.Event()
        self.raise_on_decrypt: dict[str, Exception] = {}

    def encrypt(self, plaintext: str, unlock_time: int) -> str:
        with self._lock:
            self.encrypt_calls += 1
        if self.fail_encrypt:
            raise EncryptionFailure("oracle unavailable")
        return f"sealed:{unlock_time}:{plaintext}"

    def decrypt(self, ciphertext: str, unlock_time: int) -> str:
        with self._lock:
            self.decrypt_calls[ciphertext] = self.decrypt_calls.get(ciphertext, 0) + 1
        if self.decrypt_delay is not None:
            self.decrypt_delay.wait(timeout=2.0)
        if ciphertext in self.hold_decrypt_for:
            self.release_held.wait(timeout=5.0)
        if ciphertext in self.raise_on_decrypt:
            raise self.raise_on_decrypt[ciphertext]
        if ciphertext in self.fail_decrypt_for:
            raise DecryptionFailure("oracle unavailable")
        _, sealed_until, plaintext = ciphertext.split(":", 2)
        assert int(sealed_until) == unlock_time
        return self.plaintext_override.get(ciphertext, plaintext)

    @property
    def total_decrypts(self) -> int:
        return sum(self.decrypt_calls.values())


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path}/otc.db")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def client(session_factory, oracle):
    from fastapi.testclient import TestClient

    from shutter_otc.database import get_db
    from shutter_otc.main import app
    from shutter_otc.services.timelock import get_oracle

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
