# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from threading import Lock

import pytest

TEST_SIGNING_SEED_HEX = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TICKET_SIGNING_ALGORITHM"] = "ed25519"
os.environ["TICKET_SIGNING_PRIVATE_KEY"] = TEST_SIGNING_SEED_HEX
os.environ.pop("TICKET_VERIFY_PUBLIC_KEY", None)
os.environ.pop("CHAIN_GATEWAY_BASE_URL", None)

from fastapi import FastAPI
from fastapi.testclient import TestClient
from nacl.signing import SigningKey
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from passa_gate.core.settings import Settings
from passa_gate.db.session import Base
from passa_gate.db.session import get_db as app_get_session
from passa_gate.main import app as fastapi_app
from passa_gate.services.chain import (
    AgreementSubmission,
    CreateAgreementResult,
    ReleasePaymentsResult,
)
from passa_gate.services.credentials import TicketCredentialService
from passa_gate.services.directory import (
    AgreementTerms,
    InMemoryAgreementDirectory,
    Payee,
    agreement_id_for_event,
)
from passa_gate.services.keys import CredentialKeyRing, load_key_ring

TEST_DB_URL = "sqlite://"
EVENT_START = datetime(2026, 11, 1, 18, 0, tzinfo=UTC)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class RecordingChain:
    """Thread-safe stand-in for the chain gateway that counts calls."""

    def __init__(self, *, fail_times: int = 0) -> None:
        self.create_calls: list[AgreementSubmission] = []
        self.release_calls: list[tuple[str, str]] = []
        self._fail_times = fail_times
        self._lock = Lock()
        self.closed = False

    async def create_agreement(self, submission: AgreementSubmission) -> CreateAgreementResult:
        with self._lock:
            self.create_calls.append(submission)
            attempt = len(self.create_calls)
        if attempt <= self._fail_times:
            return CreateAgreementResult(success=False, message="tx_bad_seq")
        return CreateAgreementResult(
            success=True,
            contract_reference=f"CONTRACT-{submission.agreement_id}",
            transaction_reference=f"tx-create-{attempt}",
        )

    async def release_payments(
        self, agreement_id: str, contract_reference: str
    ) -> ReleasePaymentsResult:
        with self._lock:
            self.release_calls.append((agreement_id, contract_reference))
            attempt = len(self.release_calls)
        return ReleasePaymentsResult(success=True, transaction_reference=f"tx-release-{attempt}")

    async def close(self) -> None:
        self.closed = True


def _make_identity() -> dict[str, str]:
    signing_key = SigningKey.generate()
    return {
        "secret": bytes(signing_key).hex(),
        "identity": signing_key.verify_key.encode().hex(),
    }


def build_terms(
    event_id: int,
    organizer: dict[str, str],
    artist: dict[str, str],
    deadline: datetime = EVENT_START,
) -> AgreementTerms:
    return AgreementTerms(
        agreement_id=agreement_id_for_event(event_id),
        event_id=event_id,
        organizer_identity=organizer["identity"],
        artist_identity=artist["identity"],
        payer_address="GORGANIZERWALLET",
        budget=Decimal("150"),
        deadline=deadline,
        payees=(Payee(address="GARTISTWALLET", fixed_amount=Decimal("120.5")),),
    )


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def file_engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """SQLite file database where every session gets its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gate.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=NullPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 19, 12, 0, tzinfo=UTC))


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings()


@pytest.fixture()
def key_ring(test_settings: Settings) -> CredentialKeyRing:
    return load_key_ring(test_settings, require_signing=True)


@pytest.fixture()
def credential_service(key_ring: CredentialKeyRing, clock: FrozenClock) -> TicketCredentialService:
    return TicketCredentialService(key_ring, clock=clock)


@pytest.fixture()
def organizer() -> dict[str, str]:
    return _make_identity()


@pytest.fixture()
def artist() -> dict[str, str]:
    return _make_identity()


@pytest.fixture()
def directory(organizer: dict[str, str], artist: dict[str, str]) -> InMemoryAgreementDirectory:
    return InMemoryAgreementDirectory([build_terms(9, organizer, artist)])


@pytest.fixture()
def chain() -> RecordingChain:
    return RecordingChain()


@pytest.fixture()
def flaky_chain() -> RecordingChain:
    """Gateway that rejects the first create call."""
    return RecordingChain(fail_times=1)


@pytest.fixture()
def app(
    db_session: Session,
    directory: InMemoryAgreementDirectory,
    chain: RecordingChain,
) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    fastapi_app.state.agreement_directory = directory
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(app_get_session, None)
        fastapi_app.state.agreement_directory = None


@pytest.fixture()
def client(app: FastAPI, chain: RecordingChain) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        # Startup wires the real gateway client; swap in the recorder.
        app.state.chain_client = chain
        yield test_client


@pytest.fixture()
def session_factory(file_engine: Engine) -> Callable[[], Session]:
    return sessionmaker(bind=file_engine, autoflush=False)


@pytest.fixture()
def finished_agreement(
    directory: InMemoryAgreementDirectory,
    organizer: dict[str, str],
    artist: dict[str, str],
) -> str:
    """Register an agreement whose event ended yesterday and return its id."""
    terms = build_terms(10, organizer, artist, deadline=datetime.now(UTC) - timedelta(days=1))
    directory.register(terms)
    return terms.agreement_id
