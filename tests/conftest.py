"""Pytest fixtures for testing"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from zurcher_ledger.api.main import create_app
from zurcher_ledger.api.dependencies import get_storage_client
from zurcher_ledger.domain.exceptions import AttachmentStorageError
from zurcher_ledger.domain.models import AttachmentUpload, Frequency, PaymentMethod, StoredAttachment
from zurcher_ledger.infrastructure.database.models import BankAccount, Base, Obligation
from zurcher_ledger.infrastructure.database.repositories import BankAccountRepository, ObligationRepository
from zurcher_ledger.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


class FakeStorage:
    """In-memory stand-in for the receipt storage service"""

    def __init__(self, fail_upload: bool = False, fail_delete: bool = False):
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.files: dict[str, AttachmentUpload] = {}
        self.deleted: List[str] = []
        self._next_id = 1

    async def upload(self, upload: AttachmentUpload) -> StoredAttachment:
        if self.fail_upload:
            raise AttachmentStorageError("Storage upload failed: HTTP 503")
        storage_id = f"receipt-{self._next_id}"
        self._next_id += 1
        self.files[storage_id] = upload
        return StoredAttachment(url=f"https://files.example.com/{storage_id}", storage_id=storage_id)

    async def delete(self, storage_id: str) -> None:
        if self.fail_delete:
            raise AttachmentStorageError("Storage delete failed: HTTP 503")
        self.files.pop(storage_id, None)
        self.deleted.append(storage_id)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def other_session(db: Session) -> Generator[Session, None, None]:
    """Second session on the test database, for concurrent writers"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def client(db: Session, storage: FakeStorage) -> TestClient:
    """Create FastAPI test client with test database and fake storage"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_client] = lambda: storage
    return TestClient(app)


@pytest.fixture
def make_fixed_expense(db: Session):
    """Factory for committed fixed expenses"""

    def _make(
        total_amount: str = "1000",
        frequency: Frequency = Frequency.MONTHLY,
        name: str = "Office Rent",
        payment_method: Optional[PaymentMethod] = PaymentMethod.CHASE_BANK,
        vendor: Optional[str] = "Landlord LLC",
    ) -> Obligation:
        obligation = ObligationRepository(db).create_fixed_expense(
            name=name,
            total_amount=Decimal(total_amount),
            frequency=frequency,
            payment_method=payment_method,
            vendor=vendor,
            start_date=date(2025, 1, 1),
        )
        db.commit()
        return obligation

    return _make


@pytest.fixture
def rent(make_fixed_expense) -> Obligation:
    """$1000 monthly rent, nothing paid"""
    return make_fixed_expense()


@pytest.fixture
def chase(db: Session) -> BankAccount:
    """Chase Bank account holding $5000"""
    account = BankAccountRepository(db).open("Chase Bank", Decimal("5000"), date(2025, 1, 1))
    db.commit()
    return account
