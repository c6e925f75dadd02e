"""
Shared fixtures: in-memory database, seeded admin and an authenticated client
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.database import Base, get_db
from app.core.dependencies import get_reference_generator, get_today
from app.core.security import create_access_token, hash_password
from app.models.user import AdminUser
from app.services.invoice_service import InvoiceService
from app.services.numbering import SequenceReferenceGenerator
from app.services.quotation_service import QuotationService
from main import app

TODAY = date(2025, 3, 10)
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def references():
    return SequenceReferenceGenerator()


@pytest.fixture
def quotation_service(db_session, references):
    return QuotationService(db_session, references, lambda: TODAY)


@pytest.fixture
def invoice_service(db_session, references):
    return InvoiceService(db_session, references, lambda: TODAY)


@pytest.fixture
def admin_user(db_session):
    user = AdminUser(
        username="admin",
        email="admin@example.com",
        name="Administrator",
        password_hash=hash_password(ADMIN_PASSWORD),
        role="admin",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def test_client(db_session, references):
    """Test client bound to the in-memory session, a counter and a fixed clock"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reference_generator] = lambda: references
    app.dependency_overrides[get_today] = lambda: (lambda: TODAY)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(admin_user):
    token = create_access_token(data={"sub": str(admin_user.id), "role": admin_user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def quotation_payload():
    """Cart submission: 2 x 250.00 plus 16% VAT"""
    return {
        "customer": {
            "name": "Jane Doe",
            "email": "jane@example.com",
            "phone": "+254700000000",
            "company": "Doe Interiors",
            "projectName": "Office fit-out",
        },
        "items": [
            {"id": "12", "name": "Resin table", "quantity": 2, "price": 250.00, "total": 500.00},
        ],
        "subtotal": 500.00,
        "vat": 80.00,
        "total": 580.00,
    }


@pytest.fixture
def invoice_payload():
    """Draft invoice: subtotal 500.00 at 16% tax"""
    return {
        "customer_name": "Acme Ltd",
        "customer_email": "billing@acme.example",
        "subtotal": 500.00,
        "tax_rate": 16,
        "items": [
            {"item_name": "Consulting", "quantity": 5, "unit_price": 100.00},
        ],
    }
