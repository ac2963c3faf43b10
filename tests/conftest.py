"""
Shared fixtures: in-memory database, users and a published cota.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cotamarket.main import app
from cotamarket.core.database import Base, get_db
from cotamarket.core.security import create_access_token, get_password_hash
from cotamarket.auth.models import Company, User, UserRole
from cotamarket.cotas.models import Cota  # noqa: F401
from cotamarket.cotas.schemas import CotaCreateRequest
from cotamarket.cotas.service import publish_cota
from cotamarket.proposals.models import Proposal  # noqa: F401

# Setup In-Memory Database
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, name: str, cpf: str, role: UserRole = UserRole.USER) -> User:
    user = User(
        name=name,
        cpf=cpf,
        email=f"{cpf}@test.com",
        hashed_password=get_password_hash("password123"),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


def cota_payload(**overrides) -> dict:
    payload = {
        "administrator": "Caixa Consórcios",
        "credit_amount": 200000.0,
        "entry_amount": 30000.0,
        "outstanding_balance": 150000.0,
        "n_installments": 180,
        "installment_value": 1200.0,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def seller(db) -> User:
    return make_user(db, "Vendedor Teste", "11122233344")


@pytest.fixture
def buyer(db) -> User:
    return make_user(db, "Comprador Teste", "55566677788")


@pytest.fixture
def other_buyer(db) -> User:
    return make_user(db, "Outro Comprador", "99988877766")


@pytest.fixture
def staff(db) -> User:
    return make_user(db, "Analista", "12312312312", role=UserRole.ADMIN)


@pytest.fixture
def company(db, buyer) -> Company:
    company = Company(owner_id=buyer.id, legal_name="Compradora LTDA", cnpj="12345678000190")
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def make_cota(db, seller):
    def _make(owner: User = None, **overrides) -> Cota:
        return publish_cota(db, owner or seller, CotaCreateRequest(**cota_payload(**overrides)))
    return _make


@pytest.fixture
def cota(make_cota) -> Cota:
    return make_cota()
