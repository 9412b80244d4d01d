import os

os.environ["DATABASE_URL"] = "sqlite:///./kiosco-unused.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SEED_TOKEN"] = "seed-test-token"
os.environ["EXPOSE_ERROR_DETAILS"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from kiosco.core.security import create_access_token
from kiosco.db.schema import init_schema
from kiosco.db.session import build_engine, get_db
from kiosco.main import app
from kiosco.schemas.auth import Role
from kiosco.schemas.catalog import ProductInput
from kiosco.services import catalog, users

PASSWORD = "secret123"
SEED_TOKEN = "seed-test-token"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'kiosco.db'}")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, username, role=Role.SELLER, full_name=None):
    return users.create_user(db, username, PASSWORD, full_name or username.title(), role)


def headers_for(user):
    token = create_access_token(subject=user["id"], role=user["role"])
    return {"Authorization": f"Bearer {token}"}


def make_product(db, name="Chocolate Barra", price=1500, stock=5, barcode=None):
    return catalog.create_product(db, ProductInput(name=name, price=price, stock=stock, barcode=barcode))


@pytest.fixture
def admin(db):
    return make_user(db, "admin", Role.ADMIN, "Luz")


@pytest.fixture
def seller(db):
    return make_user(db, "caja1", Role.SELLER, "Caja Uno")


@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture
def seller_headers(seller):
    return headers_for(seller)
