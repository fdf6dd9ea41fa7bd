import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_bambora.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from bambora_service.bambora_client import BamboraClient
from bambora_service.database import Base
from bambora_service.models import Customer

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_bambora_unit.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def gateway(mocker):
    # Stands in for the Bambora API; every call is recorded.
    return mocker.Mock(spec=BamboraClient)


@pytest.fixture
def customer(db):
    c = Customer(id="cust-1", email="shopper@example.com")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def profiled_customer(db):
    c = Customer(id="cust-2", email="repeat@example.com", remote_customer_id="C0FFEE01")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def clock():
    return lambda: NOW
