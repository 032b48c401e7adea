import os

os.environ.setdefault("APP_DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_STARTUP_MAX_ATTEMPTS", "1")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.core.database import get_db, get_sql_backend
from app.main import app
from app.modules.billing_tags.dialects import SqlBackend
from app.modules.billing_tags.models import Token, UsageLog, User

_ = (Token, UsageLog, User)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sql_backend] = lambda: SqlBackend.SQLITE
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
