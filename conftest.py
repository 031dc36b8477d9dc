import pytest
from argon2 import PasswordHasher
from fastapi.testclient import TestClient

from orders.db import build_engine, init_db
from orders.main import create_app
from orders.repo import OrderStore
from orders.settings import Settings

JWT_SECRET = "test-secret-with-at-least-32-bytes!!"
USERNAME = "admin"
PASSWORD = "s3cret-pass"

# cheap parameters keep hashing fast in tests
_hasher = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
PASSWORD_HASH = _hasher.hash(PASSWORD)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'orders.db'}",
        jwt_secret=JWT_SECRET,
        pool_size=5,
        pool_timeout=5.0,
        op_timeout=5.0,
        db_wait_seconds=1.0,
        auth_users={USERNAME: PASSWORD_HASH},
    )


@pytest.fixture
def engine(settings):
    eng = build_engine(settings.database_url, settings.pool_size, settings.pool_timeout)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    return OrderStore(engine, op_timeout=5.0)


@pytest.fixture
def app(settings, engine):
    return create_app(settings=settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    r = client.post("/login", json={"username": USERNAME, "password": PASSWORD})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['access_token']}"}
