"""Tests for environment-driven settings."""

import json

import pytest

from orders.errors import ConfigError
from orders.main import create_app
from orders.settings import load_settings


def test_missing_jwt_secret_fails():
    """Settings cannot be loaded without JWT_SECRET."""
    with pytest.raises(ConfigError) as e:
        load_settings({})
    assert "JWT_SECRET" in str(e.value)


def test_create_app_without_secret_fails(monkeypatch):
    """The app factory refuses to start without a signing secret."""
    monkeypatch.delenv("JWT_SECRET", raising=False)
    with pytest.raises(ConfigError):
        create_app()


def test_defaults_compose_postgres_url():
    """Without DATABASE_URL the DB_* defaults build a PostgreSQL URL."""
    s = load_settings({"JWT_SECRET": "x" * 32, "DB_HOST": "db", "DB_NAME": "shop"})
    assert s.database_url == "postgresql+psycopg://orders_user:orders-pass@db:5432/shop"
    assert s.pool_size == 10
    assert s.op_timeout == 5.0
    assert s.auth_users == {}


def test_explicit_values():
    """Explicit environment values override every default."""
    env = {
        "JWT_SECRET": "x" * 32,
        "DATABASE_URL": "sqlite:///orders.db",
        "DB_POOL_SIZE": "3",
        "ORDERS_OP_TIMEOUT": "1.5",
        "AUTH_USERS_JSON": json.dumps({"admin": "$argon2id$v=19$m=8,t=1,p=1$abc$def"}),
        "LOG_LEVEL": "debug",
    }
    s = load_settings(env)
    assert s.database_url == "sqlite:///orders.db"
    assert s.pool_size == 3
    assert s.op_timeout == 1.5
    assert s.auth_users == {"admin": "$argon2id$v=19$m=8,t=1,p=1$abc$def"}
    assert s.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"DB_POOL_SIZE": "ten"},
        {"AUTH_USERS_JSON": "{not json"},
        {"AUTH_USERS_JSON": json.dumps(["admin"])},
        {"AUTH_USERS_JSON": json.dumps({"admin": 1})},
    ],
)
def test_malformed_values_fail(env):
    """Unparseable numbers or user maps are a ConfigError."""
    with pytest.raises(ConfigError):
        load_settings({"JWT_SECRET": "x" * 32, **env})
