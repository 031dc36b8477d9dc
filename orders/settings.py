"""Process-wide configuration loaded from environment variables.

Settings are read once at startup by :func:`load_settings`. Database
connection parameters follow the same ``DB_*`` variables used by the other
services, composed into a ``postgresql+psycopg`` URL unless ``DATABASE_URL``
is given explicitly. The JWT signing secret has no default: starting the
service without ``JWT_SECRET`` fails with :class:`~orders.errors.ConfigError`.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigError


@dataclass(frozen=True)
class Settings:
    """Immutable runtime configuration.

    Attributes:
        database_url: SQLAlchemy URL of the order database.
        jwt_secret: Secret used to sign and verify bearer tokens.
        jwt_algorithm: JWT signing algorithm.
        jwt_ttl_seconds: Lifetime of issued tokens.
        pool_size: Hard upper bound of checked-out connections.
        pool_timeout: Seconds a caller waits for a free connection.
        op_timeout: Per-operation deadline in seconds (0 disables it).
        db_wait_seconds: How long startup waits for the database.
        auth_users: Mapping username -> stored argon2 hash.
        api_max_bytes: Largest accepted request body.
        log_level: Level name for the ``orders`` logger.
        host: Bind address for the HTTP server.
        port: Bind port for the HTTP server.
        workers: Number of uvicorn worker processes.
    """

    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_ttl_seconds: int = 3600
    pool_size: int = 10
    pool_timeout: float = 30.0
    op_timeout: float = 5.0
    db_wait_seconds: float = 30.0
    auth_users: Mapping[str, str] = field(default_factory=dict)
    api_max_bytes: int = 1024 * 1024
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1


def _default_database_url(env: Mapping[str, str]) -> str:
    host = env.get("DB_HOST", "orders-db")
    port = env.get("DB_PORT", "5432")
    name = env.get("DB_NAME", "orders")
    user = env.get("DB_USER", "orders_user")
    password = env.get("DB_PASSWORD", "orders-pass")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def _auth_users(raw: str | None) -> dict[str, str]:
    if not raw:
        return {}
    try:
        users = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError("AUTH_USERS_JSON is not valid JSON") from e
    if not isinstance(users, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in users.items()
    ):
        raise ConfigError("AUTH_USERS_JSON must map usernames to password hashes")
    return users


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from the environment.

    Args:
        environ: Mapping to read from; defaults to ``os.environ``.

    Returns:
        Settings: The loaded configuration.

    Raises:
        ConfigError: When ``JWT_SECRET`` is absent, a numeric variable does
            not parse, or ``AUTH_USERS_JSON`` is malformed.
    """
    env = os.environ if environ is None else environ

    secret = env.get("JWT_SECRET", "").strip()
    if not secret:
        raise ConfigError("JWT_SECRET is required")

    return Settings(
        database_url=env.get("DATABASE_URL") or _default_database_url(env),
        jwt_secret=secret,
        jwt_algorithm=env.get("JWT_ALGORITHM", "HS256"),
        jwt_ttl_seconds=_number(env, "JWT_TTL_SECONDS", 3600, int),
        pool_size=_number(env, "DB_POOL_SIZE", 10, int),
        pool_timeout=_number(env, "DB_POOL_TIMEOUT", 30.0, float),
        op_timeout=_number(env, "ORDERS_OP_TIMEOUT", 5.0, float),
        db_wait_seconds=_number(env, "DB_WAIT_SECONDS", 30.0, float),
        auth_users=_auth_users(env.get("AUTH_USERS_JSON")),
        api_max_bytes=_number(env, "API_MAX_BYTES", 1024 * 1024, int),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        host=env.get("HOST", "0.0.0.0"),
        port=_number(env, "PORT", 8000, int),
        workers=_number(env, "UVICORN_WORKERS", 1, int),
    )
