"""Bearer-token authentication for mutating order routes.

Passwords are verified against argon2 hashes obtained from a pluggable
:class:`CredentialStore`; successful logins receive a signed JWT. The
:func:`require_bearer` dependency guards routes and rejects requests with
a missing, malformed, expired or badly signed token before the handler
runs.
"""

import logging
import time
from typing import Mapping, Optional, Protocol

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .errors import AuthError

logger = logging.getLogger("orders.auth")


class CredentialStore(Protocol):
    """Port for looking up stored password hashes.

    Implementers return the stored argon2 hash for ``username``, or ``None``
    when the user is unknown.
    """

    def lookup(self, username: str) -> Optional[str]:
        raise NotImplementedError()


class StaticCredentialStore(CredentialStore):
    """Credential store backed by a fixed mapping (from configuration)."""

    def __init__(self, users: Mapping[str, str]):
        self._users = dict(users)

    def lookup(self, username: str) -> Optional[str]:
        return self._users.get(username)


class TokenSigner:
    """Issue and verify signed JWTs.

    Args:
        secret: Signing secret.
        ttl_seconds: Token lifetime.
        algorithm: JWT algorithm name.
        clock: Wall clock returning epoch seconds, injectable for tests.
    """

    def __init__(self, secret: str, ttl_seconds: int = 3600, algorithm: str = "HS256", clock=time.time):
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm
        self._clock = clock

    def issue(self, subject: str) -> str:
        now = int(self._clock())
        claims = {"sub": subject, "iat": now, "exp": now + self.ttl_seconds}
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Return the token's subject.

        Raises:
            AuthError: When the signature, expiry or claims are invalid.
        """
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.InvalidTokenError as e:
            raise AuthError() from e
        return claims["sub"]


class Authenticator:
    """Check credentials and hand out tokens.

    Args:
        credentials: Source of stored password hashes.
        signer: Token signer used for issuing and verifying.
        hasher: argon2 hasher; the default parameters are only used when
            hashing, verification reads them from the stored hash.
    """

    def __init__(self, credentials: CredentialStore, signer: TokenSigner, hasher: PasswordHasher | None = None):
        self.credentials = credentials
        self.signer = signer
        self.hasher = hasher or PasswordHasher()

    def login(self, username: str, password: str) -> str:
        """Verify ``username``/``password`` and return a signed token.

        Raises:
            AuthError: ``INVALID_CREDENTIALS`` for unknown users, wrong
                passwords and unreadable stored hashes alike.
        """
        stored = self.credentials.lookup(username)
        if stored is None:
            logger.info("login rejected", extra={"username": username, "reason": "unknown_user"})
            raise AuthError("INVALID_CREDENTIALS")
        try:
            self.hasher.verify(stored, password)
        except (VerificationError, InvalidHashError) as e:
            logger.info("login rejected", extra={"username": username, "reason": "bad_password"})
            raise AuthError("INVALID_CREDENTIALS") from e
        return self.signer.issue(username)

    def verify(self, token: str) -> str:
        return self.signer.verify(token)


bearer_scheme = HTTPBearer(auto_error=False)


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def require_bearer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    authenticator: Authenticator = Depends(get_authenticator),
) -> str:
    """FastAPI dependency that returns the authenticated subject.

    Raises:
        AuthError: When no bearer token is sent or it does not verify.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError()
    return authenticator.verify(credentials.credentials)
