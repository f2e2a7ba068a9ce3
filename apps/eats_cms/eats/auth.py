"""Admin session tokens.

There is one admin identity, configured through the environment. A successful
login yields an HS256 JWT that the HTTP layer stores in a cookie; every
protected request hands it back to :meth:`SessionManager.verify`. There is no
server-side revocation: a token is valid until it expires.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
import unicodedata
from dataclasses import dataclass
from typing import Any, Callable, Optional

import jwt

from .config import MIN_SECRET_LENGTH, Settings
from .errors import InvalidCredentialsError, MisconfiguredError, RateLimitedError
from .throttle import InMemoryLoginThrottle, LoginThrottle

logger = logging.getLogger(__name__)

SESSION_COOKIE = "admin_session"
SESSION_TTL_SECONDS = 60 * 60 * 24 * 30
CLOCK_SKEW_SECONDS = 60

JWT_ALG = "HS256"
SUBJECT = "admin"


@dataclass(frozen=True)
class IssuedSession:
    token: str
    ttl_seconds: int


@dataclass(frozen=True)
class AdminIdentity:
    username: str
    issued_at: int
    expires_at: int


def _digest(value: str) -> bytes:
    return hashlib.sha256(unicodedata.normalize("NFKC", value).encode("utf-8")).digest()


def credentials_match(supplied: str, expected: str) -> bool:
    """Constant-time comparison; unicode variants of the same text compare equal."""
    return hmac.compare_digest(_digest(supplied), _digest(expected))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class SessionManager:
    def __init__(
        self,
        settings: Settings,
        throttle: Optional[LoginThrottle] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        secret = settings.admin_jwt_secret
        if not secret or len(secret.strip()) < MIN_SECRET_LENGTH:
            raise MisconfiguredError(
                f"Missing ADMIN_JWT_SECRET environment variable (minimum {MIN_SECRET_LENGTH} chars)."
            )
        self._secret = secret
        self._username = settings.admin_username
        self._password = settings.admin_password
        self._clock = clock
        self.throttle = throttle if throttle is not None else InMemoryLoginThrottle()

    def issue(self, username: str, password: str, client_address: str) -> IssuedSession:
        if not self._username or not self._password:
            raise MisconfiguredError("Admin auth is not configured correctly.")

        # A blocked caller never reaches the comparison, so retries cannot extend or reset the block.
        if not self.throttle.check(client_address):
            logger.info("Rejected login from %s: rate limited", client_address)
            raise RateLimitedError("Too many login attempts. Please wait and try again.")

        # Evaluate both so timing does not reveal which one was wrong.
        username_ok = credentials_match(username, self._username)
        password_ok = credentials_match(password, self._password)
        if not (username_ok and password_ok):
            self.throttle.record_failure(client_address)
            logger.info("Failed admin login from %s", client_address)
            raise InvalidCredentialsError("Invalid username or password.")

        self.throttle.clear(client_address)
        logger.info("Admin login from %s", client_address)
        return IssuedSession(token=self._mint(username), ttl_seconds=SESSION_TTL_SECONDS)

    def _mint(self, username: str) -> str:
        now = int(self._clock())
        payload = {
            "sub": SUBJECT,
            "username": username,
            "iat": now,
            "exp": now + SESSION_TTL_SECONDS,
        }
        return jwt.encode(payload, self._secret, algorithm=JWT_ALG, headers={"typ": "JWT"})

    def verify(self, token: Optional[str]) -> Optional[AdminIdentity]:
        """Return the identity carried by ``token``, or None for any invalid token."""
        if not token or not isinstance(token, str) or token.count(".") != 2:
            return None
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != JWT_ALG or header.get("typ") != "JWT":
                return None
            # Time claims are checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALG],
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except jwt.InvalidTokenError:
            return None

        if payload.get("sub") != SUBJECT or not isinstance(payload.get("username"), str):
            return None
        iat, exp = payload.get("iat"), payload.get("exp")
        if not _is_number(iat) or not _is_number(exp):
            return None

        now = int(self._clock())
        if exp <= now or iat > now + CLOCK_SKEW_SECONDS:
            return None

        return AdminIdentity(username=payload["username"], issued_at=int(iat), expires_at=int(exp))
