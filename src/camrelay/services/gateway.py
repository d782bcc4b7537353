"""Login gateway: input checks, throttling, credential match and sessions.

The order of checks matters. A blocked origin is turned away before any
credential comparison happens, so a correct password does not unlock it
early and a blocked attempt adds nothing to the limiter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from camrelay.core.security import secrets_match
from camrelay.core.settings import settings
from camrelay.services.audit import (
    REASON_INVALID_CREDENTIALS,
    REASON_RATE_LIMITED,
    AuditLogger,
    LoginAttempt,
)
from camrelay.services.rate_limit import LoginRateLimiter
from camrelay.services.sessions import ROLE_ADMIN, ROLE_USER, Session, SessionStore

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 64
MAX_PASSWORD_LENGTH = 128


class GatewayError(RuntimeError):
    """Base class for errors surfaced to login and access callers."""


class LoginValidationError(GatewayError):
    """Malformed login input; rejected before any state changes."""


class RateLimitedError(GatewayError):
    """Too many recent failures from the caller's origin."""

    def __init__(self, origin: str, retry_after: int = 0) -> None:
        super().__init__(f"Too many failed attempts from {origin}")
        self.origin = origin
        self.retry_after = retry_after


class AuthenticationError(GatewayError):
    """Credentials did not match, or no valid session was presented."""


class AuthorizationError(GatewayError):
    """The session is valid but lacks the required role."""


@dataclass(frozen=True)
class Credential:
    """A fixed account."""

    username: str
    password: str
    role: str


def load_credentials() -> tuple[Credential, ...]:
    """Build the account table from global settings."""
    return (
        Credential(settings.admin_username, settings.admin_password, ROLE_ADMIN),
        Credential(settings.user_username, settings.user_password, ROLE_USER),
    )


def validate_login_input(username: object, password: object) -> tuple[str, str]:
    """Return the login fields if they are acceptable.

    Raises:
        LoginValidationError: A field is missing, not a string, empty, too long
            or not encodable as UTF-8 (e.g. a lone surrogate from JSON "\\ud800").
    """
    if not isinstance(username, str) or not isinstance(password, str):
        raise LoginValidationError("Username and password must be strings")
    if not username or not password:
        raise LoginValidationError("Username and password are required")
    if len(username) > MAX_USERNAME_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        raise LoginValidationError("Username or password too long")
    try:
        username.encode("utf-8")
        password.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise LoginValidationError("Username and password must be valid UTF-8") from exc
    return username, password


class AccessGateway:
    """Authenticates callers and guards protected resources."""

    def __init__(
        self,
        credentials: tuple[Credential, ...] | None = None,
        limiter: LoginRateLimiter | None = None,
        sessions: SessionStore | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        self.credentials = credentials if credentials is not None else load_credentials()
        self.limiter = limiter or LoginRateLimiter()
        self.sessions = sessions or SessionStore()
        self.audit = audit or AuditLogger()

    def _match(self, username: str, password: str) -> Credential | None:
        for credential in self.credentials:
            if secrets_match(credential.username, username) and secrets_match(
                credential.password, password
            ):
                return credential
        return None

    async def login(self, username: object, password: object, origin: str) -> Session:
        """Run one login attempt to completion.

        Args:
            username: Submitted identity.
            password: Submitted secret.
            origin: Caller network origin, used as the throttling key.

        Returns:
            The newly issued session.

        Raises:
            LoginValidationError: Input rejected; nothing recorded.
            RateLimitedError: Origin is blocked; audited, not counted.
            AuthenticationError: No account matched; audited and counted.
        """
        username, password = validate_login_input(username, password)

        if self.limiter.is_blocked(origin):
            logger.warning("Login from %s refused: rate limited", origin)
            self.audit.submit(
                LoginAttempt(
                    origin=origin,
                    success=False,
                    reason=REASON_RATE_LIMITED,
                    username=username,
                    password=password,
                )
            )
            raise RateLimitedError(origin, self.limiter.retry_after(origin))

        credential = self._match(username, password)
        if credential is None:
            self.audit.submit(
                LoginAttempt(
                    origin=origin,
                    success=False,
                    reason=REASON_INVALID_CREDENTIALS,
                    username=username,
                    password=password,
                )
            )
            self.limiter.record(origin, success=False)
            logger.info("Login from %s failed", origin)
            raise AuthenticationError("Invalid credentials")

        session = self.sessions.create(credential.username, credential.role)
        self.limiter.record(origin, success=True)
        self.audit.submit(LoginAttempt(origin=origin, success=True))
        logger.info("Login from %s succeeded as %s", origin, credential.username)
        return session

    def logout(self, token: str | None) -> bool:
        """Destroy the session behind `token`, if any."""
        if not token:
            return False
        return self.sessions.destroy(token)

    def authenticate(self, token: str | None) -> Session:
        """Return the live session for `token`.

        Raises:
            AuthenticationError: No token, unknown token, or expired session.
        """
        session = self.sessions.get(token) if token else None
        if session is None:
            raise AuthenticationError("Not authenticated")
        return session

    def require_admin(self, session: Session) -> Session:
        if not session.is_admin:
            raise AuthorizationError("Administrator role required")
        return session


class _GatewaySingleton:
    """Process-wide gateway shared by the HTTP and relay routes."""

    _instance: AccessGateway | None = None

    @classmethod
    def get_instance(cls) -> AccessGateway:
        if cls._instance is None:
            cls._instance = AccessGateway()
        return cls._instance


def get_gateway() -> AccessGateway:
    """Return the singleton access gateway."""
    return _GatewaySingleton.get_instance()
