"""Shared API dependencies for sessions, caller origin and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from starlette.requests import HTTPConnection

from camrelay.core.security import decode_session_cookie, encode_session_cookie
from camrelay.core.settings import settings
from camrelay.services.gateway import (
    AccessGateway,
    AuthenticationError,
    AuthorizationError,
    get_gateway,
)
from camrelay.services.relay import BroadcastRelay, get_relay
from camrelay.services.sessions import Session


def get_gateway_dep() -> AccessGateway:
    return get_gateway()


def get_relay_dep() -> BroadcastRelay:
    return get_relay()


GatewayDep = Annotated[AccessGateway, Depends(get_gateway_dep)]
RelayDep = Annotated[BroadcastRelay, Depends(get_relay_dep)]


def get_client_origin(conn: HTTPConnection) -> str:
    """Return the caller's network origin.

    The first `X-Forwarded-For` hop wins when proxies are trusted; otherwise
    the socket peer address is used.
    """
    if settings.trust_forwarded_for:
        forwarded = conn.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if conn.client is not None and conn.client.host:
        return conn.client.host
    return "unknown"


def read_session_token(conn: HTTPConnection) -> str | None:
    """Return the session identifier carried by the caller's cookie, if valid."""
    cookie = conn.cookies.get(settings.session_cookie_name)
    if not cookie:
        return None
    return decode_session_cookie(cookie)


def lookup_session(conn: HTTPConnection, gateway: AccessGateway) -> Session | None:
    """Return the caller's live session, or None."""
    try:
        return gateway.authenticate(read_session_token(conn))
    except AuthenticationError:
        return None


def get_current_session(request: Request, gateway: GatewayDep) -> Session:
    """Require a valid, unexpired session.

    Raises:
        HTTPException: 401 if the caller is not logged in.
    """
    session = lookup_session(request, gateway)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return session


CurrentSessionDep = Annotated[Session, Depends(get_current_session)]


def get_admin_session(session: CurrentSessionDep, gateway: GatewayDep) -> Session:
    """Require a session with the admin role.

    Raises:
        HTTPException: 403 for authenticated non-admin callers.
    """
    try:
        return gateway.require_admin(session)
    except AuthorizationError as err:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(err),
        ) from err


AdminSessionDep = Annotated[Session, Depends(get_admin_session)]


def set_session_cookie(response: Response, session: Session) -> None:
    """Attach the signed session cookie to `response`."""
    response.set_cookie(
        key=settings.session_cookie_name,
        value=encode_session_cookie(session.token, session.username, session.expires_at),
        max_age=int((session.expires_at - session.created_at).total_seconds()),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="strict",
    )
