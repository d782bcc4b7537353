# src/camrelay/api/v1/endpoints/auth.py
"""Authentication endpoints for the camrelay API."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request, Response, status

from camrelay.api.v1.dependencies import (
    CurrentSessionDep,
    GatewayDep,
    clear_session_cookie,
    get_client_origin,
    read_session_token,
    set_session_cookie,
)
from camrelay.schemas.auth import LoginRequest, LoginResponse, SessionResponse
from camrelay.services.gateway import (
    AccessGateway,
    AuthenticationError,
    LoginValidationError,
    RateLimitedError,
)
from camrelay.services.sessions import Session

router = APIRouter(prefix="/auth", tags=["authentication"])


async def authenticate_or_raise(
    gateway: AccessGateway,
    username: object,
    password: object,
    origin: str,
) -> Session:
    """Run a login attempt and translate gateway errors into HTTP errors."""
    try:
        return await gateway.login(username, password, origin)
    except LoginValidationError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid input",
        ) from err
    except RateLimitedError as err:
        headers = {"Retry-After": str(err.retry_after)} if err.retry_after else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts. Try again later.",
            headers=headers,
        ) from err
    except AuthenticationError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        ) from err


@router.post(
    "/login",
    summary="Log in with one of the fixed accounts",
    status_code=status.HTTP_200_OK,
    response_model=LoginResponse,
)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    gateway: GatewayDep,
) -> LoginResponse:
    """Authenticate and set the session cookie."""
    session = await authenticate_or_raise(
        gateway,
        payload.username,
        payload.password,
        get_client_origin(request),
    )
    set_session_cookie(response, session)
    return LoginResponse.model_validate(session)


@router.post(
    "/logout",
    summary="Destroy the current session",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def logout(request: Request, gateway: GatewayDep) -> Response:
    """Destroy the session (if any) and clear the cookie."""
    gateway.logout(read_session_token(request))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response


@router.get(
    "/session",
    summary="Describe the current session",
    response_model=SessionResponse,
)
async def current_session(session: CurrentSessionDep) -> SessionResponse:
    return SessionResponse.model_validate(session)
