"""Browser-facing pages: login form, service index, viewer and admin area."""

from __future__ import annotations

import html
from pathlib import Path

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, RedirectResponse

from camrelay.api.v1.dependencies import (
    GatewayDep,
    clear_session_cookie,
    get_client_origin,
    lookup_session,
    read_session_token,
    set_session_cookie,
)
from camrelay.services.gateway import (
    AuthenticationError,
    LoginValidationError,
    RateLimitedError,
)

PAGES_DIR = Path(__file__).resolve().parents[1] / "pages"

router = APIRouter(tags=["pages"], include_in_schema=False)


def _page(name: str, status_code: int = status.HTTP_200_OK) -> FileResponse:
    return FileResponse(PAGES_DIR / name, status_code=status_code, media_type="text/html")


def _to_login() -> RedirectResponse:
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/")
async def index() -> RedirectResponse:
    return _to_login()


@router.get("/login")
async def login_page() -> FileResponse:
    return _page("login.html")


@router.post("/login")
async def login_form(request: Request, gateway: GatewayDep) -> Response:
    """Handle the login form; success redirects to the service index."""
    form = await request.form()
    try:
        session = await gateway.login(
            form.get("username"),
            form.get("password"),
            get_client_origin(request),
        )
    except LoginValidationError:
        return PlainTextResponse("Invalid input", status_code=status.HTTP_400_BAD_REQUEST)
    except RateLimitedError as err:
        headers = {"Retry-After": str(err.retry_after)} if err.retry_after else None
        return PlainTextResponse(
            "Too many attempts. Try again later.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers=headers,
        )
    except AuthenticationError:
        return _page("login.html", status.HTTP_401_UNAUTHORIZED)

    response = RedirectResponse("/services", status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session)
    return response


@router.post("/logout")
async def logout_form(request: Request, gateway: GatewayDep) -> RedirectResponse:
    gateway.logout(read_session_token(request))
    response = _to_login()
    clear_session_cookie(response)
    return response


@router.get("/services")
async def services_page(request: Request, gateway: GatewayDep) -> Response:
    if lookup_session(request, gateway) is None:
        return _to_login()
    return _page("services.html")


@router.get("/client.html")
async def client_page(request: Request, gateway: GatewayDep) -> Response:
    if lookup_session(request, gateway) is None:
        return _to_login()
    return _page("client.html")


@router.get("/admin")
async def admin_page(request: Request, gateway: GatewayDep) -> Response:
    session = lookup_session(request, gateway)
    if session is None:
        return _to_login()
    if not session.is_admin:
        return HTMLResponse(
            "<h1>403 - Forbidden</h1><p>You do not have permission to access this resource.</p>",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return HTMLResponse(
        "<h1>Admin area</h1>"
        f"<p>Welcome, {html.escape(session.username)}!</p>"
        '<p><a href="/api/v1/system/relay">Relay status</a></p>'
    )
