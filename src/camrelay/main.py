# src/camrelay/main.py
"""Main entry point for the camrelay application."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import RequestResponseEndpoint

from camrelay.api import pages
from camrelay.api.v1 import auth_router, relay_router, system_router
from camrelay.core.settings import settings
from camrelay.services.gateway import get_gateway

logger = logging.getLogger(__name__)

PUBLIC_DIR = Path(__file__).resolve().parent / "public"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "no-referrer",
}

NOT_FOUND_PAGE = "<h1>404 - Page not found</h1><p>The requested page does not exist.</p>"
SERVER_ERROR_PAGE = (
    "<h1>500 - Internal server error</h1>"
    "<p>An unexpected error occurred. Please try again later.</p>"
)

# Initialize FastAPI app
app = FastAPI(
    title="camrelay",
    description="Camera feed relay behind a login gateway",
    version=settings.app_version,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)


@app.middleware("http")
async def add_security_headers(request: Request, call_next: RequestResponseEndpoint) -> Response:
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException) -> Response:
    """Render unknown pages as HTML; API errors keep their JSON body."""
    if exc.status_code == status.HTTP_404_NOT_FOUND and not request.url.path.startswith("/api/"):
        return HTMLResponse(NOT_FOUND_PAGE, status_code=status.HTTP_404_NOT_FOUND)
    return await http_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies are a plain bad request."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid input"},
    )


@app.exception_handler(Exception)
async def handle_server_error(request: Request, exc: Exception) -> HTMLResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    # Runs outside the header middleware, so the headers are set here.
    return HTMLResponse(
        SERVER_ERROR_PAGE,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers=SECURITY_HEADERS,
    )


# Include API routers
app.include_router(auth_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")
app.include_router(relay_router)
app.include_router(pages.router)
app.mount("/public", StaticFiles(directory=PUBLIC_DIR), name="public")


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("camrelay").setLevel(settings.log_level.upper())


@app.on_event("startup")
async def on_startup() -> None:
    _configure_logging()
    logger.info("%s %s starting", settings.app_name, settings.app_version)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    # Let in-flight audit records land before the loop goes away.
    await get_gateway().audit.close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


def run() -> None:
    """Start the server with uvicorn."""
    import uvicorn

    uvicorn.run("camrelay.main:app", host=settings.host, port=settings.port, reload=settings.debug)


if __name__ == "__main__":
    run()
