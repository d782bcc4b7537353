# src/camrelay/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .relay import router as relay_router
from .system import router as system_router

__all__ = [
    "auth_router",
    "relay_router",
    "system_router",
]
