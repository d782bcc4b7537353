# src/camrelay/schemas/__init__.py
"""Pydantic request and response schemas."""

from .auth import LoginRequest, LoginResponse, SessionResponse

__all__ = ["LoginRequest", "LoginResponse", "SessionResponse"]
