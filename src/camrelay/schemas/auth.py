# src/camrelay/schemas/auth.py
"""Login and session schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials submitted to the JSON login endpoint.

    Length and emptiness are checked by the gateway so that every rejection
    of bad input is answered the same way.
    """

    username: str = Field(..., description="Account name")
    password: str = Field(..., description="Account password")


class LoginResponse(BaseModel):
    """Returned after a successful login; the session itself travels in a cookie."""

    username: str = Field(..., description="Authenticated account")
    role: Literal["admin", "user"] = Field(..., description="Account role")
    expires_at: datetime = Field(..., description="Session expiry (UTC)")

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(LoginResponse):
    """Details of the caller's current session."""

    created_at: datetime = Field(..., description="Session creation time (UTC)")
