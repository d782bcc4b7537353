# src/camrelay/services/__init__.py
"""Relay and access-control services."""

from .audit import AuditLogger
from .gateway import AccessGateway
from .geo import GeoLocator
from .rate_limit import LoginRateLimiter
from .registry import ConnectionRegistry
from .relay import BroadcastRelay
from .sessions import SessionStore

__all__ = [
    "AccessGateway",
    "AuditLogger",
    "BroadcastRelay",
    "ConnectionRegistry",
    "GeoLocator",
    "LoginRateLimiter",
    "SessionStore",
]
