"""System and status endpoints for the camrelay API."""

from __future__ import annotations

from fastapi import APIRouter

from camrelay.api.v1.dependencies import AdminSessionDep, GatewayDep, RelayDep
from camrelay.core.settings import settings

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config(gateway: GatewayDep) -> dict[str, object]:
    """Return a sanitized snapshot of public runtime configuration.

    Excludes passwords, the signing key and file paths.

    Args:
        gateway: Access gateway, for the effective throttling parameters

    Returns:
        Dictionary with app metadata, session and rate-limit settings
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "session": {
            "cookie_name": settings.session_cookie_name,
            "ttl_hours": settings.session_ttl_hours,
        },
        "rate_limit": {
            "max_attempts": gateway.limiter.max_attempts,
            "window_seconds": gateway.limiter.window_seconds,
        },
        "relay": {
            "send_timeout_seconds": settings.relay_send_timeout_seconds,
            "require_session": settings.relay_require_session,
        },
    }


@router.get("/relay")
async def get_relay_status(_: AdminSessionDep, relay: RelayDep) -> dict[str, object]:
    """List the peers currently connected to the relay (admin only)."""
    peers = relay.registry.snapshot()
    return {
        "peer_count": len(peers),
        "peers": [
            {
                "id": peer.id,
                "origin": peer.origin,
                "state": peer.state.value,
                "connected_at": peer.connected_at.isoformat(),
            }
            for peer in peers
        ],
    }
