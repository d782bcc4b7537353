"""WebSocket endpoint for camera publishers and viewers."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import APIRouter, WebSocket, status

from camrelay.api.v1.dependencies import (
    GatewayDep,
    RelayDep,
    get_client_origin,
    lookup_session,
)
from camrelay.core.settings import settings
from camrelay.services.registry import Connection
from camrelay.services.relay import Frame

router = APIRouter(tags=["relay"])


async def iter_frames(websocket: WebSocket) -> AsyncIterator[Frame]:
    """Yield every inbound frame until the peer disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
        if message.get("bytes") is not None:
            yield message["bytes"]
        elif message.get("text") is not None:
            yield message["text"]


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, gateway: GatewayDep, relay: RelayDep) -> None:
    """Join the broadcast channel; every frame sent is relayed to all other peers."""
    if settings.relay_require_session and lookup_session(websocket, gateway) is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = Connection(transport=websocket, origin=get_client_origin(websocket))
    await relay.serve(connection, iter_frames(websocket))
