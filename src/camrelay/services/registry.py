# src/camrelay/services/registry.py
"""Registry of live relay peers.

The registry is the only owner of relay membership. Fan-out never walks the
live storage: it iterates an immutable snapshot and hands dead peers back to
`remove` once the pass is over.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from threading import Lock
from typing import Protocol


class ConnectionState(Enum):
    """Lifecycle of a relay peer."""

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class PeerTransport(Protocol):
    """Outbound half of a message-oriented connection (e.g. a WebSocket)."""

    async def send_bytes(self, data: bytes) -> None: ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass(eq=False)
class Connection:
    """A single relay peer and its send capability."""

    transport: PeerTransport
    origin: str = "unknown"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: ConnectionState = ConnectionState.OPEN
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    async def send(self, frame: bytes | str) -> None:
        """Write one frame; concurrent senders to this peer are serialized."""
        async with self._send_lock:
            if isinstance(frame, bytes):
                await self.transport.send_bytes(frame)
            else:
                await self.transport.send_text(frame)


class ConnectionRegistry:
    """Lock-protected set of open relay connections."""

    def __init__(self) -> None:
        self._connections: list[Connection] = []
        self._lock = Lock()

    def add(self, connection: Connection) -> None:
        """Register an open connection. Re-adding a member is a no-op."""
        if connection.state is ConnectionState.CLOSED:
            raise ValueError("Cannot register a closed connection")
        with self._lock:
            if connection not in self._connections:
                self._connections.append(connection)

    def snapshot(self) -> tuple[Connection, ...]:
        """Return an ordered, immutable copy of the current members."""
        with self._lock:
            return tuple(self._connections)

    def remove(self, connection: Connection) -> bool:
        """Mark a connection closed and drop it.

        Returns:
            True if the connection was a member, False otherwise.
        """
        with self._lock:
            connection.state = ConnectionState.CLOSED
            try:
                self._connections.remove(connection)
            except ValueError:
                return False
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection: object) -> bool:
        with self._lock:
            return connection in self._connections
