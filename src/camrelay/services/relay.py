"""Broadcast relay fanning frames out to every other live peer.

Delivery is fire-and-forget and at-most-once. Each send is bounded by a
timeout and runs concurrently with the others, so one slow peer cannot hold
back the rest; a peer whose send fails or times out is pruned after the pass.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator

from camrelay.core.settings import settings
from camrelay.services.registry import Connection, ConnectionRegistry, ConnectionState

logger = logging.getLogger(__name__)

Frame = bytes | str

# WebSocket close code for "internal error"; used when a peer is pruned.
CLOSE_DELIVERY_FAILED = 1011


class DeliveryError(RuntimeError):
    """Raised when a frame could not be written to one peer."""

    def __init__(self, connection: Connection, reason: str) -> None:
        super().__init__(f"Delivery to {connection.id} failed: {reason}")
        self.connection = connection


class BroadcastRelay:
    """Fans out inbound frames using registry snapshots."""

    def __init__(
        self,
        registry: ConnectionRegistry | None = None,
        send_timeout: float | None = None,
    ) -> None:
        self.registry = registry or ConnectionRegistry()
        self.send_timeout = (
            settings.relay_send_timeout_seconds if send_timeout is None else send_timeout
        )

    async def _deliver(self, peer: Connection, frame: Frame) -> None:
        try:
            await asyncio.wait_for(peer.send(frame), timeout=self.send_timeout)
        except TimeoutError as exc:
            raise DeliveryError(peer, "send timed out") from exc
        except Exception as exc:
            raise DeliveryError(peer, str(exc) or type(exc).__name__) from exc

    async def broadcast(self, source: Connection | None, frame: Frame) -> int:
        """Deliver `frame` to every open peer except `source`.

        Args:
            source: The publishing connection, or None to reach every peer.
            frame: Opaque payload, relayed verbatim.

        Returns:
            Number of peers the frame was delivered to.
        """
        targets = [
            peer for peer in self.registry.snapshot() if peer is not source and peer.is_open
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._deliver(peer, frame) for peer in targets),
            return_exceptions=True,
        )

        dead: list[Connection] = []
        for peer, result in zip(targets, results, strict=True):
            if isinstance(result, DeliveryError):
                logger.info("Pruning relay peer %s (%s): %s", peer.id, peer.origin, result)
                dead.append(peer)
            elif isinstance(result, BaseException):
                raise result

        for peer in dead:
            await self._discard(peer)

        return len(targets) - len(dead)

    async def _discard(self, peer: Connection) -> None:
        peer.state = ConnectionState.CLOSING
        self.registry.remove(peer)
        with contextlib.suppress(Exception):
            await asyncio.wait_for(
                peer.transport.close(code=CLOSE_DELIVERY_FAILED),
                timeout=self.send_timeout,
            )

    async def serve(self, connection: Connection, frames: AsyncIterator[Frame]) -> None:
        """Register `connection` and relay everything it sends until it goes away."""
        self.registry.add(connection)
        logger.info(
            "Relay peer %s connected from %s (%d live)",
            connection.id,
            connection.origin,
            len(self.registry),
        )
        try:
            async for frame in frames:
                await self.broadcast(connection, frame)
        finally:
            if connection.state is ConnectionState.OPEN:
                connection.state = ConnectionState.CLOSING
            self.registry.remove(connection)
            logger.info(
                "Relay peer %s disconnected (%d live)", connection.id, len(self.registry)
            )

    @property
    def peer_count(self) -> int:
        return len(self.registry)


class _RelaySingleton:
    _instance: BroadcastRelay | None = None

    @classmethod
    def get_instance(cls) -> BroadcastRelay:
        if cls._instance is None:
            cls._instance = BroadcastRelay()
        return cls._instance


def get_relay() -> BroadcastRelay:
    """Return the singleton broadcast relay."""
    return _RelaySingleton.get_instance()
