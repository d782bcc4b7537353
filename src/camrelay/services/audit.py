# src/camrelay/services/audit.py
"""Append-only audit trail of login attempts.

Each attempt is enriched with a best-effort location and written as one line
to the attempt log. Nothing here may fail a login: enrichment degrades to
"Unknown" and write failures are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock

from camrelay.core.settings import settings
from camrelay.services.geo import UNKNOWN_LOCATION, GeoLocator

logger = logging.getLogger(__name__)

REASON_INVALID_CREDENTIALS = "invalid_credentials"
REASON_RATE_LIMITED = "rate_limited"


class PersistenceError(RuntimeError):
    """Raised when an audit line cannot be appended."""


@dataclass(frozen=True)
class LoginAttempt:
    """What the gateway knows about an attempt when it hands it off."""

    origin: str
    success: bool
    reason: str | None = None
    username: str | None = None
    password: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class AuditEntry:
    """One immutable line of the audit trail."""

    timestamp: datetime
    origin: str
    location: str
    success: bool
    reason: str | None = None
    attempted: str | None = None

    @classmethod
    def from_attempt(cls, attempt: LoginAttempt, location: str) -> AuditEntry:
        attempted = None
        if not attempt.success:
            attempted = f"{attempt.username or ''}:{attempt.password or ''}"
        return cls(
            timestamp=attempt.timestamp,
            origin=attempt.origin,
            location=location,
            success=attempt.success,
            reason=None if attempt.success else attempt.reason,
            attempted=attempted,
        )

    def to_line(self) -> str:
        stamp = self.timestamp.astimezone(UTC).isoformat(timespec="milliseconds")
        parts = [
            stamp.replace("+00:00", "Z"),
            f"IP: {self.origin}",
            f"Location: {self.location}",
            f"Success: {'true' if self.success else 'false'}",
        ]
        if not self.success:
            if self.reason:
                parts.append(f"Reason: {self.reason}")
            parts.append(f"Password: {self.attempted}")
        return " | ".join(parts)


class FileAuditStore:
    """Appends lines to a text file, one writer at a time."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or settings.login_attempt_log)
        self._lock = Lock()

    def append(self, line: str) -> None:
        try:
            with self._lock, self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise PersistenceError(f"Could not append to {self.path}: {exc}") from exc


class AuditLogger:
    """Records login attempts without ever blocking the caller."""

    def __init__(
        self,
        locator: GeoLocator | None = None,
        store: FileAuditStore | None = None,
    ) -> None:
        self.locator = locator or GeoLocator()
        self.store = store or FileAuditStore()
        self._pending: set[asyncio.Task[AuditEntry | None]] = set()

    async def _locate(self, attempt: LoginAttempt) -> str:
        # Blocked attempts are logged without enrichment.
        if attempt.reason == REASON_RATE_LIMITED:
            return UNKNOWN_LOCATION
        try:
            return await self.locator.locate(attempt.origin)
        except Exception:
            logger.exception("Location enrichment failed for %s", attempt.origin)
            return UNKNOWN_LOCATION

    async def record(self, attempt: LoginAttempt) -> AuditEntry | None:
        """Enrich and persist one attempt.

        Returns:
            The written entry, or None if it could not be persisted.
        """
        location = await self._locate(attempt)
        entry = AuditEntry.from_attempt(attempt, location)
        try:
            await asyncio.to_thread(self.store.append, entry.to_line())
        except PersistenceError as exc:
            logger.error("Audit log write failed: %s", exc)
            return None
        return entry

    def _on_task_done(self, task: asyncio.Task[AuditEntry | None]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Audit record task failed", exc_info=exc)

    def submit(self, attempt: LoginAttempt) -> asyncio.Task[AuditEntry | None]:
        """Schedule `record` in the background and return immediately."""
        task = asyncio.get_running_loop().create_task(self.record(attempt))
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def drain(self) -> None:
        """Wait for every submitted record to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self.locator.close()

    @property
    def pending(self) -> int:
        return len(self._pending)
