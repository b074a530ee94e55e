"""Session pool with idle expiry.

Idle sessions are kept per connection target on a stack: the most recently
released session is handed out first. This recency bias keeps a few
sessions warm and lets the rest age out through the idle TTL, rather than
rotating through all of them fairly.

The pool does not ping sessions on acquire. A session that died while idle
surfaces as a failure in the operation that borrowed it, and the engine
discards it instead of releasing it.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from sshrunner.core.config import SSHConfig
from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.transport import Session, Target, Transport


@dataclass
class PoolEntry:
    session: Session
    last_used: float


class SessionPool:
    """Bounded LIFO pool of ready-to-use sessions, keyed by target."""

    def __init__(
        self,
        transport: Transport,
        logger: SSHRunnerLogger,
        enabled: bool = True,
        max_size: int = 3,
        ttl_ms: int = 300000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize session pool.

        Args:
            transport: Creates new sessions
            logger: Structured logger
            enabled: If False, every acquire connects and every release closes
            max_size: Maximum idle sessions kept per target
            ttl_ms: Idle time after which a pooled session is closed
            clock: Monotonic clock returning seconds
        """
        self.transport = transport
        self.logger = logger
        self.enabled = enabled
        self.max_size = max_size
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._stacks: dict[Target, list[PoolEntry]] = {}
        self._closed = False
        self.connections_created = 0

    @classmethod
    def from_config(
        cls,
        config: SSHConfig,
        transport: Transport,
        logger: SSHRunnerLogger,
        **kwargs,
    ) -> "SessionPool":
        return cls(
            transport=transport,
            logger=logger,
            enabled=config.pool,
            max_size=config.pool_max_size,
            ttl_ms=config.pool_ttl_ms,
            **kwargs,
        )

    def __len__(self) -> int:
        return sum(len(stack) for stack in self._stacks.values())

    def size(self, target: Target) -> int:
        return len(self._stacks.get(target, []))

    def contains(self, session: Session) -> bool:
        stack = self._stacks.get(session.target, [])
        return any(entry.session is session for entry in stack)

    async def acquire(self, target: Target) -> Session:
        """Borrow a session, reusing the most recently released one if possible.

        Raises:
            SSHConnectionError: If a new session cannot be created
        """
        if not self.enabled:
            return await self._create(target)

        await self.cleanup_expired()

        stack = self._stacks.get(target)
        if stack:
            entry = stack.pop()
            entry.session.touch(self._clock())
            self.logger.debug(
                "Reusing pooled session", target=target.describe(), idle=len(stack)
            )
            return entry.session

        return await self._create(target)

    async def release(self, session: Session) -> None:
        """Return a session after a clean operation.

        Sessions beyond capacity are closed, never queued. After shutdown
        every released session is closed.
        """
        if not session.alive:
            return

        if not self.enabled:
            await self._close(session, reason="pool_disabled")
            return

        if self._closed:
            await self._close(session, reason="shutdown")
            return

        stack = self._stacks.setdefault(session.target, [])
        if len(stack) >= self.max_size:
            await self._close(session, reason="pool_full")
            return

        now = self._clock()
        session.touch(now)
        stack.append(PoolEntry(session=session, last_used=now))

    async def discard(self, session: Session, reason: str = "discarded") -> None:
        """Close a session whose state is unknown. It never re-enters the pool."""
        await self._close(session, reason=reason)

    async def cleanup_expired(self) -> int:
        """Close every pooled session idle longer than the TTL.

        Returns:
            Number of sessions closed
        """
        now = self._clock()
        ttl_s = self.ttl_ms / 1000
        expired: list[PoolEntry] = []

        for target, stack in list(self._stacks.items()):
            kept = [entry for entry in stack if now - entry.last_used <= ttl_s]
            expired.extend(entry for entry in stack if now - entry.last_used > ttl_s)
            # Replace before awaiting so a concurrent acquire never sees an expired entry
            if kept:
                self._stacks[target] = kept
            else:
                del self._stacks[target]

        for entry in expired:
            await self._close(entry.session, reason="expired")
        return len(expired)

    async def shutdown(self) -> None:
        """Close every pooled session and clear the pool."""
        self._closed = True
        stacks, self._stacks = self._stacks, {}
        await asyncio.gather(
            *(
                self._close(entry.session, reason="shutdown")
                for stack in stacks.values()
                for entry in stack
            )
        )

    async def _create(self, target: Target) -> Session:
        self.logger.debug("Opening new session", target=target.describe())
        session = await self.transport.connect(target)
        self.connections_created += 1
        session.touch(self._clock())
        return session

    async def _close(self, session: Session, reason: str) -> None:
        try:
            await session.close()
        except Exception as e:  # noqa: BLE001 - closing is best effort
            self.logger.warn(
                "Failed to close session",
                target=session.target.describe(),
                reason=reason,
                error=str(e),
            )
            return
        self.logger.debug("Session closed", target=session.target.describe(), reason=reason)
