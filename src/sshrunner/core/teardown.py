"""Teardown of a command that missed its deadline.

Once the primary deadline fires the caller already has its timeout failure.
What remains is cleanup: ask the remote host to kill the command (pattern
matched, the remote pid is not known) under a secondary deadline, then
discard the session no matter how the abort went. Total teardown time is
bounded by the secondary deadline.
"""

import asyncio
from enum import Enum

from sshrunner.core.logger import SSHRunnerLogger
from sshrunner.core.pool import SessionPool
from sshrunner.core.transport import CommandStream, Session
from sshrunner.security.command_policy import build_abort_command


class TeardownState(str, Enum):
    PENDING = "pending"
    ABORTING = "aborting"
    DISCARDED = "discarded"


class AbortResult(str, Enum):
    COMPLETED = "completed"  # abort command closed its stream in time
    TIMED_OUT = "timed_out"  # secondary deadline fired first
    FAILED = "failed"  # abort could not be dispatched or errored


class AbortTeardown:
    """Two-phase teardown: bounded remote abort, then unconditional discard."""

    def __init__(
        self,
        session: Session,
        stream: CommandStream,
        command: str,
        pool: SessionPool,
        logger: SSHRunnerLogger,
        abort_timeout_s: float,
    ) -> None:
        self.session = session
        self.stream = stream
        self.command = command
        self.pool = pool
        self.logger = logger
        self.abort_timeout_s = abort_timeout_s
        self.state = TeardownState.PENDING
        self.abort_result: AbortResult | None = None

    async def run(self) -> AbortResult:
        """Run the teardown. Never raises for abort failures."""
        self.state = TeardownState.ABORTING
        try:
            await asyncio.wait_for(self._abort(), timeout=self.abort_timeout_s)
            self.abort_result = AbortResult.COMPLETED
        except TimeoutError:
            self.abort_result = AbortResult.TIMED_OUT
        except asyncio.CancelledError:
            self.abort_result = AbortResult.FAILED
            raise
        except Exception as e:  # noqa: BLE001 - abort is cleanup only
            self.logger.warn("Remote abort failed", command=self.command[:100], error=str(e))
            self.abort_result = AbortResult.FAILED
        finally:
            self.stream.close()
            await self.pool.discard(self.session, reason="timeout")
            self.state = TeardownState.DISCARDED

        self.logger.debug(
            "Timed out command torn down",
            command=self.command[:100],
            abort_result=self.abort_result.value,
        )
        return self.abort_result

    async def _abort(self) -> None:
        abort_stream = await self.session.exec(build_abort_command(self.command))
        try:
            await abort_stream.wait()
        finally:
            abort_stream.close()
