"""Tests for the abort-then-discard teardown of timed-out commands."""

import asyncio

import pytest

from sshrunner.core.pool import SessionPool
from sshrunner.core.teardown import AbortResult, AbortTeardown, TeardownState

from conftest import FakeStream, Script


@pytest.fixture
def pool(transport, logger):
    return SessionPool(transport, logger)


async def make_teardown(pool, target, logger, command="tail -f /var/log/syslog", abort_timeout_s=1.0):
    session = await pool.acquire(target)
    stream = FakeStream(Script(hang=True))
    return AbortTeardown(
        session=session,
        stream=stream,
        command=command,
        pool=pool,
        logger=logger,
        abort_timeout_s=abort_timeout_s,
    )


class TestAbortTeardown:
    @pytest.mark.asyncio
    async def test_abort_completes_then_discards(self, pool, transport, target, logger):
        teardown = await make_teardown(pool, target, logger)

        result = await teardown.run()

        assert result is AbortResult.COMPLETED
        assert teardown.state is TeardownState.DISCARDED
        assert transport.commands == ["timeout 3s pkill -f 'tail -f /var/log/syslog' 2>/dev/null || true"]
        assert teardown.stream.closed
        assert not teardown.session.alive

    @pytest.mark.asyncio
    async def test_quotes_in_command_are_escaped(self, pool, transport, target, logger):
        teardown = await make_teardown(pool, target, logger, command="echo 'hi'")

        await teardown.run()

        assert transport.commands == [
            "timeout 3s pkill -f 'echo '\"'\"'hi'\"'\"'' 2>/dev/null || true"
        ]

    @pytest.mark.asyncio
    async def test_abort_timeout_still_discards(self, pool, transport, target, logger):
        transport.abort_script.hang = True
        teardown = await make_teardown(pool, target, logger, abort_timeout_s=0.05)

        result = await asyncio.wait_for(teardown.run(), timeout=2)

        assert result is AbortResult.TIMED_OUT
        assert not teardown.session.alive

    @pytest.mark.asyncio
    async def test_abort_failure_still_discards(self, pool, transport, target, logger):
        teardown = await make_teardown(pool, target, logger)
        transport.exec_error = OSError("channel closed")

        result = await teardown.run()

        assert result is AbortResult.FAILED
        assert teardown.state is TeardownState.DISCARDED
        assert not teardown.session.alive
        assert len(pool) == 0
