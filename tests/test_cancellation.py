"""Tests for cancellation tokens and timeout racing."""

import asyncio

import pytest

from mediascout.core.cancellation import CancellationToken, race
from mediascout.core.exceptions import ExtractionCancelledError, ModuleTimeoutError


async def _value(result, delay=0.0):
    await asyncio.sleep(delay)
    return result


class TestCancellationToken:

    def test_cancel_once(self):
        token = CancellationToken()
        seen = []
        token.add_callback(lambda t: seen.append(t.reason))

        token.cancel("first")
        token.cancel("second")

        assert token.cancelled
        assert token.reason == "first"
        assert seen == ["first"]

    def test_callback_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        seen = []
        token.add_callback(seen.append)
        assert seen == [token]

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel("stop")
        with pytest.raises(ExtractionCancelledError) as exc_info:
            token.raise_if_cancelled()
        assert exc_info.value.reason == "stop"


class TestRace:

    async def test_returns_result(self):
        assert await race(_value("done"), timeout=1.0) == "done"

    async def test_timeout(self):
        with pytest.raises(ModuleTimeoutError) as exc_info:
            await race(_value("late", delay=1.0), timeout=0.05, label="slow", module_id="mod")
        assert exc_info.value.module_id == "mod"
        assert "slow" in str(exc_info.value)

    async def test_token_cancels_work(self):
        token = CancellationToken()
        work = asyncio.ensure_future(_value("never", delay=5.0))
        asyncio.get_running_loop().call_later(0.02, token.cancel)

        with pytest.raises(ExtractionCancelledError):
            await race(work, timeout=None, token=token)

        await asyncio.sleep(0.01)
        assert work.cancelled()

    async def test_already_cancelled_token(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ExtractionCancelledError):
            await race(_value("x"), timeout=1.0, token=token)

    async def test_work_errors_propagate(self):
        async def fail():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await race(fail(), timeout=1.0, token=CancellationToken())
