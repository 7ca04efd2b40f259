"""
Test cases for the retryer component.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from .retryer import Retryer, call_handler
from ..model.options_on_error import OnError, RetryBackoff


class TestCallHandler:
    """call_handler supports plain and coroutine functions."""

    @pytest.mark.asyncio
    async def test_sync_function(self):
        assert await call_handler(lambda x: x * 2, 21) == 42

    @pytest.mark.asyncio
    async def test_async_function(self):
        async def handler(x):
            await asyncio.sleep(0)
            return x + 1

        assert await call_handler(handler, 41) == 42


class TestRetryer:
    """Test cases for Retryer."""

    def test_invalid_options(self):
        with pytest.raises(ValueError, match="No valid retry options provided"):
            Retryer(Mock(), None)

    @pytest.mark.asyncio
    async def test_successful_execution(self):
        handler = Mock()
        retryer = Retryer(handler, OnError(max_retries=3, retry_delay=0.01))

        assert await retryer.retry("payload") is None
        handler.assert_called_once_with("payload")

    @pytest.mark.asyncio
    async def test_retry_with_eventual_success(self):
        calls = []

        async def flaky(message):
            calls.append(message)
            if len(calls) < 3:
                raise RuntimeError(f"failure {len(calls)}")

        retryer = Retryer(flaky, OnError(max_retries=5, retry_delay=0.01))

        assert await retryer.retry({"msg": "hi"}) is None
        assert calls == [{"msg": "hi"}] * 3

    @pytest.mark.asyncio
    async def test_permanent_failure_returns_last_error(self):
        handler = AsyncMock(side_effect=RuntimeError("persistent error"))
        retryer = Retryer(handler, OnError(max_retries=3, retry_delay=0.01))

        result = await retryer.retry("payload")

        assert isinstance(result, RuntimeError)
        assert str(result) == "persistent error"
        assert handler.await_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "backoff, expected",
        [
            (RetryBackoff.NONE, [0.1, 0.1, 0.1]),
            (RetryBackoff.LINEAR, [0.1, 0.2, 0.30000000000000004]),
            (RetryBackoff.EXPONENTIAL, [0.1, 0.2, 0.4]),
        ],
    )
    async def test_backoff_sleeps(self, backoff, expected):
        handler = Mock(side_effect=RuntimeError("boom"))
        retryer = Retryer(
            handler, OnError(max_retries=4, retry_delay=0.1, retry_backoff=backoff)
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await retryer.retry()

        assert [c.args[0] for c in sleep.await_args_list] == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_retryer_is_reusable(self):
        """The backoff starts over for every message."""
        handler = Mock(side_effect=RuntimeError("boom"))
        retryer = Retryer(
            handler,
            OnError(max_retries=2, retry_delay=0.1, retry_backoff=RetryBackoff.EXPONENTIAL),
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await retryer.retry("first")
            await retryer.retry("second")

        assert [c.args[0] for c in sleep.await_args_list] == [0.1, 0.1]
