# tests/unit/external/test_unit_retry.py — v1
"""Tests for external/retry.py."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest

from peoplegraph.core.errors import ExternalServiceFailure, NotFound
from peoplegraph.external.retry import Cooldown, RetryConfig, classify_error, with_retry

NO_DELAY = RetryConfig(max_retries=2, delay_s=0)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.org")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestClassifyError:
    def test_httpx_errors(self):
        assert classify_error(httpx.ReadTimeout("slow")) == "timeout"
        assert classify_error(_status_error(429)) == "rate_limit"
        assert classify_error(_status_error(503)) == "server_error"
        assert classify_error(_status_error(404)) == "client_error"
        assert classify_error(httpx.ConnectError("refused")) == "network"

    def test_message_heuristics(self):
        assert classify_error(RuntimeError("HTTP 429 Too Many Requests")) == "rate_limit"
        assert classify_error(RuntimeError("upstream returned 502")) == "server_error"
        assert classify_error(TimeoutError("timed out")) == "timeout"
        assert classify_error(RuntimeError("???")) == "unknown"


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        fn = AsyncMock(return_value="ok")
        assert await with_retry(fn, "x", config=NO_DELAY) == "ok"
        fn.assert_awaited_once_with("x")

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self):
        fn = AsyncMock(side_effect=[_status_error(503), "ok"])
        assert await with_retry(fn, config=NO_DELAY) == "ok"
        assert fn.await_count == 2

    @pytest.mark.asyncio
    async def test_exhaustion_raises_failure(self):
        fn = AsyncMock(side_effect=httpx.ConnectError("down"))
        with pytest.raises(ExternalServiceFailure) as exc_info:
            await with_retry(fn, operation="search Hinton", config=NO_DELAY)
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation == "search Hinton"
        assert isinstance(exc_info.value.last_error, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        fn = AsyncMock(side_effect=_status_error(400))
        with pytest.raises(ExternalServiceFailure):
            await with_retry(fn, config=NO_DELAY)
        assert fn.await_count == 1

    @pytest.mark.asyncio
    async def test_engine_errors_propagate(self):
        fn = AsyncMock(side_effect=NotFound("entity", "Q0"))
        with pytest.raises(NotFound):
            await with_retry(fn, config=NO_DELAY)
        assert fn.await_count == 1

    def test_from_settings(self, settings):
        cfg = RetryConfig.from_settings(settings)
        assert cfg.max_retries == settings.external_max_retries
        assert cfg.delay_s == 0.0


class TestCooldown:
    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self):
        sleep = AsyncMock()
        await Cooldown(3.0, sleep=sleep, clock=lambda: 100.0).wait()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_waits_remaining_interval(self):
        now = [100.0]
        sleep = AsyncMock()
        cooldown = Cooldown(3.0, sleep=sleep, clock=lambda: now[0])
        await cooldown.wait()
        now[0] = 101.0
        await cooldown.wait()
        sleep.assert_awaited_once()
        assert sleep.await_args.args[0] == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_no_wait_after_interval(self):
        now = [0.0]
        sleep = AsyncMock()
        cooldown = Cooldown(3.0, sleep=sleep, clock=lambda: now[0])
        await cooldown.wait()
        now[0] = 10.0
        await cooldown.wait()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_interval(self):
        sleep = AsyncMock()
        cooldown = Cooldown(0, sleep=sleep)
        await cooldown.wait()
        await cooldown.wait()
        sleep.assert_not_awaited()
