"""
Tests for resilience module.
"""
import asyncio

import pytest

from swap.resilience import (
    ConnectionMonitor,
    is_network_error,
    retry_async,
    RetryConfig,
)


def test_connection_monitor():
    """Test connection monitoring."""
    monitor = ConnectionMonitor("test")

    # Initially connected
    assert monitor.is_connected
    assert monitor.consecutive_failures == 0

    monitor.record_success()
    assert monitor.successful_attempts == 1
    assert monitor.is_connected

    for i in range(5):
        monitor.record_failure(Exception("test"))

    assert monitor.failed_attempts == 5
    assert monitor.consecutive_failures == 5
    assert not monitor.is_connected
    assert monitor.should_warn()
    assert monitor.get_stats()["success_rate"] == pytest.approx(100 / 6)

    # Success resets consecutive failures
    monitor.record_success()
    assert monitor.consecutive_failures == 0
    assert monitor.is_connected


def test_is_network_error():
    """Test network error detection."""
    assert is_network_error(Exception("Connection timeout"))
    assert is_network_error(Exception("Failed to connect to RPC"))
    assert is_network_error(Exception("429 Too Many Requests"))
    assert is_network_error(ConnectionResetError())
    assert is_network_error(asyncio.TimeoutError())

    assert not is_network_error(Exception("Invalid parameter"))
    assert not is_network_error(Exception("Insufficient funds"))
    assert not is_network_error(ValueError("Bad value"))


@pytest.mark.asyncio
async def test_retry_async_success(fast_sleep):
    calls = []

    async def succeed():
        calls.append(1)
        return "success"

    assert await retry_async(succeed, sleep=fast_sleep) == "success"
    assert len(calls) == 1
    assert fast_sleep.delays == []


@pytest.mark.asyncio
async def test_retry_async_retries_network_errors(fast_sleep):
    calls = []
    retry_attempts = []

    async def fail_twice_then_succeed():
        calls.append(1)
        if len(calls) < 3:
            raise Exception("Connection timeout")
        return "success"

    result = await retry_async(
        fail_twice_then_succeed,
        retry_config=RetryConfig(max_retries=5, initial_delay=0.1, jitter=False),
        on_retry=lambda attempt, error, delay: retry_attempts.append((attempt, delay)),
        sleep=fast_sleep,
    )

    assert result == "success"
    assert len(calls) == 3
    assert retry_attempts == [(0, 0.1), (1, 0.2)]
    assert fast_sleep.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_retry_async_raises_last_error(fast_sleep):
    calls = []

    async def always_fail():
        calls.append(1)
        raise ConnectionError(f"down {len(calls)}")

    with pytest.raises(ConnectionError, match="down 4"):
        await retry_async(always_fail, retry_config=RetryConfig(max_retries=3, jitter=False), sleep=fast_sleep)
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_retry_async_non_network_error(fast_sleep):
    """Non-network errors are not retried."""
    calls = []

    async def non_network_fail():
        calls.append(1)
        raise ValueError("Invalid parameter")

    with pytest.raises(ValueError, match="Invalid parameter"):
        await retry_async(non_network_fail, retry_config=RetryConfig(max_retries=5), sleep=fast_sleep)
    assert len(calls) == 1


def test_retry_config_delay():
    """Test retry delay calculation."""
    config = RetryConfig(
        initial_delay=1.0,
        max_delay=10.0,
        exponential_base=2.0,
        jitter=False
    )

    # Exponential backoff
    assert config.get_delay(0) == 1.0
    assert config.get_delay(1) == 2.0
    assert config.get_delay(2) == 4.0
    assert config.get_delay(3) == 8.0

    # Max delay cap
    assert config.get_delay(10) == 10.0


def test_retry_config_jitter_bounds():
    config = RetryConfig(initial_delay=2.0, jitter=True)
    for _ in range(20):
        assert 1.0 <= config.get_delay(0) <= 3.0
