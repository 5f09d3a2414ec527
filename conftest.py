"""Pytest configuration: plugin blocking, a fake chain gateway and shared fixtures."""

import asyncio
from typing import Dict, List, Optional, Union

import pytest

from connectors.base import SwapGateway
from core.token_registry import TokenRegistry
from swap.models import RouterCall, SwapLog, TxReceipt

# Disable web3.tools.pytest_ethereum plugin which has compatibility issues
pytest_plugins = []

ROUTER = "0x372042003cE6968856401A79454a8574936690D1"
OWNER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"


def pytest_configure(config):
    """Configure pytest to skip problematic plugins."""
    config.pluginmanager.set_blocked("web3.tools.pytest_ethereum")


class FakeSleep:
    """Async sleep that records requested delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class ManualSleep:
    """Async sleep that blocks until the test advances the matching delay."""

    def __init__(self):
        self.delays: List[float] = []
        self._waiting: List[tuple] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        waiter = asyncio.get_running_loop().create_future()
        self._waiting.append((seconds, waiter))
        await waiter

    def pending(self, seconds: Optional[float] = None) -> int:
        return sum(1 for s, w in self._waiting if not w.done() and (seconds is None or s == seconds))

    async def advance(self, seconds: float) -> None:
        """Wake every sleeper waiting on `seconds`, then let the woken tasks run."""
        for s, w in self._waiting:
            if s == seconds and not w.done():
                w.set_result(None)
        self._waiting = [(s, w) for s, w in self._waiting if not w.done()]
        await settle()


async def settle(rounds: int = 20) -> None:
    """Yield to the loop until spawned tasks have run their synchronous steps."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeGateway(SwapGateway):
    """In-memory stand-in for the router, quoter and token contracts."""

    def __init__(self):
        self.router_address = ROUTER
        # fee tier -> amountOut, or an exception to raise
        self.quotes: Dict[int, Union[int, Exception]] = {}
        self.quote_calls: List[tuple] = []
        self.quote_gate: Optional[asyncio.Event] = None
        self.allowances: Dict[str, int] = {}
        self.allowance_lag = 0
        self.allowance_errors: List[Exception] = []
        self._pending_approval: Optional[tuple] = None
        self.approve_error: Optional[Exception] = None
        self.approve_calls: List[tuple] = []
        self.balances: Dict[str, int] = {}
        self.submit_error: Optional[Exception] = None
        self.router_calls: List[RouterCall] = []
        self.receipt_status = 1
        self.receipt_error: Optional[Exception] = None
        self.receipt_gate: Optional[asyncio.Event] = None
        self.latest_block = 1_000_000
        self.logs: List[SwapLog] = []
        self.log_errors: List[Exception] = []
        self.log_calls: List[tuple] = []
        self.timestamp_calls = 0
        self.calls: List[str] = []

    @property
    def account_address(self):
        return OWNER

    async def quote_exact_input_single(self, token_in, token_out, amount_in, fee):
        self.calls.append("quote")
        self.quote_calls.append((token_in, token_out, amount_in, fee))
        if self.quote_gate is not None:
            await self.quote_gate.wait()
        result = self.quotes.get(fee, RuntimeError("execution reverted"))
        if isinstance(result, Exception):
            raise result
        return result

    async def router_quote(self, token_in, token_out, amount_in):
        return amount_in

    async def get_allowance(self, token, owner, spender):
        self.calls.append("allowance")
        if self.allowance_errors:
            raise self.allowance_errors.pop(0)
        if self._pending_approval is not None:
            if self.allowance_lag > 0:
                self.allowance_lag -= 1
            else:
                approved_token, amount = self._pending_approval
                self.allowances[approved_token.lower()] = amount
                self._pending_approval = None
        return self.allowances.get(token.lower(), 0)

    async def get_balance(self, token, owner):
        return self.balances.get(token.lower(), 0)

    async def submit_approve(self, token, spender, amount):
        self.calls.append("approve")
        self.approve_calls.append((token, spender, amount))
        if self.approve_error is not None:
            raise self.approve_error
        self._pending_approval = (token, amount)
        return "0x" + "aa" * 32

    async def submit_router_call(self, call):
        self.calls.append("swap")
        self.router_calls.append(call)
        if self.submit_error is not None:
            raise self.submit_error
        return "0x" + "bb" * 32

    async def wait_for_receipt(self, tx_hash, timeout):
        if self.receipt_gate is not None:
            await self.receipt_gate.wait()
        if self.receipt_error is not None:
            raise self.receipt_error
        return TxReceipt(tx_hash=tx_hash, status=self.receipt_status, block_number=self.latest_block + 1, gas_used=150_000)

    async def block_number(self):
        return self.latest_block

    async def get_swap_logs(self, user, from_block, to_block):
        self.log_calls.append((user, from_block, to_block))
        if self.log_errors:
            raise self.log_errors.pop(0)
        return list(self.logs)

    async def get_block_timestamp(self, block):
        self.timestamp_calls += 1
        return 1_700_000_000 + int(str(block)[-4:], 16)

    async def fee_percent(self):
        return 3

    async def supported_tokens(self):
        return []

    def tx_explorer_url(self, tx_hash):
        return f"https://basescan.org/tx/{tx_hash}"


@pytest.fixture
def fast_sleep():
    return FakeSleep()


@pytest.fixture
def manual_sleep():
    return ManualSleep()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def registry():
    return TokenRegistry("mainnet")
