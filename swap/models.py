from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Optional, Tuple

from core.errors import SwapError
from core.token_registry import Token


class FeeTier(IntEnum):
    """Uniswap V3 pool fee, in hundredths of a bip."""
    T1 = 500
    T2 = 3000
    T3 = 10000


class RouterVersion(IntEnum):
    """Liquidity source hint forwarded to the router as uint8."""
    AUTO = 0
    V2 = 2
    V3 = 3


class TxStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ExecutorState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Quote:
    token_in: Token
    token_out: Token
    amount_in: int
    amount_out: int
    fee_tier: FeeTier
    price_impact_pct: Decimal
    fetched_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Allowance:
    owner: str
    spender: str
    token: str
    amount: int


@dataclass(frozen=True)
class SwapRequest:
    token_in: Token
    token_out: Token
    amount_in: int
    quote: Quote
    slippage_bps: int
    router_version: RouterVersion = RouterVersion.AUTO


@dataclass(frozen=True)
class RouterCall:
    function: str
    args: Tuple
    value: int = 0


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


@dataclass(frozen=True)
class SwapTransaction:
    request: SwapRequest
    min_amount_out: int
    status: TxStatus = TxStatus.PENDING
    hash: Optional[str] = None
    block_number: Optional[int] = None
    error: Optional[SwapError] = None
    explorer_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status is not TxStatus.PENDING

    def settle(self, status: TxStatus, **changes) -> "SwapTransaction":
        if self.is_terminal:
            raise ValueError(f"Transaction already {self.status.value}")
        return replace(self, status=status, **changes)


@dataclass(frozen=True)
class SwapLog:
    """A decoded router Swap event."""
    tx_hash: str
    block_number: int
    block_hash: str
    user: str
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int
    fee: int
    router_version: int


@dataclass(frozen=True)
class HistoryEntry:
    hash: str
    block_number: int
    timestamp: int
    token_in: Token
    token_out: Token
    amount_in: int
    amount_out: int
    fee_paid: int
    router_version: int
