"""Typed messages passed from the engine components to the session queue."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from core.errors import QuoteError
from core.token_registry import Token
from swap.models import HistoryEntry, Quote, RouterVersion, SwapTransaction


@dataclass(frozen=True)
class InputChanged:
    token_in: Optional[Token]
    token_out: Optional[Token]
    amount_in_text: str
    generation: int = 0


@dataclass(frozen=True)
class SettingsChanged:
    slippage_bps: Optional[int] = None
    router_version: Optional[RouterVersion] = None


@dataclass(frozen=True)
class QuoteUpdated:
    generation: int
    quote: Quote


@dataclass(frozen=True)
class QuoteFailed:
    generation: int
    error: QuoteError


@dataclass(frozen=True)
class QuoteCleared:
    generation: int


@dataclass(frozen=True)
class SwapStarted:
    request_id: int


@dataclass(frozen=True)
class SwapSettled:
    transaction: SwapTransaction


@dataclass(frozen=True)
class HistoryLoading:
    pass


@dataclass(frozen=True)
class HistoryUpdated:
    entries: List[HistoryEntry]
