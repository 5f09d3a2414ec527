"""
Swap session: one coordinator, one event queue, one state value.

Components never write session state directly. They publish typed events
onto `SwapSession.events`; the session folds each event into a new
`SessionState` with the pure `reduce()` and then runs the follow-up side
effects (quote requests, history refreshes).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Optional, Tuple

from connectors.base import SwapGateway
from core.config import EngineConfig, PROTOCOL_FEE_BPS
from core.errors import ErrorKind, QuoteError, SwapError, SwapInProgressError, classify_error
from core.telegram_notifier import TelegramNotifier
from core.token_registry import Token, TokenRegistry
from swap.approval_gate import ApprovalGate
from swap.events import (
    HistoryLoading,
    HistoryUpdated,
    InputChanged,
    QuoteCleared,
    QuoteFailed,
    QuoteUpdated,
    SettingsChanged,
    SwapSettled,
    SwapStarted,
)
from swap.history_fetcher import HistoryFetcher, history_retry_config
from swap.models import HistoryEntry, Quote, RouterVersion, SwapRequest, SwapTransaction
from swap.pricing import (
    compute_min_amount_out,
    exchange_rate,
    format_amount,
    is_high_impact,
    protocol_fee_amount,
)
from swap.quote_engine import QuoteEngine
from swap.resilience import Sleep
from swap.swap_executor import SwapExecutor

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    token_in: Optional[Token] = None
    token_out: Optional[Token] = None
    amount_in_text: str = ""
    amount_out_text: str = ""
    quote: Optional[Quote] = None
    quote_error: Optional[QuoteError] = None
    price_impact_pct: Optional[Decimal] = None
    quote_generation: int = 0
    quote_loading: bool = False
    slippage_bps: int = 50
    router_version: RouterVersion = RouterVersion.AUTO
    swap_in_flight: bool = False
    last_transaction: Optional[SwapTransaction] = None
    history: Tuple[HistoryEntry, ...] = ()
    history_loading: bool = False


@dataclass(frozen=True)
class SwapPreview:
    rate: Optional[Decimal]
    protocol_fee: int
    min_received: int
    price_impact_pct: Decimal
    high_impact: bool


def _without_quote(state: SessionState, **changes: Any) -> SessionState:
    changes.setdefault("quote_loading", False)
    return replace(state, quote=None, amount_out_text="", price_impact_pct=None, **changes)


def reduce(state: SessionState, event: Any) -> SessionState:
    """Return the state after `event`. Pure: no I/O, no mutation."""
    if isinstance(event, InputChanged):
        return _without_quote(
            state,
            token_in=event.token_in,
            token_out=event.token_out,
            amount_in_text=event.amount_in_text,
            quote_error=None,
            quote_generation=event.generation,
            quote_loading=bool(event.amount_in_text.strip()),
        )
    if isinstance(event, SettingsChanged):
        return replace(
            state,
            slippage_bps=state.slippage_bps if event.slippage_bps is None else event.slippage_bps,
            router_version=state.router_version if event.router_version is None else event.router_version,
        )
    if isinstance(event, (QuoteUpdated, QuoteFailed, QuoteCleared)):
        # a swap in flight owns the quote; stale generations lost the race
        if state.swap_in_flight or event.generation != state.quote_generation:
            return state
        if isinstance(event, QuoteUpdated):
            q = event.quote
            return replace(
                state,
                quote=q,
                quote_error=None,
                amount_out_text=format_amount(q.amount_out, q.token_out.decimals),
                price_impact_pct=q.price_impact_pct,
                quote_loading=False,
            )
        if isinstance(event, QuoteFailed):
            return _without_quote(state, quote_error=event.error)
        return _without_quote(state, quote_error=None)
    if isinstance(event, SwapStarted):
        return replace(state, swap_in_flight=True)
    if isinstance(event, SwapSettled):
        return _without_quote(
            state,
            swap_in_flight=False,
            last_transaction=event.transaction,
            amount_in_text="",
            quote_error=None,
        )
    if isinstance(event, HistoryLoading):
        return replace(state, history_loading=True)
    if isinstance(event, HistoryUpdated):
        return replace(state, history=tuple(event.entries), history_loading=False)
    log.debug("ignoring unknown event %r", event)
    return state


def preview_quote(quote: Quote, slippage_bps: int) -> SwapPreview:
    return SwapPreview(
        rate=exchange_rate(quote.amount_in, quote.token_in.decimals, quote.amount_out, quote.token_out.decimals),
        protocol_fee=protocol_fee_amount(quote.amount_out, PROTOCOL_FEE_BPS),
        min_received=compute_min_amount_out(quote.amount_out, slippage_bps),
        price_impact_pct=quote.price_impact_pct,
        high_impact=is_high_impact(quote.price_impact_pct),
    )


class SwapSession:
    """Wires QuoteEngine, ApprovalGate, SwapExecutor and HistoryFetcher for one wallet."""

    def __init__(
        self,
        gateway: SwapGateway,
        registry: TokenRegistry,
        owner: str,
        config: Optional[EngineConfig] = None,
        notifier: Optional[TelegramNotifier] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        cfg = config or EngineConfig()
        self.config = cfg
        self.gateway = gateway
        self.registry = registry
        self.owner = owner
        self.events: asyncio.Queue = asyncio.Queue()
        self.state = SessionState(slippage_bps=cfg.default_slippage_bps)
        publish = self.events.put_nowait

        self.executor = SwapExecutor(gateway, publish=publish, receipt_timeout=cfg.receipt_timeout_seconds, notifier=notifier)
        self.quotes = QuoteEngine(
            gateway,
            registry,
            publish=publish,
            is_suspended=lambda: self.executor.in_flight,
            debounce_seconds=cfg.debounce_seconds,
            refresh_seconds=cfg.quote_refresh_seconds,
            sleep=sleep,
        )
        self.approvals = ApprovalGate(gateway, poll_interval=cfg.approval_poll_seconds, max_attempts=cfg.approval_max_attempts, sleep=sleep)
        self.history = HistoryFetcher(
            gateway,
            registry,
            publish=publish,
            block_window=cfg.history_block_window,
            max_entries=cfg.history_max_entries,
            retry_config=history_retry_config(cfg.history_retries, cfg.history_backoff_seconds),
            sleep=sleep,
        )
        self._consumer: Optional[asyncio.Task] = None

    # ----------------------------
    # event loop plumbing
    # ----------------------------
    def start(self) -> None:
        """Consume events in the background and load history once."""
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume())
        self.history.refresh(self.owner)

    async def _consume(self) -> None:
        while True:
            event = await self.events.get()
            self._dispatch(event)

    def _dispatch(self, event: Any) -> None:
        self.state = reduce(self.state, event)
        if isinstance(event, SwapSettled):
            self.history.refresh(self.owner)

    async def drain(self) -> SessionState:
        """Apply every queued event now."""
        while not self.events.empty():
            self._dispatch(self.events.get_nowait())
        return self.state

    async def close(self) -> None:
        if self._consumer is not None:
            self._consumer.cancel()
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None
        await self.quotes.close()
        await self.history.close()

    # ----------------------------
    # user actions
    # ----------------------------
    def set_input(self, token_in: Optional[Token], token_out: Optional[Token], amount_in_text: str) -> None:
        generation = self.quotes.request(token_in, token_out, amount_in_text)
        self.events.put_nowait(InputChanged(token_in, token_out, amount_in_text, generation))

    def set_amount(self, amount_in_text: str) -> None:
        self.set_input(self.state.token_in, self.state.token_out, amount_in_text)

    def set_tokens(self, token_in: Token, token_out: Token) -> None:
        self.set_input(token_in, token_out, self.state.amount_in_text)

    def switch_tokens(self) -> None:
        """Flip the pair; the current output amount becomes the new input."""
        s = self.state
        self.set_input(s.token_out, s.token_in, s.amount_out_text)

    async def set_max_amount(self) -> str:
        token = self.state.token_in
        if token is None:
            return ""
        balance = await self.gateway.get_balance(token.address, self.owner)
        text = format_amount(balance, token.decimals, places=token.decimals)
        self.set_amount(text)
        return text

    def update_settings(self, slippage_bps: Optional[int] = None, router_version: Optional[RouterVersion] = None) -> None:
        if slippage_bps is not None and not 0 <= slippage_bps < 10_000:
            raise ValueError("slippage_bps must be between 0 and 9999")
        self.events.put_nowait(SettingsChanged(slippage_bps, router_version))

    def preview(self) -> Optional[SwapPreview]:
        if self.state.quote is None:
            return None
        return preview_quote(self.state.quote, self.state.slippage_bps)

    def build_request(self) -> SwapRequest:
        s = self.state
        if s.quote is None:
            kind = ErrorKind.NO_LIQUIDITY if s.quote_error is not None else ErrorKind.INVALID_INPUT
            raise SwapError(kind)
        return SwapRequest(
            token_in=s.quote.token_in,
            token_out=s.quote.token_out,
            amount_in=s.quote.amount_in,
            quote=s.quote,
            slippage_bps=s.slippage_bps,
            router_version=s.router_version,
        )

    async def swap(self) -> SwapTransaction:
        """
        Swap the current quote.

        For an ERC-20 input the allowance is checked first and, when short,
        approved and observed on-chain before the swap is submitted. Approval
        failures raise SwapError; swap failures come back as a FAILED
        transaction.
        """
        await self.drain()
        if self.executor.in_flight:
            raise SwapInProgressError("A swap is already in flight")
        request = self.build_request()
        token = request.token_in.address
        router = self.gateway.router_address
        try:
            needed = await self.approvals.needs_approval(self.owner, token, router, request.amount_in)
        except Exception as e:
            raise classify_error(e) from e
        if needed:
            ticket = await self.approvals.approve(self.owner, token, router, request.amount_in)
            if not ticket.ok:
                raise ticket.error or SwapError(ErrorKind.UNKNOWN)
        tx = await self.executor.execute(request)
        # settled swaps empty the amount; queued behind SwapSettled so later input wins
        self.set_input(request.token_in, request.token_out, "")
        return tx

    def refresh_history(self) -> asyncio.Task:
        return self.history.refresh(self.owner)
