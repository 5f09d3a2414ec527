"""
Live quoting against the Uniswap V3 quoter.

`request()` is the entry point for input changes. It debounces, runs one
authoritative fetch per input generation, publishes the outcome and then
keeps the quote fresh on a fixed interval until the input changes again.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

from connectors.base import SwapGateway
from core.errors import NoLiquidityError
from core.token_registry import Token, TokenRegistry
from swap.events import QuoteCleared, QuoteFailed, QuoteUpdated
from swap.models import FeeTier, Quote
from swap.pricing import estimate_price_impact, parse_amount, to_decimal
from swap.resilience import ConnectionMonitor, Sleep, is_network_error

log = logging.getLogger(__name__)

STABLE_PAIR_TIERS = [FeeTier.T1, FeeTier.T2, FeeTier.T3]
DEFAULT_PAIR_TIERS = [FeeTier.T2, FeeTier.T1, FeeTier.T3]


def fee_tiers_for(token_in: Token, token_out: Token) -> List[FeeTier]:
    """Fee tiers to try, most likely pool first."""
    if token_in.is_stable and token_out.is_stable:
        return list(STABLE_PAIR_TIERS)
    return list(DEFAULT_PAIR_TIERS)


class QuoteEngine:
    def __init__(
        self,
        gateway: SwapGateway,
        registry: TokenRegistry,
        publish: Callable[[Any], None],
        is_suspended: Callable[[], bool] = lambda: False,
        debounce_seconds: float = 0.5,
        refresh_seconds: float = 10.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self._publish = publish
        self._is_suspended = is_suspended
        self.debounce_seconds = debounce_seconds
        self.refresh_seconds = refresh_seconds
        self._sleep = sleep
        self.monitor = ConnectionMonitor("quote")
        self._generation = 0
        self._inputs: Optional[Tuple[Token, Token, str]] = None
        self._debounce_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def generation(self) -> int:
        return self._generation

    async def fetch_quote(self, token_in: Token, token_out: Token, amount_text: str) -> Optional[Quote]:
        """
        Quote `amount_text` of token_in for token_out.

        Returns None when there is nothing to quote (empty, non-positive or
        unparseable amount, or identical legs). Raises NoLiquidityError when
        every fee tier fails.
        """
        amount_in = parse_amount(amount_text, token_in.decimals)
        if amount_in is None:
            return None
        quoter_in = self.registry.quoter_address(token_in)
        quoter_out = self.registry.quoter_address(token_out)
        if quoter_in.lower() == quoter_out.lower():
            return None

        for fee in fee_tiers_for(token_in, token_out):
            try:
                amount_out = await self.gateway.quote_exact_input_single(quoter_in, quoter_out, amount_in, int(fee))
            except Exception as e:
                if is_network_error(e):
                    self.monitor.record_failure(e)
                log.debug("quote %s->%s fee %d failed: %s", token_in.symbol, token_out.symbol, fee, e)
                continue
            self.monitor.record_success()
            if amount_out <= 0:
                continue
            return Quote(
                token_in=token_in,
                token_out=token_out,
                amount_in=amount_in,
                amount_out=int(amount_out),
                fee_tier=fee,
                price_impact_pct=estimate_price_impact(to_decimal(amount_in, token_in.decimals)),
            )
        raise NoLiquidityError()

    # ----------------------------
    # scheduling
    # ----------------------------
    def request(self, token_in: Optional[Token], token_out: Optional[Token], amount_text: str) -> int:
        """Register an input change; returns the new generation."""
        self._generation += 1
        self._cancel(self._debounce_task)
        self._cancel(self._refresh_task)
        self._debounce_task = None
        self._refresh_task = None
        if token_in is None or token_out is None or not amount_text.strip():
            self._inputs = None
            self._publish(QuoteCleared(self._generation))
            return self._generation
        self._inputs = (token_in, token_out, amount_text)
        self._debounce_task = asyncio.create_task(self._debounced(self._generation))
        return self._generation

    async def close(self) -> None:
        self._generation += 1
        tasks = [t for t in (self._debounce_task, self._fetch_task, self._refresh_task) if t is not None]
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._debounce_task = self._fetch_task = self._refresh_task = None

    async def _debounced(self, generation: int) -> None:
        await self._sleep(self.debounce_seconds)
        if generation != self._generation:
            return
        self._fetch_task = asyncio.create_task(self._run_fetch(generation, is_refresh=False))

    async def _run_fetch(self, generation: int, is_refresh: bool) -> None:
        if self._inputs is None:
            return
        token_in, token_out, amount_text = self._inputs
        try:
            quote = await self.fetch_quote(token_in, token_out, amount_text)
        except NoLiquidityError as e:
            if generation == self._generation and not self._is_suspended():
                self._cancel(self._refresh_task)
                self._refresh_task = None
                self._publish(QuoteFailed(generation, e))
            return
        if generation != self._generation:
            log.debug("discarding quote for superseded input (gen %d, now %d)", generation, self._generation)
            return
        if self._is_suspended():
            log.debug("swap in flight; discarding quote result")
            return
        if quote is None:
            self._publish(QuoteCleared(generation))
            return
        self._publish(QuoteUpdated(generation, quote))
        if not is_refresh and self._refresh_task is None:
            self._refresh_task = asyncio.create_task(self._refresh_loop(generation))

    async def _refresh_loop(self, generation: int) -> None:
        while generation == self._generation:
            await self._sleep(self.refresh_seconds)
            if generation != self._generation:
                return
            if self._is_suspended():
                continue
            if self._fetch_task is not None and not self._fetch_task.done():
                log.debug("previous refresh still outstanding; skipping tick")
                continue
            self._fetch_task = asyncio.create_task(self._run_fetch(generation, is_refresh=True))

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()
