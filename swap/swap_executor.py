"""
Swap execution: one router transaction at a time.

The executor owns the in-flight flag. It publishes SwapStarted before
submitting and SwapSettled once the receipt (or the failure) is known.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from connectors.base import SwapGateway
from core.errors import ErrorKind, SwapError, SwapInProgressError, classify_error
from core.telegram_notifier import TelegramNotifier
from swap.events import SwapSettled, SwapStarted
from swap.models import ExecutorState, RouterCall, SwapRequest, SwapTransaction, TxStatus
from swap.pricing import compute_min_amount_out, format_amount

log = logging.getLogger(__name__)


def build_router_call(request: SwapRequest, min_amount_out: int) -> RouterCall:
    """Pick the router entry point from which leg is the native asset."""
    version = int(request.router_version)
    if request.token_in.is_native and request.token_out.is_native:
        raise ValueError("Cannot swap the native asset for itself")
    if request.token_in.is_native:
        return RouterCall(
            function="swapETHToToken",
            args=(request.token_out.address, int(min_amount_out), version),
            value=int(request.amount_in),
        )
    if request.token_out.is_native:
        return RouterCall(
            function="swapTokenToETH",
            args=(request.token_in.address, int(request.amount_in), int(min_amount_out), version),
        )
    return RouterCall(
        function="swapTokenToToken",
        args=(request.token_in.address, request.token_out.address, int(request.amount_in), int(min_amount_out), version),
    )


class SwapExecutor:
    """
    Submits one swap at a time and follows it to a terminal state.

    `in_flight` is the only flag shared with the quote engine: it is set when
    a swap enters SUBMITTING and cleared once the transaction is CONFIRMED or
    FAILED.
    """

    def __init__(
        self,
        gateway: SwapGateway,
        publish: Callable[[Any], None] = lambda event: None,
        receipt_timeout: float = 180.0,
        notifier: Optional[TelegramNotifier] = None,
    ) -> None:
        self.gateway = gateway
        self._publish = publish
        self.receipt_timeout = receipt_timeout
        self.notifier = notifier
        self.state = ExecutorState.IDLE
        self.current: Optional[SwapTransaction] = None
        self._in_flight = False
        self._request_id = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def execute(self, request: SwapRequest) -> SwapTransaction:
        if self._in_flight:
            raise SwapInProgressError("A swap is already in flight")
        min_out = compute_min_amount_out(request.quote.amount_out, request.slippage_bps)
        tx = SwapTransaction(request=request, min_amount_out=min_out)

        self._in_flight = True
        self._request_id += 1
        self.state = ExecutorState.SUBMITTING
        self.current = tx
        self._publish(SwapStarted(self._request_id))
        try:
            tx = await self._submit_and_wait(tx)
        finally:
            if not tx.is_terminal:
                # cancelled while waiting; a broadcast tx may still land
                tx = (self.current or tx).settle(TxStatus.FAILED, error=SwapError(ErrorKind.UNKNOWN, raw="swap tracking cancelled"))
            self.current = tx
            self.state = ExecutorState.CONFIRMED if tx.status is TxStatus.CONFIRMED else ExecutorState.FAILED
            self._in_flight = False
            self._publish(SwapSettled(tx))
            self._notify(tx)
        return tx

    async def _submit_and_wait(self, tx: SwapTransaction) -> SwapTransaction:
        request = tx.request
        try:
            call = build_router_call(request, tx.min_amount_out)
            tx_hash = await self.gateway.submit_router_call(call)
        except Exception as e:
            return self._fail(tx, e)

        tx = SwapTransaction(
            request=request,
            min_amount_out=tx.min_amount_out,
            hash=tx_hash,
            explorer_url=self.gateway.tx_explorer_url(tx_hash),
        )
        self.state = ExecutorState.PENDING
        self.current = tx
        log.info("swap %s -> %s submitted: %s", request.token_in.symbol, request.token_out.symbol, tx_hash)

        try:
            receipt = await self.gateway.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        except Exception as e:
            return self._fail(tx, e)

        if receipt.status == 1:
            log.info("swap %s confirmed in block %s", tx_hash, receipt.block_number)
            return tx.settle(TxStatus.CONFIRMED, block_number=receipt.block_number)
        error = SwapError(ErrorKind.CONTRACT_REVERTED, raw=f"receipt status {receipt.status} for {tx_hash}")
        log.warning("swap %s reverted in block %s", tx_hash, receipt.block_number)
        return tx.settle(TxStatus.FAILED, block_number=receipt.block_number, error=error)

    def _fail(self, tx: SwapTransaction, exc: BaseException) -> SwapTransaction:
        error = classify_error(exc)
        log.warning("swap failed (%s): %s", error.kind.value, error.raw)
        return tx.settle(TxStatus.FAILED, error=error)

    def _notify(self, tx: SwapTransaction) -> None:
        if self.notifier is None:
            return
        req = tx.request
        amount = format_amount(req.amount_in, req.token_in.decimals)
        pair = f"{amount} {req.token_in.symbol} → {req.token_out.symbol}"
        if tx.status is TxStatus.CONFIRMED:
            self.notifier.notify_success(f"Swap confirmed: {pair}\n{tx.explorer_url}")
        else:
            reason = tx.error.user_message if tx.error else "unknown error"
            self.notifier.notify_critical(f"Swap failed: {pair}\n{reason}")
