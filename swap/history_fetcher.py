"""
Swap history from the router's Swap events, newest first.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from connectors.base import SwapGateway
from core.token_registry import TokenRegistry
from swap.events import HistoryLoading, HistoryUpdated
from swap.models import HistoryEntry, SwapLog
from swap.resilience import ConnectionMonitor, RetryConfig, Sleep, retry_async

log = logging.getLogger(__name__)


def history_retry_config(retries: int = 3, backoff_seconds: float = 2.0) -> RetryConfig:
    """2s, 4s, 8s with the defaults; no jitter so the schedule is exact."""
    return RetryConfig(
        max_retries=retries,
        initial_delay=backoff_seconds,
        max_delay=backoff_seconds * 2 ** max(retries, 0),
        exponential_base=2.0,
        jitter=False,
    )


class HistoryFetcher:
    """
    Best-effort list of the user's recent swaps, read from router Swap events.

    Only a recent block window is scanned. Failures are retried with backoff
    and then dropped: the caller keeps whatever it showed before.
    """

    def __init__(
        self,
        gateway: SwapGateway,
        registry: TokenRegistry,
        publish: Callable[[Any], None] = lambda event: None,
        block_window: int = 10_000,
        max_entries: int = 20,
        retry_config: Optional[RetryConfig] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self._publish = publish
        self.block_window = block_window
        self.max_entries = max_entries
        self.retry_config = retry_config or history_retry_config()
        self._sleep = sleep
        self.monitor = ConnectionMonitor("history")
        self.entries: List[HistoryEntry] = []
        self.loading = False
        self._task: Optional[asyncio.Task] = None

    async def _fetch_once(self, owner: str) -> List[HistoryEntry]:
        latest = await self.gateway.block_number()
        from_block = max(0, latest - self.block_window)
        logs = await self.gateway.get_swap_logs(owner, from_block, latest)
        if not logs:
            return []
        recent = list(reversed(logs[-self.max_entries:]))
        timestamps = await asyncio.gather(*(self.gateway.get_block_timestamp(lg.block_hash) for lg in recent))
        return [self._to_entry(lg, ts) for lg, ts in zip(recent, timestamps)]

    def _to_entry(self, lg: SwapLog, timestamp: int) -> HistoryEntry:
        return HistoryEntry(
            hash=lg.tx_hash,
            block_number=lg.block_number,
            timestamp=int(timestamp),
            token_in=self.registry.resolve_address(lg.token_in),
            token_out=self.registry.resolve_address(lg.token_out),
            amount_in=lg.amount_in,
            amount_out=lg.amount_out,
            fee_paid=lg.fee,
            router_version=lg.router_version,
        )

    async def fetch_history(self, owner: str) -> List[HistoryEntry]:
        """
        Fetch the newest swaps for `owner`, newest first.

        Never raises for remote failures: after the last retry the previous
        entries are returned unchanged.
        """
        self.loading = True
        self._publish(HistoryLoading())

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            self.monitor.record_failure(error)
            log.info("history fetch failed (attempt %d): %s; retrying in %.0fs", attempt + 1, error, delay)

        try:
            entries = await retry_async(
                lambda: self._fetch_once(owner),
                retry_config=self.retry_config,
                retry_on=lambda e: True,
                on_retry=on_retry,
                sleep=self._sleep,
            )
        except asyncio.CancelledError:
            self.loading = False
            raise
        except Exception as e:
            self.monitor.record_failure(e)
            log.warning("giving up on history after %d retries: %s", self.retry_config.max_retries, e)
            self.loading = False
            self._publish(HistoryUpdated(list(self.entries)))
            return list(self.entries)

        self.monitor.record_success()
        self.entries = entries
        self.loading = False
        self._publish(HistoryUpdated(list(entries)))
        return list(entries)

    def refresh(self, owner: str) -> asyncio.Task:
        """Restart the fetch in the background, cancelling one already running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.create_task(self.fetch_history(owner))
        return self._task

    async def close(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    def explorer_url(self, entry: HistoryEntry) -> str:
        return self.gateway.tx_explorer_url(entry.hash)
