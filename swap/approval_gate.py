"""ERC-20 allowance checks and approvals for the swap router."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from connectors.base import SwapGateway
from core.config import NATIVE_ADDRESS
from core.errors import ApprovalTimeoutError, SwapError, SwapInProgressError, classify_error
from swap.models import Allowance
from swap.resilience import Sleep

log = logging.getLogger(__name__)

MAX_UINT256 = 2 ** 256 - 1


def allowance_covers(allowance: Optional[Allowance], amount: int) -> bool:
    return allowance is not None and allowance.amount >= int(amount)


@dataclass
class ApprovalTicket:
    """Outcome of one approve() call. Resolved once the allowance is observed on-chain."""
    token: str
    spender: str
    amount: int
    tx_hash: Optional[str] = None
    polls: int = 0
    allowance: Optional[Allowance] = None
    error: Optional[SwapError] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.error is None and allowance_covers(self.allowance, self.amount)


class ApprovalGate:
    """
    Tracks the ERC-20 allowance of the input token towards the router.

    An approval only counts once a fresh allowance read shows it; a mined
    approve receipt is not enough because read nodes can lag behind.
    """

    def __init__(
        self,
        gateway: SwapGateway,
        poll_interval: float = 1.0,
        max_attempts: Optional[int] = 120,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep
        self.last_allowance: Optional[Allowance] = None
        self._pending = False

    async def read_allowance(self, owner: str, token: str, spender: str) -> Allowance:
        amount = await self.gateway.get_allowance(token, owner, spender)
        self.last_allowance = Allowance(owner=owner, spender=spender, token=token, amount=int(amount))
        return self.last_allowance

    async def needs_approval(self, owner: str, token: str, spender: str, amount: int) -> bool:
        if token.lower() == NATIVE_ADDRESS:
            return False
        allowance = await self.read_allowance(owner, token, spender)
        return not allowance_covers(allowance, amount)

    async def approve(self, owner: str, token: str, spender: str, amount: int) -> ApprovalTicket:
        """
        Submit approve(spender, amount) and poll until the allowance reaches `amount`.

        A rejected submission fails the ticket without polling. Read errors
        while polling are logged and polling continues. With max_attempts set,
        the ticket fails with ApprovalTimeoutError once the attempts run out.
        """
        if self._pending:
            raise SwapInProgressError("An approval is already pending")
        self._pending = True
        try:
            return await self._approve(owner, token, spender, int(amount))
        finally:
            self._pending = False

    async def _approve(self, owner: str, token: str, spender: str, amount: int) -> ApprovalTicket:
        ticket = ApprovalTicket(token=token, spender=spender, amount=int(amount))
        try:
            ticket.tx_hash = await self.gateway.submit_approve(token, spender, int(amount))
        except Exception as e:
            ticket.error = classify_error(e)
            log.warning("approve %s submission failed: %s", token, ticket.error.raw)
            return ticket

        log.info("approval sent %s; waiting for allowance >= %d", ticket.tx_hash, amount)
        while self.max_attempts is None or ticket.polls < self.max_attempts:
            await self._sleep(self.poll_interval)
            ticket.polls += 1
            try:
                allowance = await self.read_allowance(owner, token, spender)
            except Exception as e:
                log.warning("allowance read failed (poll %d): %s", ticket.polls, e)
                continue
            ticket.allowance = allowance
            if allowance_covers(allowance, amount):
                log.info("allowance confirmed for %s after %d polls", token, ticket.polls)
                return ticket

        ticket.error = ApprovalTimeoutError(raw=f"allowance below {amount} after {ticket.polls} polls")
        log.warning("approval %s not observed after %d polls", ticket.tx_hash, ticket.polls)
        return ticket
