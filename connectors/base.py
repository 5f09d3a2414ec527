from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Union

from swap.models import RouterCall, SwapLog, TxReceipt


class SwapGateway(ABC):
    """
    Abstract chain access for the swap engine.

    The engine only talks to the router, the V3 quoter and ERC-20 tokens
    through this interface, so it can be driven by a real RPC client or by a
    fake in tests. All amounts are integers in base units; all calls are
    coroutines.
    """

    router_address: str

    @property
    @abstractmethod
    def account_address(self) -> Optional[str]:
        """Address of the signing account, if one is loaded."""

    @abstractmethod
    async def quote_exact_input_single(self, token_in: str, token_out: str, amount_in: int, fee: int) -> int:
        """Simulate a single-hop exact-input swap on the V3 quoter. Return amountOut."""

    @abstractmethod
    async def router_quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        """The router's own simplified quote path."""

    @abstractmethod
    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        """ERC-20 allowance(owner, spender)."""

    @abstractmethod
    async def get_balance(self, token: str, owner: str) -> int:
        """Native balance for the zero address, ERC-20 balanceOf otherwise."""

    @abstractmethod
    async def submit_approve(self, token: str, spender: str, amount: int) -> str:
        """Sign and broadcast approve(spender, amount). Return tx hash."""

    @abstractmethod
    async def submit_router_call(self, call: RouterCall) -> str:
        """Sign and broadcast a router swap call. Return tx hash."""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        """Wait until the transaction is mined."""

    @abstractmethod
    async def block_number(self) -> int:
        """Latest block number."""

    @abstractmethod
    async def get_swap_logs(self, user: str, from_block: int, to_block: int) -> List[SwapLog]:
        """Decoded router Swap events for `user`, oldest first."""

    @abstractmethod
    async def get_block_timestamp(self, block: Union[str, int]) -> int:
        """Timestamp of a block, by hash or number."""

    @abstractmethod
    async def fee_percent(self) -> int:
        """Router protocol fee as configured on-chain."""

    @abstractmethod
    async def supported_tokens(self) -> List[str]:
        """Token addresses the router accepts."""

    @abstractmethod
    def tx_explorer_url(self, tx_hash: str) -> str:
        """Return a block explorer URL for a transaction."""
