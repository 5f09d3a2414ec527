from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3, Web3
from web3.contract import AsyncContract

from connectors.base import SwapGateway
from core.config import NATIVE_ADDRESS, ChainConfig
from swap.models import RouterCall, SwapLog, TxReceipt

log = logging.getLogger(__name__)


ERC20_ABI = [
    {"constant": False, "inputs": [{"name": "spender", "type": "address"}, {"name": "amount", "type": "uint256"}], "name": "approve", "outputs": [{"name": "", "type": "bool"}], "type": "function", "stateMutability": "nonpayable"},
    {"constant": True, "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}], "name": "allowance", "outputs": [{"name": "", "type": "uint256"}], "type": "function", "stateMutability": "view"},
    {"constant": True, "inputs": [{"name": "account", "type": "address"}], "name": "balanceOf", "outputs": [{"name": "", "type": "uint256"}], "type": "function", "stateMutability": "view"},
    {"constant": True, "inputs": [], "name": "decimals", "outputs": [{"name": "", "type": "uint8"}], "type": "function", "stateMutability": "view"},
    {"constant": True, "inputs": [], "name": "symbol", "outputs": [{"name": "", "type": "string"}], "type": "function", "stateMutability": "view"},
    {"constant": True, "inputs": [], "name": "name", "outputs": [{"name": "", "type": "string"}], "type": "function", "stateMutability": "view"},
]

# Uniswap V3 QuoterV2 (struct params)
QUOTER_V2_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "tokenIn", "type": "address"},
                    {"internalType": "address", "name": "tokenOut", "type": "address"},
                    {"internalType": "uint256", "name": "amountIn", "type": "uint256"},
                    {"internalType": "uint24", "name": "fee", "type": "uint24"},
                    {"internalType": "uint160", "name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "internalType": "struct IQuoterV2.QuoteExactInputSingleParams",
                "name": "params",
                "type": "tuple",
            }
        ],
        "name": "quoteExactInputSingle",
        "outputs": [
            {"internalType": "uint256", "name": "amountOut", "type": "uint256"},
            {"internalType": "uint160", "name": "sqrtPriceX96After", "type": "uint160"},
            {"internalType": "uint32", "name": "initializedTicksCrossed", "type": "uint32"},
            {"internalType": "uint256", "name": "gasEstimate", "type": "uint256"},
        ],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

ROUTER_ABI = [
    {"inputs": [{"name": "_tokenOut", "type": "address"}, {"name": "_minAmountOut", "type": "uint256"}, {"name": "_preferredVersion", "type": "uint8"}], "name": "swapETHToToken", "outputs": [{"name": "amountOut", "type": "uint256"}], "stateMutability": "payable", "type": "function"},
    {"inputs": [{"name": "_tokenIn", "type": "address"}, {"name": "_amountIn", "type": "uint256"}, {"name": "_minAmountOut", "type": "uint256"}, {"name": "_preferredVersion", "type": "uint8"}], "name": "swapTokenToETH", "outputs": [{"name": "amountOut", "type": "uint256"}], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "_tokenIn", "type": "address"}, {"name": "_tokenOut", "type": "address"}, {"name": "_amountIn", "type": "uint256"}, {"name": "_minAmountOut", "type": "uint256"}, {"name": "_preferredVersion", "type": "uint8"}], "name": "swapTokenToToken", "outputs": [{"name": "amountOut", "type": "uint256"}], "stateMutability": "nonpayable", "type": "function"},
    {"inputs": [{"name": "_tokenIn", "type": "address"}, {"name": "_tokenOut", "type": "address"}, {"name": "_amountIn", "type": "uint256"}], "name": "getQuoteV2", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {"inputs": [], "name": "getSupportedTokens", "outputs": [{"name": "", "type": "address[]"}], "stateMutability": "pure", "type": "function"},
    {"inputs": [], "name": "feePercent", "outputs": [{"name": "", "type": "uint256"}], "stateMutability": "view", "type": "function"},
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "user", "type": "address"},
            {"indexed": True, "name": "tokenIn", "type": "address"},
            {"indexed": True, "name": "tokenOut", "type": "address"},
            {"indexed": False, "name": "amountIn", "type": "uint256"},
            {"indexed": False, "name": "amountOut", "type": "uint256"},
            {"indexed": False, "name": "fee", "type": "uint256"},
            {"indexed": False, "name": "routerVersion", "type": "uint8"},
        ],
        "name": "Swap",
        "type": "event",
    },
]

ROUTER_FUNCTIONS = {"swapETHToToken", "swapTokenToETH", "swapTokenToToken"}


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else "0x" + value
    return Web3.to_hex(value)


def decode_swap_event(event: Any) -> SwapLog:
    """Turn a web3 Swap event (AttributeDict or plain dict) into a SwapLog."""
    args = event["args"]
    return SwapLog(
        tx_hash=_hex(event["transactionHash"]),
        block_number=int(event["blockNumber"]),
        block_hash=_hex(event["blockHash"]),
        user=str(args["user"]),
        token_in=str(args["tokenIn"]),
        token_out=str(args["tokenOut"]),
        amount_in=int(args["amountIn"]),
        amount_out=int(args["amountOut"]),
        fee=int(args["fee"]),
        router_version=int(args["routerVersion"]),
    )


class BaseSwapClient(SwapGateway):
    """
    Async web3 client for the Base swap router, the Uniswap V3 quoter and ERC-20 tokens.

    Reads go through eth_call; writes are built locally, signed with the
    loaded account and broadcast as raw transactions.
    """

    def __init__(self, chain: ChainConfig, private_key: Optional[str] = None, account: Optional[LocalAccount] = None, request_timeout: float = 8.0) -> None:
        self.chain = chain
        self.chain_id: int = chain.chain_id
        # Request timeout keeps a stuck public RPC from hanging the event loop's tasks
        self.web3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(chain.rpc_url, request_kwargs={"timeout": request_timeout}))
        if account is None and private_key:
            account = Account.from_key(private_key)
        self._account: Optional[LocalAccount] = account
        self.router_address: str = self.to_checksum(chain.router)
        self.quoter_address: str = self.to_checksum(chain.quoter)
        self._router: AsyncContract = self.web3.eth.contract(address=self.router_address, abi=ROUTER_ABI)
        self._quoter: AsyncContract = self.web3.eth.contract(address=self.quoter_address, abi=QUOTER_V2_ABI)

    def to_checksum(self, address: str) -> str:
        return Web3.to_checksum_address(address)

    @property
    def account_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def erc20(self, token: str) -> AsyncContract:
        return self.web3.eth.contract(address=self.to_checksum(token), abi=ERC20_ABI)

    def _require_account(self) -> LocalAccount:
        if self._account is None:
            raise RuntimeError("Private key is required for this operation")
        return self._account

    # ----------------------------
    # reads
    # ----------------------------
    async def quote_exact_input_single(self, token_in: str, token_out: str, amount_in: int, fee: int) -> int:
        params = (self.to_checksum(token_in), self.to_checksum(token_out), int(amount_in), int(fee), 0)
        out_amount, _, _, _ = await self._quoter.functions.quoteExactInputSingle(params).call()
        return int(out_amount)

    async def router_quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        out = await self._router.functions.getQuoteV2(self.to_checksum(token_in), self.to_checksum(token_out), int(amount_in)).call()
        return int(out)

    async def get_allowance(self, token: str, owner: str, spender: str) -> int:
        return int(await self.erc20(token).functions.allowance(self.to_checksum(owner), self.to_checksum(spender)).call())

    async def get_balance(self, token: str, owner: str) -> int:
        if token.lower() == NATIVE_ADDRESS:
            return int(await self.web3.eth.get_balance(self.to_checksum(owner)))
        return int(await self.erc20(token).functions.balanceOf(self.to_checksum(owner)).call())

    async def block_number(self) -> int:
        return int(await self.web3.eth.block_number)

    async def get_block_timestamp(self, block: Union[str, int]) -> int:
        data = await self.web3.eth.get_block(block)
        return int(data["timestamp"])

    async def get_swap_logs(self, user: str, from_block: int, to_block: int) -> List[SwapLog]:
        events = await self._router.events.Swap().get_logs(
            argument_filters={"user": self.to_checksum(user)},
            from_block=int(from_block),
            to_block=int(to_block),
        )
        return [decode_swap_event(e) for e in events]

    async def fee_percent(self) -> int:
        return int(await self._router.functions.feePercent().call())

    async def supported_tokens(self) -> List[str]:
        return [str(a) for a in await self._router.functions.getSupportedTokens().call()]

    # ----------------------------
    # writes
    # ----------------------------
    async def _default_tx_params(self, value: int = 0) -> Dict:
        account = self._require_account()
        # 'pending' so back-to-back approve + swap do not reuse a nonce
        nonce = await self.web3.eth.get_transaction_count(account.address, "pending")
        params: Dict[str, Any] = {"chainId": self.chain_id, "from": account.address, "nonce": nonce}
        if value:
            params["value"] = int(value)
        return params

    async def _sign_and_send(self, tx: Dict) -> str:
        account = self._require_account()
        if "gas" not in tx:
            tx["gas"] = int(await self.web3.eth.estimate_gas(tx))
        signed = account.sign_transaction(tx)
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
        if raw_tx is None:
            raise RuntimeError("SignedTransaction missing raw transaction bytes")
        tx_hash = await self.web3.eth.send_raw_transaction(raw_tx)
        return self.web3.to_hex(tx_hash)

    async def submit_approve(self, token: str, spender: str, amount: int) -> str:
        contract = self.erc20(token)
        tx = await contract.functions.approve(self.to_checksum(spender), int(amount)).build_transaction(await self._default_tx_params())
        tx_hash = await self._sign_and_send(tx)
        log.info("approve %s for %s sent: %s", token, spender, tx_hash)
        return tx_hash

    async def submit_router_call(self, call: RouterCall) -> str:
        if call.function not in ROUTER_FUNCTIONS:
            raise ValueError(f"Unknown router function {call.function}")
        args = [self.to_checksum(a) if isinstance(a, str) else int(a) for a in call.args]
        fn = getattr(self._router.functions, call.function)(*args)
        tx = await fn.build_transaction(await self._default_tx_params(call.value))
        tx_hash = await self._sign_and_send(tx)
        log.info("%s sent: %s", call.function, tx_hash)
        return tx_hash

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        return TxReceipt(
            tx_hash=_hex(receipt["transactionHash"]),
            status=int(receipt["status"]),
            block_number=int(receipt["blockNumber"]),
            gas_used=int(receipt.get("gasUsed", 0)),
        )

    def tx_explorer_url(self, tx_hash: str) -> str:
        return self.chain.tx_url(tx_hash)
