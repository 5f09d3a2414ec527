from __future__ import annotations

import pytest
from hexbytes import HexBytes

from connectors.dex.baseswap import ROUTER_ABI, BaseSwapClient, decode_swap_event
from core.config import BASE_MAINNET_CHAIN_ID, load_chain_config
from swap.models import RouterCall

USER = "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
WETH = "0x4200000000000000000000000000000000000006"


def swap_event(tx_hash, block_hash):
    return {
        "transactionHash": tx_hash,
        "blockHash": block_hash,
        "blockNumber": 123,
        "args": {
            "user": USER,
            "tokenIn": WETH,
            "tokenOut": USDC,
            "amountIn": 10 ** 18,
            "amountOut": 2_400_000_000,
            "fee": 75_000_000,
            "routerVersion": 3,
        },
    }


def test_decode_swap_event_from_bytes():
    log = decode_swap_event(swap_event(HexBytes(b"\x01" * 32), HexBytes(b"\x02" * 32)))
    assert log.tx_hash == "0x" + "01" * 32
    assert log.block_hash == "0x" + "02" * 32
    assert log.block_number == 123
    assert log.amount_out == 2_400_000_000
    assert log.fee == 75_000_000
    assert log.router_version == 3


def test_decode_swap_event_from_strings():
    log = decode_swap_event(swap_event("ab" * 32, "0x" + "cd" * 32))
    assert log.tx_hash == "0x" + "ab" * 32
    assert log.block_hash == "0x" + "cd" * 32


def test_router_abi_exposes_swap_entry_points():
    names = {e["name"] for e in ROUTER_ABI}
    assert {"swapETHToToken", "swapTokenToETH", "swapTokenToToken", "Swap", "feePercent"} <= names


def make_client():
    chain = load_chain_config(BASE_MAINNET_CHAIN_ID, rpc_url="http://127.0.0.1:1")
    return BaseSwapClient(chain, private_key="0x" + "11" * 32)


def test_client_wiring():
    client = make_client()
    assert client.router_address == "0x372042003cE6968856401A79454a8574936690D1"
    assert client.account_address.startswith("0x")
    assert client.tx_explorer_url("0xabc") == "https://basescan.org/tx/0xabc"


def test_read_only_client_cannot_sign():
    chain = load_chain_config(BASE_MAINNET_CHAIN_ID, rpc_url="http://127.0.0.1:1")
    client = BaseSwapClient(chain)
    assert client.account_address is None
    with pytest.raises(RuntimeError):
        client._require_account()


@pytest.mark.asyncio
async def test_unknown_router_function_rejected():
    with pytest.raises(ValueError):
        await make_client().submit_router_call(RouterCall(function="sweep", args=()))


def test_chain_config_env_overrides(monkeypatch):
    monkeypatch.setenv("BASESWAP_RPC_URL", "https://rpc.example")
    monkeypatch.setenv("BASESWAP_ROUTER_ADDRESS", "0x0000000000000000000000000000000000000001")
    chain = load_chain_config(BASE_MAINNET_CHAIN_ID)
    assert chain.rpc_url == "https://rpc.example"
    assert chain.router.endswith("01")
    assert load_chain_config(BASE_MAINNET_CHAIN_ID, rpc_url="http://x").rpc_url == "http://x"


def test_testnet_needs_router(monkeypatch):
    monkeypatch.delenv("BASESWAP_ROUTER_ADDRESS", raising=False)
    with pytest.raises(ValueError):
        load_chain_config(84532)
    with pytest.raises(ValueError):
        load_chain_config(1)
