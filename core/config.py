from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional


NATIVE_ADDRESS = "0x0000000000000000000000000000000000000000"

BASE_MAINNET_CHAIN_ID = 8453
BASE_SEPOLIA_CHAIN_ID = 84532

# Router fee taken on output (3%) and the extra margin added on top of
# the user's slippage when computing the minimum output.
PROTOCOL_FEE_BPS = 300
EXECUTION_BUFFER_BPS = 50
DEFAULT_SLIPPAGE_BPS = 50
SLIPPAGE_PRESETS_BPS = (50, 100, 200)


DEFAULTS: Dict[int, Dict[str, str]] = {
    BASE_MAINNET_CHAIN_ID: {
        "name": "Base",
        "rpc_url": "https://mainnet.base.org",
        "router": "0x372042003cE6968856401A79454a8574936690D1",
        "quoter": "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a",
        "wrapped_native": "0x4200000000000000000000000000000000000006",
        "explorer_tx_url": "https://basescan.org/tx/",
        "network": "mainnet",
    },
    BASE_SEPOLIA_CHAIN_ID: {
        "name": "Base Sepolia",
        "rpc_url": "https://sepolia.base.org",
        "router": "",
        "quoter": "0xC5290058841028F1614F3A6F0F5816cAd0df5E27",
        "wrapped_native": "0x4200000000000000000000000000000000000006",
        "explorer_tx_url": "https://sepolia.basescan.org/tx/",
        "network": "testnet",
    },
}


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int
    name: str
    rpc_url: str
    router: str
    quoter: str
    wrapped_native: str
    explorer_tx_url: str
    network: str = "mainnet"
    native_symbol: str = "ETH"

    def tx_url(self, tx_hash: str) -> str:
        h = tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
        return f"{self.explorer_tx_url}{h}"


def load_chain_config(
    chain_id: int = BASE_MAINNET_CHAIN_ID,
    *,
    rpc_url: Optional[str] = None,
    router_address: Optional[str] = None,
) -> ChainConfig:
    """
    Build the chain configuration from DEFAULTS.

    Explicit arguments win over BASESWAP_RPC_URL / BASESWAP_ROUTER_ADDRESS,
    which win over the built-in defaults.
    """
    if chain_id not in DEFAULTS:
        raise ValueError(f"Unsupported chain id {chain_id}")
    d = DEFAULTS[chain_id]
    router = router_address or os.getenv("BASESWAP_ROUTER_ADDRESS") or d["router"]
    if not router:
        raise ValueError(f"No router address configured for chain {chain_id}; set BASESWAP_ROUTER_ADDRESS")
    return ChainConfig(
        chain_id=chain_id,
        name=d["name"],
        rpc_url=rpc_url or os.getenv("BASESWAP_RPC_URL") or d["rpc_url"],
        router=router,
        quoter=d["quoter"],
        wrapped_native=d["wrapped_native"],
        explorer_tx_url=d["explorer_tx_url"],
        network=d["network"],
    )


@dataclass(frozen=True)
class EngineConfig:
    """Timing and sizing knobs for the quote, approval, swap and history loops."""
    debounce_seconds: float = 0.5
    quote_refresh_seconds: float = 10.0
    approval_poll_seconds: float = 1.0
    approval_max_attempts: Optional[int] = 120  # None polls until the allowance shows up
    history_block_window: int = 10_000
    history_max_entries: int = 20
    history_retries: int = 3
    history_backoff_seconds: float = 2.0
    receipt_timeout_seconds: float = 180.0
    default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS
