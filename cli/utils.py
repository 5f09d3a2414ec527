"""
Shared CLI utilities.
"""
import getpass
from typing import Optional, Tuple

from connectors.dex.baseswap import BaseSwapClient
from core.config import BASE_MAINNET_CHAIN_ID, BASE_SEPOLIA_CHAIN_ID, ChainConfig, load_chain_config
from core.keystore import Keystore, WalletSession
from core.token_registry import Token, TokenRegistry


def prompt(prompt_text: str) -> str:
    """Prompt user for input with EOF handling."""
    try:
        return input(prompt_text)
    except EOFError:
        return ""


def input_int(prompt_text: str, default: Optional[int] = None) -> Optional[int]:
    val = prompt(prompt_text).strip()
    if val == "":
        return default
    try:
        return int(val)
    except ValueError:
        print("Invalid number.")
        return None


def select_chain() -> Optional[ChainConfig]:
    chain_id = input_int(f"Chain ({BASE_MAINNET_CHAIN_ID} Base / {BASE_SEPOLIA_CHAIN_ID} Base Sepolia) [{BASE_MAINNET_CHAIN_ID}]: ", BASE_MAINNET_CHAIN_ID)
    if chain_id is None:
        return None
    try:
        return load_chain_config(chain_id)
    except ValueError as e:
        print(f"Error: {e}")
        return None


def unlock_wallet(ks: Keystore) -> Optional[WalletSession]:
    ks.load()
    wallets = ks.list_wallets()
    if not wallets:
        print("No wallets saved.")
        return None
    print("Select wallet:")
    for i, w in enumerate(wallets, start=1):
        print(f"  {i}) {w.name} ({w.address[:10]}...)")
    idx = input_int("Enter number: ")
    if idx is None or idx < 1 or idx > len(wallets):
        print("Invalid selection.")
        return None
    pw = getpass.getpass("Keystore passphrase: ")
    try:
        return ks.unlock(wallets[idx - 1].name, pw)
    except (PermissionError, KeyError) as e:
        print(f"Error unlocking wallet: {e}")
        return None


def open_client(ks: Keystore) -> Optional[Tuple[BaseSwapClient, TokenRegistry, WalletSession]]:
    """Chain, wallet and token list for a menu that talks to the router."""
    chain = select_chain()
    if chain is None:
        return None
    wallet = unlock_wallet(ks)
    if wallet is None:
        return None
    registry = TokenRegistry(chain.network, wrapped_native=chain.wrapped_native)
    client = BaseSwapClient(chain, account=wallet.account)
    return client, registry, wallet


def pick_token(registry: TokenRegistry, label: str, default: str) -> Optional[Token]:
    symbols = ", ".join(registry.list_symbols())
    symbol = prompt(f"{label} token ({symbols}) [{default}]: ").strip().upper() or default
    try:
        return registry.get(symbol)
    except KeyError as e:
        print(f"Error: {e}")
        return None
