from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from core.config import NATIVE_ADDRESS

log = logging.getLogger(__name__)


TOKENS_DIR = os.path.join(os.path.dirname(__file__), "..", "tokens")
BASE_MAINNET_FILE = os.path.abspath(os.path.join(TOKENS_DIR, "base_tokens_mainnet.json"))
BASE_TESTNET_FILE = os.path.abspath(os.path.join(TOKENS_DIR, "base_tokens_testnet.json"))
CUSTOM_MAINNET_FILE = os.path.abspath(os.path.join(TOKENS_DIR, "custom_tokens_mainnet.json"))
CUSTOM_TESTNET_FILE = os.path.abspath(os.path.join(TOKENS_DIR, "custom_tokens_testnet.json"))

STABLE_SYMBOLS = frozenset({"USDC", "USDT", "DAI", "USDBC"})


@dataclass(frozen=True)
class Token:
    address: str
    symbol: str
    name: str
    decimals: int = 18
    logo: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.address.lower() == NATIVE_ADDRESS

    @property
    def is_stable(self) -> bool:
        return self.symbol.upper() in STABLE_SYMBOLS


UNKNOWN_SYMBOL = "???"


def unknown_token(address: str) -> Token:
    return Token(address=address, symbol=UNKNOWN_SYMBOL, name="Unknown", decimals=18)


class TokenRegistry:
    """
    Static token metadata for the Base router.

    - Mainnet and testnet lists under tokens/, plus an optional custom list
    - Case-insensitive lookup by symbol and by address
    - The native asset is listed with the zero address
    """

    def __init__(self, network: str = "mainnet", wrapped_native: Optional[str] = None) -> None:
        if network not in {"mainnet", "testnet"}:
            raise ValueError("network must be 'mainnet' or 'testnet'")
        self.network = network
        self.wrapped_native = wrapped_native
        self._tokens_by_symbol: Dict[str, List[Token]] = {}
        self._tokens_by_address: Dict[str, Token] = {}
        self._load()

    def _load(self) -> None:
        base_path = BASE_MAINNET_FILE if self.network == "mainnet" else BASE_TESTNET_FILE
        custom_path = CUSTOM_MAINNET_FILE if self.network == "mainnet" else CUSTOM_TESTNET_FILE
        if not os.path.exists(base_path):
            raise FileNotFoundError(f"Token list not found at {base_path}")
        with open(base_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        tokens = list(data.get("tokens", []))
        if os.path.exists(custom_path):
            try:
                with open(custom_path, "r", encoding="utf-8") as f:
                    custom = json.load(f)
                tokens.extend(custom.get("tokens", []))
            except (OSError, ValueError) as e:
                log.warning("Ignoring malformed custom token list %s: %s", custom_path, e)
        if self.wrapped_native is None:
            self.wrapped_native = data.get("wrappedNative")
        by_symbol: Dict[str, List[Token]] = {}
        by_address: Dict[str, Token] = {}
        for t in tokens:
            token = Token(
                address=str(t.get("address")),
                symbol=str(t.get("symbol", "")).upper(),
                name=str(t.get("name") or t.get("symbol", "")),
                decimals=int(t.get("decimals", 18)),
                logo=t.get("logoURI"),
            )
            by_symbol.setdefault(token.symbol, []).append(token)
            by_address.setdefault(token.address.lower(), token)
        self._tokens_by_symbol = by_symbol
        self._tokens_by_address = by_address

    def get(self, symbol: str) -> Token:
        candidates = self._tokens_by_symbol.get(symbol.upper(), [])
        if not candidates:
            raise KeyError(f"Token symbol '{symbol}' not found in registry ({self.network})")
        return candidates[0]

    def find(self, symbol: str) -> List[Token]:
        return list(self._tokens_by_symbol.get(symbol.upper(), []))

    def list_symbols(self) -> List[str]:
        return sorted(self._tokens_by_symbol.keys())

    def tokens(self) -> List[Token]:
        return [c[0] for _, c in sorted(self._tokens_by_symbol.items())]

    def by_address(self, address: str) -> Optional[Token]:
        return self._tokens_by_address.get(address.lower())

    def native(self) -> Token:
        token = self.by_address(NATIVE_ADDRESS)
        if token is None:
            return Token(address=NATIVE_ADDRESS, symbol="ETH", name="Ether", decimals=18)
        return token

    def resolve_address(self, address: str) -> Token:
        """
        Resolve a token seen in an on-chain event.

        The zero address is the native asset, the wrapped-native address is
        WETH, and anything not in the list becomes a '???' placeholder so a
        single odd log entry never breaks rendering.
        """
        if address.lower() == NATIVE_ADDRESS:
            return self.native()
        token = self.by_address(address)
        if token is not None:
            return token
        if self.wrapped_native and address.lower() == self.wrapped_native.lower():
            return Token(address=address, symbol="WETH", name="Wrapped Ether", decimals=18)
        return unknown_token(address)

    def quoter_address(self, token: Token) -> str:
        """Address to send to the V3 quoter; the native asset is priced as its wrapped form."""
        if token.is_native:
            if not self.wrapped_native:
                raise ValueError("No wrapped-native address configured")
            return self.wrapped_native
        return token.address
