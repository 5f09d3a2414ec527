from __future__ import annotations

import base64
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from eth_account import Account
from eth_account.signers.local import LocalAccount

log = logging.getLogger(__name__)

DEFAULT_KDF_ITERATIONS = 390000
KEYSTORE_VERSION = 1


def _derive_key(password: str, salt: bytes, iterations: int = DEFAULT_KDF_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=iterations)
    return base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))


@dataclass
class WalletRecord:
    name: str
    address: str
    enc_privkey: str
    created_at: float
    chain_id: Optional[int] = None


@dataclass
class WalletSession:
    """An unlocked wallet: the active account and its signing key."""
    name: str
    account: LocalAccount

    @property
    def address(self) -> str:
        return self.account.address


class Keystore:
    """
    Encrypted store of EVM wallets behind one passphrase.

    File format (JSON):
    {
      "version": 1,
      "kdf": {"name": "PBKDF2HMAC", "iterations": 390000, "salt": base64},
      "wallets": [ { "name", "address", "enc_privkey", "created_at", "chain_id" } ]
    }
    """

    def __init__(self, keystore_path: str) -> None:
        self.keystore_path = keystore_path
        self._data: Dict = {}

    def exists(self) -> bool:
        return os.path.exists(self.keystore_path)

    def initialize(self, password: str) -> None:
        if self.exists():
            raise FileExistsError("Keystore already exists")
        if not password:
            raise ValueError("Passphrase must not be empty")
        self._data = {
            "version": KEYSTORE_VERSION,
            "kdf": {
                "name": "PBKDF2HMAC",
                "iterations": DEFAULT_KDF_ITERATIONS,
                "salt": base64.b64encode(os.urandom(16)).decode("utf-8"),
            },
            "wallets": [],
        }
        self._save()

    def load(self) -> None:
        if not self.exists():
            raise FileNotFoundError("Keystore file not found")
        with open(self.keystore_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if data.get("version") != KEYSTORE_VERSION or "kdf" not in data:
            raise ValueError(f"Unsupported keystore format in {self.keystore_path}")
        self._data = data

    def _ensure_loaded(self) -> None:
        if not self._data:
            self.load()

    def _save(self) -> None:
        os.makedirs(os.path.dirname(self.keystore_path) or ".", exist_ok=True)
        with open(self.keystore_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)

    def _fernet(self, password: str) -> Fernet:
        kdf_conf = self._data.get("kdf", {})
        salt_b64 = kdf_conf.get("salt")
        if not salt_b64:
            raise ValueError("Invalid keystore: missing salt")
        iterations = int(kdf_conf.get("iterations", DEFAULT_KDF_ITERATIONS))
        return Fernet(_derive_key(password, base64.b64decode(salt_b64), iterations))

    def list_wallets(self) -> List[WalletRecord]:
        self._ensure_loaded()
        return [
            WalletRecord(
                name=w["name"],
                address=w["address"],
                enc_privkey=w["enc_privkey"],
                created_at=float(w.get("created_at", 0.0)),
                chain_id=w.get("chain_id"),
            )
            for w in self._data.get("wallets", [])
        ]

    def add_wallet(self, name: str, private_key: str, password: str, chain_id: Optional[int] = None) -> WalletRecord:
        self._ensure_loaded()
        if any(w["name"] == name for w in self._data.get("wallets", [])):
            raise ValueError(f"A wallet named '{name}' already exists")
        f = self._fernet(password)
        existing = self._data.get("wallets", [])
        if existing:
            # every wallet shares the passphrase; refuse one that cannot open the others
            try:
                f.decrypt(existing[0]["enc_privkey"].encode("utf-8"))
            except InvalidToken as e:
                raise PermissionError("Invalid passphrase for keystore") from e
        pk = private_key.strip().lower().removeprefix("0x")
        try:
            acct = Account.from_key(bytes.fromhex(pk))
        except Exception as e:
            raise ValueError("Invalid private key format") from e
        rec = WalletRecord(
            name=name,
            address=acct.address,
            enc_privkey=f.encrypt(bytes.fromhex(pk)).decode("utf-8"),
            created_at=time.time(),
            chain_id=chain_id,
        )
        self._data.setdefault("wallets", []).append(rec.__dict__.copy())
        self._save()
        log.info("Added wallet %s (%s)", name, rec.address)
        return rec

    def remove_wallet(self, name: str) -> bool:
        self._ensure_loaded()
        wallets = self._data.get("wallets", [])
        remaining = [w for w in wallets if w["name"] != name]
        if len(remaining) == len(wallets):
            return False
        self._data["wallets"] = remaining
        self._save()
        return True

    def get_private_key(self, name: str, password: str) -> str:
        self._ensure_loaded()
        f = self._fernet(password)
        for w in self._data.get("wallets", []):
            if w["name"] == name:
                try:
                    raw = f.decrypt(w["enc_privkey"].encode("utf-8"))
                except InvalidToken as e:
                    raise PermissionError("Invalid passphrase for keystore") from e
                return "0x" + raw.hex()
        raise KeyError(f"Wallet '{name}' not found")

    def unlock(self, name: str, password: str) -> WalletSession:
        """Decrypt a wallet and return a signing session for it."""
        account = Account.from_key(self.get_private_key(name, password))
        return WalletSession(name=name, account=account)
