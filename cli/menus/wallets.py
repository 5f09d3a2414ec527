"""
Wallet management menu.
"""
import datetime
import getpass

from cli.utils import input_int, prompt
from core.config import BASE_MAINNET_CHAIN_ID, BASE_SEPOLIA_CHAIN_ID
from core.keystore import Keystore, WalletRecord

CHAIN_NAMES = {BASE_MAINNET_CHAIN_ID: "Base", BASE_SEPOLIA_CHAIN_ID: "Base Sepolia"}


def _describe(w: WalletRecord) -> str:
    created = datetime.datetime.fromtimestamp(w.created_at).strftime("%Y-%m-%d") if w.created_at else "?"
    chain = CHAIN_NAMES.get(w.chain_id, "any chain")
    return f"- {w.name:12} {w.address}  [{chain}, added {created}]"


def _add_wallet(ks: Keystore) -> None:
    name = prompt("Enter wallet name: ").strip()
    if not name:
        print("Name is required.")
        return
    priv = getpass.getpass("Paste private key (with or without 0x): ").strip()
    if not priv:
        print("Private key is required.")
        return
    chain_id = input_int(f"Bind to chain ({BASE_MAINNET_CHAIN_ID} / {BASE_SEPOLIA_CHAIN_ID}, empty for any): ")
    if chain_id is not None and chain_id not in CHAIN_NAMES:
        print("Unsupported chain id.")
        return
    pw = getpass.getpass("Keystore passphrase: ")
    try:
        rec = ks.add_wallet(name=name, private_key=priv, password=pw, chain_id=chain_id)
    except (PermissionError, ValueError, OSError) as e:
        print(f"Error: {e}")
        return
    print(f"Added wallet '{rec.name}' with address {rec.address}")


def _check_unlock(ks: Keystore) -> None:
    name = prompt("Wallet name: ").strip()
    pw = getpass.getpass("Keystore passphrase: ")
    try:
        session = ks.unlock(name, pw)
    except (PermissionError, KeyError) as e:
        print(f"✗ {e}")
        return
    print(f"✓ Unlocked '{session.name}' ({session.address})")


def _remove_wallet(ks: Keystore) -> None:
    name = prompt("Enter wallet name to remove: ").strip()
    if prompt(f"Remove '{name}' from the keystore? (yes/no): ").strip().lower() not in {"y", "yes"}:
        print("Cancelled.")
        return
    try:
        ok = ks.remove_wallet(name)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return
    print("Removed." if ok else "No such wallet.")


def menu_wallets(ks: Keystore) -> None:
    """Wallet management menu."""
    while True:
        print("\nWallets:")
        print("  1) List wallets")
        print("  2) Add wallet")
        print("  3) Check passphrase / unlock")
        print("  4) Remove wallet")
        print("  0) Back")
        choice = prompt("Select: ").strip()
        if choice == "1":
            try:
                wallets = ks.list_wallets()
            except (OSError, ValueError) as e:
                print(f"Error: {e}")
                continue
            if not wallets:
                print("No wallets saved.")
            for w in wallets:
                print(_describe(w))
        elif choice == "2":
            _add_wallet(ks)
        elif choice == "3":
            _check_unlock(ks)
        elif choice == "4":
            _remove_wallet(ks)
        elif choice == "0":
            return
        else:
            print("Invalid selection.")
