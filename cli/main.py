from __future__ import annotations

import getpass
import logging
import os

from cli.menus import (
    menu_history,
    menu_router_info,
    menu_swap,
    menu_telegram_setup,
    menu_token_approvals,
    menu_wallets,
)
from cli.utils import prompt
from core.keystore import Keystore
from core.settings_store import SettingsStore


KEYSTORE_PATH = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "keystore", "keystore.json"))
SETTINGS_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "settings"))
SETTINGS = SettingsStore(SETTINGS_DIR)


def configure_logging() -> None:
    level = os.getenv("BASESWAP_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _create_keystore(ks: Keystore) -> Keystore:
    pw1 = getpass.getpass("Create keystore passphrase: ")
    pw2 = getpass.getpass("Confirm passphrase: ")
    if not pw1 or pw1 != pw2:
        print("Passphrases do not match. Aborting.")
        raise SystemExit(1)
    ks.initialize(pw1)
    return ks


def ensure_keystore() -> Keystore:
    ks = Keystore(KEYSTORE_PATH)
    if not ks.exists():
        print("No keystore found. Let's create one.")
        _create_keystore(ks)
        print("Keystore created.")
        return ks
    try:
        ks.load()
        return ks
    except ValueError:
        print("Existing keystore appears empty or corrupted.")
    ans = prompt("Recreate keystore now? This will overwrite the file. (yes/no): ").strip().lower()
    if ans not in {"y", "yes"}:
        print("Cannot proceed without a valid keystore.")
        raise SystemExit(1)
    os.remove(KEYSTORE_PATH)
    _create_keystore(ks)
    print("Keystore recreated.")
    return ks


def main() -> None:
    configure_logging()
    print("Base Swap - CLI")
    ks = ensure_keystore()
    while True:
        print("\nMain Menu:")
        print("  1) Wallet management")
        print("  2) Swap")
        print("  3) Recent swaps")
        print("  4) Token approvals")
        print("  5) Router info")
        print("  6) Telegram notifications")
        print("  0) Exit")
        choice = prompt("Select: ").strip()
        if choice == "1":
            menu_wallets(ks)
        elif choice == "2":
            menu_swap(ks, SETTINGS)
        elif choice == "3":
            menu_history(ks)
        elif choice == "4":
            menu_token_approvals(ks)
        elif choice == "5":
            menu_router_info(ks)
        elif choice == "6":
            menu_telegram_setup()
        elif choice == "0":
            print("Goodbye.")
            break
        else:
            print("Invalid selection.")


if __name__ == "__main__":
    main()
