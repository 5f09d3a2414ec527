from __future__ import annotations

import asyncio
import builtins
import time

import pytest

from cli import main as cli_main
from cli.menus import swap as swap_menu
from cli.menus import telegram as telegram_menu
from cli.menus import wallets as wallets_menu
from conftest import OWNER
from core import telegram_notifier as tn
from core.config import EngineConfig
from core.settings_store import SwapPreferences
from swap.history_fetcher import HistoryFetcher
from swap.pricing import compute_min_amount_out


def feed(monkeypatch, answers):
    seq = iter(answers)
    monkeypatch.setattr(builtins, "input", lambda _: next(seq))


def test_cli_main_menu_smoke(monkeypatch, tmp_path):
    feed(monkeypatch, ["7", "0"])  # invalid selection, then exit
    monkeypatch.setattr(cli_main, "ensure_keystore", lambda: cli_main.Keystore(str(tmp_path / "keystore.json")))
    cli_main.main()


def test_cli_wallet_list_empty(monkeypatch, tmp_path, capsys):
    ks = cli_main.Keystore(str(tmp_path / "keystore.json"))
    ks.initialize("pw")
    feed(monkeypatch, [
        # Main menu -> wallet management
        "1",
        # Wallets menu -> list wallets (should be empty)
        "1",
        # Back
        "0",
        # Exit
        "0",
    ])
    monkeypatch.setattr(cli_main, "ensure_keystore", lambda: ks)
    cli_main.main()
    assert "No wallets saved." in capsys.readouterr().out


def test_wallet_menu_add_unlock_remove(monkeypatch, tmp_path, capsys):
    ks = cli_main.Keystore(str(tmp_path / "keystore.json"))
    ks.initialize("pw")
    secrets = iter(["0x" + "11" * 32, "pw", "pw"])
    monkeypatch.setattr(wallets_menu.getpass, "getpass", lambda _: next(secrets))
    feed(monkeypatch, [
        "2", "main", "8453",   # add, bound to Base
        "1",                   # list
        "3", "main",           # unlock
        "4", "main", "yes",    # remove
        "0",
    ])
    wallets_menu.menu_wallets(ks)
    out = capsys.readouterr().out
    assert "Added wallet 'main'" in out
    assert "[Base, added" in out
    assert "✓ Unlocked 'main'" in out
    assert "Removed." in out
    assert ks.list_wallets() == []


def test_ensure_keystore_refuses_corrupt_file(monkeypatch, tmp_path):
    path = tmp_path / "keystore.json"
    path.write_text('{"version": 42}')
    monkeypatch.setattr(cli_main, "KEYSTORE_PATH", str(path))
    feed(monkeypatch, ["no"])
    with pytest.raises(SystemExit):
        cli_main.ensure_keystore()
    assert path.exists()


def test_telegram_menu_saves_config(monkeypatch, tmp_path):
    path = str(tmp_path / "telegram_config.json")
    monkeypatch.setattr(tn, "TELEGRAM_CONFIG_PATH", path)
    feed(monkeypatch, ["1", "123:abc", "999"])
    telegram_menu.menu_telegram_setup()
    config = tn.load_config(path)
    assert config.bot_token == "123:abc" and config.chat_id == "999"


def test_run_swap_end_to_end(monkeypatch, tmp_path, gateway, registry, capsys):
    monkeypatch.setattr(tn, "TELEGRAM_CONFIG_PATH", str(tmp_path / "telegram_config.json"))
    gateway.quotes = {3000: 2_500_000_000}
    feed(monkeypatch, [
        "ETH",   # from
        "USDC",  # to
        "",      # slippage: keep default
        "",      # router version: keep default
        "1",     # amount
        "yes",   # confirm
        "",      # quit
    ])
    prefs = SwapPreferences(slippage_bps=100)
    config = EngineConfig(debounce_seconds=0.0, quote_refresh_seconds=60.0)
    state = asyncio.run(swap_menu.run_swap(gateway, registry, OWNER, prefs, config=config))

    out = capsys.readouterr().out
    assert "You receive:  ~2500 USDC" in out
    assert "Swap confirmed" in out
    assert state.last_transaction.request.slippage_bps == 100
    assert gateway.router_calls[0].function == "swapETHToToken"
    assert prefs.token_out == "USDC"


def test_run_swap_rejects_same_token(monkeypatch, gateway, registry, capsys):
    feed(monkeypatch, ["USDC", "usdc"])
    assert asyncio.run(swap_menu.run_swap(gateway, registry, OWNER, SwapPreferences())) is None
    assert "two different tokens" in capsys.readouterr().out


def test_print_history_empty(gateway, registry, capsys):
    swap_menu.print_history(HistoryFetcher(gateway, registry))
    assert "No swaps found" in capsys.readouterr().out


def test_run_swap_keeps_quoting_while_waiting_for_confirmation(monkeypatch, tmp_path, gateway, registry):
    monkeypatch.setattr(tn, "TELEGRAM_CONFIG_PATH", str(tmp_path / "telegram_config.json"))
    gateway.quotes = {3000: 2_500_000_000}
    answers = iter(["ETH", "USDC", "", "", "1", ""])

    def answer(text):
        if not text.startswith("Swap now?"):
            return next(answers)
        # the price moves while the user reads the quote
        gateway.quotes = {3000: 2_600_000_000}
        seen = len(gateway.quote_calls)
        deadline = time.monotonic() + 5
        while len(gateway.quote_calls) < seen + 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        return "yes"

    monkeypatch.setattr(builtins, "input", answer)
    config = EngineConfig(debounce_seconds=0.0, quote_refresh_seconds=0.01)
    state = asyncio.run(swap_menu.run_swap(gateway, registry, OWNER, SwapPreferences(slippage_bps=100), config=config))

    assert state.last_transaction.request.quote.amount_out == 2_600_000_000
    assert gateway.router_calls[0].args[1] == compute_min_amount_out(2_600_000_000, 100)
