from __future__ import annotations

from core.settings_store import SettingsStore, SwapPreferences


def test_defaults_when_missing(tmp_path):
    prefs = SettingsStore(str(tmp_path)).load("main")
    assert prefs == SwapPreferences()
    assert prefs.token_in == "ETH" and prefs.slippage_bps == 50


def test_save_and_load_roundtrip(tmp_path):
    store = SettingsStore(str(tmp_path / "settings"))
    store.save("main", SwapPreferences(token_in="USDC", token_out="TALENT", slippage_bps=200, router_version=3))
    prefs = store.load("main")
    assert prefs.token_out == "TALENT"
    assert prefs.router_version == 3


def test_wallet_name_is_sanitised(tmp_path):
    store = SettingsStore(str(tmp_path))
    store.save("../evil name", SwapPreferences(slippage_bps=100))
    assert (tmp_path / "evilname.json").exists()
    assert store.load("../evil name").slippage_bps == 100


def test_unreadable_or_stale_file_falls_back(tmp_path):
    store = SettingsStore(str(tmp_path))
    (tmp_path / "main.json").write_text("{oops")
    assert store.load("main") == SwapPreferences()
    (tmp_path / "old.json").write_text('{"token_in": "USDT", "base_symbol": "BNB"}')
    assert store.load("old").token_in == "USDT"
