from __future__ import annotations

import json
import os
import tempfile

import pytest

from core.keystore import Keystore


def test_keystore_lifecycle():
    with tempfile.TemporaryDirectory() as td:
        ks_path = os.path.join(td, "keystore.json")
        ks = Keystore(ks_path)
        password = "test-pass-123"
        ks.initialize(password)
        assert ks.exists()
        ks.load()
        assert ks.list_wallets() == []

        # random test private key (do not use on-chain)
        priv = "0x" + ("11" * 32)
        rec = ks.add_wallet("w1", priv, password, chain_id=8453)
        assert rec.name == "w1"
        assert rec.address.startswith("0x")
        assert rec.chain_id == 8453

        wallets = ks.list_wallets()
        assert len(wallets) == 1

        got_pk = ks.get_private_key("w1", password)
        assert got_pk.lower() == priv.lower()

        ok = ks.remove_wallet("w1")
        assert ok is True
        assert ks.list_wallets() == []
        assert ks.remove_wallet("w1") is False


def test_unlock_returns_signing_session(tmp_path):
    ks = Keystore(str(tmp_path / "keystore.json"))
    ks.initialize("pw")
    rec = ks.add_wallet("main", "22" * 32, "pw")

    session = Keystore(str(tmp_path / "keystore.json")).unlock("main", "pw")
    assert session.name == "main"
    assert session.address == rec.address


def test_wrong_passphrase(tmp_path):
    ks = Keystore(str(tmp_path / "keystore.json"))
    ks.initialize("pw")
    ks.add_wallet("main", "22" * 32, "pw")
    with pytest.raises(PermissionError):
        ks.get_private_key("main", "nope")
    with pytest.raises(PermissionError):
        ks.add_wallet("second", "33" * 32, "nope")
    assert len(ks.list_wallets()) == 1


def test_add_wallet_validation(tmp_path):
    ks = Keystore(str(tmp_path / "keystore.json"))
    ks.initialize("pw")
    with pytest.raises(ValueError):
        ks.add_wallet("bad", "not-a-key", "pw")
    ks.add_wallet("main", "22" * 32, "pw")
    with pytest.raises(ValueError):
        ks.add_wallet("main", "33" * 32, "pw")
    with pytest.raises(KeyError):
        ks.get_private_key("missing", "pw")


def test_initialize_rules(tmp_path):
    ks = Keystore(str(tmp_path / "keystore.json"))
    with pytest.raises(ValueError):
        ks.initialize("")
    ks.initialize("pw")
    with pytest.raises(FileExistsError):
        ks.initialize("pw")


def test_load_rejects_unknown_format(tmp_path):
    path = tmp_path / "keystore.json"
    path.write_text(json.dumps({"version": 99, "wallets": []}))
    with pytest.raises(ValueError):
        Keystore(str(path)).load()
    with pytest.raises(FileNotFoundError):
        Keystore(str(tmp_path / "missing.json")).load()
