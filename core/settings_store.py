from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

from core.config import DEFAULT_SLIPPAGE_BPS

log = logging.getLogger(__name__)


@dataclass
class SwapPreferences:
    token_in: str = "ETH"
    token_out: str = "USDC"
    slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    router_version: int = 0


class SettingsStore:
    """Persist and retrieve last-used swap selections per wallet name.

    Stores JSON files under a directory (default: settings/).
    Does not store sensitive data (no private keys), only user selections.
    """

    def __init__(self, dir_path: str) -> None:
        self.dir_path = os.path.abspath(dir_path)

    def _path(self, wallet_name: str) -> str:
        safe = "".join(c for c in wallet_name if c.isalnum() or c in ("_", "-")) or "default"
        return os.path.join(self.dir_path, f"{safe}.json")

    def load(self, wallet_name: str) -> SwapPreferences:
        path = self._path(wallet_name)
        if not os.path.exists(path):
            return SwapPreferences()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable settings %s: %s", path, e)
            return SwapPreferences()
        known = {f.name for f in fields(SwapPreferences)}
        return SwapPreferences(**{k: v for k, v in data.items() if k in known})

    def save(self, wallet_name: str, prefs: SwapPreferences) -> None:
        os.makedirs(self.dir_path, exist_ok=True)
        with open(self._path(wallet_name), "w", encoding="utf-8") as f:
            json.dump(asdict(prefs), f, indent=2, sort_keys=True)
