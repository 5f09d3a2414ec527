"""CLI menu modules."""
from .wallets import menu_wallets
from .approvals import menu_token_approvals
from .swap import menu_history, menu_swap
from .router import menu_router_info
from .telegram import menu_telegram_setup

__all__ = [
    "menu_wallets",
    "menu_token_approvals",
    "menu_swap",
    "menu_history",
    "menu_router_info",
    "menu_telegram_setup",
]
