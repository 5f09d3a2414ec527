"""
Interactive swap and history menus.
"""
import asyncio
import datetime
from typing import Optional

from cli.utils import input_int, open_client, pick_token, prompt
from connectors.base import SwapGateway
from core import telegram_notifier as tn
from core.config import SLIPPAGE_PRESETS_BPS, EngineConfig
from core.errors import SwapFlowError, classify_error
from core.keystore import Keystore
from core.settings_store import SettingsStore, SwapPreferences
from core.token_registry import TokenRegistry
from swap.history_fetcher import HistoryFetcher
from swap.models import RouterVersion, TxStatus
from swap.pricing import format_amount
from swap.session import SessionState, SwapSession

QUOTE_WAIT_SECONDS = 30.0


async def ask(text: str) -> str:
    """Read a line on a worker thread; the event loop keeps quoting meanwhile."""
    return await asyncio.to_thread(prompt, text)


async def wait_for_quote(session: SwapSession, timeout: float = QUOTE_WAIT_SECONDS) -> SessionState:
    """Block until the debounced quote for the current input has landed."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        state = await session.drain()
        if not state.quote_loading or loop.time() >= deadline:
            return state
        await asyncio.sleep(0.05)


def print_quote(session: SwapSession) -> None:
    s = session.state
    if s.quote is None:
        if s.quote_error is not None:
            print(f"✗ {s.quote_error.message}")
        else:
            print("No quote.")
        return
    q = s.quote
    preview = session.preview()
    out = q.token_out
    print(f"\nYou pay:      {s.amount_in_text} {q.token_in.symbol}")
    print(f"You receive:  ~{s.amount_out_text} {out.symbol} (fee tier {int(q.fee_tier) / 10000:.2%})")
    if preview.rate is not None:
        print(f"Rate:         1 {q.token_in.symbol} = {preview.rate:.6f} {out.symbol}")
    print(f"Protocol fee: {format_amount(preview.protocol_fee, out.decimals)} {out.symbol}")
    print(f"Min received: {format_amount(preview.min_received, out.decimals)} {out.symbol} (slippage {s.slippage_bps / 100:.2f}%)")
    print(f"Price impact: ~{preview.price_impact_pct:.2f}%")
    if preview.high_impact:
        print("⚠ High price impact! Consider a smaller amount.")


def choose_slippage(default_bps: int) -> Optional[int]:
    presets = " / ".join(f"{b / 100:g}%" for b in SLIPPAGE_PRESETS_BPS)
    return input_int(f"Slippage bps (presets {presets}) [{default_bps}]: ", default_bps)


def choose_router_version(default: int) -> Optional[RouterVersion]:
    v = input_int(f"Router version (0 auto / 2 V2 / 3 V3) [{default}]: ", default)
    try:
        return RouterVersion(v) if v is not None else None
    except ValueError:
        print("Invalid router version.")
        return None


async def run_swap(
    gateway: SwapGateway,
    registry: TokenRegistry,
    owner: str,
    prefs: SwapPreferences,
    config: Optional[EngineConfig] = None,
) -> Optional[SessionState]:
    token_in = pick_token(registry, "From", prefs.token_in)
    token_out = pick_token(registry, "To", prefs.token_out) if token_in else None
    if token_in is None or token_out is None:
        return None
    if token_in.address.lower() == token_out.address.lower():
        print("Choose two different tokens.")
        return None
    slippage = choose_slippage(prefs.slippage_bps)
    version = choose_router_version(prefs.router_version)
    if slippage is None or version is None:
        return None

    notifier = tn.get_notifier(tn.TELEGRAM_CONFIG_PATH)
    session = SwapSession(gateway, registry, owner, config=config, notifier=notifier)
    if notifier:
        notifier.start()
    try:
        session.update_settings(slippage_bps=slippage, router_version=version)
        session.set_tokens(token_in, token_out)
        await session.drain()
        while True:
            amount = (await ask(f"Amount of {session.state.token_in.symbol} ('max', 'flip', empty to quit): ")).strip().lower()
            if amount == "":
                break
            if amount == "flip":
                session.switch_tokens()
            elif amount == "max":
                print(f"Max: {await session.set_max_amount()}")
            else:
                session.set_amount(amount)
            state = await wait_for_quote(session)
            print_quote(session)
            if state.quote is None:
                continue
            go = (await ask("Swap now? (yes/no): ")).strip().lower()
            if go not in {"y", "yes"}:
                continue
            try:
                tx = await session.swap()
            except SwapFlowError as e:
                print(f"✗ {e.message}")
                continue
            if tx.status is TxStatus.CONFIRMED:
                print(f"✓ Swap confirmed in block {tx.block_number}")
            else:
                print(f"✗ {tx.error.user_message if tx.error else 'Swap failed'}")
            if tx.explorer_url:
                print("Explorer:", tx.explorer_url)
        prefs.token_in = session.state.token_in.symbol
        prefs.token_out = session.state.token_out.symbol
        prefs.slippage_bps = session.state.slippage_bps
        prefs.router_version = int(session.state.router_version)
        return await session.drain()
    finally:
        await session.close()
        if notifier:
            await notifier.stop()


def menu_swap(ks: Keystore, settings: SettingsStore) -> None:
    """Quote and swap through the router."""
    print("\nSwap")
    opened = open_client(ks)
    if opened is None:
        return
    client, registry, wallet = opened
    prefs = settings.load(wallet.name)
    try:
        asyncio.run(run_swap(client, registry, wallet.address, prefs))
    except Exception as e:
        print(f"Error: {classify_error(e).user_message}")
        return
    settings.save(wallet.name, prefs)


def print_history(fetcher: HistoryFetcher) -> None:
    if not fetcher.entries:
        print("No swaps found in recent blocks.")
        return
    for e in fetcher.entries:
        when = datetime.datetime.fromtimestamp(e.timestamp).strftime("%Y-%m-%d %H:%M")
        amount_in = format_amount(e.amount_in, e.token_in.decimals, places=4)
        amount_out = format_amount(e.amount_out, e.token_out.decimals, places=4)
        version = {2: "V2", 3: "V3"}.get(e.router_version, str(e.router_version))
        print(f"- {when}  {amount_in} {e.token_in.symbol} → {amount_out} {e.token_out.symbol}  [{version}]  {fetcher.explorer_url(e)}")


def menu_history(ks: Keystore) -> None:
    """Show recent swaps made through the router."""
    print("\nRecent swaps")
    opened = open_client(ks)
    if opened is None:
        return
    client, registry, wallet = opened
    fetcher = HistoryFetcher(client, registry)
    print("Loading...")
    asyncio.run(fetcher.fetch_history(wallet.address))
    print_history(fetcher)
