"""
Router information menu.
"""
import asyncio

from cli.utils import open_client, pick_token, prompt
from connectors.base import SwapGateway
from core.errors import classify_error
from core.keystore import Keystore
from core.token_registry import Token, TokenRegistry
from swap.pricing import format_amount, parse_amount


async def describe_router(gateway: SwapGateway, registry: TokenRegistry) -> None:
    fee, supported = await asyncio.gather(gateway.fee_percent(), gateway.supported_tokens())
    print(f"Router:        {gateway.router_address}")
    print(f"Protocol fee:  {fee}%")
    print("Supported tokens:")
    for address in supported:
        token = registry.resolve_address(address)
        print(f"  - {token.symbol:8} {address}")


async def compare_router_quote(gateway: SwapGateway, registry: TokenRegistry, token_in: Token, token_out: Token, amount_in: int) -> None:
    out = await gateway.router_quote(registry.quoter_address(token_in), registry.quoter_address(token_out), amount_in)
    print(f"Router V2 quote: {format_amount(out, token_out.decimals)} {token_out.symbol}")


def menu_router_info(ks: Keystore) -> None:
    print("\nRouter info")
    opened = open_client(ks)
    if opened is None:
        return
    client, registry, _wallet = opened
    print("1) Fee and supported tokens  2) Router quote  0) Back")
    sel = prompt("Select: ").strip()
    try:
        if sel == "1":
            asyncio.run(describe_router(client, registry))
        elif sel == "2":
            token_in = pick_token(registry, "From", "ETH")
            token_out = pick_token(registry, "To", "USDC") if token_in else None
            if token_in is None or token_out is None:
                return
            amount = parse_amount(prompt(f"Amount of {token_in.symbol}: "), token_in.decimals)
            if amount is None:
                print("Invalid amount.")
                return
            asyncio.run(compare_router_quote(client, registry, token_in, token_out, amount))
    except Exception as e:
        print(f"Error: {classify_error(e).user_message}")
