"""
Token approval menu.
"""
import asyncio

from core.errors import classify_error
from core.keystore import Keystore
from cli.utils import open_client, pick_token, prompt
from swap.approval_gate import MAX_UINT256, ApprovalGate
from swap.pricing import format_amount, parse_amount


async def _run_approval(gate: ApprovalGate, owner: str, token_address: str, spender: str, amount: int) -> None:
    print("Waiting for the new allowance to show up on-chain...")
    ticket = await gate.approve(owner, token_address, spender, amount)
    if ticket.tx_hash:
        print("Approve submitted:", ticket.tx_hash)
        print("Explorer:", gate.gateway.tx_explorer_url(ticket.tx_hash))
    if ticket.ok:
        print(f"✓ Allowance confirmed after {ticket.polls} checks")
    else:
        print(f"✗ {ticket.error.user_message if ticket.error else 'Approval failed'}")


def menu_token_approvals(ks: Keystore) -> None:
    """Approve the swap router to spend an ERC-20 token."""
    print("\nToken Approvals - Approve the router to spend tokens")
    opened = open_client(ks)
    if opened is None:
        return
    client, registry, wallet = opened
    token = pick_token(registry, "Token to approve", "USDC")
    if token is None:
        return
    if token.is_native:
        print(f"{token.symbol} is the native asset; no approval needed.")
        return
    gate = ApprovalGate(client)
    spender = client.router_address
    print("1) Approve unlimited  2) Approve specific amount  3) Check allowance  0) Back")
    sel = prompt("Select: ").strip()
    try:
        if sel == "1":
            asyncio.run(_run_approval(gate, wallet.address, token.address, spender, MAX_UINT256))
        elif sel == "2":
            amount = parse_amount(prompt(f"Amount of {token.symbol} to approve: "), token.decimals)
            if amount is None:
                print("Invalid amount.")
                return
            asyncio.run(_run_approval(gate, wallet.address, token.address, spender, amount))
        elif sel == "3":
            allowance = asyncio.run(gate.read_allowance(wallet.address, token.address, spender))
            print(f"Allowance: {format_amount(allowance.amount, token.decimals)} {token.symbol}")
        else:
            return
    except Exception as e:
        print(f"Error: {classify_error(e).user_message}")
