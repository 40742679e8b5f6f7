#!/usr/bin/env python3
"""Simple CLI for exploring GasFlow routes locally"""

import argparse
import asyncio
from decimal import Decimal, InvalidOperation
from typing import Optional

from gasflow.client import GasFlowClient
from gasflow.core.models import OPTIMAL, AUTO, TransactionIntent, TransferMode, Urgency, format_usdc
from gasflow.core.recovery import GasFlowError
from gasflow.logging_config import setup_logging


def parse_usdc(text: str) -> int:
    """'1.5' -> 1500000 minor units"""
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid USDC amount: {text}")
    if amount <= 0:
        raise argparse.ArgumentTypeError("Amount must be positive")
    return int(amount * 10 ** 6)


def print_analysis(client: GasFlowClient, analysis) -> None:
    names = client.registry.name_for
    rec = analysis.recommendation

    print("\n🧭 Route Analysis")
    print("=" * 60)
    print(f"Recommended: {names(rec.chain_id)} ({rec.reason})")
    if rec.estimated_savings:
        print(f"Estimated savings: {format_usdc(rec.estimated_savings)} USDC")

    print("\nRoutes:")
    print("-" * 60)
    for i, route in enumerate(analysis.all_routes, 1):
        bridge = f" + bridge {format_usdc(route.bridge_cost)}" if route.bridge_cost is not None else ""
        print(
            f"{i:2d}. execute on {names(route.execute_on_chain):<20} pay from {names(route.pay_from_chain):<20}"
            f" {format_usdc(route.total_cost):>10} USDC (gas {format_usdc(route.gas_cost)}{bridge}, ~{route.estimated_time_seconds}s)"
        )


async def cli_chains(client: GasFlowClient):
    print("⛓️  Supported chains")
    print("-" * 60)
    for config in client.get_supported_chains():
        status = client.get_chain_status(config.chain_id)
        paymaster = "paymaster" if status["paymaster_supported"] else "no paymaster"
        print(f"{config.chain_id:>10}  {config.name:<22} domain {config.cctp_domain:<3} {paymaster}")


async def cli_balance(client: GasFlowClient, account: str):
    print(f"🔍 Fetching USDC balances for {account}...")
    unified = await client.get_unified_balance(account)
    for entry in unified.per_chain:
        print(f"  {client.registry.name_for(entry.chain_id):<22} {format_usdc(entry.balance):>14} USDC")
    print("-" * 40)
    print(f"  {'Total':<22} {format_usdc(unified.total_amount):>14} USDC")


async def cli_estimate(client: GasFlowClient, args):
    execute_on = client.registry.resolve(args.execute_on) if args.execute_on != OPTIMAL else OPTIMAL
    pay_from = client.registry.resolve(args.pay_from) if args.pay_from != AUTO else AUTO
    intent = TransactionIntent(
        to=args.to,
        value=args.value,
        data=args.data,
        gas_limit=args.gas_limit,
        execute_on=execute_on,
        pay_from_chain=pay_from,
        urgency=Urgency(args.urgency),
        transfer_mode=TransferMode(args.mode),
    )
    analysis = await client.estimate_transaction(intent, args.account)
    print_analysis(client, analysis)

    opportunity = client.optimizer.calculate_savings_opportunity(analysis)
    if opportunity["savings"]:
        print(f"\n💰 Spread across routes: {format_usdc(opportunity['savings'])} USDC ({opportunity['percentage']}%)")


async def cli_bridge_quote(client: GasFlowClient, amount: int, from_chain: str, to_chain: str, mode: Optional[str]):
    source = client.registry.resolve(from_chain)
    destination = client.registry.resolve(to_chain)
    quote = await client.bridge.oracle.quote(amount, source, destination, TransferMode(mode or "auto"))

    print(f"\n🌉 {format_usdc(amount)} USDC {client.registry.name_for(source)} → {client.registry.name_for(destination)}")
    print(f"Fee:  {format_usdc(quote.fee)} USDC")
    print(f"Time: ~{quote.estimated_time_seconds}s ({'fast' if quote.fast else 'standard'} transfer)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="GasFlow CLI")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("chains", help="List supported chains")

    balance_parser = subparsers.add_parser("balance", help="Unified USDC balance")
    balance_parser.add_argument("account", help="Wallet address")

    estimate_parser = subparsers.add_parser("estimate", help="Rank gas payment routes for a transaction")
    estimate_parser.add_argument("account", help="Wallet address paying gas")
    estimate_parser.add_argument("--to", required=True, help="Target address")
    estimate_parser.add_argument("--value", type=int, default=0, help="Native value in wei")
    estimate_parser.add_argument("--data", default="0x", help="Hex calldata")
    estimate_parser.add_argument("--gas-limit", type=int, help="Gas limit override")
    estimate_parser.add_argument("--execute-on", default=OPTIMAL, help="Chain id/name or 'optimal'")
    estimate_parser.add_argument("--pay-from", default=AUTO, help="Chain id/name or 'auto'")
    estimate_parser.add_argument("--urgency", choices=[u.value for u in Urgency], default="medium")
    estimate_parser.add_argument("--mode", choices=[m.value for m in TransferMode], default="auto")

    quote_parser = subparsers.add_parser("bridge-quote", help="CCTP fee and time for a transfer")
    quote_parser.add_argument("amount", type=parse_usdc, help="USDC amount, e.g. 12.5")
    quote_parser.add_argument("from_chain", help="Source chain id or name")
    quote_parser.add_argument("to_chain", help="Destination chain id or name")
    quote_parser.add_argument("--mode", choices=[m.value for m in TransferMode], default="auto")

    return parser


async def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level)
    client = GasFlowClient()
    command = args.command.lower()

    try:
        if command == "chains":
            await cli_chains(client)

        elif command == "balance":
            await cli_balance(client, args.account)

        elif command == "estimate":
            await cli_estimate(client, args)

        elif command == "bridge-quote":
            await cli_bridge_quote(client, args.amount, args.from_chain, args.to_chain, args.mode)

        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()
    except GasFlowError as e:
        print(f"❌ {e.code}: {e}")
    finally:
        await client.aclose()


if __name__ == "__main__":
    asyncio.run(main())
