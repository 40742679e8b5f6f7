import argparse

import pytest

from cli import build_parser, parse_usdc


def test_parse_usdc():
    assert parse_usdc("1.5") == 1_500_000
    assert parse_usdc("0.01") == 10_000

    with pytest.raises(argparse.ArgumentTypeError):
        parse_usdc("abc")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_usdc("-2")


def test_estimate_defaults():
    args = build_parser().parse_args(["estimate", "0x" + "ab" * 20, "--to", "0x" + "12" * 20])

    assert args.command == "estimate"
    assert args.execute_on == "optimal"
    assert args.pay_from == "auto"
    assert args.urgency == "medium"
    assert args.mode == "auto"


def test_bridge_quote_amount_is_parsed():
    args = build_parser().parse_args(["bridge-quote", "2.25", "arbitrum-sepolia", "84532", "--mode", "fast"])

    assert args.amount == 2_250_000
    assert args.mode == "fast"
