"""Tests for the bundler, paymaster and price providers."""

import json
from decimal import Decimal

import httpx
import pytest

from gasflow.core.chains import ENTRY_POINT_V06
from gasflow.core.execution.userop import UserOperation
from gasflow.providers.bundler import BundlerError, BundlerProvider
from gasflow.providers.coingecko import CoingeckoProvider
from gasflow.providers.paymaster import PaymasterError, PaymasterProvider

USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
PAYMASTER_AND_DATA = "0x" + "9a" * 20 + "00" * 8


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _rpc(result):
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})
    return handler


def _user_op() -> UserOperation:
    return UserOperation(
        sender="0x" + "ab" * 20,
        nonce=0,
        init_code="0x",
        call_data="0x",
        call_gas_limit=200_000,
        verification_gas_limit=150_000,
        pre_verification_gas=50_000,
        max_fee_per_gas=10 ** 9,
        max_priority_fee_per_gas=10 ** 9,
    )


class TestBundlerProvider:
    @pytest.mark.asyncio
    async def test_not_configured(self):
        provider = BundlerProvider(rpc_url="")

        assert not await provider.ready()
        assert (await provider.health_check())["status"] == "disabled"
        with pytest.raises(BundlerError):
            await provider.send_user_operation(_user_op(), ENTRY_POINT_V06)

    @pytest.mark.asyncio
    async def test_send_user_operation(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0xophash"})

        provider = BundlerProvider(rpc_url="https://bundler.test", client=_client(handler))

        assert await provider.send_user_operation(_user_op(), ENTRY_POINT_V06) == "0xophash"
        assert seen["method"] == "eth_sendUserOperation"
        assert seen["params"][1] == ENTRY_POINT_V06

    @pytest.mark.asyncio
    async def test_estimate_gas(self):
        provider = BundlerProvider(
            rpc_url="https://bundler.test",
            client=_client(_rpc({"callGasLimit": "0x1", "verificationGasLimit": "0x2", "preVerificationGas": "0x3"})),
        )

        estimate = await provider.estimate_user_operation_gas(_user_op(), ENTRY_POINT_V06)

        assert (estimate.call_gas_limit, estimate.verification_gas_limit, estimate.pre_verification_gas) == (1, 2, 3)

    @pytest.mark.asyncio
    async def test_receipt(self):
        provider = BundlerProvider(
            rpc_url="https://bundler.test",
            client=_client(_rpc({
                "success": True,
                "actualGasUsed": "0x5208",
                "receipt": {"transactionHash": "0xtx", "blockNumber": "0x10", "status": "0x1"},
            })),
        )

        receipt = await provider.get_user_operation_receipt("0xophash")

        assert receipt.success
        assert receipt.transaction_hash == "0xtx"
        assert receipt.block_number == 16
        assert receipt.gas_used == 21000

    @pytest.mark.asyncio
    async def test_receipt_pending(self):
        provider = BundlerProvider(rpc_url="https://bundler.test", client=_client(_rpc(None)))

        assert await provider.get_user_operation_receipt("0xophash") is None

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        def handler(request):
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"message": "AA21 didn't pay prefund"}})

        provider = BundlerProvider(rpc_url="https://bundler.test", client=_client(handler))

        with pytest.raises(BundlerError):
            await provider.send_user_operation(_user_op(), ENTRY_POINT_V06)


class TestPaymasterProvider:
    @pytest.mark.asyncio
    async def test_sponsor_passes_fee_token(self):
        seen = {}

        def handler(request):
            seen.update(json.loads(request.content))
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"paymasterAndData": PAYMASTER_AND_DATA}})

        provider = PaymasterProvider(rpc_url="https://pm.test", rpc_method="pm_sponsorUserOperation", client=_client(handler))

        assert await provider.sponsor_user_operation(_user_op(), ENTRY_POINT_V06, USDC) == PAYMASTER_AND_DATA
        assert seen["method"] == "pm_sponsorUserOperation"
        assert seen["params"][2] == {"token": USDC}

    @pytest.mark.asyncio
    async def test_string_result(self):
        provider = PaymasterProvider(rpc_url="https://pm.test", client=_client(_rpc(PAYMASTER_AND_DATA)))

        assert await provider.sponsor_user_operation(_user_op(), ENTRY_POINT_V06, USDC) == PAYMASTER_AND_DATA

    @pytest.mark.asyncio
    async def test_invalid_result(self):
        provider = PaymasterProvider(rpc_url="https://pm.test", client=_client(_rpc({"unexpected": True})))

        with pytest.raises(PaymasterError):
            await provider.sponsor_user_operation(_user_op(), ENTRY_POINT_V06, USDC)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "result",
        [
            "0xpaymasterdata",
            {"paymasterAndData": "paymaster"},
            "0x" + "9a" * 20 + "0",
            "0x" + "9a" * 10,
        ],
    )
    async def test_malformed_paymaster_and_data(self, result):
        provider = PaymasterProvider(rpc_url="https://pm.test", client=_client(_rpc(result)))

        with pytest.raises(PaymasterError):
            await provider.sponsor_user_operation(_user_op(), ENTRY_POINT_V06, USDC)


class TestCoingeckoProvider:
    @pytest.mark.asyncio
    async def test_native_prices(self):
        seen = {}

        def handler(request):
            seen["ids"] = request.url.params.get("ids")
            return httpx.Response(
                200,
                json={"ethereum": {"usd": 3000.5}, "avalanche-2": {"usd": 0}, "matic-network": {"usd": 0.5}},
            )

        provider = CoingeckoProvider(base_url="https://cg.test", api_key="", client=_client(handler))
        prices = await provider.get_native_prices(["ETH", "avax", "MATIC", "DOGE"])

        assert seen["ids"] == "avalanche-2,ethereum,matic-network"
        assert prices == {"ETH": Decimal("3000.5"), "MATIC": Decimal("0.5")}

    @pytest.mark.asyncio
    async def test_unknown_symbols_make_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        provider = CoingeckoProvider(base_url="https://cg.test", client=_client(handler))

        assert await provider.get_native_prices(["DOGE"]) == {}

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        provider = CoingeckoProvider(
            base_url="https://cg.test",
            client=_client(lambda request: httpx.Response(429, text="slow down")),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await provider.get_native_prices(["ETH"])
