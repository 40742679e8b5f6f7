"""Tests for the Circle Iris provider."""

from decimal import Decimal

import httpx
import pytest

from gasflow.providers.circle import Attestation, CircleApiError, CircleIrisProvider

BASE_URL = "https://iris.test"


def _provider(handler, api_key: str = "") -> CircleIrisProvider:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return CircleIrisProvider(base_url=BASE_URL, api_key=api_key, client=client)


class TestAttestation:
    @pytest.mark.asyncio
    async def test_complete_attestation(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["tx"] = request.url.params.get("transactionHash")
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json={"messages": [{"status": "complete", "message": "0xaa", "attestation": "0xbb", "eventNonce": "7"}]},
            )

        provider = _provider(handler, api_key="secret")
        attestation = await provider.get_attestation(6, "0xburn")

        assert seen == {"path": "/v2/messages/6", "tx": "0xburn", "auth": "Bearer secret"}
        assert attestation.is_complete
        assert attestation.event_nonce == "7"

    @pytest.mark.asyncio
    async def test_not_indexed_yet(self):
        provider = _provider(lambda request: httpx.Response(404, json={"error": "not found"}))

        assert await provider.get_attestation(6, "0xburn") is None

    @pytest.mark.asyncio
    async def test_empty_message_list(self):
        provider = _provider(lambda request: httpx.Response(200, json={"messages": []}))

        assert await provider.get_attestation(6, "0xburn") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        provider = _provider(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(CircleApiError):
            await provider.get_attestation(6, "0xburn")

    def test_pending_markers_are_not_complete(self):
        assert not Attestation(status="pending_confirmations").is_complete
        assert not Attestation(status="complete", message="0xaa", attestation="PENDING").is_complete
        assert not Attestation(status="complete", message="0x", attestation="0xbb").is_complete


class TestFeesAndAllowance:
    @pytest.mark.asyncio
    async def test_fee_tiers(self):
        def handler(request):
            assert request.url.path == "/v2/burn/USDC/fees/3/6"
            return httpx.Response(
                200,
                json=[
                    {"finalityThreshold": 1000, "minimumFee": 1},
                    {"finalityThreshold": 2000, "minimumFee": 0},
                ],
            )

        tiers = await _provider(handler).get_burn_fees(3, 6)

        assert [(t.finality_threshold, t.minimum_fee_bps) for t in tiers] == [(1000, Decimal("1")), (2000, Decimal("0"))]

    @pytest.mark.asyncio
    async def test_legacy_fee_shape(self):
        provider = _provider(lambda request: httpx.Response(200, json={"data": {"minimumFee": "0.5"}}))

        tiers = await provider.get_burn_fees(3, 6)

        assert tiers[0].minimum_fee_bps == Decimal("0.5")

    @pytest.mark.asyncio
    async def test_unexpected_fee_shape(self):
        provider = _provider(lambda request: httpx.Response(200, json={"fees": "?"}))

        with pytest.raises(CircleApiError):
            await provider.get_burn_fees(3, 6)

    @pytest.mark.asyncio
    async def test_fast_allowance_in_minor_units(self):
        provider = _provider(lambda request: httpx.Response(200, json={"allowance": "1250.5"}))

        assert await provider.get_fast_burn_allowance() == 1_250_500_000

    @pytest.mark.asyncio
    async def test_missing_allowance(self):
        provider = _provider(lambda request: httpx.Response(200, json={}))

        with pytest.raises(CircleApiError):
            await provider.get_fast_burn_allowance()
