from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..client import GasFlowClient, get_gasflow_client

router = APIRouter()


@router.get("/healthz")
async def health_check(client: GasFlowClient = Depends(get_gasflow_client)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""
    provider_status = await client.health_check()

    # Chain RPC is the only hard dependency; the rest degrade to fallbacks
    rpc_status = provider_status.get("rpc", {}).get("status")
    available_providers = sum(
        1 for status in provider_status.values()
        if status.get("status") == "healthy"
    )

    return {
        "status": "healthy" if rpc_status == "healthy" else "degraded",
        "bridge_mode": client.bridge.kind.value,
        "providers": provider_status,
        "available_providers": available_providers,
        "total_providers": len(provider_status),
    }
