from typing import List

from fastapi import APIRouter, Depends

from ..client import GasFlowClient, get_gasflow_client
from ..types.responses import ChainInfo, ChainStatusResponse

router = APIRouter(prefix="/chains")


@router.get("")
async def list_chains(client: GasFlowClient = Depends(get_gasflow_client)) -> List[ChainInfo]:
    return [ChainInfo.from_config(config) for config in client.get_supported_chains()]


@router.get("/{chain_id}/status")
async def chain_status(chain_id: int, client: GasFlowClient = Depends(get_gasflow_client)) -> ChainStatusResponse:
    return ChainStatusResponse(**client.get_chain_status(chain_id))
