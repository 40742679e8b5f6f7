from fastapi import APIRouter, Depends, HTTPException

from ..client import GasFlowClient, get_gasflow_client
from ..core.models import is_address
from ..types.responses import UnifiedBalanceResponse

router = APIRouter(prefix="/balances")


@router.get("/{account}")
async def get_unified_balance(
    account: str,
    client: GasFlowClient = Depends(get_gasflow_client),
) -> UnifiedBalanceResponse:
    if not is_address(account):
        raise HTTPException(status_code=400, detail=f"Invalid account address: {account}")
    unified = await client.get_unified_balance(account)
    return UnifiedBalanceResponse.from_balance(account, unified)
