from fastapi import APIRouter, Depends, HTTPException, Query

from ..client import GasFlowClient, get_gasflow_client
from ..core.bridge.orchestrator import MIN_CCTP_AMOUNT
from ..core.models import TransferMode, is_address
from ..services.route_optimizer import RouteOptimizer
from ..types.requests import RouteEstimateRequest
from ..types.responses import BridgeQuoteResponse, RouteAnalysisResponse

router = APIRouter()


@router.post("/routes/estimate")
async def estimate_route(
    req: RouteEstimateRequest,
    client: GasFlowClient = Depends(get_gasflow_client),
) -> RouteAnalysisResponse:
    if not is_address(req.account):
        raise HTTPException(status_code=400, detail=f"Invalid account address: {req.account}")
    analysis = await client.estimate_transaction(req.to_intent(), req.account)
    return RouteAnalysisResponse.from_analysis(analysis, RouteOptimizer.calculate_savings_opportunity(analysis))


@router.get("/bridge/quote")
async def bridge_quote(
    amount: int = Query(ge=MIN_CCTP_AMOUNT, description="USDC minor units"),
    from_chain: int = Query(),
    to_chain: int = Query(),
    mode: TransferMode = Query(default=TransferMode.AUTO),
    client: GasFlowClient = Depends(get_gasflow_client),
) -> BridgeQuoteResponse:
    if from_chain == to_chain:
        raise HTTPException(status_code=400, detail="Source and destination chains must differ")
    for chain_id in (from_chain, to_chain):
        if not client.registry.is_cctp_supported(chain_id):
            raise HTTPException(status_code=400, detail=f"Chain {chain_id} does not support CCTP")

    quote = await client.bridge.oracle.quote(amount, from_chain, to_chain, mode)
    return BridgeQuoteResponse.from_quote(quote)
