from .requests import RouteEstimateRequest
from .responses import (
    BridgeQuoteResponse,
    ChainBalanceResponse,
    ChainInfo,
    ChainStatusResponse,
    ErrorResponse,
    RouteAnalysisResponse,
    RouteOptionResponse,
    UnifiedBalanceResponse,
)

__all__ = [
    "RouteEstimateRequest",
    "BridgeQuoteResponse",
    "ChainBalanceResponse",
    "ChainInfo",
    "ChainStatusResponse",
    "ErrorResponse",
    "RouteAnalysisResponse",
    "RouteOptionResponse",
    "UnifiedBalanceResponse",
]
