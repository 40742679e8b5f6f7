from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.chains import ChainConfig
from ..core.models import BridgeQuote, RouteAnalysis, RouteOption, UnifiedBalance, format_usdc


class ChainInfo(BaseModel):
    chain_id: int
    name: str
    cctp_domain: int
    usdc_address: str
    gas_token_symbol: str
    is_testnet: bool
    paymaster_supported: bool

    @classmethod
    def from_config(cls, config: ChainConfig) -> "ChainInfo":
        return cls(
            chain_id=config.chain_id,
            name=config.name,
            cctp_domain=config.cctp_domain,
            usdc_address=config.usdc_address,
            gas_token_symbol=config.gas_token_symbol,
            is_testnet=config.is_testnet,
            paymaster_supported=bool(config.paymaster_address),
        )


class ChainStatusResponse(BaseModel):
    chain_id: int
    name: str
    available: bool
    paymaster_supported: bool
    cctp_supported: bool


class ChainBalanceResponse(BaseModel):
    chain_id: int
    balance: int = Field(description="USDC minor units")
    formatted: str


class UnifiedBalanceResponse(BaseModel):
    account: str
    total: int = Field(description="USDC minor units across all chains")
    formatted_total: str
    chains: List[ChainBalanceResponse]
    last_updated: float

    @classmethod
    def from_balance(cls, account: str, unified: UnifiedBalance) -> "UnifiedBalanceResponse":
        return cls(
            account=account,
            total=unified.total_amount,
            formatted_total=format_usdc(unified.total_amount),
            chains=[
                ChainBalanceResponse(chain_id=e.chain_id, balance=e.balance, formatted=format_usdc(e.balance))
                for e in unified.per_chain
            ],
            last_updated=unified.last_updated,
        )


class RouteOptionResponse(BaseModel):
    execute_on_chain: int
    pay_from_chain: int
    gas_cost: int
    bridge_cost: Optional[int] = None
    total_cost: int
    estimated_time_seconds: int

    @classmethod
    def from_route(cls, route: RouteOption) -> "RouteOptionResponse":
        return cls(
            execute_on_chain=route.execute_on_chain,
            pay_from_chain=route.pay_from_chain,
            gas_cost=route.gas_cost,
            bridge_cost=route.bridge_cost,
            total_cost=route.total_cost,
            estimated_time_seconds=route.estimated_time_seconds,
        )


class RecommendationResponse(BaseModel):
    chain_id: int
    reason: str
    estimated_savings: Optional[int] = None


class RouteAnalysisResponse(BaseModel):
    best_route: RouteOptionResponse
    all_routes: List[RouteOptionResponse]
    recommendation: RecommendationResponse
    savings_opportunity: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_analysis(cls, analysis: RouteAnalysis, savings: Dict[str, Any]) -> "RouteAnalysisResponse":
        return cls(
            best_route=RouteOptionResponse.from_route(analysis.best_route),
            all_routes=[RouteOptionResponse.from_route(r) for r in analysis.all_routes],
            recommendation=RecommendationResponse(
                chain_id=analysis.recommendation.chain_id,
                reason=analysis.recommendation.reason,
                estimated_savings=analysis.recommendation.estimated_savings,
            ),
            savings_opportunity=savings,
        )


class BridgeQuoteResponse(BaseModel):
    from_chain: int
    to_chain: int
    amount: int
    fee: int
    estimated_time_seconds: int
    fast: bool

    @classmethod
    def from_quote(cls, quote: BridgeQuote) -> "BridgeQuoteResponse":
        return cls(
            from_chain=quote.from_chain,
            to_chain=quote.to_chain,
            amount=quote.amount,
            fee=quote.fee,
            estimated_time_seconds=quote.estimated_time_seconds,
            fast=quote.fast,
        )


class ErrorResponse(BaseModel):
    error: str
    code: str
    retryable: bool
    details: Dict[str, Any] = Field(default_factory=dict)
