"""
Routing and execution models.

All amounts are integers in USDC minor units (6 decimals).
"""

import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .recovery.errors import IntentValidationError

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

USDC_DECIMALS = 6
OPTIMAL = "optimal"
AUTO = "auto"


def is_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))


def format_usdc(amount: int) -> str:
    """Render minor units as a decimal USDC string without floats."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10 ** USDC_DECIMALS)
    return f"{sign}{whole}.{frac:06d}"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TransferMode(str, Enum):
    AUTO = "auto"
    FAST = "fast"
    STANDARD = "standard"


class UpdateStatus(str, Enum):
    """Lifecycle status of one execute request."""
    PENDING = "pending"
    BRIDGING = "bridging"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UpdateStatus.COMPLETED, UpdateStatus.FAILED)


@dataclass
class TransactionIntent:
    """The caller's transaction and how it wants gas paid."""
    to: str
    value: int = 0
    data: str = "0x"
    gas_limit: Optional[int] = None
    execute_on: Union[int, str] = OPTIMAL
    pay_from_chain: Union[int, str] = AUTO
    urgency: Urgency = Urgency.MEDIUM
    transfer_mode: TransferMode = TransferMode.AUTO

    def __post_init__(self):
        if not is_address(self.to):
            raise IntentValidationError(f"Invalid recipient address: {self.to!r}")
        if self.value is None:
            self.value = 0
        if self.value < 0:
            raise IntentValidationError("Transaction value must be non-negative")
        if self.gas_limit is not None and self.gas_limit <= 0:
            raise IntentValidationError("Gas limit must be positive")
        if isinstance(self.execute_on, str) and self.execute_on != OPTIMAL:
            raise IntentValidationError(f"execute_on must be a chain id or '{OPTIMAL}'")
        if isinstance(self.pay_from_chain, str) and self.pay_from_chain != AUTO:
            raise IntentValidationError(f"pay_from_chain must be a chain id or '{AUTO}'")
        self.urgency = Urgency(self.urgency)
        self.transfer_mode = TransferMode(self.transfer_mode)

    @property
    def wants_optimal_chain(self) -> bool:
        return self.execute_on == OPTIMAL

    @property
    def is_pinned(self) -> bool:
        """Both chains chosen by the caller; route analysis is skipped."""
        return isinstance(self.execute_on, int) and isinstance(self.pay_from_chain, int)

    def to_call(self, from_address: Optional[str] = None) -> Dict[str, Any]:
        """eth_call / eth_estimateGas call object."""
        call: Dict[str, Any] = {"to": self.to, "data": self.data or "0x"}
        if from_address:
            call["from"] = from_address
        if self.value:
            call["value"] = hex(self.value)
        return call


@dataclass
class GasEstimate:
    """Gas cost of running an intent on one chain."""
    chain_id: int
    gas_limit: int
    gas_price: int                  # wei
    native_cost: int                # wei
    stablecoin_cost: int            # USDC minor units
    estimated_time_seconds: int
    is_fallback: bool = False


@dataclass(frozen=True)
class RouteOption:
    execute_on_chain: int
    pay_from_chain: int
    gas_cost: int
    estimated_time_seconds: int
    bridge_cost: Optional[int] = None

    def __post_init__(self):
        if self.is_direct and self.bridge_cost is not None:
            raise ValueError("Direct routes carry no bridge cost")
        if not self.is_direct and self.bridge_cost is None:
            raise ValueError("Cross-chain routes require a bridge cost")

    @property
    def is_direct(self) -> bool:
        return self.execute_on_chain == self.pay_from_chain

    @property
    def total_cost(self) -> int:
        return self.gas_cost + (self.bridge_cost or 0)

    def sort_key(self):
        return (self.total_cost, self.estimated_time_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executeOnChain": self.execute_on_chain,
            "payFromChain": self.pay_from_chain,
            "gasCost": str(self.gas_cost),
            "bridgeCost": str(self.bridge_cost) if self.bridge_cost is not None else None,
            "totalCost": str(self.total_cost),
            "estimatedTimeSeconds": self.estimated_time_seconds,
        }


@dataclass
class Recommendation:
    chain_id: int
    reason: str
    estimated_savings: Optional[int] = None


@dataclass
class RouteAnalysis:
    best_route: RouteOption
    all_routes: List[RouteOption]
    recommendation: Recommendation

    def __post_init__(self):
        self.all_routes = sorted(self.all_routes, key=RouteOption.sort_key)
        if not self.all_routes or self.best_route != self.all_routes[0]:
            raise ValueError("best_route must be the first of all_routes")


@dataclass
class QuickEstimate:
    can_execute: bool
    estimated_cost: int              # USDC minor units, gas plus any bridge fee
    recommended_chain: int
    requires_bridge: bool


@dataclass
class ChainBalance:
    chain_id: int
    balance: int


@dataclass
class UnifiedBalance:
    per_chain: List[ChainBalance]
    last_updated: float = field(default_factory=time.time)

    @property
    def total_amount(self) -> int:
        return sum(entry.balance for entry in self.per_chain)

    def balance_on(self, chain_id: int) -> int:
        for entry in self.per_chain:
            if entry.chain_id == chain_id:
                return entry.balance
        return 0


@dataclass
class BridgeQuote:
    from_chain: int
    to_chain: int
    amount: int
    fee: int
    estimated_time_seconds: int
    fast: bool


@dataclass
class ExecutionResult:
    tx_hash: str
    executed_on_chain: int
    gas_payment_chain: int
    total_cost: int
    gas_used: Optional[int] = None
    bridge_tx_hash: Optional[str] = None
    estimated_savings: Optional[int] = None


@dataclass
class TransactionUpdate:
    status: UpdateStatus
    tx_hash: Optional[str] = None
    bridge_tx_hash: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    retryable: Optional[bool] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.status == UpdateStatus.FAILED and (self.error_code is None or self.retryable is None):
            raise ValueError("failed updates carry an error code and retryable flag")
