"""Read-side services: balances, gas estimates and route ranking"""

from .balances import BalanceAggregator
from .gas_estimator import GasEstimator, NativePriceOracle

__all__ = ["BalanceAggregator", "GasEstimator", "NativePriceOracle"]
