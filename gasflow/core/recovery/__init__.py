"""
Error taxonomy and retry strategies.
"""

from .errors import (
    AttestationTimeout,
    BridgeValidationError,
    Cancelled,
    ChainUnavailable,
    ContractExecutionFailed,
    ErrorCategory,
    ErrorContext,
    GasFlowError,
    InsufficientBalance,
    IntentValidationError,
    NoExecutionMethod,
    NoViableRoute,
    RecoverableError,
    UnrecoverableError,
    UnsupportedChainError,
    classify_error,
    error_code,
    is_transient_execution_error,
)
from .strategies import RetryConfig, RetryStrategy

__all__ = [
    "AttestationTimeout",
    "BridgeValidationError",
    "Cancelled",
    "ChainUnavailable",
    "ContractExecutionFailed",
    "ErrorCategory",
    "ErrorContext",
    "GasFlowError",
    "InsufficientBalance",
    "IntentValidationError",
    "NoExecutionMethod",
    "NoViableRoute",
    "RecoverableError",
    "UnrecoverableError",
    "UnsupportedChainError",
    "classify_error",
    "error_code",
    "is_transient_execution_error",
    "RetryConfig",
    "RetryStrategy",
]
