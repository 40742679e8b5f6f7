"""
Error Classification

Typed errors raised by the routing and settlement engine.

Every error carries a machine-readable ``code`` and a ``retryable`` flag so a
``failed`` transaction update can be acted on without parsing messages.
Errors are split the same way the retry layer sees them: recoverable (the
operation may be retried) and unrecoverable (a caller decision is needed).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    NETWORK = "network"           # RPC / HTTP connectivity
    RATE_LIMIT = "rate_limit"     # API rate limits
    TIMEOUT = "timeout"           # Operation timed out
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSACTION_REVERTED = "transaction_reverted"
    ROUTING = "routing"           # No route satisfies the constraints
    VALIDATION = "validation"     # Input validation error
    CONFIGURATION = "configuration"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    chain_id: Optional[int] = None
    tx_hash: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for errors that can be retried.

    These errors are typically transient:
    - RPC connectivity issues
    - Rate limits
    - Gas price / nonce races on submission
    """

    code = "RECOVERABLE"

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(category=category, recoverable=True)

    @property
    def retryable(self) -> bool:
        return self.context.recoverable


class UnrecoverableError(Exception):
    """
    Base class for errors that cannot be retried as-is.

    These errors need a different input or a caller decision:
    - Insufficient balance
    - No viable route
    - Invalid bridge parameters
    - Missing execution method
    """

    code = "UNRECOVERABLE"

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)

    @property
    def retryable(self) -> bool:
        return self.context.recoverable


GasFlowError = (RecoverableError, UnrecoverableError)


class ChainUnavailable(RecoverableError):
    """A chain query failed. Read paths absorb this and fall back."""

    code = "CHAIN_UNAVAILABLE"

    def __init__(
        self,
        message: str = "Chain unavailable",
        chain_id: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            retry_after=1.0,
            context=ErrorContext(
                category=ErrorCategory.NETWORK,
                recoverable=True,
                retry_after_seconds=1.0,
                chain_id=chain_id,
                suggested_action="Retry with exponential backoff",
                details={"operation": operation} if operation else {},
            ),
        )
        self.chain_id = chain_id


class InsufficientBalance(UnrecoverableError):
    """The paying account does not hold enough USDC."""

    code = "INSUFFICIENT_BALANCE"

    def __init__(
        self,
        message: str = "Insufficient balance",
        required: Optional[int] = None,
        available: Optional[int] = None,
        chain_id: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            context=ErrorContext(
                category=ErrorCategory.INSUFFICIENT_FUNDS,
                recoverable=False,
                chain_id=chain_id,
                suggested_action="Add USDC on the paying chain or reduce the amount",
                details={"required": required, "available": available},
            ),
        )
        self.required = required
        self.available = available


class NoViableRoute(UnrecoverableError):
    """No (execute-on, pay-from) pair is covered by the caller's balances."""

    code = "NO_VIABLE_ROUTE"

    def __init__(
        self,
        message: str = "No chain has enough USDC to cover gas",
        required: Optional[int] = None,
        target_chain: Optional[int] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.ROUTING,
            context=ErrorContext(
                category=ErrorCategory.ROUTING,
                recoverable=False,
                chain_id=target_chain,
                suggested_action="Fund any supported chain with USDC",
                details={"required": required},
            ),
        )
        self.required = required


class BridgeValidationError(UnrecoverableError):
    """Bridge request rejected before any network call."""

    code = "BRIDGE_VALIDATION_FAILED"

    def __init__(self, message: str, reason: str = "invalid_request"):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(
                category=ErrorCategory.VALIDATION,
                recoverable=False,
                suggested_action="Fix the bridge parameters",
                details={"reason": reason},
            ),
        )
        self.reason = reason


class AttestationTimeout(UnrecoverableError):
    """
    Attestation polling exceeded its ceiling.

    The burn was confirmed on the source chain, so the transfer may still be
    completed externally by submitting the attestation once it is available.
    """

    code = "ATTESTATION_TIMEOUT"

    def __init__(
        self,
        message: str = "Attestation not available before timeout",
        source_tx_hash: Optional[str] = None,
        chain_id: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TIMEOUT,
            context=ErrorContext(
                category=ErrorCategory.TIMEOUT,
                recoverable=False,
                chain_id=chain_id,
                tx_hash=source_tx_hash,
                suggested_action="Burn confirmed; the transfer may still complete. Resume with the source tx hash",
                details={"timeout_seconds": timeout_seconds, "may_complete_externally": True},
            ),
        )
        self.source_tx_hash = source_tx_hash


class ContractExecutionFailed(RecoverableError):
    """
    A contract call reverted or could not be submitted.

    Only transient gas/nonce causes are retryable.
    """

    code = "CONTRACT_EXECUTION_FAILED"

    def __init__(
        self,
        message: str = "Contract execution failed",
        tx_hash: Optional[str] = None,
        chain_id: Optional[int] = None,
        revert_reason: Optional[str] = None,
        retryable: bool = False,
    ):
        super().__init__(
            message,
            category=ErrorCategory.TRANSACTION_REVERTED,
            retry_after=5.0 if retryable else None,
            context=ErrorContext(
                category=ErrorCategory.TRANSACTION_REVERTED,
                recoverable=retryable,
                tx_hash=tx_hash,
                chain_id=chain_id,
                suggested_action="Retry with fresh gas price and nonce" if retryable else "Review transaction parameters",
                details={"revert_reason": revert_reason} if revert_reason else {},
            ),
        )
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason


class NoExecutionMethod(UnrecoverableError):
    """Neither a sponsored nor a direct execution backend is usable."""

    code = "NO_EXECUTION_METHOD"

    def __init__(self, message: str = "No execution method available", chain_id: Optional[int] = None):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            context=ErrorContext(
                category=ErrorCategory.CONFIGURATION,
                recoverable=False,
                chain_id=chain_id,
                suggested_action="Supply a signer for the chain or a private key with a configured paymaster",
            ),
        )


class Cancelled(UnrecoverableError):
    """The caller cancelled a long-running operation."""

    code = "CANCELLED"

    def __init__(self, message: str = "Operation cancelled", tx_hash: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.CANCELLED,
            context=ErrorContext(category=ErrorCategory.CANCELLED, recoverable=False, tx_hash=tx_hash),
        )


class UnsupportedChainError(UnrecoverableError):
    code = "UNSUPPORTED_CHAIN"

    def __init__(self, chain_id: Any):
        super().__init__(
            f"Unsupported chain ID: {chain_id}",
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(category=ErrorCategory.VALIDATION, recoverable=False),
        )
        self.chain_id = chain_id


class IntentValidationError(UnrecoverableError):
    code = "INVALID_INTENT"

    def __init__(self, message: str):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            context=ErrorContext(category=ErrorCategory.VALIDATION, recoverable=False),
        )


# Revert / submission messages caused by fee or nonce races rather than the call itself
TRANSIENT_EXECUTION_PATTERNS = (
    "nonce too low",
    "nonce too high",
    "replacement transaction underpriced",
    "transaction underpriced",
    "max fee per gas less than block base fee",
    "intrinsic gas too low",
    "out of gas",
    "already known",
)


def is_transient_execution_error(reason: Optional[str]) -> bool:
    if not reason:
        return False
    lowered = reason.lower()
    return any(p in lowered for p in TRANSIENT_EXECUTION_PATTERNS)


def error_code(error: BaseException) -> str:
    """Machine-readable code for any exception."""
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    return classify_error(error).category.value.upper()


def classify_error(error: BaseException) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Typed errors return their own context; anything else is classified from
    its message.
    """
    if isinstance(error, GasFlowError):
        return error.context

    message = str(error).lower()

    rate_limit_patterns = ["rate limit", "too many requests", "429", "throttl", "quota exceeded"]
    if any(p in message for p in rate_limit_patterns):
        return ErrorContext(
            category=ErrorCategory.RATE_LIMIT,
            recoverable=True,
            retry_after_seconds=10.0,
            suggested_action="Wait before retrying",
        )

    if is_transient_execution_error(message):
        return ErrorContext(
            category=ErrorCategory.TRANSACTION_REVERTED,
            recoverable=True,
            retry_after_seconds=5.0,
            suggested_action="Retry with fresh gas price and nonce",
        )

    network_patterns = ["connection", "network", "unreachable", "refused", "dns", "socket", "ssl"]
    if any(p in message for p in network_patterns):
        return ErrorContext(
            category=ErrorCategory.NETWORK,
            recoverable=True,
            retry_after_seconds=1.0,
            suggested_action="Check network connectivity",
        )

    timeout_patterns = ["timeout", "timed out", "deadline"]
    if any(p in message for p in timeout_patterns):
        return ErrorContext(
            category=ErrorCategory.TIMEOUT,
            recoverable=True,
            retry_after_seconds=1.0,
            suggested_action="Retry with longer timeout",
        )

    funds_patterns = ["insufficient", "not enough", "exceeds balance", "transfer amount exceeds"]
    if any(p in message for p in funds_patterns):
        return ErrorContext(
            category=ErrorCategory.INSUFFICIENT_FUNDS,
            recoverable=False,
            suggested_action="Add funds to wallet",
        )

    revert_patterns = ["revert", "execution reverted", "transaction failed"]
    if any(p in message for p in revert_patterns):
        return ErrorContext(
            category=ErrorCategory.TRANSACTION_REVERTED,
            recoverable=False,
            suggested_action="Review transaction parameters",
        )

    # Unknown errors count as recoverable; RetryConfig.max_attempts bounds them
    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=True,
        suggested_action="Retry operation",
    )
