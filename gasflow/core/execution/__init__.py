"""
Transaction execution.

- ExecutionCoordinator: route -> bridge -> execute for one request
- SponsoredExecutionBackend / DirectExecutionBackend: how the call lands on chain
- UpdateChannel: per-request progress updates
- ExecutionAuth / LocalAccountSigner: caller-supplied authorization

Usage:
    from gasflow.core.execution import ExecutionAuth, UpdateChannel

    channel = UpdateChannel()
    result = await coordinator.execute(intent, account, ExecutionAuth(private_key=key), updates=channel)
"""

from typing import TYPE_CHECKING

from .events import UpdateChannel
from .userop import UserOperation, UserOpGasEstimate, UserOpReceipt

if TYPE_CHECKING:  # pragma: no cover
    from .auth import ExecutionAuth, LocalAccountSigner, TransactionSigner
    from .backends import DirectExecutionBackend, ExecutionOutcome, SponsoredExecutionBackend
    from .coordinator import ExecutionCoordinator

__all__ = [
    "DirectExecutionBackend",
    "ExecutionAuth",
    "ExecutionCoordinator",
    "ExecutionOutcome",
    "LocalAccountSigner",
    "SponsoredExecutionBackend",
    "TransactionSigner",
    "UpdateChannel",
    "UserOperation",
    "UserOpGasEstimate",
    "UserOpReceipt",
]

_LAZY = {
    "ExecutionAuth": "auth",
    "LocalAccountSigner": "auth",
    "TransactionSigner": "auth",
    "DirectExecutionBackend": "backends",
    "ExecutionOutcome": "backends",
    "SponsoredExecutionBackend": "backends",
    "ExecutionCoordinator": "coordinator",
}


def __getattr__(name: str):  # pragma: no cover - simple thunk
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    module = importlib.import_module(f".{module_name}", __name__)
    return getattr(module, name)
