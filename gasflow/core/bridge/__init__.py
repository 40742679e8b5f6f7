"""Cross-chain USDC bridging over CCTP v2."""

from typing import TYPE_CHECKING

from .models import BridgeRequest, BridgeState, BridgeStatus, BridgeTransfer, InvalidTransitionError
from .oracle import BridgeFeeOracle

if TYPE_CHECKING:  # pragma: no cover
    from .orchestrator import CctpBridgeOrchestrator
    from .service import BridgeService, MockBridgeService, ProductionBridgeService, build_bridge_service

__all__ = [
    "BridgeFeeOracle",
    "BridgeRequest",
    "BridgeService",
    "BridgeState",
    "BridgeStatus",
    "BridgeTransfer",
    "CctpBridgeOrchestrator",
    "InvalidTransitionError",
    "MockBridgeService",
    "ProductionBridgeService",
    "build_bridge_service",
]

_LAZY = {
    "CctpBridgeOrchestrator": "orchestrator",
    "BridgeService": "service",
    "MockBridgeService": "service",
    "ProductionBridgeService": "service",
    "build_bridge_service": "service",
}


def __getattr__(name: str):  # pragma: no cover - simple thunk
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    import importlib

    module = importlib.import_module(f".{module_name}", __name__)
    return getattr(module, name)
