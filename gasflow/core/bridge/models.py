"""Bridge transfer state and lifecycle."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from ..models import TransferMode


class BridgeState(str, Enum):
    INITIATED = "initiated"
    BURNED = "burned"
    ATTESTED = "attested"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (BridgeState.COMPLETED, BridgeState.FAILED)


class BridgeStatus(str, Enum):
    """Externally observed status of a burn (see get_bridge_status)."""
    PENDING = "pending"
    ATTESTED = "attested"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(Exception):
    def __init__(self, from_state: BridgeState, to_state: BridgeState):
        super().__init__(f"Invalid bridge transition: {from_state.value} -> {to_state.value}")
        self.from_state = from_state
        self.to_state = to_state


# Forward-only: a transfer can never reach attested without burned, or completed without attested
TRANSITIONS: Dict[BridgeState, Set[BridgeState]] = {
    BridgeState.INITIATED: {BridgeState.BURNED, BridgeState.FAILED},
    BridgeState.BURNED: {BridgeState.ATTESTED, BridgeState.FAILED},
    BridgeState.ATTESTED: {BridgeState.COMPLETED, BridgeState.FAILED},
    BridgeState.COMPLETED: set(),
    BridgeState.FAILED: set(),
}


@dataclass(frozen=True)
class BridgeRequest:
    amount: int
    from_chain: int
    to_chain: int
    recipient: str
    transfer_mode: TransferMode = TransferMode.AUTO


@dataclass
class BridgeTransfer:
    """One CCTP transfer, owned and mutated only by the bridge service driving it."""
    amount: int
    from_chain: int
    to_chain: int
    recipient: str
    transfer_mode: TransferMode
    fast: bool = False
    transfer_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: BridgeState = BridgeState.INITIATED
    source_tx_hash: Optional[str] = None
    approval_tx_hash: Optional[str] = None
    message_handle: Optional[str] = None
    message: Optional[str] = None
    attestation: Optional[str] = None
    destination_tx_hash: Optional[str] = None
    error: Optional[str] = None
    history: List[Tuple[BridgeState, float]] = field(default_factory=list)

    def __post_init__(self):
        if not self.history:
            self.history.append((self.state, time.time()))

    @classmethod
    def from_request(cls, request: BridgeRequest, fast: bool) -> "BridgeTransfer":
        return cls(
            amount=request.amount,
            from_chain=request.from_chain,
            to_chain=request.to_chain,
            recipient=request.recipient,
            transfer_mode=request.transfer_mode,
            fast=fast,
        )

    def can_transition_to(self, state: BridgeState) -> bool:
        return state in TRANSITIONS[self.state]

    def transition(self, state: BridgeState, **updates) -> None:
        if not self.can_transition_to(state):
            raise InvalidTransitionError(self.state, state)
        for name, value in updates.items():
            if not hasattr(self, name):
                raise AttributeError(f"BridgeTransfer has no field {name!r}")
            setattr(self, name, value)
        self.state = state
        self.history.append((state, time.time()))

    def fail(self, error: BaseException) -> None:
        """Move to failed unless already terminal."""
        if not self.state.is_terminal:
            self.transition(BridgeState.FAILED, error=str(error) or type(error).__name__)

    @property
    def visited_states(self) -> List[BridgeState]:
        return [state for state, _ in self.history]
