"""Claims gate — the switch that decides whether claims may execute.

The gate is a pure state machine. It does not compute liability itself;
the distributor passes in the escrow balance and the total unclaimed
amount read under its state lock.

State machine:
    DISABLED → ENABLED     (only if balance >= required)
    ENABLED → ENABLED      (re-check; stays open only if still solvent)
    ENABLED → DISABLED     (always)
    DISABLED → DISABLED    (no-op)

Solvency is checked at the moment of opening only. Allocations added
while the gate is open are not re-verified here; ``status()`` on the
distributor reports whether the escrow still covers the liability.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from distributor.errors import InsufficientFunds
from distributor.models.distribution import GateState


class ClaimsGate:
    """Enable/disable switch with a solvency precondition on enable."""

    def __init__(self, state: GateState = GateState.DISABLED) -> None:
        self._state = state
        self.changed_utc: Optional[datetime] = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def is_enabled(self) -> bool:
        return self._state == GateState.ENABLED

    def open(
        self,
        escrow_balance: int,
        required: int,
        now: Optional[datetime] = None,
    ) -> GateState:
        """Transition to ENABLED if escrow_balance covers required.

        Raises:
            InsufficientFunds: If escrow_balance < required. State is
                left exactly as it was.
        """
        if escrow_balance < required:
            raise InsufficientFunds(
                f"Escrow balance {escrow_balance} does not cover "
                f"unclaimed allocations {required}"
            )
        self._state = GateState.ENABLED
        self.changed_utc = now or datetime.now(timezone.utc)
        return self._state

    def close(self, now: Optional[datetime] = None) -> GateState:
        """Transition to DISABLED unconditionally."""
        self._state = GateState.DISABLED
        self.changed_utc = now or datetime.now(timezone.utc)
        return self._state

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "changed_utc": self.changed_utc.isoformat() if self.changed_utc else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ClaimsGate:
        gate = cls(GateState(data["state"]))
        if data.get("changed_utc"):
            gate.changed_utc = datetime.fromisoformat(data["changed_utc"])
        return gate
