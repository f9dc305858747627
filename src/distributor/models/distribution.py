"""Distribution models — entitlements, reason allocations, claim records.

All amounts are integers in the token's base unit. No floats, no Decimal:
a token ledger only ever moves whole base units.

Invariants enforced by these models:
- Entitlement amounts are non-negative integers
- A reason allocation is immutable once built (upsert replaces it wholesale)
- A claim record only grows; reasons are never removed
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional


class GateState(str, enum.Enum):
    """Whether recipients may currently claim.

    DISABLED → ENABLED only after a solvency check passes.
    ENABLED → DISABLED unconditionally.
    """
    DISABLED = "disabled"
    ENABLED = "enabled"


def validate_amount(amount: Any) -> int:
    """Return amount if it is a non-negative int, else raise ValueError."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"Amount must be an integer, got {amount!r}")
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return amount


@dataclass(frozen=True)
class Entitlement:
    """A single recipient + amount pair inside a reason."""
    recipient: str
    amount: int

    def __post_init__(self) -> None:
        if not self.recipient:
            raise ValueError("Entitlement recipient must be non-empty")
        validate_amount(self.amount)


@dataclass(frozen=True)
class ReasonAllocation:
    """All entitlements granted under one campaign key.

    Duplicate recipients are allowed. Only the first entry for a
    recipient is reachable by claim; later entries still count toward
    the reason total.
    """
    reason: str
    entitlements: tuple[Entitlement, ...] = ()

    @property
    def total(self) -> int:
        return sum(e.amount for e in self.entitlements)

    @property
    def recipient_count(self) -> int:
        return len(self.entitlements)

    def find(self, recipient: str) -> Optional[Entitlement]:
        """First entitlement for recipient, or None."""
        for entitlement in self.entitlements:
            if entitlement.recipient == recipient:
                return entitlement
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reason": self.reason,
            "entitlements": [
                {"recipient": e.recipient, "amount": e.amount}
                for e in self.entitlements
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReasonAllocation:
        return cls(
            reason=data["reason"],
            entitlements=tuple(
                Entitlement(recipient=e["recipient"], amount=e["amount"])
                for e in data.get("entitlements", [])
            ),
        )


@dataclass
class ClaimRecord:
    """Reasons already paid to one recipient for one token.

    Mutable but append-only: ``record`` is the only mutator and it
    refuses a reason that is already present.
    """
    recipient: str
    token: str
    reasons: list[str] = field(default_factory=list)
    amounts: dict[str, int] = field(default_factory=dict)
    first_claim_utc: Optional[datetime] = None
    last_claim_utc: Optional[datetime] = None

    def has_claimed(self, reason: str) -> bool:
        return reason in self.amounts

    @property
    def total_claimed(self) -> int:
        return sum(self.amounts.values())

    def record(self, reason: str, amount: int, now: datetime) -> None:
        """Append a paid reason. Raises ValueError on a repeat."""
        if reason in self.amounts:
            raise ValueError(
                f"Reason {reason!r} already claimed by {self.recipient}"
            )
        self.reasons.append(reason)
        self.amounts[reason] = amount
        if self.first_claim_utc is None:
            self.first_claim_utc = now
        self.last_claim_utc = now

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "token": self.token,
            "reasons": list(self.reasons),
            "amounts": dict(self.amounts),
            "first_claim_utc": (
                self.first_claim_utc.isoformat() if self.first_claim_utc else None
            ),
            "last_claim_utc": (
                self.last_claim_utc.isoformat() if self.last_claim_utc else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClaimRecord:
        return cls(
            recipient=data["recipient"],
            token=data["token"],
            reasons=list(data.get("reasons", [])),
            amounts={k: int(v) for k, v in data.get("amounts", {}).items()},
            first_claim_utc=(
                datetime.fromisoformat(data["first_claim_utc"])
                if data.get("first_claim_utc") else None
            ),
            last_claim_utc=(
                datetime.fromisoformat(data["last_claim_utc"])
                if data.get("last_claim_utc") else None
            ),
        )


@dataclass(frozen=True)
class AllocationLine:
    """One row of a recipient's allocation history."""
    reason: str
    amount: int
    claimed: bool


@dataclass(frozen=True)
class ClaimReceipt:
    """Result of a successful claim — one transfer covering every reason."""
    recipient: str
    token: str
    reasons: tuple[str, ...]
    amounts: tuple[int, ...]
    total: int
    transfer_id: Optional[str]
    claimed_utc: datetime
