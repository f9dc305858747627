"""Allocation registry — reason → entitlement list, one per token type.

The registry is the owner's staging table. It only ever changes through
``upsert``: a known reason has its entitlement list replaced wholesale
(never merged), an unknown reason is appended. Reasons are never
deleted.

Iteration order is insertion order of first appearance. Replacing a
reason keeps its original position, so aggregate totals and claim
ordering are deterministic across upserts.

The registry is a pure data structure — no ownership checks, no locks,
no events. The distributor layer handles those.
"""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

from distributor.crypto.merkle import MerkleProof, MerkleTree, entitlement_leaf
from distributor.errors import LengthMismatch
from distributor.models.distribution import Entitlement, ReasonAllocation


class AllocationRegistry:
    """Ordered mapping of reason keys to their entitlements.

    Usage:
        registry = AllocationRegistry("GEN")
        registry.upsert("R1", ["alice", "bob"], [1_000, 250])
        registry.total_allocation()  # 1250
        registry.upsert("R1", ["alice"], [500])  # replaces, not merges
        registry.total_allocation()  # 500
    """

    def __init__(self, token: str) -> None:
        self._token = token
        self._allocations: dict[str, ReasonAllocation] = {}

    @property
    def token(self) -> str:
        return self._token

    def upsert(
        self,
        reason: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
    ) -> ReasonAllocation:
        """Replace or append the entitlements for reason.

        Validation happens before any mutation: on error the registry
        is untouched.

        Raises:
            LengthMismatch: If recipients and amounts differ in length.
            ValueError: If reason is empty or any amount is invalid.
        """
        if len(recipients) != len(amounts):
            raise LengthMismatch(
                f"{len(recipients)} recipients but {len(amounts)} amounts "
                f"for reason {reason!r}"
            )
        if not reason:
            raise ValueError("Reason must be a non-empty string")

        allocation = ReasonAllocation(
            reason=reason,
            entitlements=tuple(
                Entitlement(recipient=r, amount=a)
                for r, a in zip(recipients, amounts)
            ),
        )
        self._allocations[reason] = allocation
        return allocation

    def get(self, reason: str) -> Optional[ReasonAllocation]:
        return self._allocations.get(reason)

    def reasons(self) -> list[str]:
        return list(self._allocations)

    def allocations(self) -> list[ReasonAllocation]:
        """Snapshot of every reason allocation in registry order."""
        return list(self._allocations.values())

    def __iter__(self) -> Iterator[ReasonAllocation]:
        return iter(self.allocations())

    def __len__(self) -> int:
        return len(self._allocations)

    def __contains__(self, reason: object) -> bool:
        return reason in self._allocations

    def has_recipient(self, recipient: str) -> bool:
        """True if any reason holds an entitlement for recipient."""
        return any(
            a.find(recipient) is not None for a in self._allocations.values()
        )

    def total_allocation(self) -> int:
        """Sum of every entitlement amount, claimed or not."""
        return sum(a.total for a in self._allocations.values())

    def entitlement_count(self) -> int:
        return sum(a.recipient_count for a in self._allocations.values())

    # ------------------------------------------------------------------
    # Commitments
    # ------------------------------------------------------------------

    def _leaves(self) -> list[str]:
        return [
            entitlement_leaf(a.reason, i, e.recipient, e.amount)
            for a in self._allocations.values()
            for i, e in enumerate(a.entitlements)
        ]

    def allocation_root(self) -> str:
        """Merkle root committing to every entitlement line."""
        return MerkleTree(self._leaves()).root

    def allocation_proof(self, reason: str, recipient: str) -> Optional[MerkleProof]:
        """Inclusion proof for the claimable (first) line of recipient.

        Returns None if the reason is unknown or the recipient has no
        line in it.
        """
        allocation = self._allocations.get(reason)
        if allocation is None:
            return None
        for i, e in enumerate(allocation.entitlements):
            if e.recipient == recipient:
                leaf = entitlement_leaf(reason, i, recipient, e.amount)
                return MerkleTree(self._leaves()).inclusion_proof(leaf)
        return None

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "token": self._token,
            "allocations": [a.to_dict() for a in self._allocations.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> AllocationRegistry:
        registry = cls(data["token"])
        for item in data.get("allocations", []):
            allocation = ReasonAllocation.from_dict(item)
            registry._allocations[allocation.reason] = allocation
        return registry
