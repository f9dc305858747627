"""Settlement engine — computes what a recipient is owed and pays it.

Unclaimed set for a recipient: walk the registry in order; for every
reason not yet in the recipient's claim record, take the first
entitlement whose recipient matches. Reasons with no match contribute
nothing. Later duplicate entries for the same recipient are never
reachable.

Settlement ordering (the distributor holds the recipient's lock and its
state lock throughout):
1. One escrow debit for the aggregated total (skipped when zero).
2. Every qualifying reason appended to the claim record.

If the debit fails nothing has been recorded. Recording cannot fail for
reasons computed under the same locks, so once funds have moved the
record always follows, before any other operation can look.

The engine does not check the gate or emit events — the distributor
owns both.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from distributor.distribution.claims import ClaimLedger
from distributor.distribution.escrow import EscrowVault
from distributor.distribution.registry import AllocationRegistry
from distributor.models.distribution import AllocationLine, ClaimReceipt


class SettlementEngine:
    """Reads registry + claim ledger, writes claim ledger, debits escrow."""

    def __init__(
        self,
        registry: AllocationRegistry,
        claims: ClaimLedger,
        escrow: EscrowVault,
    ) -> None:
        self._registry = registry
        self._claims = claims
        self._escrow = escrow

    def unclaimed_lines(self, recipient: str) -> list[tuple[str, int]]:
        """(reason, amount) pairs still owed to recipient, registry order."""
        lines: list[tuple[str, int]] = []
        for allocation in self._registry:
            if self._claims.has_claimed(recipient, allocation.reason):
                continue
            entitlement = allocation.find(recipient)
            if entitlement is not None:
                lines.append((allocation.reason, entitlement.amount))
        return lines

    def history(self, recipient: str) -> list[AllocationLine]:
        """Every reason granting recipient an entitlement, claimed or not."""
        result: list[AllocationLine] = []
        for allocation in self._registry:
            entitlement = allocation.find(recipient)
            if entitlement is None:
                continue
            result.append(AllocationLine(
                reason=allocation.reason,
                amount=entitlement.amount,
                claimed=self._claims.has_claimed(recipient, allocation.reason),
            ))
        return result

    def total_unclaimed(self) -> int:
        """Outstanding liability across every recipient.

        Counts every entitlement entry whose (reason, recipient) pair is
        not in that recipient's claim record. Duplicate entries are
        counted too, so the figure never understates what the registry
        promises.
        """
        total = 0
        for allocation in self._registry:
            for entitlement in allocation.entitlements:
                if not self._claims.has_claimed(entitlement.recipient, allocation.reason):
                    total += entitlement.amount
        return total

    def settle(
        self,
        recipient: str,
        lines: list[tuple[str, int]],
        now: Optional[datetime] = None,
    ) -> ClaimReceipt:
        """Pay lines to recipient in one transfer, then record them.

        Caller must hold the recipient's lock and the distributor state
        lock, and have computed lines with ``unclaimed_lines`` under them.

        Raises:
            InsufficientFunds: Escrow cannot cover the total.
            TransferFailed: The ledger refused the payout.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        reasons = tuple(reason for reason, _ in lines)
        amounts = tuple(amount for _, amount in lines)
        total = sum(amounts)

        transfer_id: Optional[str] = None
        if total > 0:
            transfer_id = self._escrow.debit_to(recipient, total)

        self._claims.record_claims(recipient, reasons, amounts, now=now)

        return ClaimReceipt(
            recipient=recipient,
            token=self._registry.token,
            reasons=reasons,
            amounts=amounts,
            total=total,
            transfer_id=transfer_id,
            claimed_utc=now,
        )
