"""Distributor — one token type's allocation registry, escrow, gate and claims.

This is the object ``DistributorService.initialize`` hands back. It binds
the leaf components together and enforces everything they do not:

- Owner-only operations compare the caller to the configured owner.
- Owner operations run under the state lock, one at a time.
- Claims run under the recipient's lock, and the gate check, the
  unclaimed computation, the escrow debit and the claim record all
  commit under the state lock as one unit.
- Every committed state change is reported to the event log.

Event delivery never aborts an operation. A failed append is kept in
``audit_failures`` for the operator; the state change itself stands.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from distributor.crypto.merkle import MerkleProof
from distributor.distribution.claims import ClaimLedger
from distributor.distribution.escrow import EscrowVault
from distributor.distribution.gate import ClaimsGate
from distributor.distribution.registry import AllocationRegistry
from distributor.distribution.settlement import SettlementEngine
from distributor.errors import (
    ClaimsEnabled,
    ClaimsNotEnabled,
    NoAllocation,
    PermissionDenied,
)
from distributor.models.distribution import (
    AllocationLine,
    ClaimReceipt,
    ClaimRecord,
)
from distributor.persistence.event_log import EventKind, EventLog
from distributor.tokens.ledger import TokenLedger


class Distributor:
    """Per-token distribution engine.

    Usage:
        dist = service.initialize("owner", "GEN")
        dist.set_allocation("owner", ["alice"], [1_000], "R1")
        dist.deposit("owner", 1_000)
        dist.enable("owner", True)
        receipt = dist.claim("alice")
    """

    def __init__(
        self,
        token: str,
        owner_id: str,
        escrow: EscrowVault,
        registry: Optional[AllocationRegistry] = None,
        claims: Optional[ClaimLedger] = None,
        gate: Optional[ClaimsGate] = None,
        event_log: Optional[EventLog] = None,
        require_closed_gate_for_allocation: bool = False,
    ) -> None:
        if escrow.token != token:
            raise ValueError(
                f"Escrow token {escrow.token!r} does not match distributor token {token!r}"
            )
        self._token = token
        self._owner_id = owner_id
        self._escrow = escrow
        self._registry = registry if registry is not None else AllocationRegistry(token)
        self._claims = claims if claims is not None else ClaimLedger(token)
        self._gate = gate if gate is not None else ClaimsGate()
        self._event_log = event_log
        self._require_closed_gate = require_closed_gate_for_allocation
        self._engine = SettlementEngine(self._registry, self._claims, self._escrow)
        self._state_lock = threading.RLock()
        self.audit_failures: list[str] = []

    @classmethod
    def create(
        cls,
        token: str,
        owner_id: str,
        ledger: TokenLedger,
        escrow_account: Optional[str] = None,
        event_log: Optional[EventLog] = None,
        require_closed_gate_for_allocation: bool = False,
    ) -> Distributor:
        """Fresh distributor: empty registry, disabled gate, new escrow handle."""
        return cls(
            token=token,
            owner_id=owner_id,
            escrow=EscrowVault(token, ledger, account_id=escrow_account),
            event_log=event_log,
            require_closed_gate_for_allocation=require_closed_gate_for_allocation,
        )

    @property
    def token(self) -> str:
        return self._token

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def escrow(self) -> EscrowVault:
        return self._escrow

    @property
    def registry(self) -> AllocationRegistry:
        return self._registry

    @property
    def claims(self) -> ClaimLedger:
        return self._claims

    @property
    def gate(self) -> ClaimsGate:
        return self._gate

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def set_allocation(
        self,
        caller: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        reason: str,
    ) -> dict[str, Any]:
        """Upsert reason's entitlements. Replaces wholesale if it exists.

        Raises:
            PermissionDenied: Caller is not the owner.
            LengthMismatch: recipients and amounts differ in length.
            ClaimsEnabled: Gate is open and policy requires it closed.
            ValueError: Empty reason or invalid amount.
        """
        self._require_owner(caller, "set_allocation")
        with self._state_lock:
            if self._require_closed_gate and self._gate.is_enabled:
                raise ClaimsEnabled(
                    f"Allocations for {self._token} cannot change while claims are enabled"
                )
            replaced = reason in self._registry
            allocation = self._registry.upsert(reason, recipients, amounts)
            summary = {
                "token": self._token,
                "reason": reason,
                "reason_total": allocation.total,
                "recipient_count": allocation.recipient_count,
                "replaced": replaced,
                "total_allocation": self._registry.total_allocation(),
                "allocation_root": self._registry.allocation_root(),
            }
        self.emit(EventKind.ALLOCATION_SET, caller, summary)
        return summary

    def deposit(self, caller: str, amount: int) -> dict[str, Any]:
        """Move amount from the owner's ledger account into escrow.

        Raises:
            PermissionDenied: Caller is not the owner.
            ValueError: amount is not a positive integer.
            TransferFailed: Owner cannot cover the amount.
        """
        self._require_owner(caller, "deposit")
        with self._state_lock:
            transfer_id = self._escrow.deposit(caller, amount)
            summary = {
                "token": self._token,
                "amount": amount,
                "balance": self._escrow.balance(),
                "transfer_id": transfer_id,
            }
        self.emit(EventKind.ESCROW_DEPOSITED, caller, summary)
        return summary

    def enable(
        self,
        caller: str,
        enabled: bool,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Open or close the claims gate.

        Opening re-checks solvency: escrow balance must cover the total
        unclaimed liability at this moment. Closing always succeeds.

        Raises:
            PermissionDenied: Caller is not the owner.
            InsufficientFunds: Opening while escrow is short.
        """
        self._require_owner(caller, "enable")
        with self._state_lock:
            balance = self._escrow.balance()
            required = self._engine.total_unclaimed()
            if enabled:
                state = self._gate.open(balance, required, now=now)
            else:
                state = self._gate.close(now=now)
            summary = {
                "token": self._token,
                "state": state.value,
                "balance": balance,
                "required": required,
            }
        self.emit(EventKind.GATE_CHANGED, caller, summary)
        return summary

    # ------------------------------------------------------------------
    # Recipient operation
    # ------------------------------------------------------------------

    def claim(self, recipient: str, now: Optional[datetime] = None) -> ClaimReceipt:
        """Settle every unclaimed entitlement of recipient in one payout.

        Raises:
            ClaimsNotEnabled: Gate is closed.
            NoAllocation: Nothing unclaimed for recipient.
            InsufficientFunds: Escrow cannot cover the payout.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        with self._state_lock:
            self._require_claimable(recipient)
        # Per-recipient locks are only created for names the registry holds.
        with self._claims.lock_for(recipient):
            # Debit and record commit together: no view sees escrow paid
            # while the reasons are still counted as unclaimed.
            with self._state_lock:
                self._require_claimable(recipient)
                lines = self._engine.unclaimed_lines(recipient)
                if not lines:
                    raise NoAllocation(
                        f"No unclaimed {self._token} allocation for {recipient}"
                    )
                receipt = self._engine.settle(recipient, lines, now=now)

        for reason, amount in zip(receipt.reasons, receipt.amounts):
            self.emit(
                EventKind.REWARD_CLAIMED,
                recipient,
                {
                    "token": self._token,
                    "recipient": recipient,
                    "reason": reason,
                    "amount": amount,
                    "transfer_id": receipt.transfer_id,
                },
                now=now,
            )
        return receipt

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def balance(self) -> int:
        with self._state_lock:
            return self._escrow.balance()

    def is_enabled(self) -> bool:
        return self._gate.is_enabled

    def total_allocation(self) -> int:
        with self._state_lock:
            return self._registry.total_allocation()

    def total_unclaimed(self) -> int:
        with self._state_lock:
            return self._engine.total_unclaimed()

    def user_unclaimed(self, recipient: str) -> tuple[list[str], list[int]]:
        """(reasons, amounts) still owed to recipient."""
        with self._state_lock:
            lines = self._engine.unclaimed_lines(recipient)
        return [r for r, _ in lines], [a for _, a in lines]

    def user_all(self, recipient: str) -> list[AllocationLine]:
        """Every reason granting recipient something, with claimed flags."""
        with self._state_lock:
            return self._engine.history(recipient)

    def claim_record(self, recipient: str) -> Optional[ClaimRecord]:
        return self._claims.get_record(recipient)

    def allocation_root(self) -> str:
        with self._state_lock:
            return self._registry.allocation_root()

    def allocation_proof(self, reason: str, recipient: str) -> Optional[MerkleProof]:
        with self._state_lock:
            return self._registry.allocation_proof(reason, recipient)

    def status(self) -> dict[str, Any]:
        with self._state_lock:
            balance = self._escrow.balance()
            unclaimed = self._engine.total_unclaimed()
            return {
                "token": self._token,
                "owner": self._owner_id,
                "escrow_account": self._escrow.account_id,
                "gate": self._gate.state.value,
                "balance": balance,
                "reasons": len(self._registry),
                "entitlements": self._registry.entitlement_count(),
                "total_allocation": self._registry.total_allocation(),
                "total_unclaimed": unclaimed,
                "total_claimed": self._claims.total_claimed(),
                "claimants": len(self._claims.recipients()),
                "solvent": balance >= unclaimed,
                "allocation_root": self._registry.allocation_root(),
            }

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        with self._state_lock:
            return {
                "token": self._token,
                "owner_id": self._owner_id,
                "require_closed_gate_for_allocation": self._require_closed_gate,
                "escrow": self._escrow.to_dict(),
                "registry": self._registry.to_dict(),
                "gate": self._gate.to_dict(),
                "claims": self._claims.to_dict(),
            }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        ledger: TokenLedger,
        event_log: Optional[EventLog] = None,
    ) -> Distributor:
        return cls(
            token=data["token"],
            owner_id=data["owner_id"],
            escrow=EscrowVault.from_dict(data["escrow"], ledger),
            registry=AllocationRegistry.from_dict(data["registry"]),
            claims=ClaimLedger.from_dict(data["claims"]),
            gate=ClaimsGate.from_dict(data["gate"]),
            event_log=event_log,
            require_closed_gate_for_allocation=data.get(
                "require_closed_gate_for_allocation", False,
            ),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_claimable(self, recipient: str) -> None:
        if not self._gate.is_enabled:
            raise ClaimsNotEnabled(f"Claims are not enabled for {self._token}")
        if not self._registry.has_recipient(recipient):
            raise NoAllocation(
                f"No {self._token} allocation names {recipient}"
            )

    def _require_owner(self, caller: str, operation: str) -> None:
        if caller != self._owner_id:
            raise PermissionDenied(
                f"{operation} on {self._token} requires the owner; caller was {caller!r}"
            )

    def emit(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Record an event. Returns an error string, or None on success."""
        if self._event_log is None:
            return None
        try:
            self._event_log.record(kind, actor_id, payload, timestamp_utc=now)
        except (ValueError, OSError) as e:
            err = f"Event log failure ({kind.value}): {e}"
            self.audit_failures.append(err)
            return err
        return None
