"""Distributor service — unified facade over every token type.

This is the primary interface for programmatic and CLI access. It owns:
- One Distributor per token type (independent state per token)
- The token ledger the escrows move funds on
- The event log every distributor reports to
- The state store snapshots are written to after each mutation

``initialize`` and ``distributor`` hand out Distributor instances and
raise on misuse. The remaining operations wrap a distributor call and
return a typed ServiceResult, so callers such as the CLI never need to
catch exceptions.

Persistence runs after the distributor has committed and reported an
operation. A failed write therefore never rolls back in-memory state
(which agrees with the audit trail); it sets ``persistence_degraded``
and surfaces a warning in the result instead.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Sequence

from distributor.config import DistributorConfig
from distributor.crypto.anchor import anchor_to_chain
from distributor.distribution.distributor import Distributor
from distributor.errors import AlreadyInitialized, NotInitialized, PermissionDenied
from distributor.persistence.event_log import EventKind, EventLog
from distributor.persistence.state_store import StateStore
from distributor.tokens.ledger import InMemoryTokenLedger, TokenLedger


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class DistributorService:
    """Facade over all per-token distributors.

    Usage:
        config = DistributorConfig(owner_id="treasury")
        service = DistributorService(config)
        service.mint("GEN", "treasury", 10_000)
        service.init_token("treasury", "GEN")
        service.set_allocation("treasury", "GEN", ["alice"], [1_000], "R1")
        service.deposit("treasury", "GEN", 1_000)
        service.enable("treasury", "GEN", True)
        result = service.claim("alice", "GEN")

    Persistence (optional):
        service = DistributorService(config, event_log=log, state_store=store)
        # State is loaded on construction and saved after each mutation.
    """

    def __init__(
        self,
        config: DistributorConfig,
        ledger: Optional[TokenLedger] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
    ) -> None:
        self._config = config
        self._event_log = event_log
        self._state_store = state_store
        self._distributors: dict[str, Distributor] = {}
        self._lock = threading.Lock()
        self.persistence_degraded = False

        snapshot = state_store.load() if state_store is not None else None
        if ledger is None:
            if snapshot and snapshot.get("ledger"):
                ledger = InMemoryTokenLedger.from_dict(snapshot["ledger"])
            else:
                ledger = InMemoryTokenLedger()
        self._ledger = ledger

        if snapshot:
            for token, data in snapshot.get("distributors", {}).items():
                self._distributors[token] = Distributor.from_dict(
                    data, self._ledger, event_log=self._event_log,
                )

    @property
    def config(self) -> DistributorConfig:
        return self._config

    @property
    def ledger(self) -> TokenLedger:
        return self._ledger

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    def tokens(self) -> list[str]:
        return sorted(self._distributors)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, caller: str, token: str) -> Distributor:
        """Create the distributor for token and return it.

        Raises:
            PermissionDenied: Caller is not the configured owner.
            AlreadyInitialized: token already has a distributor.
            ValueError: token is empty, or not among the configured
                tokens when the configuration lists any.
        """
        if caller != self._config.owner_id:
            raise PermissionDenied(
                f"initialize requires the owner; caller was {caller!r}"
            )
        if not token:
            raise ValueError("Token type must be a non-empty string")
        if self._config.tokens and token not in self._config.tokens:
            raise ValueError(
                f"Token type {token!r} is not configured "
                f"(allowed: {', '.join(self._config.tokens)})"
            )
        with self._lock:
            if token in self._distributors:
                raise AlreadyInitialized(f"Distributor for {token} already initialized")
            distributor = Distributor.create(
                token=token,
                owner_id=self._config.owner_id,
                ledger=self._ledger,
                escrow_account=self._config.escrow_account(token),
                event_log=self._event_log,
                require_closed_gate_for_allocation=(
                    self._config.require_closed_gate_for_allocation
                ),
            )
            self._distributors[token] = distributor
        distributor.emit(
            EventKind.DISTRIBUTOR_INITIALIZED,
            caller,
            {"token": token, "escrow_account": distributor.escrow.account_id},
        )
        return distributor

    def distributor(self, token: str) -> Distributor:
        """The distributor for token.

        Raises:
            NotInitialized: No distributor exists for token.
        """
        distributor = self._distributors.get(token)
        if distributor is None:
            raise NotInitialized(f"No distributor initialized for {token}")
        return distributor

    # ------------------------------------------------------------------
    # Result-returning operations
    # ------------------------------------------------------------------

    def init_token(self, caller: str, token: str) -> ServiceResult:
        return self._run(lambda: {
            "token": self.initialize(caller, token).token,
        })

    def mint(self, token: str, account: str, amount: int) -> ServiceResult:
        """Credit a local-ledger account. Only the in-memory ledger supports this."""
        if not isinstance(self._ledger, InMemoryTokenLedger):
            return ServiceResult(
                success=False,
                errors=["Minting is only available on the in-memory ledger"],
            )
        ledger = self._ledger

        def _mint() -> dict[str, Any]:
            ledger.mint(token, account, amount)
            return {
                "token": token,
                "account": account,
                "balance": ledger.balance_of(token, account),
            }
        return self._run(_mint)

    def set_allocation(
        self,
        caller: str,
        token: str,
        recipients: Sequence[str],
        amounts: Sequence[int],
        reason: str,
    ) -> ServiceResult:
        return self._run(
            lambda: self.distributor(token).set_allocation(
                caller, recipients, amounts, reason,
            )
        )

    def deposit(self, caller: str, token: str, amount: int) -> ServiceResult:
        return self._run(lambda: self.distributor(token).deposit(caller, amount))

    def enable(self, caller: str, token: str, enabled: bool) -> ServiceResult:
        return self._run(lambda: self.distributor(token).enable(caller, enabled))

    def claim(
        self,
        recipient: str,
        token: str,
        now: Optional[datetime] = None,
    ) -> ServiceResult:
        def _claim() -> dict[str, Any]:
            receipt = self.distributor(token).claim(recipient, now=now)
            return {
                "token": receipt.token,
                "recipient": receipt.recipient,
                "reasons": list(receipt.reasons),
                "amounts": list(receipt.amounts),
                "total": receipt.total,
                "transfer_id": receipt.transfer_id,
            }
        return self._run(_claim)

    def anchor(self, caller: str, token: str) -> ServiceResult:
        """Publish token's current allocation root on chain (owner only)."""
        def _anchor() -> dict[str, Any]:
            distributor = self.distributor(token)
            if caller != distributor.owner_id:
                raise PermissionDenied(
                    f"anchor on {token} requires the owner; caller was {caller!r}"
                )
            record = anchor_to_chain(
                token, distributor.allocation_root(), self._config.anchor,
            )
            data = {
                "token": token,
                "allocation_root": record.allocation_root,
                "tx_hash": record.tx_hash,
                "block_number": record.block_number,
                "chain_id": record.chain_id,
                "explorer_url": record.explorer_url,
            }
            distributor.emit(EventKind.ALLOCATION_ANCHORED, caller, data)
            return data
        return self._run(_anchor)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def user_unclaimed(self, token: str, recipient: str) -> ServiceResult:
        def _query() -> dict[str, Any]:
            reasons, amounts = self.distributor(token).user_unclaimed(recipient)
            return {"reasons": reasons, "amounts": amounts, "total": sum(amounts)}
        return self._run(_query, mutates=False)

    def user_all(self, token: str, recipient: str) -> ServiceResult:
        def _query() -> dict[str, Any]:
            lines = self.distributor(token).user_all(recipient)
            return {
                "lines": [
                    {"reason": l.reason, "amount": l.amount, "claimed": l.claimed}
                    for l in lines
                ],
            }
        return self._run(_query, mutates=False)

    def status(self) -> dict[str, Any]:
        return {
            "owner": self._config.owner_id,
            "tokens": {
                token: self._distributors[token].status() for token in self.tokens()
            },
            "events": self._event_log.count if self._event_log is not None else 0,
            "persistence_degraded": self.persistence_degraded,
        }

    def snapshot(self) -> dict[str, Any]:
        """The dict the state store would persist right now."""
        return {
            "distributors": {
                token: d.to_dict() for token, d in self._distributors.items()
            },
            "ledger": (
                self._ledger.to_dict()
                if isinstance(self._ledger, InMemoryTokenLedger) else None
            ),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: Callable[[], dict[str, Any]],
        mutates: bool = True,
    ) -> ServiceResult:
        """Execute operation, converting failures into a ServiceResult."""
        try:
            data = operation()
        except ValueError as e:
            return ServiceResult(success=False, errors=[str(e)])
        if mutates:
            warning = self._safe_persist_post_audit()
            if warning:
                data = {**data, "warning": warning}
        return ServiceResult(success=True, data=data)

    def _persist_state(self) -> None:
        """Persist current state to the state store (if wired).

        Can raise OSError; callers use _safe_persist_post_audit.
        """
        if self._state_store is None:
            return
        snapshot = self.snapshot()
        self._state_store.save(snapshot["distributors"], ledger=snapshot["ledger"])

    def _safe_persist_post_audit(self) -> Optional[str]:
        """Persist state after the operation has committed and been logged.

        MUST NOT roll back in-memory state. On failure, sets
        persistence_degraded and returns a warning string.
        """
        try:
            self._persist_state()
            return None
        except OSError as e:
            self.persistence_degraded = True
            return f"Persistence degraded: {e} — state committed in audit trail but StateStore is stale"
