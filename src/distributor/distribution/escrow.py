"""Escrow vault — the capability through which pooled funds move.

The vault is not the funds. It is a handle onto one escrow account on
the token ledger, for one token type. The owner deposits into it; the
settlement engine pays out of it. Nobody else reaches the escrow account.

The vault never lets the escrow balance go below zero: ``debit_to``
checks the balance and transfers under the same lock, so two concurrent
payouts cannot both pass the check against the same funds.
"""

from __future__ import annotations

import threading
from typing import Optional

from distributor.errors import InsufficientFunds
from distributor.models.distribution import validate_amount
from distributor.tokens.ledger import TokenLedger


def default_escrow_account(token: str) -> str:
    return f"escrow:{token}"


class EscrowVault:
    """Debit/credit capability over one escrow account.

    Usage:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 1_000)
        vault.debit_to("alice", 400)
        vault.balance()  # 600
    """

    def __init__(
        self,
        token: str,
        ledger: TokenLedger,
        account_id: Optional[str] = None,
    ) -> None:
        self._token = token
        self._ledger = ledger
        self._account_id = account_id or default_escrow_account(token)
        self._lock = threading.Lock()
        self._total_deposited = 0
        self._total_paid_out = 0

    @property
    def token(self) -> str:
        return self._token

    @property
    def account_id(self) -> str:
        return self._account_id

    @property
    def total_deposited(self) -> int:
        return self._total_deposited

    @property
    def total_paid_out(self) -> int:
        return self._total_paid_out

    def balance(self) -> int:
        """Current escrow holdings, read from the ledger."""
        return self._ledger.balance_of(self._token, self._account_id)

    def deposit(self, sender: str, amount: int) -> str:
        """Move amount from sender into escrow. Returns the transfer id.

        Raises:
            ValueError: If amount is not a positive integer.
            TransferFailed: If the sender cannot cover the amount.
        """
        validate_amount(amount)
        if amount == 0:
            raise ValueError("Deposit amount must be positive")
        with self._lock:
            transfer_id = self._ledger.transfer(
                self._token, sender, self._account_id, amount,
            )
            self._total_deposited += amount
        return transfer_id

    def debit_to(self, recipient: str, amount: int) -> str:
        """Pay amount out of escrow to recipient. Returns the transfer id.

        Raises:
            InsufficientFunds: If escrow holds less than amount.
        """
        validate_amount(amount)
        with self._lock:
            available = self.balance()
            if available < amount:
                raise InsufficientFunds(
                    f"Escrow {self._account_id} holds {available} {self._token}, "
                    f"cannot pay {amount} to {recipient}"
                )
            transfer_id = self._ledger.transfer(
                self._token, self._account_id, recipient, amount,
            )
            self._total_paid_out += amount
        return transfer_id

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "token": self._token,
            "account_id": self._account_id,
            "total_deposited": self._total_deposited,
            "total_paid_out": self._total_paid_out,
        }

    @classmethod
    def from_dict(cls, data: dict, ledger: TokenLedger) -> EscrowVault:
        vault = cls(data["token"], ledger, account_id=data["account_id"])
        vault._total_deposited = data.get("total_deposited", 0)
        vault._total_paid_out = data.get("total_paid_out", 0)
        return vault
