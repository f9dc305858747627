"""Token ledger abstraction — the external custody primitives.

The distributor never inspects ledger internals. It moves tokens through
this contract and nothing else: escrow funding, escrow payouts and
balance queries all go through ``transfer`` and ``balance_of``.

Swapping the backing ledger requires zero changes to the registry, the
claim ledger, the gate or the settlement engine.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Protocol, runtime_checkable
from uuid import uuid4

from distributor.errors import TransferFailed
from distributor.models.distribution import validate_amount


@runtime_checkable
class TokenLedger(Protocol):
    """Contract every token ledger backend must satisfy."""

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> str:
        """Move amount of token from sender to recipient.

        Returns a transfer identifier. Raises TransferFailed if the
        sender cannot cover the amount.
        """
        ...

    def balance_of(self, token: str, account: str) -> int:
        """Current holdings of token for account (0 if unknown)."""
        ...


class InMemoryTokenLedger:
    """Thread-safe in-process ledger keyed by (token, account).

    Usage:
        ledger = InMemoryTokenLedger()
        ledger.mint("GEN", "owner", 5_000)
        ledger.transfer("GEN", "owner", "escrow:GEN", 1_000)
        ledger.balance_of("GEN", "escrow:GEN")  # 1000
    """

    def __init__(self) -> None:
        self._balances: Dict[str, Dict[str, int]] = {}
        self._lock = threading.Lock()
        self._transfer_count = 0

    def mint(self, token: str, account: str, amount: int) -> None:
        """Create new supply directly in an account."""
        validate_amount(amount)
        with self._lock:
            accounts = self._balances.setdefault(token, {})
            accounts[account] = accounts.get(account, 0) + amount

    def transfer(self, token: str, sender: str, recipient: str, amount: int) -> str:
        validate_amount(amount)
        with self._lock:
            accounts = self._balances.setdefault(token, {})
            available = accounts.get(sender, 0)
            if available < amount:
                raise TransferFailed(
                    f"{sender} holds {available} {token}, cannot transfer {amount}"
                )
            accounts[sender] = available - amount
            accounts[recipient] = accounts.get(recipient, 0) + amount
            self._transfer_count += 1
            return f"tx_{uuid4().hex[:12]}"

    def balance_of(self, token: str, account: str) -> int:
        with self._lock:
            return self._balances.get(token, {}).get(account, 0)

    @property
    def transfer_count(self) -> int:
        return self._transfer_count

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "balances": {
                    token: dict(accounts)
                    for token, accounts in self._balances.items()
                },
                "transfer_count": self._transfer_count,
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InMemoryTokenLedger:
        ledger = cls()
        for token, accounts in data.get("balances", {}).items():
            ledger._balances[token] = {a: int(v) for a, v in accounts.items()}
        ledger._transfer_count = data.get("transfer_count", 0)
        return ledger
