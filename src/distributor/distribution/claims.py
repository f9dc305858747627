"""Claim ledger — per-recipient, append-only record of reasons paid.

Records are created lazily on a recipient's first successful claim and
only ever grow. There is deliberately no method that removes a reason
or a record: once a (recipient, reason) pair is here it can never be
paid again.

Each recipient also gets a lock. The settlement engine holds it for the
whole of a claim, so two concurrent claims by the same recipient cannot
both see a reason as unclaimed.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Optional, Sequence

from distributor.models.distribution import ClaimRecord


class ClaimLedger:
    """Claim records for one token type.

    Usage:
        claims = ClaimLedger("GEN")
        with claims.lock_for("alice"):
            if not claims.has_claimed("alice", "R1"):
                claims.record_claims("alice", ["R1"], [1_000])
    """

    def __init__(self, token: str) -> None:
        self._token = token
        self._records: dict[str, ClaimRecord] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @property
    def token(self) -> str:
        return self._token

    def lock_for(self, recipient: str) -> threading.Lock:
        """The mutual-exclusion lock for one recipient's claims.

        Locks are kept for the ledger's lifetime. The distributor only asks
        for recipients the registry names, so the map is bounded by the
        recipients the registry has ever named.
        """
        with self._guard:
            lock = self._locks.get(recipient)
            if lock is None:
                lock = threading.Lock()
                self._locks[recipient] = lock
            return lock

    def has_claimed(self, recipient: str, reason: str) -> bool:
        record = self._records.get(recipient)
        return record is not None and record.has_claimed(reason)

    def claimed_reasons(self, recipient: str) -> tuple[str, ...]:
        record = self._records.get(recipient)
        return tuple(record.reasons) if record else ()

    def get_record(self, recipient: str) -> Optional[ClaimRecord]:
        return self._records.get(recipient)

    def recipients(self) -> list[str]:
        """Every recipient that has ever claimed."""
        return list(self._records)

    def record_claims(
        self,
        recipient: str,
        reasons: Sequence[str],
        amounts: Sequence[int],
        now: Optional[datetime] = None,
    ) -> ClaimRecord:
        """Append paid reasons to recipient's record.

        All reasons are checked before any is appended, so a repeat
        leaves the record unchanged.

        Raises:
            ValueError: If lengths differ, a reason repeats within the
                call, or a reason is already recorded.
        """
        if len(reasons) != len(amounts):
            raise ValueError(
                f"{len(reasons)} reasons but {len(amounts)} amounts"
            )
        if len(set(reasons)) != len(reasons):
            raise ValueError(f"Duplicate reason in claim batch: {list(reasons)}")
        if now is None:
            now = datetime.now(timezone.utc)

        with self._guard:
            record = self._records.get(recipient)
            if record is None:
                record = ClaimRecord(recipient=recipient, token=self._token)
            for reason in reasons:
                if record.has_claimed(reason):
                    raise ValueError(
                        f"Reason {reason!r} already claimed by {recipient}"
                    )
            for reason, amount in zip(reasons, amounts):
                record.record(reason, amount, now)
            self._records[recipient] = record
        return record

    def total_claimed(self) -> int:
        return sum(r.total_claimed for r in self._records.values())

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "token": self._token,
            "records": [r.to_dict() for r in self._records.values()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> ClaimLedger:
        ledger = cls(data["token"])
        for item in data.get("records", []):
            record = ClaimRecord.from_dict(item)
            ledger._records[record.recipient] = record
        return ledger
