"""Tests for the settlement engine — unclaimed computation and one-transfer payouts."""

import pytest
from datetime import datetime, timezone

from distributor.distribution.claims import ClaimLedger
from distributor.distribution.escrow import EscrowVault
from distributor.distribution.registry import AllocationRegistry
from distributor.distribution.settlement import SettlementEngine
from distributor.errors import InsufficientFunds
from distributor.tokens.ledger import InMemoryTokenLedger


def _now() -> datetime:
    return datetime(2026, 3, 2, 12, 0, 0, tzinfo=timezone.utc)


class _Parts:
    def __init__(self, escrow_funds: int = 0) -> None:
        self.ledger = InMemoryTokenLedger()
        self.ledger.mint("GEN", "owner", 100_000)
        self.registry = AllocationRegistry("GEN")
        self.claims = ClaimLedger("GEN")
        self.escrow = EscrowVault("GEN", self.ledger)
        if escrow_funds:
            self.escrow.deposit("owner", escrow_funds)
        self.engine = SettlementEngine(self.registry, self.claims, self.escrow)


class TestUnclaimedComputation:
    def test_lines_follow_registry_order(self) -> None:
        p = _Parts()
        p.registry.upsert("R2", ["alice"], [5])
        p.registry.upsert("R1", ["alice", "bob"], [10, 20])
        assert p.engine.unclaimed_lines("alice") == [("R2", 5), ("R1", 10)]
        assert p.engine.unclaimed_lines("bob") == [("R1", 20)]

    def test_first_match_only(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice", "alice"], [100, 900])
        assert p.engine.unclaimed_lines("alice") == [("R1", 100)]

    def test_claimed_reason_excluded(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice"], [100])
        p.registry.upsert("R2", ["alice"], [50])
        p.claims.record_claims("alice", ["R1"], [100], now=_now())
        assert p.engine.unclaimed_lines("alice") == [("R2", 50)]

    def test_stranger_owed_nothing(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice"], [100])
        assert p.engine.unclaimed_lines("mallory") == []

    def test_total_unclaimed(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice", "bob"], [100, 200])
        p.registry.upsert("R2", ["alice"], [50])
        assert p.engine.total_unclaimed() == 350
        p.claims.record_claims("alice", ["R1"], [100], now=_now())
        assert p.engine.total_unclaimed() == 250

    def test_total_unclaimed_counts_duplicate_entries(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice", "alice"], [100, 900])
        assert p.engine.total_unclaimed() == 1000

    def test_history_marks_claimed(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice"], [100])
        p.registry.upsert("R2", ["alice"], [50])
        p.registry.upsert("R3", ["bob"], [1])
        p.claims.record_claims("alice", ["R1"], [100], now=_now())
        lines = p.engine.history("alice")
        assert [(l.reason, l.amount, l.claimed) for l in lines] == [
            ("R1", 100, True),
            ("R2", 50, False),
        ]


class TestSettle:
    def test_one_transfer_for_all_reasons(self) -> None:
        p = _Parts(escrow_funds=1500)
        p.registry.upsert("R1", ["alice"], [1000])
        p.registry.upsert("R2", ["alice"], [500])
        before = p.ledger.transfer_count
        receipt = p.engine.settle("alice", p.engine.unclaimed_lines("alice"), now=_now())
        assert p.ledger.transfer_count == before + 1
        assert receipt.total == 1500
        assert receipt.reasons == ("R1", "R2")
        assert receipt.amounts == (1000, 500)
        assert p.ledger.balance_of("GEN", "alice") == 1500
        assert p.claims.claimed_reasons("alice") == ("R1", "R2")

    def test_failed_debit_records_nothing(self) -> None:
        p = _Parts(escrow_funds=100)
        p.registry.upsert("R1", ["alice"], [1000])
        with pytest.raises(InsufficientFunds):
            p.engine.settle("alice", p.engine.unclaimed_lines("alice"), now=_now())
        assert p.claims.get_record("alice") is None
        assert p.escrow.balance() == 100

    def test_zero_total_records_without_transfer(self) -> None:
        p = _Parts()
        p.registry.upsert("R1", ["alice"], [0])
        before = p.ledger.transfer_count
        receipt = p.engine.settle("alice", p.engine.unclaimed_lines("alice"), now=_now())
        assert receipt.transfer_id is None
        assert p.ledger.transfer_count == before
        assert p.claims.has_claimed("alice", "R1")
