"""Tests for the invariant audit — proves corrupted snapshots are flagged."""

import copy

import pytest

from distributor.audit import check_state
from distributor.config import DistributorConfig
from distributor.persistence.event_log import EventKind, EventLog
from distributor.service import DistributorService


OWNER = "treasury"


@pytest.fixture
def service() -> DistributorService:
    service = DistributorService(DistributorConfig(owner_id=OWNER), event_log=EventLog())
    service.mint("GEN", OWNER, 10_000)
    service.init_token(OWNER, "GEN")
    service.set_allocation(OWNER, "GEN", ["alice", "bob"], [1000, 500], "R1")
    service.set_allocation(OWNER, "GEN", ["alice"], [250], "R2")
    service.deposit(OWNER, "GEN", 2000)
    service.enable(OWNER, "GEN", True)
    service.claim("alice", "GEN")
    return service


class TestCleanState:
    def test_no_violations(self, service: DistributorService) -> None:
        assert check_state(service.snapshot(), service.event_log.events()) == []

    def test_empty_snapshot(self) -> None:
        assert check_state({"distributors": {}, "ledger": None}) == []


class TestViolations:
    def test_unknown_reason(self, service: DistributorService) -> None:
        snapshot = copy.deepcopy(service.snapshot())
        record = snapshot["distributors"]["GEN"]["claims"]["records"][0]
        record["reasons"].append("GHOST")
        record["amounts"]["GHOST"] = 0
        errors = check_state(snapshot)
        assert any("unknown reason 'GHOST'" in e for e in errors)

    def test_reason_recorded_twice(self, service: DistributorService) -> None:
        snapshot = copy.deepcopy(service.snapshot())
        record = snapshot["distributors"]["GEN"]["claims"]["records"][0]
        record["reasons"].append("R1")
        errors = check_state(snapshot)
        assert any("recorded twice" in e for e in errors)

    def test_escrow_drift(self, service: DistributorService) -> None:
        snapshot = copy.deepcopy(service.snapshot())
        snapshot["ledger"]["balances"]["GEN"]["escrow:GEN"] += 1
        errors = check_state(snapshot)
        assert any("escrow balance" in e for e in errors)

    def test_paid_exceeds_deposited(self, service: DistributorService) -> None:
        snapshot = copy.deepcopy(service.snapshot())
        snapshot["distributors"]["GEN"]["escrow"]["total_paid_out"] = 5000
        errors = check_state(snapshot)
        assert any("exceeds deposited" in e for e in errors)

    def test_records_disagree_with_payouts(self, service: DistributorService) -> None:
        snapshot = copy.deepcopy(service.snapshot())
        snapshot["distributors"]["GEN"]["claims"]["records"][0]["amounts"]["R1"] = 1
        errors = check_state(snapshot)
        assert any("claim records total" in e for e in errors)

    def test_double_payout_in_events(self, service: DistributorService) -> None:
        events = service.event_log.events()
        claimed = [e for e in events if e.event_kind == EventKind.REWARD_CLAIMED]
        errors = check_state(service.snapshot(), events + claimed[:1])
        assert any("more than once" in e for e in errors)
        assert any("event log payouts" in e for e in errors)
