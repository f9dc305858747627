"""Tests for the escrow vault — proves escrow can never go below zero."""

import pytest

from distributor.distribution.escrow import EscrowVault, default_escrow_account
from distributor.errors import InsufficientFunds, TransferFailed
from distributor.tokens.ledger import InMemoryTokenLedger


@pytest.fixture
def ledger() -> InMemoryTokenLedger:
    ledger = InMemoryTokenLedger()
    ledger.mint("GEN", "owner", 5000)
    return ledger


class TestDeposit:
    def test_deposit_moves_owner_funds(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 1500)
        assert vault.balance() == 1500
        assert ledger.balance_of("GEN", "owner") == 3500
        assert vault.total_deposited == 1500

    def test_default_account_name(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        assert vault.account_id == default_escrow_account("GEN") == "escrow:GEN"

    def test_explicit_account(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger, account_id="pool")
        vault.deposit("owner", 10)
        assert ledger.balance_of("GEN", "pool") == 10

    def test_deposit_rejects_zero(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        with pytest.raises(ValueError, match="positive"):
            vault.deposit("owner", 0)

    def test_deposit_rejects_negative(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        with pytest.raises(ValueError, match="non-negative"):
            vault.deposit("owner", -5)

    def test_deposit_beyond_owner_balance(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        with pytest.raises(TransferFailed):
            vault.deposit("owner", 5001)
        assert vault.balance() == 0
        assert vault.total_deposited == 0


class TestDebit:
    def test_debit_pays_recipient(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 1000)
        transfer_id = vault.debit_to("alice", 400)
        assert transfer_id.startswith("tx_")
        assert vault.balance() == 600
        assert ledger.balance_of("GEN", "alice") == 400
        assert vault.total_paid_out == 400

    def test_debit_exact_balance(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 1000)
        vault.debit_to("alice", 1000)
        assert vault.balance() == 0

    def test_debit_never_below_zero(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 100)
        with pytest.raises(InsufficientFunds):
            vault.debit_to("alice", 101)
        assert vault.balance() == 100
        assert ledger.balance_of("GEN", "alice") == 0
        assert vault.total_paid_out == 0

    def test_tokens_are_isolated(self, ledger: InMemoryTokenLedger) -> None:
        ledger.mint("USD", "owner", 50)
        gen = EscrowVault("GEN", ledger)
        usd = EscrowVault("USD", ledger)
        gen.deposit("owner", 10)
        usd.deposit("owner", 20)
        assert gen.balance() == 10
        assert usd.balance() == 20


class TestEscrowPersistence:
    def test_round_trip(self, ledger: InMemoryTokenLedger) -> None:
        vault = EscrowVault("GEN", ledger)
        vault.deposit("owner", 300)
        vault.debit_to("alice", 100)
        restored = EscrowVault.from_dict(vault.to_dict(), ledger)
        assert restored.account_id == vault.account_id
        assert restored.total_deposited == 300
        assert restored.total_paid_out == 100
        assert restored.balance() == 200
