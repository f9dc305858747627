"""Distribution subsystem — registry, escrow, gate, claim ledger, settlement."""

from distributor.distribution.claims import ClaimLedger
from distributor.distribution.distributor import Distributor
from distributor.distribution.escrow import EscrowVault
from distributor.distribution.gate import ClaimsGate
from distributor.distribution.registry import AllocationRegistry
from distributor.distribution.settlement import SettlementEngine

__all__ = [
    "AllocationRegistry",
    "ClaimLedger",
    "ClaimsGate",
    "Distributor",
    "EscrowVault",
    "SettlementEngine",
]
