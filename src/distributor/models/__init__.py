"""Distributor data models."""

from distributor.models.distribution import (
    AllocationLine,
    ClaimReceipt,
    ClaimRecord,
    Entitlement,
    GateState,
    ReasonAllocation,
    validate_amount,
)

__all__ = [
    "AllocationLine",
    "ClaimReceipt",
    "ClaimRecord",
    "Entitlement",
    "GateState",
    "ReasonAllocation",
    "validate_amount",
]
