"""Distributor error taxonomy.

Every error aborts the whole operation with no partial effect. All of them
derive from ValueError so callers that validate input the usual way
(``except ValueError``) also catch lifecycle and settlement failures.
"""

from __future__ import annotations


class DistributorError(ValueError):
    """Base class for all distributor failures."""


class PermissionDenied(DistributorError):
    """Caller is not the configured owner on an owner-only operation."""


class LengthMismatch(DistributorError):
    """Recipient and amount vectors have different lengths."""


class AlreadyInitialized(DistributorError):
    """A distributor already exists for this token type."""


class NotInitialized(DistributorError):
    """No distributor exists for this token type."""


class InsufficientFunds(DistributorError):
    """Escrow balance cannot cover the required amount."""


class ClaimsNotEnabled(DistributorError):
    """Claim attempted while the gate is closed."""


class ClaimsEnabled(DistributorError):
    """Allocation change attempted while the gate is open and policy forbids it."""


class NoAllocation(DistributorError):
    """Nothing is left unclaimed for the caller."""


class TransferFailed(DistributorError):
    """The token ledger refused a transfer."""
