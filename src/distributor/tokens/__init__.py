"""Token ledger backends."""

from distributor.tokens.ledger import InMemoryTokenLedger, TokenLedger

__all__ = [
    "InMemoryTokenLedger",
    "TokenLedger",
]
