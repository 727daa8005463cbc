"""Repository abstractions for database interactions."""

from .claim_ledger import ClaimLedger

__all__ = ["ClaimLedger"]
