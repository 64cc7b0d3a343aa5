"""Compensation subsystem — escrow ledger and payment rails."""

from des.compensation.escrow import EscrowLedger
from des.compensation.payment_rail import InMemoryRail, PaymentRail

__all__ = [
    "EscrowLedger",
    "InMemoryRail",
    "PaymentRail",
]
