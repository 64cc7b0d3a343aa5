"""Payment rail abstraction — where escrowed value leaves the ledger.

The escrow ledger never moves funds itself. It zeroes the contract
balance, then asks a PaymentRail to credit the recipient. A rail that
raises leaves the ledger to restore the balance, so a failed transfer
never counts as paid.

Adding a settlement backend = implement the PaymentRail Protocol and
pass it to EscrowLedger. Zero changes to escrow or lifecycle logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class PaymentRail(Protocol):
    """Contract for anything that can credit native value to an identity."""

    @property
    def rail_id(self) -> str:
        """Unique identifier (e.g. 'in_memory', 'eth_native')."""
        ...

    def transfer(self, recipient: str, amount: Decimal) -> str:
        """Credit amount to recipient. Returns a transfer reference.

        Must raise on failure; returning means the funds moved.
        """
        ...


@dataclass(frozen=True)
class TransferRecord:
    """A completed transfer on the in-memory rail."""
    transfer_ref: str
    recipient: str
    amount: Decimal
    timestamp_utc: datetime


@dataclass
class InMemoryRail:
    """Default rail: keeps recipient balances in a dict.

    Used for tests, the CLI and any deployment where settlement happens
    outside this process and only the ledger view matters.
    """
    rail_id: str = "in_memory"
    balances: dict[str, Decimal] = field(default_factory=dict)
    transfers: list[TransferRecord] = field(default_factory=list)

    def transfer(self, recipient: str, amount: Decimal) -> str:
        if amount <= Decimal("0"):
            raise ValueError("Transfer amount must be positive")
        ref = f"{self.rail_id}-{len(self.transfers) + 1:08d}"
        self.balances[recipient] = self.balances.get(recipient, Decimal("0")) + amount
        self.transfers.append(TransferRecord(
            transfer_ref=ref,
            recipient=recipient,
            amount=amount,
            timestamp_utc=datetime.now(timezone.utc),
        ))
        logger.debug("Credited %s to %s (%s)", amount, recipient, ref)
        return ref

    def balance_of(self, recipient: str) -> Decimal:
        return self.balances.get(recipient, Decimal("0"))

