"""Escrow accounting models.

Every movement of value into or out of a contract's escrow is recorded
as an EscrowEntry. The account totals are kept alongside so the
conservation invariant can be checked without replaying entries:

    balance == deposited - released - paid_out >= 0
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional


class EscrowEntryKind(str, enum.Enum):
    """Direction and cause of an escrow movement."""
    DEPOSIT = "deposit"
    RELEASE = "release"          # employee withdrew their salary
    PAYOUT = "payout"            # arbitrator awarded the balance


@dataclass(frozen=True)
class EscrowEntry:
    """A single auditable escrow movement."""
    contract_id: int
    kind: EscrowEntryKind
    amount: Decimal
    counterparty: str
    timestamp_utc: Optional[datetime] = None
    transfer_ref: Optional[str] = None


@dataclass
class EscrowAccount:
    """Running totals for one contract's escrow."""
    contract_id: int
    deposited: Decimal = Decimal("0")
    released: Decimal = Decimal("0")
    paid_out: Decimal = Decimal("0")
    entries: list[EscrowEntry] = field(default_factory=list)

    @property
    def balance(self) -> Decimal:
        return self.deposited - self.released - self.paid_out

    @property
    def disbursed(self) -> Decimal:
        return self.released + self.paid_out
