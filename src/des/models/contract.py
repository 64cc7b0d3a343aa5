"""Contract, review and statistics models.

Contract lifecycle:
    CREATED → ACTIVE → DISPUTED → TERMINATED
    CREATED → ACTIVE → TERMINATED
    CREATED → ACTIVE → COMPLETED

Amounts are Decimal. No floats in payroll.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional


class ContractStatus(str, enum.Enum):
    """Lifecycle status of a work contract."""
    CREATED = "created"
    ACTIVE = "active"
    DISPUTED = "disputed"
    TERMINATED = "terminated"
    COMPLETED = "completed"


# Valid contract transitions
CONTRACT_TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.CREATED: frozenset({ContractStatus.ACTIVE}),
    ContractStatus.ACTIVE: frozenset({
        ContractStatus.DISPUTED,
        ContractStatus.TERMINATED,
        ContractStatus.COMPLETED,
    }),
    ContractStatus.DISPUTED: frozenset({ContractStatus.TERMINATED}),
    # Terminal states
    ContractStatus.TERMINATED: frozenset(),
    ContractStatus.COMPLETED: frozenset(),
}

REVIEWABLE_STATUSES = frozenset({
    ContractStatus.TERMINATED,
    ContractStatus.COMPLETED,
})


@dataclass
class Contract:
    """A salaried work agreement between a company and a credential holder.

    The employee identity is resolved from the credential when the
    contract is created and cached here. start_time stays None until the
    employee executes the contract. balance is the escrowed value not yet
    released or paid out.
    """
    contract_id: int
    company_id: int
    credential_id: int
    employee: str
    salary: Decimal
    duration: timedelta
    responsibilities: str
    termination_conditions: str
    arbitrator: str
    status: ContractStatus = ContractStatus.CREATED
    balance: Decimal = Decimal("0")
    start_time: Optional[datetime] = None
    created_utc: Optional[datetime] = None
    termination_reason: Optional[str] = None

    @property
    def end_time(self) -> Optional[datetime]:
        if self.start_time is None:
            return None
        return self.start_time + self.duration

    def is_active_at(self, now: datetime) -> bool:
        """ACTIVE status and still inside the agreed duration."""
        end = self.end_time
        return (
            self.status == ContractStatus.ACTIVE
            and end is not None
            and now < end
        )


@dataclass(frozen=True)
class Review:
    """Post-contract feedback. Append-only, never overwritten."""
    contract_id: int
    rating: int
    comments: str
    reviewer: str
    submitted_utc: Optional[datetime] = None


@dataclass(frozen=True)
class CompanyStats:
    """Aggregate figures derived from a company's contract history."""
    company_id: int
    total_employees: int
    active_employees: int
    total_contracts: int
    active_contracts: int
    average_rating: int
