"""Core data models for the employment ledger."""

from des.models.company import Company, EmployeeCredential
from des.models.contract import (
    CONTRACT_TRANSITIONS,
    CompanyStats,
    Contract,
    ContractStatus,
    Review,
)
from des.models.escrow import EscrowAccount, EscrowEntry, EscrowEntryKind

__all__ = [
    "CONTRACT_TRANSITIONS",
    "Company",
    "CompanyStats",
    "Contract",
    "ContractStatus",
    "EmployeeCredential",
    "EscrowAccount",
    "EscrowEntry",
    "EscrowEntryKind",
    "Review",
]
